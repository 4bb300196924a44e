"""
Wait and polling primitives.

Every wait here is bounded: either a retries x delay budget (PollSpec) or a
wall-clock deadline (DeadlineSpec). Exhausting the budget raises WaitTimeout.

Errors raised by a check are treated as "not yet satisfied" unless
errors.aborts_wait() says otherwise.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from logger import get_logger
from pipeline.errors import WaitTimeout, aborts_wait
from providers.base import ChainClient, EventRecord, Header

log = get_logger("sentinel.waits")

T = TypeVar("T")

Sleep = Callable[[float], None]
Clock = Callable[[], float]


@dataclass(frozen=True)
class PollSpec:
    retries: int
    delay: float

    @property
    def budget(self) -> float:
        return self.retries * self.delay

    @classmethod
    def of(cls, pair: tuple[int, float]) -> "PollSpec":
        return cls(retries=int(pair[0]), delay=float(pair[1]))


@dataclass(frozen=True)
class DeadlineSpec:
    timeout: float
    interval: float


def _attempt(check: Callable[[], T], label: str) -> Optional[T]:
    try:
        return check()
    except Exception as e:
        if aborts_wait(e):
            raise
        log.debug("%s: check raised %s: %s (continuing)", label, type(e).__name__, e)
        return None


# ------------------------------------------------------------
# Fixed-interval polling
# ------------------------------------------------------------


def poll_backend(
    check: Callable[[], T],
    spec: PollSpec,
    *,
    label: str = "backend",
    sleep: Sleep = time.sleep,
) -> T:
    """Call check until it returns something truthy, at most spec.retries times."""
    for _ in range(spec.retries):
        result = _attempt(check, label)
        if result:
            return result
        sleep(spec.delay)

    raise WaitTimeout(f"Timeout waiting for {label} ({spec.budget:g}s)")


def wait_for_on_chain_data(
    query: Callable[[], T],
    predicate: Callable[[T], bool],
    spec: PollSpec,
    *,
    label: str = "on-chain data",
    sleep: Sleep = time.sleep,
) -> T:
    """Poll a state query until predicate(value) holds; return that value."""
    for _ in range(spec.retries):
        try:
            value = query()
            if predicate(value):
                return value
        except Exception as e:
            if aborts_wait(e):
                raise
            log.debug("%s: query raised %s: %s (continuing)", label, type(e).__name__, e)
        sleep(spec.delay)

    raise WaitTimeout(f"Timeout waiting for {label} ({spec.budget:g}s)")


def poll_until(
    check: Callable[[], T],
    spec: DeadlineSpec,
    *,
    label: str = "condition",
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> T:
    """Deadline-shaped polling; check runs at least once."""
    deadline = clock() + spec.timeout

    while True:
        result = _attempt(check, label)
        if result:
            return result

        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(spec.interval, remaining))

    raise WaitTimeout(f"Timeout waiting for {label} ({spec.timeout:g}s)")


# ------------------------------------------------------------
# Subscription-based waits
# ------------------------------------------------------------


def wait_for_finalization(
    chain: ChainClient,
    target: Optional[int] = None,
    timeout: float = 120.0,
    *,
    clock: Clock = time.monotonic,
) -> Header:
    """
    Block until a finalized head at or beyond target is observed.
    target defaults to best + 1.
    """
    if target is None:
        target = chain.best_block_number() + 1

    log.debug("Waiting for finalized block >= %s", target)
    sub = chain.subscribe_finalized_heads()
    try:
        deadline = clock() + timeout
        while True:
            remaining = deadline - clock()
            if remaining <= 0:
                raise WaitTimeout(
                    f"Timeout waiting for finalization of block {target} ({timeout:g}s)"
                )
            head = sub.next(remaining)
            if head is not None and head.number >= target:
                return head
    finally:
        sub.close()


def wait_for_event(
    chain: ChainClient,
    module: str,
    event: str,
    timeout: float,
    match: Optional[Callable[[EventRecord], bool]] = None,
    *,
    clock: Clock = time.monotonic,
) -> EventRecord:
    """Resolve on the first finalized module.event record accepted by match."""
    label = f"{module}.{event}"
    sub = chain.subscribe_events(module, event)
    try:
        deadline = clock() + timeout
        while True:
            remaining = deadline - clock()
            if remaining <= 0:
                raise WaitTimeout(f"Timeout waiting for {label} ({timeout:g}s)")
            record = sub.next(remaining)
            if record is None:
                continue
            if match is None or _attempt(lambda: match(record), label):
                return record
            log.debug("%s: ignoring non-matching event %s", label, _short(record.data))
    finally:
        sub.close()


def _short(value: Any, limit: int = 80) -> str:
    text = repr(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."
