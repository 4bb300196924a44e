"""
Classification-aware retry with exponential backoff.

Retryable failures back off base x 1.5^(n-1) up to a ceiling; conflicts
follow a fixed schedule instead. Both respect the total-time window once
the minimum attempts have been made.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, TypeVar

from logger import get_logger
from pipeline.errors import Classification, InvariantViolation

log = get_logger("sentinel.retry")

T = TypeVar("T")

BACKOFF_FACTOR = 1.5


@dataclass(frozen=True)
class RetrySpec:
    """
    min_attempts are always made. Past that, attempts only start while the
    elapsed time is within max_total. Conflicts follow conflict_schedule.
    """

    min_attempts: int
    max_total: float
    base_delay: float
    max_delay: float
    conflict_schedule: Sequence[float] = ()

    def backoff(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (BACKOFF_FACTOR ** (attempt - 1)))


def retry(
    operation: Callable[[], T],
    classify: Callable[[BaseException], Classification],
    spec: RetrySpec,
    reauth: Optional[Callable[[], None]] = None,
    *,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    started = clock()
    attempt = 0
    conflicts = 0

    while True:
        attempt += 1
        try:
            return operation()

        except InvariantViolation:
            raise

        except Exception as e:
            c = classify(e)
            if not c.retryable:
                raise

            if c.conflict:
                if conflicts >= len(spec.conflict_schedule):
                    log.warning(
                        "%s: conflict persisted through %d scheduled retries: %s",
                        label,
                        conflicts,
                        e,
                    )
                    raise
                delay = float(spec.conflict_schedule[conflicts])
                elapsed = clock() - started
                if attempt >= spec.min_attempts and elapsed + delay > spec.max_total:
                    log.warning(
                        "%s: conflict retry in %gs would exceed the %gs budget: %s",
                        label,
                        delay,
                        spec.max_total,
                        e,
                    )
                    raise
                conflicts += 1
                log.info(
                    "%s: conflict (%s), retry %d/%d in %gs",
                    label,
                    e,
                    conflicts,
                    len(spec.conflict_schedule),
                    delay,
                )
                sleep(delay)
                continue

            elapsed = clock() - started
            budget_applies = attempt >= spec.min_attempts
            if budget_applies and elapsed > spec.max_total:
                log.warning("%s: giving up after %d attempts (%.1fs): %s", label, attempt, elapsed, e)
                raise

            if c.needs_reauth and reauth is not None:
                try:
                    reauth()
                except Exception as re:
                    log.warning("%s: re-authentication failed: %s", label, re)

            delay = spec.backoff(attempt)
            if budget_applies:
                remaining = spec.max_total - (clock() - started)
                if remaining <= 0:
                    log.warning(
                        "%s: retry budget exhausted after %d attempts: %s", label, attempt, e
                    )
                    raise
                delay = min(delay, remaining)

            log.warning(
                "%s failed (attempt %d), retrying in %.1fs: %s",
                label,
                attempt,
                delay,
                e,
            )
            sleep(delay)
