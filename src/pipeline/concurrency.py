"""
Bounded fan-out for HTTP-bound and observation-only work.

Ledger submissions never go through here; see ledger.LedgerSubmitter.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, Hashable, Iterable, Optional, TypeVar

from logger import get_logger

log = get_logger("sentinel.concurrency")

T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


def run_bounded(
    items: Iterable[T],
    width: int,
    fn: Callable[[T, int], R],
) -> list[R]:
    """
    Run fn(item, index) with at most `width` calls in flight.

    Items are dispatched in input order. The first error stops further
    dispatch; work already started is allowed to settle, then that first
    error is raised. Results are returned in input order.
    """
    pending = list(items)
    total = len(pending)
    if total == 0:
        return []

    width = max(1, min(int(width), total))
    results: list[Optional[R]] = [None] * total
    errors: list[BaseException] = []
    lock = threading.Lock()
    cursor = 0

    def worker() -> None:
        nonlocal cursor
        while True:
            with lock:
                if errors or cursor >= total:
                    return
                idx = cursor
                cursor += 1

            try:
                results[idx] = fn(pending[idx], idx)
            except Exception as e:
                with lock:
                    errors.append(e)
                log.debug("Bounded worker item %d failed: %s", idx, e)
                return

    with ThreadPoolExecutor(max_workers=width, thread_name_prefix="sentinel-worker") as pool:
        futures = [pool.submit(worker) for _ in range(width)]
        for f in futures:
            f.result()

    if errors:
        raise errors[0]
    return results  # type: ignore[return-value]


class ItemStatusBoard(Generic[K]):
    """Lock-guarded per-item status map shared by bounded workers."""

    def __init__(self, keys: Iterable[K] = (), initial: str = "pending"):
        self._lock = threading.Lock()
        self._status: dict[K, str] = {k: initial for k in keys}

    def set(self, key: K, status: str) -> None:
        with self._lock:
            self._status[key] = status

    def get(self, key: K, default: str = "unknown") -> str:
        with self._lock:
            return self._status.get(key, default)

    def counts(self) -> Counter:
        with self._lock:
            return Counter(self._status.values())

    def snapshot(self) -> dict[K, str]:
        with self._lock:
            return dict(self._status)

    def __len__(self) -> int:
        with self._lock:
            return len(self._status)


class ProgressTicker:
    """
    Calls `report` every `interval` seconds on a daemon thread until the
    context exits.
    """

    def __init__(self, report: Callable[[float], None], interval: float):
        self._report = report
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started = 0.0

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._report(time.monotonic() - self._started)
            except Exception as e:
                log.debug("Progress report failed: %s", e)

    def __enter__(self) -> "ProgressTicker":
        self._started = time.monotonic()
        self._thread = threading.Thread(target=self._run, name="sentinel-progress", daemon=True)
        self._thread.start()
        return self

    def __exit__(self, *exc) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 1.0)
