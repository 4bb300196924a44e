"""
Sequential chain submission. Every extrinsic the pipelines send goes
through one LedgerSubmitter so nonces never race.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from logger import get_logger
from pipeline.errors import TransactionFailed
from providers.base import ChainCall, ChainClient, Receipt

log = get_logger("sentinel.ledger")


class LedgerSubmitter:
    """
    Serializes chain submissions so nonces are assigned in order.

    submit() holds a lock for the duration of the chain call; hashes are
    recorded in submission order. Waiting for receipts happens outside
    the lock and may run concurrently.
    """

    def __init__(
        self,
        chain: ChainClient,
        *,
        spacing: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._chain = chain
        self._lock = threading.Lock()
        self._spacing = spacing
        self._sleep = sleep
        self.submitted: list[tuple[str, str]] = []

    def submit(self, call: ChainCall) -> str:
        with self._lock:
            tx_hash = self._chain.submit(call)
            if not tx_hash:
                raise TransactionFailed(call.name)
            self.submitted.append((call.name, tx_hash))
            log.debug("Submitted %s: %s", call.name, tx_hash)
            if self._spacing > 0:
                self._sleep(self._spacing)
            return tx_hash

    def confirm(self, tx_hash: str, what: str = "chain") -> Receipt:
        receipt = self._chain.wait_for_receipt(tx_hash)
        if not receipt.success:
            raise TransactionFailed(what, tx_hash)
        return receipt

    def submit_and_confirm(self, call: ChainCall) -> Receipt:
        return self.confirm(self.submit(call), call.name)

    @property
    def hashes(self) -> list[str]:
        return [h for _, h in self.submitted]

    def last(self) -> Optional[str]:
        return self.submitted[-1][1] if self.submitted else None
