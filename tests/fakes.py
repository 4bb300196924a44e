"""
In-memory stand-ins for the chain, content addresser and MSP backend.

FakeChain and FakeBackend are wired together by make_world(): creating a
bucket on chain makes it visible to the backend, uploading fulfils the
storage request, and deletions propagate both ways.
"""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from auth.base import Profile, Session
from env.networks import STAGENET, NetworkDelays
from pipeline.ledger import LedgerSubmitter
from pipeline.retry import RetrySpec
from pipeline.run_state import RunContext
from pipeline.settings import PipelineSettings
from pipeline.waits import DeadlineSpec, PollSpec
from providers.base import (
    BUCKETS,
    FILE_SYSTEM,
    STORAGE_REQUEST_FULFILLED,
    STORAGE_REQUESTS,
    BucketRecord,
    ChainCall,
    CreateBucket,
    DeleteBucket,
    EventRecord,
    FileEntry,
    FileInfo,
    HealthStatus,
    Header,
    IssueStorageRequest,
    MspInfo,
    Receipt,
    RequestDeleteFile,
    UploadReceipt,
    ValueProposition,
)
from providers.msp.api_manager import BackendNotFound

ACCOUNT = "0x00000000000000000000000000000000000000aa"


def _digest(*parts: Any) -> str:
    h = hashlib.sha256("|".join(str(p) for p in parts).encode())
    return "0x" + h.hexdigest()


class FakeAddresser:
    def fingerprint(self, data: bytes) -> str:
        return "0x" + hashlib.sha256(data).hexdigest()

    def file_key(self, owner: str, bucket_id: str, location: str, size: int, fingerprint: str) -> str:
        return _digest(owner, bucket_id, location, size, fingerprint)

    def bucket_id(self, owner: str, name: str) -> str:
        return _digest(owner, name)


class FakeSubscription:
    def __init__(self, produce):
        self._produce = produce
        self.close_count = 0

    def next(self, timeout: float):
        item = self._produce()
        if item is None:
            time.sleep(min(timeout, 0.005))
        return item

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def close(self) -> None:
        self.close_count += 1


class FakeChain:
    def __init__(self, addresser: FakeAddresser, address: str = ACCOUNT):
        self.address = address
        self.addresser = addresser
        self.backend: Optional["FakeBackend"] = None
        self.best = 100
        self.calls: list[ChainCall] = []
        self.state: dict[str, dict[str, Any]] = {BUCKETS: {}, STORAGE_REQUESTS: {}}
        self.events: list[EventRecord] = []
        self.subscriptions: list[FakeSubscription] = []
        self.fail_submit: dict[str, list[BaseException]] = {}
        self.failed_receipts: set[str] = set()
        self.clear_on_fulfill = True
        self.closed = False
        self._receipts: dict[str, Receipt] = {}
        self._lock = threading.Lock()

    # ---- signer ----

    def sign_message(self, message: str) -> str:
        return _digest("sig", self.address, message)

    # ---- blocks ----

    def best_block_number(self) -> int:
        return self.best

    def subscribe_finalized_heads(self) -> FakeSubscription:
        sub = FakeSubscription(lambda: Header(number=self.best + 5, hash=_digest("head", self.best)))
        self.subscriptions.append(sub)
        return sub

    # ---- submissions ----

    def submit(self, call: ChainCall) -> str:
        with self._lock:
            pending = self.fail_submit.get(call.name)
            if pending:
                raise pending.pop(0)

            self.calls.append(call)
            self.best += 1
            tx = _digest("tx", len(self.calls), call)
            success = call.name not in self.failed_receipts
            self._receipts[tx] = Receipt(success=success, block_number=self.best, tx_hash=tx)
            if success:
                self._apply(call)
            return tx

    def _apply(self, call: ChainCall) -> None:
        if isinstance(call, CreateBucket):
            bucket_id = self.addresser.bucket_id(self.address, call.bucket_name)
            self.state[BUCKETS][bucket_id.lower()] = {"name": call.bucket_name}
            if self.backend is not None:
                self.backend.buckets[bucket_id.lower()] = BucketRecord(bucket_id, call.bucket_name)
        elif isinstance(call, IssueStorageRequest):
            key = self.addresser.file_key(
                self.address, call.bucket_id, call.location, call.size, call.fingerprint
            )
            self.state[STORAGE_REQUESTS][key.lower()] = {
                "bucket_id": call.bucket_id,
                "replicas": call.replicas,
            }
        elif isinstance(call, RequestDeleteFile):
            self.state[STORAGE_REQUESTS].pop(call.file_key.lower(), None)
            if self.backend is not None:
                self.backend.remove_file(call.bucket_id, call.file_key)
        elif isinstance(call, DeleteBucket):
            self.state[BUCKETS].pop(call.bucket_id.lower(), None)
            if self.backend is not None:
                self.backend.buckets.pop(call.bucket_id.lower(), None)

    def wait_for_receipt(self, tx_hash: str) -> Receipt:
        return self._receipts[tx_hash]

    def call_names(self) -> list[str]:
        return [c.name for c in self.calls]

    # ---- state / events ----

    def query_state(self, path: str, key: str) -> Optional[Any]:
        return self.state.get(path, {}).get(key.lower())

    def fulfill(self, file_key: str) -> None:
        with self._lock:
            self.events.append(
                EventRecord(FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, {"file_key": file_key})
            )
            if self.clear_on_fulfill:
                self.state[STORAGE_REQUESTS].pop(file_key.lower(), None)

    def subscribe_events(self, module: str, event: str) -> FakeSubscription:
        def produce():
            with self._lock:
                for i, record in enumerate(self.events):
                    if record.module == module and record.event == event:
                        return self.events.pop(i)
            return None

        sub = FakeSubscription(produce)
        self.subscriptions.append(sub)
        return sub

    def close(self) -> None:
        self.closed = True


class FakeBackend:
    def __init__(self, chain: FakeChain, addresser: FakeAddresser):
        self.chain = chain
        self.addresser = addresser
        self.status = "healthy"
        self.buckets: dict[str, BucketRecord] = {}
        self.files: dict[str, dict[str, dict[str, Any]]] = {}
        self.upload_errors: dict[str, list[BaseException]] = {}
        self.download_errors: list[BaseException] = []
        self.corrupt_downloads = False
        self.sessions: list[Session] = []
        self.upload_calls: list[tuple[str, Optional[Session]]] = []
        self.session_provider = lambda: None
        self.closed = False
        self._lock = threading.Lock()

    # ---- info / auth ----

    def health(self) -> HealthStatus:
        return HealthStatus(self.status)

    def info(self) -> MspInfo:
        return MspInfo("0xmsp", ("/ip4/10.0.0.1/tcp/30333/p2p/12D3KooWPeer",))

    def value_propositions(self) -> list[ValueProposition]:
        return [ValueProposition("0xvalueprop")]

    def auth_nonce(self, address: str, chain_id: int, domain: str, uri: str) -> str:
        return f"{domain} wants you to sign in with {address} (chain {chain_id})"

    def auth_verify(self, message: str, signature: str) -> Session:
        session = Session(token=f"token-{len(self.sessions) + 1}", address=self.chain.address)
        self.sessions.append(session)
        return session

    def profile(self) -> Profile:
        return Profile(address=self.chain.address)

    # ---- buckets / files ----

    def list_buckets(self) -> list[BucketRecord]:
        return list(self.buckets.values())

    def get_bucket(self, bucket_id: str) -> Optional[BucketRecord]:
        return self.buckets.get(bucket_id.lower())

    def get_files(self, bucket_id: str) -> list[FileEntry]:
        with self._lock:
            return [
                FileEntry(file_key=k, status=v["status"], name=v["location"])
                for k, v in self.files.get(bucket_id.lower(), {}).items()
            ]

    def get_file_info(self, bucket_id: str, file_key: str) -> FileInfo:
        with self._lock:
            entry = self.files.get(bucket_id.lower(), {}).get(file_key.lower())
        if entry is None:
            raise BackendNotFound("file not found")
        return FileInfo(
            file_key=file_key.lower(),
            bucket_id=bucket_id,
            location=entry["location"],
            size=len(entry["data"]),
            fingerprint=entry["fingerprint"],
            block_hash="0x" + "11" * 32,
        )

    def upload_file(
        self, bucket_id: str, file_key: str, data: bytes, owner: str, location: str
    ) -> UploadReceipt:
        with self._lock:
            self.upload_calls.append((file_key, self.session_provider()))
            pending = self.upload_errors.get(location)
            if pending:
                raise pending.pop(0)
            fingerprint = self.addresser.fingerprint(data)
            self.files.setdefault(bucket_id.lower(), {})[file_key.lower()] = {
                "location": location,
                "data": data,
                "fingerprint": fingerprint,
                "status": "ready",
            }
        self.chain.fulfill(file_key)
        return UploadReceipt(
            status="upload_successful",
            file_key=file_key,
            bucket_id=bucket_id,
            fingerprint=fingerprint,
            location=location,
        )

    def remove_file(self, bucket_id: str, file_key: str) -> None:
        with self._lock:
            self.files.get(bucket_id.lower(), {}).pop(file_key.lower(), None)

    def download_file(self, file_key: str) -> bytes:
        if self.download_errors:
            raise self.download_errors.pop(0)
        with self._lock:
            for files in self.files.values():
                entry = files.get(file_key.lower())
                if entry is not None:
                    return entry["data"] + (b"x" if self.corrupt_downloads else b"")
        raise BackendNotFound("file not found")

    def close(self) -> None:
        self.closed = True


# ------------------------------------------------------------
# Context helpers
# ------------------------------------------------------------


class SleepRecorder:
    """ctx.sleep replacement: records requested delays, optionally sleeps a capped amount."""

    def __init__(self, real_cap: float = 0.0):
        self.calls: list[float] = []
        self.real_cap = real_cap
        self._lock = threading.Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.calls.append(seconds)
        if self.real_cap > 0:
            time.sleep(min(seconds, self.real_cap))


NO_DELAYS = replace(STAGENET, delays=NetworkDelays(0.0, 0.0, 0.0), max_replication=2)

FAST_POLL = PollSpec(retries=5, delay=0.0)

FAST_SCHEDULE = (0.01, 0.01, 0.01)


def fast_retry(min_attempts: int = 3) -> RetrySpec:
    return RetrySpec(
        min_attempts=min_attempts,
        max_total=2.0,
        base_delay=0.01,
        max_delay=0.02,
        conflict_schedule=FAST_SCHEDULE,
    )


def fast_settings(tmp_path: Path, **overrides) -> PipelineSettings:
    values = dict(
        pipeline="monitor",
        badge_label_prefix="Sanity",
        output_dir=tmp_path / "badges",
        conflict_schedule=FAST_SCHEDULE,
        upload_retry=fast_retry(),
        download_retry=fast_retry(),
        bucket_index_poll=FAST_POLL,
        file_index_poll=FAST_POLL,
        absence_poll=FAST_POLL,
        sr_visible_poll=FAST_POLL,
        sr_cleared_poll=FAST_POLL,
        bucket_absent_poll=FAST_POLL,
        bucket_ready_poll=FAST_POLL,
        fulfillment_timeout=0.5,
        finalization_timeout=0.5,
        ready_poll=DeadlineSpec(timeout=0.5, interval=0.01),
        initial_files=4,
        delete_first=2,
        second_batch=2,
        min_file_size=16,
        max_file_size=64,
        min_issue_to_upload=0.0,
        post_bulk_wait=0.0,
        sr_visible_timeout=10.0,
        sr_cleared_timeout=9.0,
        progress_interval=0.05,
    )
    values.update(overrides)
    return PipelineSettings(**values)


def make_world() -> tuple[FakeChain, FakeAddresser, FakeBackend]:
    addresser = FakeAddresser()
    chain = FakeChain(addresser)
    backend = FakeBackend(chain, addresser)
    chain.backend = backend
    return chain, addresser, backend


def make_context(
    settings: PipelineSettings,
    *,
    world: tuple[FakeChain, FakeAddresser, FakeBackend] | None = None,
    network=NO_DELAYS,
    sleep=None,
) -> RunContext:
    chain, addresser, backend = world or make_world()

    def factory(ctx: RunContext) -> FakeBackend:
        backend.session_provider = ctx.current_session
        return backend

    return RunContext(
        network=network,
        settings=settings,
        chain=chain,
        addresser=addresser,
        ledger=LedgerSubmitter(chain),
        backend_factory=factory,
        sleep=sleep or SleepRecorder(),
    )
