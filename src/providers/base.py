"""
Collaborator interfaces.

The sentinel never talks to the chain or the MSP backend directly; stages
only see these narrow Protocols. Concrete adapters live in providers.msp
(HTTP backend) and in whatever chain adapter providers.registry resolves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence, TypeVar

from auth.base import Profile, Session

T_co = TypeVar("T_co", covariant=True)

# query_state() paths
BUCKETS = "providers.buckets"
STORAGE_REQUESTS = "fileSystem.storageRequests"

# Events the pipelines wait on
FILE_SYSTEM = "fileSystem"
STORAGE_REQUEST_FULFILLED = "StorageRequestFulfilled"
FILE_DELETION_REQUESTED = "FileDeletionRequested"


# ------------------------------------------------------------
# Chain value types
# ------------------------------------------------------------


@dataclass(frozen=True)
class Receipt:
    success: bool
    block_number: int
    tx_hash: str


@dataclass(frozen=True)
class Header:
    number: int
    hash: str = ""


@dataclass(frozen=True)
class EventRecord:
    module: str
    event: str
    data: dict[str, Any] = field(default_factory=dict)
    block_hash: str = ""

    def field_eq(self, name: str, value: str) -> bool:
        got = self.data.get(name)
        return got is not None and str(got).lower() == str(value).lower()


# ------------------------------------------------------------
# Chain calls
# ------------------------------------------------------------


@dataclass(frozen=True)
class ChainCall:
    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class CreateBucket(ChainCall):
    msp_id: str
    bucket_name: str
    value_prop_id: str
    private: bool = False


@dataclass(frozen=True)
class IssueStorageRequest(ChainCall):
    bucket_id: str
    location: str
    fingerprint: str
    size: int
    msp_id: str
    peer_ids: tuple[str, ...] = ()
    replicas: int = 1


@dataclass(frozen=True)
class RequestDeleteFile(ChainCall):
    file_key: str
    bucket_id: str
    location: str
    size: int
    fingerprint: str
    block_hash: str = "0x" + "00" * 32


@dataclass(frozen=True)
class DeleteBucket(ChainCall):
    bucket_id: str


# ------------------------------------------------------------
# Protocols
# ------------------------------------------------------------


class Subscription(Protocol[T_co]):
    def next(self, timeout: float) -> Optional[T_co]: ...

    def close(self) -> None: ...


class ChainClient(Protocol):
    address: str

    def sign_message(self, message: str) -> str: ...

    def best_block_number(self) -> int: ...

    def submit(self, call: ChainCall) -> str: ...

    def wait_for_receipt(self, tx_hash: str) -> Receipt: ...

    def subscribe_finalized_heads(self) -> Subscription[Header]: ...

    def query_state(self, path: str, key: str) -> Optional[Any]: ...

    def subscribe_events(self, module: str, event: str) -> Subscription[EventRecord]: ...

    def close(self) -> None: ...


class ContentAddresser(Protocol):
    def fingerprint(self, data: bytes) -> str: ...

    def file_key(
        self, owner: str, bucket_id: str, location: str, size: int, fingerprint: str
    ) -> str: ...

    def bucket_id(self, owner: str, name: str) -> str: ...


# ------------------------------------------------------------
# Backend value types
# ------------------------------------------------------------


@dataclass(frozen=True)
class HealthStatus:
    status: str

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"


@dataclass(frozen=True)
class MspInfo:
    msp_id: str
    multiaddresses: tuple[str, ...] = ()

    def peer_id(self) -> Optional[str]:
        """Last /p2p/<id> component of the first multiaddress that has one."""
        for addr in self.multiaddresses:
            parts = addr.split("/p2p/")
            if len(parts) > 1 and parts[-1]:
                return parts[-1].split("/")[0]
        return None


@dataclass(frozen=True)
class ValueProposition:
    id: str


@dataclass(frozen=True)
class BucketRecord:
    bucket_id: str
    name: str = ""


@dataclass(frozen=True)
class FileEntry:
    file_key: str
    status: str
    name: str = ""


@dataclass(frozen=True)
class FileInfo:
    file_key: str
    bucket_id: str
    location: str
    size: int
    fingerprint: str
    block_hash: str = ""
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class UploadReceipt:
    status: str
    file_key: str
    bucket_id: str
    fingerprint: str
    location: str

    @property
    def successful(self) -> bool:
        return self.status == "upload_successful"


class BackendClient(Protocol):
    def health(self) -> HealthStatus: ...

    def info(self) -> MspInfo: ...

    def value_propositions(self) -> Sequence[ValueProposition]: ...

    def auth_nonce(self, address: str, chain_id: int, domain: str, uri: str) -> str: ...

    def auth_verify(self, message: str, signature: str) -> Session: ...

    def profile(self) -> Profile: ...

    def list_buckets(self) -> Sequence[BucketRecord]: ...

    def get_bucket(self, bucket_id: str) -> Optional[BucketRecord]: ...

    def get_files(self, bucket_id: str) -> Sequence[FileEntry]: ...

    def get_file_info(self, bucket_id: str, file_key: str) -> FileInfo: ...

    def upload_file(
        self, bucket_id: str, file_key: str, data: bytes, owner: str, location: str
    ) -> UploadReceipt: ...

    def download_file(self, file_key: str) -> bytes: ...

    def close(self) -> None: ...
