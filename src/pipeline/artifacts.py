"""
Write-once artifact store threaded through a run.

A stage that produces something a later stage (or cleanup) needs puts it
here. Reading a missing key or writing a key twice is an invariant
violation, never a retryable error.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from pipeline.errors import ArtifactAlreadySet, MissingArtifactError


class Artifact(str, Enum):
    MSP_ID = "msp_id"
    VALUE_PROP_ID = "value_prop_id"
    PEER_ID = "peer_id"
    BUCKET_NAME = "bucket_name"
    BUCKET_ID = "bucket_id"
    BUCKET_TX = "bucket_tx"
    BUCKET_DELETED = "bucket_deleted"
    DOWNLOADED = "downloaded"


BATCH_PREFIX = "batch."


def batch_key(name: str) -> str:
    return f"{BATCH_PREFIX}{name}"


@dataclass
class FileSpec:
    """
    One payload moving through the storage flow.

    The flags are flipped by the stage that observes the transition and
    read by cleanup to decide what still needs deleting.
    """

    name: str
    location: str
    data: bytes
    fingerprint: str = ""
    file_key: str = ""
    tx_hash: Optional[str] = None
    issued_at: Optional[float] = None
    storage_requested: bool = False
    uploaded: bool = False
    deletion_requested: bool = False

    @property
    def size(self) -> int:
        return len(self.data)

    def mark_submitted(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        self.storage_requested = True

    def mark_issued(self) -> None:
        self.issued_at = time.monotonic()

    def age(self) -> Optional[float]:
        if self.issued_at is None:
            return None
        return time.monotonic() - self.issued_at


@dataclass
class FileBatch:
    name: str
    files: list[FileSpec] = field(default_factory=list)
    replicas: int = 1

    def __iter__(self) -> Iterator[FileSpec]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def pending_deletion(self) -> list[FileSpec]:
        return [f for f in self.files if f.storage_requested and not f.deletion_requested]


class Artifacts:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, Any] = {}

    @staticmethod
    def _key(key: str | Artifact) -> str:
        return key.value if isinstance(key, Artifact) else str(key)

    def put(self, key: str | Artifact, value: Any) -> Any:
        k = self._key(key)
        with self._lock:
            if k in self._values:
                raise ArtifactAlreadySet(k)
            self._values[k] = value
        return value

    def require(self, key: str | Artifact) -> Any:
        k = self._key(key)
        with self._lock:
            if k not in self._values:
                raise MissingArtifactError(k)
            return self._values[k]

    def get(self, key: str | Artifact, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(self._key(key), default)

    def has(self, key: str | Artifact) -> bool:
        with self._lock:
            return self._key(key) in self._values

    def batches(self) -> list[FileBatch]:
        with self._lock:
            return [v for k, v in self._values.items() if k.startswith(BATCH_PREFIX)]

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._values)
