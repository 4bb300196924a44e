from __future__ import annotations

from typing import Any, Callable, Optional

import requests

from auth.base import Profile, Session
from logger import get_logger
from pipeline.errors import TransientInfraError
from providers.base import (
    BucketRecord,
    FileEntry,
    FileInfo,
    HealthStatus,
    MspInfo,
    UploadReceipt,
    ValueProposition,
)
from providers.msp.api_manager import BackendNotFound, json_body, request

log = get_logger("sentinel.msp")

SessionProvider = Callable[[], Optional[Session]]


def _hex(value: Any) -> str:
    text = str(value or "")
    return text if not text or text.startswith("0x") else f"0x{text}"


def flatten_file_tree(nodes: list[dict]) -> list[FileEntry]:
    """Walk the backend's folder/file tree and return file leaves."""
    out: list[FileEntry] = []
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.get("type") == "file":
            out.append(
                FileEntry(
                    file_key=_hex(node.get("fileKey")),
                    status=_normalize_status(node.get("status", "")),
                    name=node.get("name", ""),
                )
            )
        else:
            stack.extend(node.get("children") or [])
    return out


def _normalize_status(status: str) -> str:
    if status in ("in_progress", "inProgress"):
        return "in_progress"
    return str(status or "").lower()


class MspClient:
    """
    requests-based client for the MSP REST backend.

    The bearer token is read through `session_provider` on every call, so
    re-authentication on the RunContext takes effect immediately.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        session_provider: SessionProvider = lambda: None,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session_provider = session_provider
        self._http = http or requests.Session()
        self._http.headers.setdefault("Accept", "application/json")

    # ------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------

    def _headers(self, authenticated: bool) -> dict[str, str]:
        if not authenticated:
            return {}
        session = self._session_provider()
        return session.bearer() if session else {}

    def _call(self, method: str, path: str, *, authenticated: bool = True, **kwargs) -> requests.Response:
        return request(
            self._http,
            method,
            f"{self.base_url}{path}",
            timeout=self.timeout,
            headers=self._headers(authenticated),
            **kwargs,
        )

    def _json(self, method: str, path: str, **kwargs) -> Any:
        return json_body(self._call(method, path, **kwargs))

    # ------------------------------------------------------------
    # info
    # ------------------------------------------------------------

    def health(self) -> HealthStatus:
        data = self._json("GET", "/health", authenticated=False)
        return HealthStatus(status=str(data.get("status", "unknown")))

    def info(self) -> MspInfo:
        data = self._json("GET", "/info", authenticated=False)
        return MspInfo(
            msp_id=_hex(data.get("mspId")),
            multiaddresses=tuple(data.get("multiaddresses") or ()),
        )

    def value_propositions(self) -> list[ValueProposition]:
        data = self._json("GET", "/value-props", authenticated=False)
        return [ValueProposition(id=_hex(v.get("id"))) for v in data or []]

    # ------------------------------------------------------------
    # auth
    # ------------------------------------------------------------

    def auth_nonce(self, address: str, chain_id: int, domain: str, uri: str) -> str:
        data = self._json(
            "POST",
            "/auth/nonce",
            authenticated=False,
            json={"address": address, "chainId": chain_id, "domain": domain, "uri": uri},
        )
        return str(data.get("message", ""))

    def auth_verify(self, message: str, signature: str) -> Session:
        data = self._json(
            "POST",
            "/auth/verify",
            authenticated=False,
            json={"message": message, "signature": signature},
        )
        user = data.get("user") or {}
        return Session(token=str(data.get("token", "")), address=str(user.get("address", "")))

    def profile(self) -> Profile:
        data = self._json("GET", "/auth/profile")
        return Profile(address=str(data.get("address", "")), ens=data.get("ens"))

    # ------------------------------------------------------------
    # buckets / files
    # ------------------------------------------------------------

    def list_buckets(self) -> list[BucketRecord]:
        data = self._json("GET", "/buckets")
        return [
            BucketRecord(bucket_id=_hex(b.get("bucketId")), name=str(b.get("name", "")))
            for b in data or []
        ]

    def get_bucket(self, bucket_id: str) -> Optional[BucketRecord]:
        try:
            data = self._json("GET", f"/buckets/{bucket_id}")
        except BackendNotFound:
            return None
        return BucketRecord(bucket_id=_hex(data.get("bucketId")), name=str(data.get("name", "")))

    def get_files(self, bucket_id: str) -> list[FileEntry]:
        data = self._json("GET", f"/buckets/{bucket_id}/files")
        return flatten_file_tree(data.get("files") or [])

    def get_file_info(self, bucket_id: str, file_key: str) -> FileInfo:
        data = self._json("GET", f"/buckets/{bucket_id}/info/{file_key}")
        return FileInfo(
            file_key=_hex(data.get("fileKey")),
            bucket_id=_hex(data.get("bucketId")),
            location=str(data.get("location", "")),
            size=int(data.get("size", 0)),
            fingerprint=_hex(data.get("fingerprint")),
            block_hash=_hex(data.get("blockHash")),
            tx_hash=_hex(data["txHash"]) if data.get("txHash") else None,
        )

    def upload_file(
        self, bucket_id: str, file_key: str, data: bytes, owner: str, location: str
    ) -> UploadReceipt:
        body = self._json(
            "PUT",
            f"/buckets/{bucket_id}/upload/{file_key}",
            files={"file": (location.rsplit("/", 1)[-1] or "file", data, "application/octet-stream")},
            data={"owner": owner, "location": location},
        )
        return UploadReceipt(
            status=str(body.get("status", "")),
            file_key=_hex(body.get("fileKey")),
            bucket_id=_hex(body.get("bucketId")),
            fingerprint=_hex(body.get("fingerprint")),
            location=str(body.get("location", "")),
        )

    def download_file(self, file_key: str) -> bytes:
        response = self._call("GET", f"/download/{file_key}")
        if response.status_code != 200:
            raise TransientInfraError(f"Download returned HTTP {response.status_code}")
        return response.content

    def close(self) -> None:
        self._http.close()
