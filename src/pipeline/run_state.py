from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from auth.base import Session
from auth.siwe import authenticate
from env import NetworkConfig
from logger import get_logger
from pipeline.artifacts import Artifacts
from pipeline.errors import MissingArtifactError
from pipeline.ledger import LedgerSubmitter
from pipeline.settings import PipelineSettings
from providers.base import BackendClient, ChainClient, ContentAddresser

log = get_logger("sentinel.context")


@dataclass
class RunContext:
    """
    Mutable state for one pipeline run.

    Owned by the runner and passed by reference to every stage. Stages may
    set `backend`, `session` and artifacts; everything else is fixed at
    construction.
    """

    network: NetworkConfig
    settings: PipelineSettings
    chain: ChainClient
    addresser: ContentAddresser
    ledger: LedgerSubmitter
    backend_factory: Callable[["RunContext"], BackendClient]

    backend: Optional[BackendClient] = None
    session: Optional[Session] = None
    artifacts: Artifacts = field(default_factory=Artifacts)

    sleep: Callable[[float], None] = time.sleep

    _auth_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _closed: bool = field(default=False, repr=False)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def current_session(self) -> Optional[Session]:
        """Accessor injected into the backend client."""
        return self.session

    def connect_backend(self) -> BackendClient:
        if self.backend is None:
            self.backend = self.backend_factory(self)
        return self.backend

    def require_backend(self) -> BackendClient:
        if self.backend is None:
            raise MissingArtifactError("backend")
        return self.backend

    @property
    def address(self) -> str:
        return self.chain.address

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def authenticate(self) -> Session:
        with self._auth_lock:
            msp = self.network.msp
            self.session = authenticate(
                self.require_backend(),
                self.chain,
                domain=msp.siwe_domain,
                uri=msp.siwe_uri,
                chain_id=self.network.chain.id,
            )
            return self.session

    def reauthenticate(self, stale: Optional[Session] = None) -> Session:
        """
        Refresh the session. Workers that saw the same stale session
        share a single refresh.
        """
        with self._auth_lock:
            if stale is not None and self.session is not None and self.session is not stale:
                return self.session
            log.info("Re-authenticating with MSP (SIWE)...")
            return self.authenticate()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        for name, closeable in (("backend", self.backend), ("chain", self.chain)):
            if closeable is None:
                continue
            try:
                closeable.close()
                log.debug("Closed %s client", name)
            except Exception as e:
                log.warning("Failed to close %s client: %s", name, e)
