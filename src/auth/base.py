from __future__ import annotations

from dataclasses import dataclass, field
import time


@dataclass(frozen=True)
class Session:
    """Bearer session issued by the MSP backend after SIWE verification."""

    token: str
    address: str
    issued_at: float = field(default_factory=time.time)

    def bearer(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass(frozen=True)
class Profile:
    address: str
    ens: str | None = None
