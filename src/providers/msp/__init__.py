from __future__ import annotations

from providers.msp.api_manager import BackendHTTPError, BackendNotFound
from providers.msp.client import MspClient

__all__ = ["MspClient", "BackendHTTPError", "BackendNotFound"]
