"""
api_manager.py

HTTP plumbing for the MSP backend.

Responsibilities:
- One place that issues requests
- HTTP -> domain error translation
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from logger import get_logger
from pipeline.errors import AuthExpiredError, TransientInfraError

logger = get_logger("sentinel.msp")


# ============================================================
# Exceptions
# ============================================================


class BackendHTTPError(TransientInfraError):
    """Non-2xx response from the MSP backend. Message starts with 'HTTP <status>:'."""

    def __init__(self, status: int, detail: str = ""):
        super().__init__(f"HTTP {status}: {detail}" if detail else f"HTTP {status}")
        self.status = status
        self.detail = detail


class BackendNotFound(BackendHTTPError):
    def __init__(self, detail: str = ""):
        super().__init__(404, detail)


# ============================================================
# Error translation
# ============================================================


def _detail(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or response.reason or "").strip()[:300]

    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            if data.get(key):
                return str(data[key])[:300]
    return str(data)[:300]


def raise_for_response(response: requests.Response) -> None:
    status = response.status_code
    if status < 400:
        return

    detail = _detail(response)
    if status == 401:
        raise AuthExpiredError(f"HTTP 401: {detail}")
    if status == 404:
        raise BackendNotFound(detail)
    raise BackendHTTPError(status, detail)


# ============================================================
# Request wrapper
# ============================================================


def request(
    session: requests.Session,
    method: str,
    url: str,
    *,
    timeout: float,
    headers: Optional[dict[str, str]] = None,
    **kwargs: Any,
) -> requests.Response:
    try:
        response = session.request(method, url, headers=headers, timeout=timeout, **kwargs)
    except requests.Timeout as e:
        raise TransientInfraError(f"{method} {url} timed out: {e}") from e
    except requests.ConnectionError as e:
        raise TransientInfraError(f"{method} {url} connection error: {e}") from e

    logger.debug("%s %s -> %s", method, url, response.status_code)
    raise_for_response(response)
    return response


def json_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise TransientInfraError(f"Malformed JSON from {response.url}: {e}") from e
