from __future__ import annotations

from pipeline.errors import StageCheckFailed


class AuthError(StageCheckFailed):
    """Base auth error."""


class AuthInvalid(AuthError):
    """The backend accepted the sign-in but the session does not match the signer."""
