from __future__ import annotations

from auth.base import Profile, Session
from auth.errors import AuthError, AuthInvalid
from auth.siwe import authenticate, verify_profile

__all__ = [
    "Profile",
    "Session",
    "AuthError",
    "AuthInvalid",
    "authenticate",
    "verify_profile",
]
