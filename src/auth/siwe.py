"""
Sign-In with Ethereum against the MSP backend.

nonce (backend builds the EIP-4361 message) -> sign with the chain account
-> verify (backend returns a bearer token).
"""

from __future__ import annotations

from auth.base import Profile, Session
from auth.errors import AuthError, AuthInvalid
from logger import get_logger
from providers.base import BackendClient, ChainClient

log = get_logger("sentinel.auth")


def authenticate(
    backend: BackendClient,
    signer: ChainClient,
    *,
    domain: str,
    uri: str,
    chain_id: int,
) -> Session:
    message = backend.auth_nonce(signer.address, chain_id, domain, uri)
    if not message:
        raise AuthError("MSP returned an empty SIWE challenge")

    log.debug("SIWE challenge received (%d chars)", len(message))
    signature = signer.sign_message(message)

    session = backend.auth_verify(message, signature)
    if not session.token:
        raise AuthError("MSP returned an empty session token")

    return session


def verify_profile(profile: Profile, expected_address: str) -> None:
    if profile.address.lower() != expected_address.lower():
        raise AuthInvalid(f"Profile address mismatch: {profile.address} != {expected_address}")
