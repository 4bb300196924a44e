"""
Error taxonomy for the sentinel pipeline.

Every failure a stage can raise falls into one of four families:

- TransientInfraError   network blips, HTTP 4xx/5xx the backend recovers from
- AuthExpiredError      session rejected; re-authenticate, then retry
- DomainConflictError   external state blocks the operation for now
- InvariantViolation    programming/ordering errors; never retried

WaitTimeout and the stage assertion errors are fatal to the stage that
raised them but are not invariant violations: cleanup still runs.
"""

from __future__ import annotations

from dataclasses import dataclass


class SentinelError(Exception):
    """Base class for all sentinel errors."""


# ------------------------------------------------------------
# Retryable families
# ------------------------------------------------------------


class TransientInfraError(SentinelError):
    pass


class AuthExpiredError(TransientInfraError):
    pass


class DomainConflictError(SentinelError):
    pass


# ------------------------------------------------------------
# Invariant violations (fatal, never retried)
# ------------------------------------------------------------


class InvariantViolation(SentinelError):
    pass


class MissingArtifactError(InvariantViolation):
    def __init__(self, key: str):
        super().__init__(f"Missing artifact: {key}")
        self.key = key


class ArtifactAlreadySet(InvariantViolation):
    def __init__(self, key: str):
        super().__init__(f"Artifact already set: {key}")
        self.key = key


class IllegalTransition(InvariantViolation):
    def __init__(self, stage_id: str, current: str, target: str):
        super().__init__(f"Illegal transition for {stage_id}: {current} -> {target}")
        self.stage_id = stage_id
        self.current = current
        self.target = target


# ------------------------------------------------------------
# Stage-fatal errors
# ------------------------------------------------------------


class WaitTimeout(SentinelError, TimeoutError):
    pass


class StageCheckFailed(SentinelError):
    pass


class TransactionFailed(StageCheckFailed):
    def __init__(self, what: str, tx_hash: str | None = None):
        msg = f"{what} transaction failed"
        if tx_hash:
            msg += f" ({tx_hash})"
        super().__init__(msg)
        self.tx_hash = tx_hash


class IntegrityError(StageCheckFailed):
    pass


# ------------------------------------------------------------
# Classification
# ------------------------------------------------------------


@dataclass(frozen=True)
class Classification:
    retryable: bool
    needs_reauth: bool = False
    conflict: bool = False


FATAL = Classification(retryable=False)
RETRYABLE = Classification(retryable=True)
REAUTH = Classification(retryable=True, needs_reauth=True)
CONFLICT = Classification(retryable=True, conflict=True)

_CONFLICT_PATTERNS = ("FileHasActiveStorageRequest",)
_REAUTH_PATTERNS = ("HTTP 401", "HTTP 403")
_RETRYABLE_PATTERNS = (
    "not expecting",
    "HTTP 400",
    "HTTP 404",
    "HTTP 429",
    "HTTP 5",
    "timeout",
    "timed out",
)


def classify_error(exc: BaseException) -> Classification:
    """
    Default classifier used by the retry executor.

    Types win over message text; message patterns cover errors that
    collaborators raise as plain exceptions.
    """
    if isinstance(exc, InvariantViolation):
        return FATAL
    if isinstance(exc, DomainConflictError):
        return CONFLICT
    if isinstance(exc, AuthExpiredError):
        return REAUTH
    if isinstance(exc, (WaitTimeout, StageCheckFailed)):
        return FATAL

    msg = str(exc)
    lowered = msg.lower()

    if any(p in msg for p in _CONFLICT_PATTERNS):
        return CONFLICT
    if any(p in msg for p in _REAUTH_PATTERNS):
        return REAUTH
    if isinstance(exc, TransientInfraError):
        return RETRYABLE
    if any(p.lower() in lowered for p in _RETRYABLE_PATTERNS):
        return RETRYABLE

    return FATAL


def aborts_wait(exc: BaseException) -> bool:
    """
    True for errors a polling loop must propagate instead of treating as
    'not yet satisfied'. Checks raise StageCheckFailed to bail out early.
    """
    return isinstance(exc, (InvariantViolation, StageCheckFailed))


def describe(exc: BaseException) -> str:
    """Message recorded for a failed stage: verbatim, or the class name."""
    msg = str(exc).strip()
    return msg if msg else type(exc).__name__
