"""
Best-effort rollback of on-chain state a run created.

Order is fixed: request deletion of every storage-requested file that was
not already deleted, then delete the bucket if its creation was submitted
and it was not deleted. A failing step is logged and recorded; later steps
still run and nothing is re-raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from branding import SYMBOLS
from logger import get_logger
from pipeline.artifacts import Artifact, FileSpec
from pipeline.errors import describe
from pipeline.run_state import RunContext
from providers.base import DeleteBucket, RequestDeleteFile

log = get_logger("sentinel.cleanup")


class StepStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CleanupStep:
    name: str
    status: StepStatus
    detail: Optional[str] = None


@dataclass
class CleanupReport:
    reason: str
    steps: list[CleanupStep] = field(default_factory=list)

    @property
    def failed(self) -> list[CleanupStep]:
        return [s for s in self.steps if s.status == StepStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_dict(self) -> dict:
        return {
            "reason": self.reason,
            "steps": [
                {"name": s.name, "status": s.status.value, "detail": s.detail} for s in self.steps
            ],
        }


def delete_file_call(bucket_id: str, f: FileSpec) -> RequestDeleteFile:
    return RequestDeleteFile(
        file_key=f.file_key,
        bucket_id=bucket_id,
        location=f.location,
        size=f.size,
        fingerprint=f.fingerprint,
    )


class CleanupController:
    def __init__(self, ctx: RunContext):
        self.ctx = ctx
        self._report: Optional[CleanupReport] = None

    @property
    def report(self) -> Optional[CleanupReport]:
        return self._report

    def run(self, reason: str) -> CleanupReport:
        if self._report is not None:
            log.debug("Cleanup already ran (%s); ignoring second request", self._report.reason)
            return self._report

        report = CleanupReport(reason=reason)
        self._report = report

        log.info("%s Cleanup (%s)", SYMBOLS.CLEANUP, reason)
        for name, step in self._plan():
            report.steps.append(self._run_step(name, step))

        if not report.steps:
            log.info("Nothing to clean up")
        return report

    # ------------------------------------------------------------------

    def _plan(self) -> list[tuple[str, Callable[[], Optional[str]]]]:
        artifacts = self.ctx.artifacts
        bucket_id = artifacts.get(Artifact.BUCKET_ID)

        plan: list[tuple[str, Callable[[], Optional[str]]]] = []

        if bucket_id:
            for batch in artifacts.batches():
                for f in batch.pending_deletion():
                    plan.append((f"delete-file:{f.name}", self._delete_file_step(bucket_id, f)))

        if artifacts.has(Artifact.BUCKET_TX) and not artifacts.get(Artifact.BUCKET_DELETED):
            plan.append(("delete-bucket", self._delete_bucket_step(bucket_id)))

        return plan

    def _run_step(self, name: str, step: Callable[[], Optional[str]]) -> CleanupStep:
        try:
            detail = step()
        except Exception as e:
            log.warning("%s cleanup step %s failed: %s", SYMBOLS.WARN, name, describe(e))
            return CleanupStep(name, StepStatus.FAILED, describe(e))

        if detail is None:
            log.info("  %s %s", SYMBOLS.OK, name)
            return CleanupStep(name, StepStatus.DONE)

        log.info("  %s %s (%s)", SYMBOLS.SKIPPED, name, detail)
        return CleanupStep(name, StepStatus.SKIPPED, detail)

    def _delete_file_step(self, bucket_id: str, f: FileSpec) -> Callable[[], Optional[str]]:
        def step() -> Optional[str]:
            if not f.file_key:
                return "no file key"
            self.ctx.ledger.submit_and_confirm(delete_file_call(bucket_id, f))
            f.deletion_requested = True
            return None

        return step

    def _delete_bucket_step(self, bucket_id: Optional[str]) -> Callable[[], Optional[str]]:
        def step() -> Optional[str]:
            if not bucket_id:
                return "no bucket id"
            self.ctx.ledger.submit_and_confirm(DeleteBucket(bucket_id=bucket_id))
            return None

        return step
