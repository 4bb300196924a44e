"""
Stage definitions, stage statuses with their legal transitions, and the
immutable per-stage and per-run result records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from pipeline.cleanup import CleanupReport


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


# pending -> running -> {passed, failed}, or pending -> skipped
LEGAL_TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.RUNNING, StageStatus.SKIPPED}),
    StageStatus.RUNNING: frozenset({StageStatus.PASSED, StageStatus.FAILED}),
    StageStatus.PASSED: frozenset(),
    StageStatus.FAILED: frozenset(),
    StageStatus.SKIPPED: frozenset(),
}


@dataclass(frozen=True)
class Stage:
    id: str
    label: str
    fn: Callable


@dataclass(frozen=True)
class StageResult:
    stage_id: str
    label: str
    status: StageStatus
    duration_ms: int = 0
    error: Optional[str] = None
    reason: Optional[str] = None

    def as_dict(self) -> dict:
        out = {
            "stage": self.stage_id,
            "label": self.label,
            "status": self.status.value,
            "durationMs": self.duration_ms,
        }
        if self.error:
            out["error"] = self.error
        if self.reason:
            out["reason"] = self.reason
        return out


@dataclass
class RunOutcome:
    pipeline: str
    target: str
    stages: list[StageResult] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    truncated: bool = False
    cleanup: Optional[CleanupReport] = None
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.error is None and not any(
            r.status == StageStatus.FAILED for r in self.stages
        )

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def count(self, status: StageStatus) -> int:
        return sum(1 for r in self.stages if r.status == status)
