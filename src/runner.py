"""
runner.py

Pipeline execution: the stage engine, run context construction, and the
run wrapper that guarantees cleanup-once and badges-always.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Sequence

from branding import SENTINEL_HEADER, SENTINEL_SECTION_END, STATUS_SYMBOLS, SYMBOLS
from env import Environment, get_env
from logger import get_logger
from pipeline.badges import write_badges
from pipeline.cleanup import CleanupController
from pipeline.errors import IllegalTransition, describe
from pipeline.ledger import LedgerSubmitter
from pipeline.results import (
    LEGAL_TRANSITIONS,
    RunOutcome,
    Stage,
    StageResult,
    StageStatus,
)
from pipeline.run_state import RunContext
from pipeline.settings import PipelineSettings
from providers.base import BackendClient
from providers.msp import MspClient
from providers.registry import build_chain

log = get_logger("sentinel.runner")

FULL = "full"

TARGET_ALIASES: dict[str, str] = {
    "siwe": "auth",
    "upload": "file-upload",
    "download": "file-download",
    "delete": "file-delete",
}


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))


def _log_header(title: str) -> None:
    log.info(SENTINEL_HEADER(title))


def _log_footer() -> None:
    log.info(SENTINEL_SECTION_END())


# ------------------------------------------------------------
# Engine
# ------------------------------------------------------------


class PipelineEngine:
    """
    Drives an ordered stage list against a RunContext.

    A stage passes by returning and fails by raising. The first failure
    halts the run; every stage not executed gets an explicit skipped entry.
    Stages are never retried here.
    """

    def __init__(self, name: str, stages: Sequence[Stage]):
        ids = [s.id for s in stages]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate stage ids in {name}: {ids}")
        if not stages:
            raise ValueError(f"Pipeline {name} has no stages")

        self.name = name
        self.stages = list(stages)
        self._status: dict[str, StageStatus] = {}
        self._started: dict[str, float] = {}
        self._results: list[StageResult] = []
        self._target = FULL
        self._run_started = time.monotonic()
        self._reset()

    # ---- target resolution ----

    @property
    def stage_ids(self) -> list[str]:
        return [s.id for s in self.stages]

    def resolve_target(self, target: Optional[str]) -> str:
        t = (target or FULL).strip().lower()
        t = TARGET_ALIASES.get(t, t)
        if t == FULL or t in self.stage_ids:
            return t
        raise ValueError(
            f"Unknown target {target!r} for {self.name} "
            f"(expected one of: {', '.join([FULL, *self.stage_ids])})"
        )

    # ---- state machine ----

    def _reset(self) -> None:
        self._status = {s.id: StageStatus.PENDING for s in self.stages}
        self._started = {}
        self._results = []

    def status(self, stage_id: str) -> StageStatus:
        return self._status[stage_id]

    def _transition(self, stage: Stage, new: StageStatus) -> None:
        current = self._status[stage.id]
        if new not in LEGAL_TRANSITIONS[current]:
            raise IllegalTransition(stage.id, current.value, new.value)
        self._status[stage.id] = new

    def _record(self, stage: Stage, status: StageStatus, **kw) -> StageResult:
        self._transition(stage, status)
        result = StageResult(stage_id=stage.id, label=stage.label, status=status, **kw)
        self._results.append(result)
        return result

    def _skip(self, stage: Stage, reason: str) -> None:
        self._record(stage, StageStatus.SKIPPED, reason=reason)

    # ---- execution ----

    def execute(
        self,
        ctx: RunContext,
        target: Optional[str] = FULL,
        *,
        quiet: bool = False,
    ) -> RunOutcome:
        self._reset()
        self._target = self.resolve_target(target)
        self._run_started = time.monotonic()

        failed: Optional[Stage] = None
        error: Optional[str] = None
        reached_target = False
        total = len(self.stages)

        for i, stage in enumerate(self.stages, start=1):
            if failed is not None:
                self._skip(stage, f"blocked_by:{failed.id}")
                continue
            if reached_target:
                self._skip(stage, f"after_target:{self._target}")
                continue

            self._transition(stage, StageStatus.RUNNING)
            self._started[stage.id] = time.monotonic()
            if not quiet:
                _log_header(f"Stage {i}/{total}: {stage.label} [{stage.id}]")

            try:
                stage.fn(ctx)
            except Exception as e:
                error = describe(e)
                failed = stage
                self._record(
                    stage,
                    StageStatus.FAILED,
                    duration_ms=_elapsed_ms(self._started[stage.id]),
                    error=error,
                )
                log.error("%s Stage %s failed: %s", SYMBOLS.FAIL, stage.id, error)
                log.debug("Stage %s traceback", stage.id, exc_info=True)
            else:
                result = self._record(
                    stage,
                    StageStatus.PASSED,
                    duration_ms=_elapsed_ms(self._started[stage.id]),
                )
                log.info("%s Stage %s passed (%dms)", SYMBOLS.OK, stage.id, result.duration_ms)

            if not quiet:
                _log_footer()

            if stage.id == self._target:
                reached_target = True

        truncated = (
            failed is None
            and self._target != FULL
            and self._target != self.stages[-1].id
        )

        return RunOutcome(
            pipeline=self.name,
            target=self._target,
            stages=list(self._results),
            failed_stage=failed.id if failed else None,
            error=error,
            truncated=truncated,
            duration_ms=_elapsed_ms(self._run_started),
        )

    def abort(self, exc: BaseException, *, target: Optional[str] = None) -> RunOutcome:
        """
        Close out a run that was interrupted outside a stage function.
        The running stage (or the first pending one) is marked failed and
        everything after it is skipped.
        """
        error = describe(exc)
        if target is not None:
            self._target = target
        failed: Optional[Stage] = None

        for stage in self.stages:
            status = self._status[stage.id]
            if status in (StageStatus.RUNNING, StageStatus.PENDING) and failed is None:
                if status == StageStatus.PENDING:
                    self._transition(stage, StageStatus.RUNNING)
                started = self._started.get(stage.id, time.monotonic())
                self._record(stage, StageStatus.FAILED, duration_ms=_elapsed_ms(started), error=error)
                failed = stage
            elif status == StageStatus.PENDING:
                self._skip(stage, f"blocked_by:{failed.id}")

        order = {s.id: i for i, s in enumerate(self.stages)}
        results = sorted(self._results, key=lambda r: order[r.stage_id])

        return RunOutcome(
            pipeline=self.name,
            target=self._target,
            stages=results,
            failed_stage=failed.id if failed else None,
            error=error,
            truncated=False,
            duration_ms=_elapsed_ms(self._run_started),
        )


# ------------------------------------------------------------
# Context construction
# ------------------------------------------------------------


def default_backend_factory(ctx: RunContext) -> BackendClient:
    msp = ctx.network.msp
    return MspClient(msp.base_url, timeout=msp.timeout_sec, session_provider=ctx.current_session)


def build_context(
    env: Environment,
    settings: PipelineSettings,
    *,
    backend_factory: Callable[[RunContext], BackendClient] = default_backend_factory,
) -> RunContext:
    bindings = build_chain(env.chain_adapter, env.network, env.private_key)
    spacing = settings.submit_spacing if settings.pipeline == "heavy" else 0.0
    return RunContext(
        network=env.network,
        settings=settings,
        chain=bindings.chain,
        addresser=bindings.addresser,
        ledger=LedgerSubmitter(bindings.chain, spacing=spacing),
        backend_factory=backend_factory,
    )


# ------------------------------------------------------------
# Run
# ------------------------------------------------------------


def _log_summary(outcome: RunOutcome, network: str) -> None:
    _log_header(f"{outcome.pipeline} summary ({network})")
    for r in outcome.stages:
        sym = STATUS_SYMBOLS.get(r.status.value, SYMBOLS.INFO)
        log.info("%s %-24s %-8s %8sms", sym, r.stage_id, r.status.value, r.duration_ms)
        if r.error:
            log.info("    Error: %s", r.error)
    if outcome.cleanup is not None:
        for step in outcome.cleanup.steps:
            log.info("  %s cleanup %-28s %s", SYMBOLS.CLEANUP, step.name, step.status.value)
    _log_footer()

    if outcome.passed:
        log.info("%s %s completed (target=%s)", SYMBOLS.OK, outcome.pipeline, outcome.target)
    else:
        log.error(
            "%s %s failed at stage %s: %s",
            SYMBOLS.FAIL,
            outcome.pipeline,
            outcome.failed_stage or "?",
            outcome.error,
        )


def _report(outcome: RunOutcome, settings: PipelineSettings, network_name: str) -> None:
    try:
        write_badges(
            outcome,
            settings.output_dir,
            prefix=settings.badge_label_prefix,
            network=network_name,
        )
    except OSError as e:
        log.error("%s Failed to write badges to %s: %s", SYMBOLS.FAIL, settings.output_dir, e)
    _log_summary(outcome, network_name)


def resolve_target_or_full(engine: PipelineEngine, target: Optional[str]) -> str:
    try:
        return engine.resolve_target(target)
    except ValueError as e:
        log.warning("%s %s; running full pipeline", SYMBOLS.WARN, e)
        return FULL


def run_pipeline(
    stages: Sequence[Stage],
    settings: PipelineSettings,
    *,
    target: Optional[str] = None,
    env: Optional[Environment] = None,
    context_factory: Optional[Callable[[], RunContext]] = None,
) -> RunOutcome:
    """
    Execute one pipeline end to end.

    Cleanup runs at most once, after a failure or a truncated run. Badges
    are written exactly once, even if cleanup raises.
    """
    env = env or get_env()
    engine = PipelineEngine(settings.pipeline, stages)
    resolved = resolve_target_or_full(engine, target if target is not None else env.target)
    network_name = env.network.name

    log.info(
        "%s %s pipeline on %s (target=%s)",
        SYMBOLS.RUNNING,
        settings.pipeline,
        network_name,
        resolved,
    )

    ctx: Optional[RunContext] = None
    outcome: Optional[RunOutcome] = None
    try:
        try:
            ctx = context_factory() if context_factory else build_context(env, settings)
            outcome = engine.execute(ctx, resolved, quiet=env.quiet)
        except Exception as e:
            log.error("%s Run aborted: %s", SYMBOLS.FAIL, describe(e))
            log.debug("Abort traceback", exc_info=True)
            outcome = engine.abort(e, target=resolved)

        if ctx is not None and (not outcome.passed or outcome.truncated):
            reason = (
                f"failed:{outcome.failed_stage}"
                if not outcome.passed
                else f"after_target:{outcome.target}"
            )
            try:
                outcome.cleanup = CleanupController(ctx).run(reason)
            except Exception as e:
                log.error("%s Cleanup raised: %s", SYMBOLS.FAIL, describe(e))
    finally:
        if outcome is None:
            outcome = engine.abort(RuntimeError("interrupted"), target=resolved)
        _report(outcome, settings, network_name)
        if ctx is not None:
            ctx.close()

    return outcome


def abort_pipeline(
    stages: Sequence[Stage],
    settings: PipelineSettings,
    error: BaseException,
    *,
    network_name: str,
) -> RunOutcome:
    """
    Report a run that could not start (e.g. invalid configuration): the
    first stage fails with the error, the rest are skipped, badges are
    written as for any other run.
    """
    engine = PipelineEngine(settings.pipeline, stages)
    log.error("%s Run aborted before start: %s", SYMBOLS.FAIL, describe(error))
    outcome = engine.abort(error, target=FULL)
    _report(outcome, settings, network_name)
    return outcome
