"""
Shields.io endpoint badges plus a full-run status document.

Files written to the output directory:
- <stage>.json   one badge per stage
- summary.json   pass count badge
- status.json    full-run JSON for dashboards
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import config
from logger import get_logger
from pipeline.results import RunOutcome, StageResult, StageStatus

log = get_logger("sentinel.badges")


def stage_badge(result: StageResult, prefix: str) -> dict:
    return {
        "schemaVersion": config.BADGE_SCHEMA_VERSION,
        "label": f"{prefix} – {result.label}",
        "message": result.status.value,
        "color": config.BADGE_COLORS.get(result.status.value, "lightgrey"),
        "cacheSeconds": config.BADGE_CACHE_SECONDS,
    }


def summary_badge(outcome: RunOutcome, prefix: str) -> dict:
    total = len(outcome.stages)
    passed = outcome.count(StageStatus.PASSED)
    ok = outcome.passed
    message = f"{passed}/{total} passed" if ok else f"failed ({passed}/{total} passed)"
    return {
        "schemaVersion": config.BADGE_SCHEMA_VERSION,
        "label": prefix,
        "message": message,
        "color": config.BADGE_COLORS["passed" if ok else "failed"],
        "cacheSeconds": config.BADGE_CACHE_SECONDS,
    }


def status_document(outcome: RunOutcome, *, network: str) -> dict:
    doc = {
        "generatedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "pipeline": outcome.pipeline,
        "network": network,
        "target": outcome.target,
        "overall": "passed" if outcome.passed else "failed",
        "durationMs": outcome.duration_ms,
        "stages": {r.stage_id: r.status.value for r in outcome.stages},
        "details": [r.as_dict() for r in outcome.stages],
    }
    if outcome.failed_stage:
        doc["failedStage"] = outcome.failed_stage
    if outcome.error:
        doc["error"] = outcome.error
    if outcome.truncated:
        doc["truncated"] = True
    if outcome.cleanup is not None:
        doc["cleanup"] = outcome.cleanup.as_dict()
    return doc


def _write_json(path: Path, payload: dict) -> None:
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def write_badges(
    outcome: RunOutcome,
    output_dir: Path,
    *,
    prefix: str,
    network: str,
) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    for result in outcome.stages:
        path = output_dir / f"{result.stage_id}.json"
        _write_json(path, stage_badge(result, prefix))
        written.append(path)

    summary = output_dir / "summary.json"
    _write_json(summary, summary_badge(outcome, prefix))
    written.append(summary)

    status = output_dir / "status.json"
    _write_json(status, status_document(outcome, network=network))
    written.append(status)

    log.info("Wrote %d badge files to %s", len(written), output_dir)
    return written
