from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import config
from env import DEFAULT_CONFLICT_SCHEDULE, Environment
from env.paths import output_dir
from pipeline.retry import RetrySpec
from pipeline.waits import DeadlineSpec, PollSpec


def _upload_retry(schedule: tuple[float, ...]) -> RetrySpec:
    return RetrySpec(
        min_attempts=config.UPLOAD_RETRY_MIN_ATTEMPTS,
        max_total=config.UPLOAD_RETRY_MAX_TOTAL,
        base_delay=config.UPLOAD_RETRY_BASE_DELAY,
        max_delay=config.UPLOAD_RETRY_MAX_DELAY,
        conflict_schedule=schedule,
    )


def _download_retry(schedule: tuple[float, ...]) -> RetrySpec:
    return RetrySpec(
        min_attempts=config.DOWNLOAD_RETRY_MIN_ATTEMPTS,
        max_total=config.DOWNLOAD_RETRY_MAX_TOTAL,
        base_delay=config.DOWNLOAD_RETRY_BASE_DELAY,
        max_delay=config.DOWNLOAD_RETRY_MAX_DELAY,
        conflict_schedule=schedule,
    )


@dataclass(frozen=True)
class PipelineSettings:
    """Knobs a pipeline reads. Defaults come from config.py."""

    pipeline: str = "monitor"
    badge_label_prefix: str = config.BADGE_LABEL_PREFIX
    output_dir: Path = Path("badges")

    bucket_prefix: str = config.BUCKET_NAME_PREFIX
    test_file: Path | None = None
    file_location: str = config.MONITOR_FILE_LOCATION
    random_payload_size: int = config.RANDOM_PAYLOAD_SIZE

    conflict_schedule: tuple[float, ...] = DEFAULT_CONFLICT_SCHEDULE
    upload_retry: RetrySpec = field(default_factory=lambda: _upload_retry(DEFAULT_CONFLICT_SCHEDULE))
    download_retry: RetrySpec = field(
        default_factory=lambda: _download_retry(DEFAULT_CONFLICT_SCHEDULE)
    )

    bucket_index_poll: PollSpec = PollSpec.of(config.BUCKET_INDEX_POLL)
    file_index_poll: PollSpec = PollSpec.of(config.FILE_INDEX_POLL)
    absence_poll: PollSpec = PollSpec.of(config.ABSENCE_POLL)
    sr_visible_poll: PollSpec = PollSpec.of(config.STORAGE_REQUEST_VISIBLE_POLL)
    sr_cleared_poll: PollSpec = PollSpec.of(config.STORAGE_REQUEST_CLEARED_POLL)
    bucket_absent_poll: PollSpec = PollSpec.of(config.BUCKET_ABSENT_POLL)

    fulfillment_timeout: float = config.FULFILLMENT_EVENT_TIMEOUT
    finalization_timeout: float = config.FINALIZATION_TIMEOUT
    bucket_delete_finality_blocks: int = config.BUCKET_DELETE_FINALITY_BLOCKS

    # heavy pipeline
    initial_files: int = config.HEAVY_INITIAL_FILES
    delete_first: int = config.HEAVY_DELETE_FIRST
    second_batch: int = config.HEAVY_SECOND_BATCH
    min_file_size: int = config.HEAVY_MIN_FILE_SIZE
    max_file_size: int = config.HEAVY_MAX_FILE_SIZE
    upload_concurrency: int = config.HEAVY_UPLOAD_CONCURRENCY
    sr_confirm_concurrency: int = config.HEAVY_SR_CONFIRM_CONCURRENCY
    submit_spacing: float = config.HEAVY_SUBMIT_SPACING
    replicas_batch1: int = config.HEAVY_REPLICAS_BATCH1
    replicas_batch2: int = config.HEAVY_REPLICAS_BATCH2
    min_issue_to_upload: float = config.HEAVY_MIN_ISSUE_TO_UPLOAD
    post_bulk_wait: float = config.HEAVY_POST_BULK_WAIT
    sr_visible_timeout: float = config.HEAVY_SR_VISIBLE_TIMEOUT
    sr_cleared_timeout: float = config.HEAVY_SR_CLEARED_TIMEOUT
    ready_poll: DeadlineSpec = DeadlineSpec(
        timeout=config.HEAVY_READY_POLL_TOTAL, interval=config.HEAVY_READY_POLL_INTERVAL
    )
    bucket_ready_poll: PollSpec = PollSpec.of(config.HEAVY_BUCKET_READY_POLL)
    progress_interval: float = config.HEAVY_PROGRESS_INTERVAL


def monitor_settings(env: Environment) -> PipelineSettings:
    schedule = env.conflict_schedule
    return PipelineSettings(
        pipeline="monitor",
        badge_label_prefix=config.BADGE_LABEL_PREFIX,
        output_dir=Path(env.output_dir) if env.output_dir else output_dir("badges"),
        bucket_prefix=config.BUCKET_NAME_PREFIX,
        test_file=env.test_file,
        conflict_schedule=schedule,
        upload_retry=_upload_retry(schedule),
        download_retry=_download_retry(schedule),
    )


def heavy_settings(env: Environment) -> PipelineSettings:
    schedule = env.conflict_schedule
    return PipelineSettings(
        pipeline="heavy",
        badge_label_prefix=config.HEAVY_BADGE_LABEL_PREFIX,
        output_dir=Path(env.output_dir) if env.output_dir else output_dir("badges-heavy"),
        bucket_prefix=config.HEAVY_BUCKET_NAME_PREFIX,
        test_file=None,
        conflict_schedule=schedule,
        upload_retry=_upload_retry(schedule),
        download_retry=_download_retry(schedule),
    )


def fallback_settings(pipeline: str) -> PipelineSettings:
    """
    Settings for reporting a run whose environment could not be loaded.
    Only the badge location and label matter here.
    """
    if pipeline == "heavy":
        return PipelineSettings(
            pipeline="heavy",
            badge_label_prefix=config.HEAVY_BADGE_LABEL_PREFIX,
            output_dir=output_dir("badges-heavy"),
        )
    return PipelineSettings(pipeline="monitor", output_dir=output_dir("badges"))
