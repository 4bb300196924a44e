"""
The heavy monitor: batches of random files pushed through the same
primitives as the light monitor, with bounded concurrency.

connection -> health -> auth -> bucket-create ->
storage-request-batch1 -> upload-batch1 -> file-delete-first ->
storage-request-batch2 -> upload-batch2 -> file-delete-all -> bucket-delete
"""

from __future__ import annotations

from branding import SYMBOLS
from logger import get_logger
from pipeline.artifacts import Artifact, FileBatch, batch_key
from pipeline.results import Stage
from pipeline.run_state import RunContext
from pipeline.waits import DeadlineSpec, PollSpec
from stages import common
from stages.files import address_files, random_files
from stages.monitor import auth_stage, bucket_delete_stage, connection_stage, health_stage

log = get_logger("sentinel.stages.heavy")

BATCH1 = "batch1"
BATCH2 = "batch2"


def _batch(ctx: RunContext, name: str) -> FileBatch:
    return ctx.artifacts.require(batch_key(name))


def _visible_poll(ctx: RunContext) -> PollSpec:
    step = 5.0
    return PollSpec(retries=max(1, int(ctx.settings.sr_visible_timeout // step)), delay=step)


def _cleared_poll(ctx: RunContext) -> PollSpec:
    step = 3.0
    return PollSpec(retries=max(1, int(ctx.settings.sr_cleared_timeout // step)), delay=step)


# ------------------------------------------------------------
# stage factories
# ------------------------------------------------------------


def bucket_create_stage(ctx: RunContext) -> None:
    common.create_bucket(ctx, ctx.settings.bucket_ready_poll)


def _storage_request(name: str, prefix: str, count_attr: str, replicas_attr: str):
    def stage(ctx: RunContext) -> None:
        settings = ctx.settings
        bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)

        files = random_files(
            prefix,
            getattr(settings, count_attr),
            settings.min_file_size,
            settings.max_file_size,
        )
        address_files(ctx.addresser, ctx.address, bucket_id, files)
        batch = FileBatch(
            name=name,
            files=files,
            replicas=common.capped_replicas(ctx, getattr(settings, replicas_attr)),
        )
        ctx.artifacts.put(batch_key(name), batch)
        log.info("Generated %d files for %s (replicas=%d)", len(files), name, batch.replicas)

        common.issue_storage_requests(
            ctx,
            batch,
            confirm_width=settings.sr_confirm_concurrency,
            visible_poll=_visible_poll(ctx),
        )

    stage.__name__ = f"storage_request_{name}_stage"
    return stage


def _upload(name: str):
    def stage(ctx: RunContext) -> None:
        settings = ctx.settings
        batch = _batch(ctx, name)

        if settings.post_bulk_wait > 0:
            log.info("%s Waiting %gs after bulk storage requests...", SYMBOLS.WAIT, settings.post_bulk_wait)
            ctx.sleep(settings.post_bulk_wait)

        common.upload_files(
            ctx,
            batch,
            width=settings.upload_concurrency,
            min_age=max(ctx.network.delays.before_upload, settings.min_issue_to_upload),
        )

        log.info("Waiting for %s files to be ready (chain + backend)...", name)
        ready = DeadlineSpec(timeout=settings.ready_poll.timeout, interval=settings.ready_poll.interval)
        common.wait_storage_requests_cleared(
            ctx, batch.files, ready, label=name, width=settings.upload_concurrency
        )
        common.wait_files_ready(ctx, batch.files, ready, label=name)

    stage.__name__ = f"upload_{name}_stage"
    return stage


def _delete(ctx: RunContext, files, label: str) -> None:
    settings = ctx.settings
    common.request_deletions(ctx, files, label=label, use_backend_info=True)
    common.wait_deleted(
        ctx,
        files,
        label=label,
        cleared_poll=_cleared_poll(ctx),
        absence_poll=settings.bucket_ready_poll,
        width=settings.upload_concurrency,
    )


def file_delete_first_stage(ctx: RunContext) -> None:
    batch = _batch(ctx, BATCH1)
    first = batch.files[: ctx.settings.delete_first]
    _delete(ctx, first, f"first {len(first)}")


def file_delete_all_stage(ctx: RunContext) -> None:
    remaining = [
        f
        for name in (BATCH1, BATCH2)
        for f in _batch(ctx, name).files
        if not f.deletion_requested
    ]
    _delete(ctx, remaining, f"remaining {len(remaining)}")


HEAVY_PIPELINE: list[Stage] = [
    Stage("connection", "Connection", connection_stage),
    Stage("health", "Health", health_stage),
    Stage("auth", "SIWE", auth_stage),
    Stage("bucket-create", "Bucket Create", bucket_create_stage),
    Stage(
        "storage-request-batch1",
        "Storage Req (Batch 1)",
        _storage_request(BATCH1, "heavy-a", "initial_files", "replicas_batch1"),
    ),
    Stage("upload-batch1", "Upload (Batch 1)", _upload(BATCH1)),
    Stage("file-delete-first", "Delete First", file_delete_first_stage),
    Stage(
        "storage-request-batch2",
        "Storage Req (Batch 2)",
        _storage_request(BATCH2, "heavy-b", "second_batch", "replicas_batch2"),
    ),
    Stage("upload-batch2", "Upload (Batch 2)", _upload(BATCH2)),
    Stage("file-delete-all", "Delete All", file_delete_all_stage),
    Stage("bucket-delete", "Bucket Delete", bucket_delete_stage),
]
