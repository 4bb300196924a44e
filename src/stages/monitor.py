"""
The light monitor: one bucket, one file, full lifecycle.

connection -> health -> auth -> bucket-create -> storage-request ->
file-upload -> file-download -> file-delete -> bucket-delete
"""

from __future__ import annotations

from branding import SYMBOLS
from logger import get_logger
from pipeline.artifacts import Artifact, FileBatch, FileSpec, batch_key
from pipeline.errors import IntegrityError, StageCheckFailed, WaitTimeout, classify_error
from pipeline.results import Stage
from pipeline.retry import retry
from pipeline.run_state import RunContext
from pipeline.waits import poll_backend, wait_for_event, wait_for_finalization
from providers.base import FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, STORAGE_REQUESTS
from stages import common
from stages.files import address_files, load_payload, same_hex

log = get_logger("sentinel.stages.monitor")

MONITOR_BATCH = "monitor"
MONITOR_REPLICAS = 2


def _file(ctx: RunContext) -> FileSpec:
    batch: FileBatch = ctx.artifacts.require(batch_key(MONITOR_BATCH))
    return batch.files[0]


# ------------------------------------------------------------
# stages
# ------------------------------------------------------------


def connection_stage(ctx: RunContext) -> None:
    common.connect(ctx)


def health_stage(ctx: RunContext) -> None:
    common.check_health(ctx)


def auth_stage(ctx: RunContext) -> None:
    common.sign_in(ctx)


def bucket_create_stage(ctx: RunContext) -> None:
    common.create_bucket(ctx, ctx.settings.bucket_index_poll)


def storage_request_stage(ctx: RunContext) -> None:
    settings = ctx.settings
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)

    name, data = load_payload(settings.test_file, settings.random_payload_size)
    f = FileSpec(name=name, location=settings.file_location, data=data)
    address_files(ctx.addresser, ctx.address, bucket_id, [f])
    log.info("%s %s: %dB fingerprint=%s", SYMBOLS.FILE, f.location, f.size, f.fingerprint)

    batch = FileBatch(
        name=MONITOR_BATCH,
        files=[f],
        replicas=common.capped_replicas(ctx, MONITOR_REPLICAS),
    )
    ctx.artifacts.put(batch_key(MONITOR_BATCH), batch)

    common.issue_storage_requests(ctx, batch, confirm_width=1, visible_poll=settings.sr_visible_poll)

    delay = ctx.network.delays.post_storage_request
    if delay > 0:
        log.info("%s Waiting for MSP to process storage request (%gs)...", SYMBOLS.WAIT, delay)
        ctx.sleep(delay)

    log.info("%s Storage request issued and verified: %s", SYMBOLS.OK, f.file_key)


def file_upload_stage(ctx: RunContext) -> None:
    settings = ctx.settings
    backend = ctx.require_backend()
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)
    f = _file(ctx)

    delay = ctx.network.delays.before_upload
    if delay > 0:
        log.info("%s Waiting for MSP to accept the upload (%gs)...", SYMBOLS.WAIT, delay)
        ctx.sleep(delay)

    log.info("%s Uploading %s to MSP backend...", SYMBOLS.UPLOAD, f.file_key)
    common.upload_with_retry(ctx, f, settings.upload_retry)

    log.info("Waiting for file to be indexed by MSP backend...")
    poll_backend(
        lambda: same_hex(backend.get_file_info(bucket_id, f.file_key).file_key, f.file_key),
        settings.file_index_poll,
        label="file indexing",
        sleep=ctx.sleep,
    )

    if ctx.chain.query_state(STORAGE_REQUESTS, f.file_key) is not None:
        log.info("%s Waiting for StorageRequestFulfilled...", SYMBOLS.WAIT)
        try:
            wait_for_event(
                ctx.chain,
                FILE_SYSTEM,
                STORAGE_REQUEST_FULFILLED,
                settings.fulfillment_timeout,
                match=lambda record: record.field_eq("file_key", f.file_key),
            )
        except WaitTimeout:
            # The event may have fired before the subscription opened.
            if ctx.chain.query_state(STORAGE_REQUESTS, f.file_key) is not None:
                raise
            log.info("Storage request cleared without an observed fulfilment event")

    log.info("%s File uploaded and indexed: %s", SYMBOLS.OK, f.file_key)


def file_download_stage(ctx: RunContext) -> None:
    backend = ctx.require_backend()
    f = _file(ctx)

    log.info("%s Downloading %s from MSP backend...", SYMBOLS.DOWNLOAD, f.file_key)
    data = retry(
        lambda: backend.download_file(f.file_key),
        classify_error,
        ctx.settings.download_retry,
        reauth=ctx.reauthenticate,
        label="download",
        sleep=ctx.sleep,
    )
    log.info("Downloaded %d bytes (expected %d)", len(data), f.size)

    fingerprint = ctx.addresser.fingerprint(data)
    if not same_hex(fingerprint, f.fingerprint):
        raise IntegrityError(
            f"Fingerprint mismatch! Original: {f.fingerprint}, Downloaded: {fingerprint}"
        )
    ctx.artifacts.put(Artifact.DOWNLOADED, len(data))
    log.info("%s Fingerprint verified: %s", SYMBOLS.OK, fingerprint)


def file_delete_stage(ctx: RunContext) -> None:
    settings = ctx.settings
    f = _file(ctx)
    if not f.uploaded:
        raise StageCheckFailed(f"{f.name} was never uploaded")

    common.request_deletions(ctx, [f], label="monitor file")
    wait_for_finalization(ctx.chain, timeout=settings.finalization_timeout)
    common.wait_deleted(
        ctx,
        [f],
        label="monitor",
        cleared_poll=settings.sr_cleared_poll,
        absence_poll=settings.absence_poll,
    )


def bucket_delete_stage(ctx: RunContext) -> None:
    common.delete_bucket(ctx)


MONITOR_PIPELINE: list[Stage] = [
    Stage("connection", "Connection", connection_stage),
    Stage("health", "Health", health_stage),
    Stage("auth", "SIWE", auth_stage),
    Stage("bucket-create", "Create Bucket", bucket_create_stage),
    Stage("storage-request", "Issue Storage Request", storage_request_stage),
    Stage("file-upload", "Upload File", file_upload_stage),
    Stage("file-download", "Download File", file_download_stage),
    Stage("file-delete", "Delete File", file_delete_stage),
    Stage("bucket-delete", "Delete Bucket", bucket_delete_stage),
]
