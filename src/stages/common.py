"""
Building blocks shared by the monitor and heavy pipelines.

Each helper takes the RunContext and raises on failure; stage functions in
monitor.py / heavy.py compose them. Chain submissions always go through
ctx.ledger (sequential); confirmation, uploads and snapshots fan out
through run_bounded.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

from auth.siwe import verify_profile
from branding import SYMBOLS
from logger import get_logger
from pipeline.artifacts import Artifact, FileBatch, FileSpec
from pipeline.cleanup import delete_file_call
from pipeline.concurrency import ItemStatusBoard, ProgressTicker, run_bounded
from pipeline.errors import (
    IntegrityError,
    InvariantViolation,
    StageCheckFailed,
    WaitTimeout,
    classify_error,
    describe,
)
from pipeline.retry import RetrySpec, retry
from pipeline.run_state import RunContext
from pipeline.waits import (
    DeadlineSpec,
    PollSpec,
    poll_backend,
    poll_until,
    wait_for_finalization,
    wait_for_on_chain_data,
)
from providers.base import (
    BUCKETS,
    STORAGE_REQUESTS,
    CreateBucket,
    DeleteBucket,
    IssueStorageRequest,
    RequestDeleteFile,
    UploadReceipt,
)
from stages.files import same_hex

log = get_logger("sentinel.stages")

SNAPSHOT_RULE = "=" * 72


# ------------------------------------------------------------
# connection / health / auth
# ------------------------------------------------------------


def connect(ctx: RunContext) -> None:
    log.info("Connecting to %s", ctx.network.name)
    ctx.connect_backend()
    best = ctx.chain.best_block_number()
    log.info("%s Chain reachable, best block #%s (account %s)", SYMBOLS.CHAIN, best, ctx.address)


def check_health(ctx: RunContext) -> None:
    health = ctx.require_backend().health()
    if not health.healthy:
        raise StageCheckFailed(f"MSP health check failed: {health.status}")
    log.info("%s MSP backend is healthy", SYMBOLS.OK)


def sign_in(ctx: RunContext) -> None:
    log.info("%s Authenticating with SIWE...", SYMBOLS.AUTH)
    ctx.authenticate()
    profile = ctx.require_backend().profile()
    verify_profile(profile, ctx.address)
    log.info("%s Authenticated as %s", SYMBOLS.OK, profile.address)


# ------------------------------------------------------------
# buckets
# ------------------------------------------------------------


def create_bucket(ctx: RunContext, index_poll: PollSpec) -> str:
    backend = ctx.require_backend()
    artifacts = ctx.artifacts
    settings = ctx.settings

    info = backend.info()
    artifacts.put(Artifact.MSP_ID, info.msp_id)
    peer_id = info.peer_id()
    if peer_id:
        artifacts.put(Artifact.PEER_ID, peer_id)
    log.info("MSP ID: %s (peer %s)", info.msp_id, peer_id or "n/a")

    value_props = backend.value_propositions()
    if not value_props:
        raise StageCheckFailed("No value propositions found for MSP")
    value_prop_id = artifacts.put(Artifact.VALUE_PROP_ID, value_props[0].id)
    log.info("Using value prop: %s", value_prop_id)

    name = artifacts.put(Artifact.BUCKET_NAME, f"{settings.bucket_prefix}{int(time.time() * 1000)}")
    bucket_id = artifacts.put(Artifact.BUCKET_ID, ctx.addresser.bucket_id(ctx.address, name))
    log.info("%s Bucket %s -> %s", SYMBOLS.BUCKET, name, bucket_id)

    tx = ctx.ledger.submit(
        CreateBucket(msp_id=info.msp_id, bucket_name=name, value_prop_id=value_prop_id)
    )
    artifacts.put(Artifact.BUCKET_TX, tx)
    log.info("Create bucket tx: %s", tx)
    receipt = ctx.ledger.confirm(tx, "Create bucket")

    wait_for_finalization(ctx.chain, receipt.block_number, settings.finalization_timeout)

    wait_for_on_chain_data(
        lambda: ctx.chain.query_state(BUCKETS, bucket_id),
        lambda value: value is not None,
        settings.sr_visible_poll,
        label="bucket on-chain",
        sleep=ctx.sleep,
    )

    log.info("Waiting for MSP backend to index bucket...")
    poll_backend(
        lambda: any(same_hex(b.bucket_id, bucket_id) for b in backend.list_buckets()),
        index_poll,
        label="bucket indexing",
        sleep=ctx.sleep,
    )
    log.info("%s Bucket created and indexed: %s", SYMBOLS.OK, bucket_id)
    return bucket_id


def delete_bucket(ctx: RunContext) -> None:
    settings = ctx.settings
    backend = ctx.require_backend()
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)

    grace = ctx.network.delays.before_bucket_delete
    if grace > 0:
        log.info("%s Grace period before bucket deletion (%gs)", SYMBOLS.WAIT, grace)
        ctx.sleep(grace)

    tx = ctx.ledger.submit(DeleteBucket(bucket_id=bucket_id))
    log.info("Delete bucket tx: %s", tx)
    ctx.ledger.confirm(tx, "Delete bucket")
    ctx.artifacts.put(Artifact.BUCKET_DELETED, True)

    target = ctx.chain.best_block_number() + settings.bucket_delete_finality_blocks
    wait_for_finalization(ctx.chain, target, settings.finalization_timeout)

    wait_for_on_chain_data(
        lambda: ctx.chain.query_state(BUCKETS, bucket_id),
        lambda value: value is None,
        settings.bucket_absent_poll,
        label="bucket removal on-chain",
        sleep=ctx.sleep,
    )

    poll_backend(
        lambda: backend.get_bucket(bucket_id) is None,
        settings.absence_poll,
        label="bucket removal from MSP",
        sleep=ctx.sleep,
    )
    log.info("%s Bucket deleted: %s", SYMBOLS.OK, bucket_id)


# ------------------------------------------------------------
# storage requests
# ------------------------------------------------------------


def capped_replicas(ctx: RunContext, desired: int) -> int:
    replicas = max(1, min(desired, ctx.network.max_replication))
    if replicas != desired:
        log.info(
            "%s %s supports at most %d replicas; using %d (wanted %d)",
            SYMBOLS.INFO,
            ctx.network.name,
            ctx.network.max_replication,
            replicas,
            desired,
        )
    return replicas


def issue_storage_requests(
    ctx: RunContext,
    batch: FileBatch,
    *,
    confirm_width: int,
    visible_poll: PollSpec,
) -> None:
    """
    Submit one storage request per file sequentially, then confirm receipt,
    finalization and on-chain visibility with bounded concurrency.
    """
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)
    msp_id = ctx.artifacts.require(Artifact.MSP_ID)
    peer_id = ctx.artifacts.get(Artifact.PEER_ID)
    total = len(batch)

    log.info(
        "Issuing %d storage requests sequentially (replicas=%d)...",
        total,
        batch.replicas,
    )
    for i, f in enumerate(batch, start=1):
        if not f.fingerprint or not f.file_key:
            raise StageCheckFailed(f"{f.name} has no fingerprint/file key before issueStorageRequest")

        tx = ctx.ledger.submit(
            IssueStorageRequest(
                bucket_id=bucket_id,
                location=f.location,
                fingerprint=f.fingerprint,
                size=f.size,
                msp_id=msp_id,
                peer_ids=(peer_id,) if peer_id else (),
                replicas=batch.replicas,
            )
        )
        f.mark_submitted(tx)
        log.info("[SR %d/%d] %s size=%dB tx=%s", i, total, f.file_key, f.size, tx)

    log.info("Confirming %d storage requests (concurrency=%d)...", total, confirm_width)

    def confirm(f: FileSpec, idx: int) -> None:
        started = time.monotonic()
        receipt = ctx.ledger.confirm(f.tx_hash or "", "Storage request")
        f.mark_issued()
        wait_for_finalization(ctx.chain, receipt.block_number, ctx.settings.finalization_timeout)
        wait_for_on_chain_data(
            lambda: ctx.chain.query_state(STORAGE_REQUESTS, f.file_key),
            lambda value: value is not None,
            visible_poll,
            label=f"storage request {f.name}",
            sleep=ctx.sleep,
        )
        log.info(
            "[SR %d/%d] confirmed+visible in %.1fs",
            idx + 1,
            total,
            time.monotonic() - started,
        )

    run_bounded(batch.files, confirm_width, confirm)


# ------------------------------------------------------------
# uploads
# ------------------------------------------------------------


def verify_upload(receipt: UploadReceipt, f: FileSpec, bucket_id: str) -> None:
    if not receipt.successful:
        raise StageCheckFailed(f"Upload failed with status: {receipt.status}")
    if not same_hex(receipt.file_key, f.file_key):
        raise IntegrityError("Upload fileKey mismatch")
    if not same_hex(receipt.bucket_id, bucket_id):
        raise IntegrityError("Upload bucketId mismatch")
    if not same_hex(receipt.fingerprint, f.fingerprint):
        raise IntegrityError("Upload fingerprint mismatch")
    if receipt.location != f.location:
        raise IntegrityError("Upload location mismatch")


def upload_with_retry(ctx: RunContext, f: FileSpec, spec: RetrySpec) -> UploadReceipt:
    backend = ctx.require_backend()
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)
    used = [ctx.session]

    def attempt() -> UploadReceipt:
        used[0] = ctx.session
        return backend.upload_file(bucket_id, f.file_key, f.data, ctx.address, f.location)

    receipt = retry(
        attempt,
        classify_error,
        spec,
        reauth=lambda: ctx.reauthenticate(used[0]),
        label=f"upload {f.name}",
        sleep=ctx.sleep,
    )
    verify_upload(receipt, f, bucket_id)
    f.uploaded = True
    return receipt


def wait_min_age(ctx: RunContext, f: FileSpec, min_age: float) -> None:
    age = f.age()
    remaining = min_age if age is None else min_age - age
    if remaining > 0:
        log.debug("%s: waiting %.1fs before upload", f.name, remaining)
        ctx.sleep(remaining)


def upload_files(ctx: RunContext, batch: FileBatch, *, width: int, min_age: float) -> None:
    total = len(batch)
    board: ItemStatusBoard[str] = ItemStatusBoard(f.file_key for f in batch)

    def report(elapsed: float) -> None:
        counts = board.counts()
        log.info(
            "%s Upload (%s) progress: uploaded %d/%d, uploading %d, pending %d (elapsed=%ds)",
            SYMBOLS.UPLOAD,
            batch.name,
            counts["uploaded"],
            total,
            counts["uploading"],
            counts["pending"],
            int(elapsed),
        )

    def upload(f: FileSpec, idx: int) -> None:
        wait_min_age(ctx, f, min_age)
        board.set(f.file_key, "uploading")
        started = time.monotonic()
        log.info("Upload (%s) start %d/%d: %s size=%dB", batch.name, idx + 1, total, f.file_key, f.size)
        try:
            upload_with_retry(ctx, f, ctx.settings.upload_retry)
        except Exception:
            board.set(f.file_key, "failed")
            raise
        board.set(f.file_key, "uploaded")
        log.info(
            "Upload (%s) done %d/%d: %s (%.1fs) uploaded %d/%d",
            batch.name,
            idx + 1,
            total,
            f.file_key,
            time.monotonic() - started,
            board.counts()["uploaded"],
            total,
        )

    log.info("Uploading %d files (%s, concurrency=%d)...", total, batch.name, width)
    with ProgressTicker(report, ctx.settings.progress_interval):
        run_bounded(batch.files, width, upload)


# ------------------------------------------------------------
# readiness snapshots
# ------------------------------------------------------------


def _format_status(status: str) -> str:
    return {
        "ready": "Ready",
        "in_progress": "InProgress",
        "missing": "Missing",
        "present": "Present",
        "cleared": "Cleared",
    }.get(status, status)


def _log_snapshot(title: str, files: Sequence[FileSpec], board: ItemStatusBoard[str]) -> None:
    log.info(SNAPSHOT_RULE)
    log.info(title)
    for i, f in enumerate(files, start=1):
        log.info("  %d) Filekey: %s Status: %s", i, f.file_key, _format_status(board.get(f.file_key)))
    log.info(SNAPSHOT_RULE)


def wait_storage_requests_cleared(
    ctx: RunContext,
    files: Sequence[FileSpec],
    spec: DeadlineSpec,
    *,
    label: str,
    width: int,
) -> None:
    board: ItemStatusBoard[str] = ItemStatusBoard((f.file_key for f in files), initial="unknown")
    deadline = time.monotonic() + spec.timeout

    def probe(f: FileSpec, _idx: int) -> None:
        present = ctx.chain.query_state(STORAGE_REQUESTS, f.file_key) is not None
        board.set(f.file_key, "present" if present else "cleared")

    def check() -> bool:
        run_bounded(files, width, probe)
        cleared = board.counts()["cleared"]
        remaining = max(0, int(deadline - time.monotonic()))
        _log_snapshot(
            f"{label} chain snapshot (cleared {cleared}/{len(files)}, remaining={remaining}s):",
            files,
            board,
        )
        return cleared == len(files)

    try:
        poll_until(check, spec, label=f"{label} storage requests", sleep=ctx.sleep)
    except WaitTimeout:
        cleared = board.counts()["cleared"]
        raise WaitTimeout(
            f"Timeout waiting for {label} storageRequests to clear (cleared {cleared}/{len(files)})"
        ) from None


def wait_files_ready(
    ctx: RunContext,
    files: Sequence[FileSpec],
    spec: DeadlineSpec,
    *,
    label: str,
) -> None:
    backend = ctx.require_backend()
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)
    board: ItemStatusBoard[str] = ItemStatusBoard((f.file_key for f in files), initial="unknown")
    deadline = time.monotonic() + spec.timeout

    def check() -> bool:
        listing = {e.file_key.lower(): e.status for e in backend.get_files(bucket_id)}
        for f in files:
            status = listing.get(f.file_key.lower(), "missing")
            if status == "ready" and board.get(f.file_key) != "ready":
                log.info("%s %s file became ready: %s", SYMBOLS.OK, label, f.file_key)
            board.set(f.file_key, status)

        ready = board.counts()["ready"]
        remaining = max(0, int(deadline - time.monotonic()))
        _log_snapshot(
            f"{label} readiness snapshot (ready {ready}/{len(files)}, remaining={remaining}s):",
            files,
            board,
        )

        expired = [f.file_key for f in files if board.get(f.file_key) == "expired"]
        if expired:
            raise StageCheckFailed(f"MSP reports expired files in {label}: {', '.join(expired)}")
        return ready == len(files)

    try:
        poll_until(check, spec, label=f"{label} files ready", sleep=ctx.sleep)
    except WaitTimeout:
        missing = [f for f in files if board.get(f.file_key) != "ready"]
        for f in missing:
            log.warning("  - %s (lastStatus=%s)", f.file_key, board.get(f.file_key))
        raise WaitTimeout(
            f"Timeout waiting for {label} files to be ready (missing {len(missing)}/{len(files)})"
        ) from None


# ------------------------------------------------------------
# deletion
# ------------------------------------------------------------


def _delete_call(ctx: RunContext, bucket_id: str, f: FileSpec, use_backend_info: bool) -> RequestDeleteFile:
    if not use_backend_info:
        return delete_file_call(bucket_id, f)

    info = ctx.require_backend().get_file_info(bucket_id, f.file_key)
    extra = {"block_hash": info.block_hash} if info.block_hash else {}
    return RequestDeleteFile(
        file_key=info.file_key,
        bucket_id=info.bucket_id or bucket_id,
        location=info.location,
        size=info.size,
        fingerprint=info.fingerprint,
        **extra,
    )


def request_deletions(
    ctx: RunContext,
    files: Sequence[FileSpec],
    *,
    label: str,
    use_backend_info: bool = False,
) -> None:
    """
    Request deletion of every file, one submission at a time. Files that
    fail (typically FileHasActiveStorageRequest) are retried in rounds
    following the conflict schedule.
    """
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)
    schedule = tuple(ctx.settings.conflict_schedule)
    remaining = [f for f in files if not f.deletion_requested]
    rounds = len(schedule) + 1
    last_error: Optional[BaseException] = None

    for round_no in range(1, rounds + 1):
        log.info("Delete attempt %d/%d (%s, %d files)...", round_no, rounds, label, len(remaining))
        failed: list[FileSpec] = []

        for f in remaining:
            try:
                ctx.ledger.submit_and_confirm(_delete_call(ctx, bucket_id, f, use_backend_info))
                f.deletion_requested = True
                log.info("%s deletion requested: %s", SYMBOLS.OK, f.file_key)
            except InvariantViolation:
                raise
            except Exception as e:
                last_error = e
                log.info("Delete failed (%s): %s", f.name, describe(e))
                failed.append(f)

        remaining = failed
        if not remaining:
            return
        if round_no > len(schedule):
            break

        delay = schedule[round_no - 1]
        log.info("%s Waiting %gs before retry (%d remaining)...", SYMBOLS.RETRY, delay, len(remaining))
        ctx.sleep(delay)

    raise StageCheckFailed(
        f"{len(remaining)} deletions still failing after {rounds} attempts ({label}): "
        f"{describe(last_error) if last_error else 'unknown error'}"
    )


def wait_deleted(
    ctx: RunContext,
    files: Sequence[FileSpec],
    *,
    label: str,
    cleared_poll: PollSpec,
    absence_poll: PollSpec,
    width: int = 1,
) -> None:
    backend = ctx.require_backend()
    bucket_id = ctx.artifacts.require(Artifact.BUCKET_ID)

    def cleared(f: FileSpec, _idx: int) -> None:
        wait_for_on_chain_data(
            lambda: ctx.chain.query_state(STORAGE_REQUESTS, f.file_key),
            lambda value: value is None,
            cleared_poll,
            label=f"storage request {f.name} to clear",
            sleep=ctx.sleep,
        )

    run_bounded(files, width, cleared)

    keys = {f.file_key.lower() for f in files}
    log.info("Waiting for %s files to disappear from bucket listing...", label)
    poll_backend(
        lambda: not any(e.file_key.lower() in keys for e in backend.get_files(bucket_id)),
        absence_poll,
        label=f"{label} files absent",
        sleep=ctx.sleep,
    )
    log.info("%s %s: %d files deleted", SYMBOLS.OK, label, len(files))
