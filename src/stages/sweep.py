"""
Account sweep: find buckets left behind by earlier monitor runs and
optionally delete them (and their files) on chain.

Dry-run unless execute=True. Submissions are strictly sequential.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import config
from branding import SYMBOLS
from logger import get_logger
from pipeline.errors import StageCheckFailed, describe
from pipeline.run_state import RunContext
from providers.base import BucketRecord, DeleteBucket, FileEntry, RequestDeleteFile

log = get_logger("sentinel.sweep")


@dataclass
class SweptBucket:
    bucket_id: str
    name: str
    files: list[FileEntry] = field(default_factory=list)
    files_deleted: int = 0
    files_failed: int = 0
    bucket_deleted: bool = False
    error: Optional[str] = None


@dataclass
class SweepReport:
    execute: bool
    total_buckets: int = 0
    buckets: list[SweptBucket] = field(default_factory=list)

    @property
    def failures(self) -> int:
        return sum(b.files_failed + (1 if b.error else 0) for b in self.buckets)


def select_buckets(
    buckets: list[BucketRecord], *, prefix: str, limit: Optional[int] = None
) -> list[BucketRecord]:
    matched = [b for b in buckets if b.name.startswith(prefix)]
    if limit is not None and limit >= 0:
        matched = matched[:limit]
    return matched


def _raise_if_fatal(exc: BaseException) -> None:
    msg = describe(exc)
    for marker in config.SWEEP_FATAL_MARKERS:
        if marker in msg:
            raise StageCheckFailed(f"{marker}: fund the account and retry") from exc


class Sweeper:
    def __init__(self, ctx: RunContext, *, execute: bool = False):
        self.ctx = ctx
        self.execute = execute

    def _pause(self) -> None:
        self.ctx.sleep(config.SWEEP_SUBMIT_SPACING)

    def delete_file(self, bucket_id: str, entry: FileEntry) -> None:
        info = self.ctx.require_backend().get_file_info(bucket_id, entry.file_key)
        extra = {"block_hash": info.block_hash} if info.block_hash else {}
        call = RequestDeleteFile(
            file_key=info.file_key,
            bucket_id=info.bucket_id or bucket_id,
            location=info.location,
            size=info.size,
            fingerprint=info.fingerprint,
            **extra,
        )
        if not self.execute:
            log.info("DRY-RUN requestDeleteFile %s (%s)", call.file_key, call.location)
            return
        self.ctx.ledger.submit_and_confirm(call)
        self._pause()

    def delete_bucket(self, bucket_id: str) -> None:
        if not self.execute:
            log.info("DRY-RUN deleteBucket %s", bucket_id)
            return
        self.ctx.ledger.submit_and_confirm(DeleteBucket(bucket_id=bucket_id))
        self._pause()

    def sweep(
        self,
        *,
        prefix: str,
        with_files: bool = False,
        limit: Optional[int] = None,
    ) -> SweepReport:
        backend = self.ctx.require_backend()
        all_buckets = list(backend.list_buckets())
        selected = select_buckets(all_buckets, prefix=prefix, limit=limit)

        report = SweepReport(execute=self.execute, total_buckets=len(all_buckets))
        log.info("Buckets matched: %d/%d (prefix=%r)", len(selected), len(all_buckets), prefix)

        for record in selected:
            swept = SweptBucket(bucket_id=record.bucket_id, name=record.name)
            report.buckets.append(swept)
            log.info("%s Bucket: %s (%s)", SYMBOLS.BUCKET, record.name, record.bucket_id)

            swept.files = list(backend.get_files(record.bucket_id))
            log.info("  Files: %d", len(swept.files))

            if with_files:
                for entry in swept.files:
                    try:
                        self.delete_file(record.bucket_id, entry)
                        swept.files_deleted += 1
                        log.info("  %s delete-file: %s", SYMBOLS.OK, entry.name or entry.file_key)
                    except Exception as e:
                        _raise_if_fatal(e)
                        swept.files_failed += 1
                        log.warning(
                            "  %s delete-file failed: %s (%s)",
                            SYMBOLS.FAIL,
                            entry.name or entry.file_key,
                            describe(e),
                        )

            try:
                self.delete_bucket(record.bucket_id)
                swept.bucket_deleted = self.execute
                log.info("  %s delete-bucket", SYMBOLS.OK)
            except Exception as e:
                _raise_if_fatal(e)
                swept.error = describe(e)
                log.warning("  %s delete-bucket failed: %s", SYMBOLS.FAIL, swept.error)

        return report
