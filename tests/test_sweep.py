import pytest

from fakes import fast_settings, make_context, make_world
from pipeline.errors import StageCheckFailed
from providers.base import BucketRecord
from stages import common
from stages.sweep import Sweeper, select_buckets


def _seeded(tmp_path):
    world = make_world()
    chain, addresser, backend = world
    for name in ("monitor-1", "monitor-2", "keep-me"):
        bucket_id = addresser.bucket_id(chain.address, name)
        backend.buckets[bucket_id] = BucketRecord(bucket_id, name)
        backend.files[bucket_id] = {
            "0xf1": {"location": f"{name}/a", "data": b"a", "fingerprint": "0xfa", "status": "ready"},
        }
    ctx = make_context(fast_settings(tmp_path), world=world)
    common.connect(ctx)
    common.sign_in(ctx)
    return ctx, world


def test_select_buckets_by_prefix_and_limit():
    buckets = [BucketRecord("0x1", "monitor-1"), BucketRecord("0x2", "other"), BucketRecord("0x3", "monitor-3")]
    assert [b.name for b in select_buckets(buckets, prefix="monitor-")] == ["monitor-1", "monitor-3"]
    assert len(select_buckets(buckets, prefix="monitor-", limit=1)) == 1


def test_dry_run_submits_nothing(tmp_path):
    ctx, world = _seeded(tmp_path)

    report = Sweeper(ctx, execute=False).sweep(prefix="monitor-", with_files=True)

    assert [b.name for b in report.buckets] == ["monitor-1", "monitor-2"]
    assert report.total_buckets == 3
    assert world[0].calls == []
    assert not any(b.bucket_deleted for b in report.buckets)


def test_execute_deletes_files_then_buckets(tmp_path):
    ctx, world = _seeded(tmp_path)
    sleeps = []
    ctx.sleep = sleeps.append

    report = Sweeper(ctx, execute=True).sweep(prefix="monitor-", with_files=True)

    assert world[0].call_names() == [
        "RequestDeleteFile",
        "DeleteBucket",
        "RequestDeleteFile",
        "DeleteBucket",
    ]
    assert all(b.bucket_deleted and b.files_deleted == 1 for b in report.buckets)
    assert report.failures == 0
    assert [b.name for b in world[2].list_buckets()] == ["keep-me"]
    assert len(sleeps) == 4


def test_insufficient_balance_aborts_sweep(tmp_path):
    ctx, world = _seeded(tmp_path)
    world[0].fail_submit["DeleteBucket"] = [RuntimeError("Module error: NotEnoughBalance")]

    with pytest.raises(StageCheckFailed, match="NotEnoughBalance"):
        Sweeper(ctx, execute=True).sweep(prefix="monitor-")


def test_failed_bucket_delete_is_reported(tmp_path):
    ctx, world = _seeded(tmp_path)
    world[0].fail_submit["DeleteBucket"] = [RuntimeError("BucketNotEmpty")]

    report = Sweeper(ctx, execute=True).sweep(prefix="monitor-", limit=1)

    assert len(report.buckets) == 1
    assert report.buckets[0].error == "BucketNotEmpty"
    assert report.failures == 1
