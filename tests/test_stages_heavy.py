from fakes import fast_settings, make_context, make_world
from pipeline.artifacts import batch_key
from pipeline.results import StageStatus
from providers.base import STORAGE_REQUESTS
from runner import run_pipeline
from stages import HEAVY_PIPELINE


def _heavy(tmp_path, world=None, **overrides):
    settings = fast_settings(tmp_path, pipeline="heavy", badge_label_prefix="Heavy", **overrides)
    ctx = make_context(settings, world=world)
    return ctx, run_pipeline(HEAVY_PIPELINE, settings, context_factory=lambda: ctx)


def test_heavy_stage_order():
    assert [s.id for s in HEAVY_PIPELINE] == [
        "connection",
        "health",
        "auth",
        "bucket-create",
        "storage-request-batch1",
        "upload-batch1",
        "file-delete-first",
        "storage-request-batch2",
        "upload-batch2",
        "file-delete-all",
        "bucket-delete",
    ]


def test_heavy_full_run_passes(tmp_path):
    ctx, outcome = _heavy(tmp_path)

    assert outcome.passed, outcome.error
    assert [r.status for r in outcome.stages] == [StageStatus.PASSED] * 11

    names = ctx.chain.call_names()
    assert names.count("IssueStorageRequest") == 6
    assert names.count("RequestDeleteFile") == 6
    assert names[0] == "CreateBucket" and names[-1] == "DeleteBucket"
    assert ctx.chain.state[STORAGE_REQUESTS] == {}

    batch1 = ctx.artifacts.require(batch_key("batch1"))
    batch2 = ctx.artifacts.require(batch_key("batch2"))
    assert batch1.replicas == 1
    assert batch2.replicas == 2
    assert all(16 <= f.size <= 64 for f in batch1.files + batch2.files)
    assert all(f.uploaded and f.deletion_requested for f in batch1.files + batch2.files)

    badge = (tmp_path / "badges" / "upload-batch1.json").read_text(encoding="utf-8")
    assert "Heavy – Upload (Batch 1)" in badge


def test_heavy_delete_first_only_touches_first_files(tmp_path):
    ctx, outcome = _heavy(tmp_path)
    batch1 = ctx.artifacts.require(batch_key("batch1"))

    deletes = [c for c in ctx.chain.calls if c.name == "RequestDeleteFile"]
    first_two = {f.file_key for f in batch1.files[:2]}
    assert {c.file_key for c in deletes[:2]} == first_two


def test_heavy_upload_failure_cleans_up_every_requested_file(tmp_path):
    world = make_world()

    def broken(*args, **kwargs):
        raise ValueError("MSP rejected upload")

    world[2].upload_file = broken
    ctx, outcome = _heavy(tmp_path, world=world)

    assert outcome.failed_stage == "upload-batch1"
    assert outcome.cleanup is not None
    steps = [s.name for s in outcome.cleanup.steps]
    assert len([s for s in steps if s.startswith("delete-file:")]) == 4
    assert steps[-1] == "delete-bucket"


def test_heavy_delete_retries_in_rounds(tmp_path):
    world = make_world()
    world[0].fail_submit["RequestDeleteFile"] = [
        RuntimeError("FileHasActiveStorageRequest"),
        RuntimeError("FileHasActiveStorageRequest"),
    ]
    sleeps = []

    settings = fast_settings(tmp_path, pipeline="heavy")
    ctx = make_context(settings, world=world, sleep=sleeps.append)
    outcome = run_pipeline(HEAVY_PIPELINE, settings, context_factory=lambda: ctx)

    assert outcome.passed, outcome.error
    assert 0.01 in sleeps
