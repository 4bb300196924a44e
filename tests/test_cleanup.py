from fakes import fast_settings, make_context
from pipeline.artifacts import Artifact, FileBatch, FileSpec, batch_key
from pipeline.cleanup import CleanupController, StepStatus


def _ctx_with_files(tmp_path, *, requested=3, deleted=1):
    ctx = make_context(fast_settings(tmp_path))
    ctx.artifacts.put(Artifact.BUCKET_ID, "0xbucket")
    ctx.artifacts.put(Artifact.BUCKET_TX, "0xtx")

    files = []
    for i in range(requested):
        f = FileSpec(name=f"f{i}", location=f"f{i}", data=b"abc", fingerprint="0xfp", file_key=f"0xk{i}")
        f.mark_submitted(f"0xsr{i}")
        f.deletion_requested = i < deleted
        files.append(f)
    # never storage-requested: nothing to clean for it
    files.append(FileSpec(name="idle", location="idle", data=b"", file_key="0xidle"))

    ctx.artifacts.put(batch_key("b"), FileBatch("b", files))
    return ctx


def test_cleanup_deletes_pending_files_then_bucket(tmp_path):
    ctx = _ctx_with_files(tmp_path)

    report = CleanupController(ctx).run("failed:file-upload")

    assert [s.name for s in report.steps] == ["delete-file:f1", "delete-file:f2", "delete-bucket"]
    assert report.ok
    assert ctx.chain.call_names() == ["RequestDeleteFile", "RequestDeleteFile", "DeleteBucket"]


def test_cleanup_twice_is_a_no_op(tmp_path):
    ctx = _ctx_with_files(tmp_path)
    controller = CleanupController(ctx)

    first = controller.run("failed:x")
    second = controller.run("failed:y")

    assert first is second
    assert len(ctx.chain.calls) == 3


def test_cleanup_continues_after_a_failing_step(tmp_path):
    ctx = _ctx_with_files(tmp_path)
    ctx.chain.fail_submit["RequestDeleteFile"] = [RuntimeError("FileHasActiveStorageRequest")]

    report = CleanupController(ctx).run("failed:x")

    statuses = {s.name: s.status for s in report.steps}
    assert statuses["delete-file:f1"] == StepStatus.FAILED
    assert statuses["delete-file:f2"] == StepStatus.DONE
    assert statuses["delete-bucket"] == StepStatus.DONE
    assert not report.ok


def test_cleanup_skips_deleted_bucket(tmp_path):
    ctx = make_context(fast_settings(tmp_path))
    ctx.artifacts.put(Artifact.BUCKET_ID, "0xbucket")
    ctx.artifacts.put(Artifact.BUCKET_TX, "0xtx")
    ctx.artifacts.put(Artifact.BUCKET_DELETED, True)

    report = CleanupController(ctx).run("after_target:bucket-delete")

    assert report.steps == []
    assert ctx.chain.calls == []


def test_cleanup_without_artifacts_does_nothing(tmp_path):
    ctx = make_context(fast_settings(tmp_path))
    report = CleanupController(ctx).run("failed:connection")
    assert report.steps == []
