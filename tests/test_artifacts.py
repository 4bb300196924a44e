import pytest

from pipeline.artifacts import Artifact, Artifacts, FileBatch, FileSpec, batch_key
from pipeline.errors import ArtifactAlreadySet, InvariantViolation, MissingArtifactError


def test_put_is_write_once():
    a = Artifacts()
    assert a.put(Artifact.BUCKET_ID, "0x1") == "0x1"
    with pytest.raises(ArtifactAlreadySet):
        a.put(Artifact.BUCKET_ID, "0x2")
    assert a.require(Artifact.BUCKET_ID) == "0x1"


def test_require_missing_is_invariant_violation():
    a = Artifacts()
    with pytest.raises(MissingArtifactError) as exc:
        a.require(Artifact.MSP_ID)
    assert isinstance(exc.value, InvariantViolation)
    assert exc.value.key == "msp_id"


def test_enum_and_string_keys_are_equivalent():
    a = Artifacts()
    a.put("bucket_name", "monitor-1")
    assert a.get(Artifact.BUCKET_NAME) == "monitor-1"
    assert a.has(Artifact.BUCKET_NAME)
    assert a.get(Artifact.BUCKET_ID, "fallback") == "fallback"


def test_batches_are_listed():
    a = Artifacts()
    a.put(batch_key("one"), FileBatch("one"))
    a.put(batch_key("two"), FileBatch("two"))
    a.put(Artifact.BUCKET_ID, "0x1")
    assert [b.name for b in a.batches()] == ["one", "two"]


def test_pending_deletion_only_counts_storage_requested_files():
    requested = FileSpec("a", "a", b"1")
    requested.mark_submitted("0xtx")
    deleted = FileSpec("b", "b", b"2")
    deleted.mark_submitted("0xtx2")
    deleted.deletion_requested = True
    idle = FileSpec("c", "c", b"3")

    batch = FileBatch("x", [requested, deleted, idle])
    assert batch.pending_deletion() == [requested]
    assert len(batch) == 3


def test_file_age():
    f = FileSpec("a", "a", b"")
    assert f.age() is None
    f.mark_issued()
    assert f.age() >= 0
