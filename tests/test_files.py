import random

from fakes import FakeAddresser
from stages.files import address_files, load_payload, random_files, same_hex


def test_load_payload_reads_file(tmp_path):
    p = tmp_path / "adolphus.jpg"
    p.write_bytes(b"jpeg")
    assert load_payload(p, 10) == ("adolphus.jpg", b"jpeg")


def test_load_payload_falls_back_to_random_bytes(tmp_path):
    name, data = load_payload(tmp_path / "missing.jpg", 128)
    assert name == "random.bin"
    assert len(data) == 128


def test_random_files_sizes_and_unique_locations():
    files = random_files("heavy-a", 6, 10, 20, rng=random.Random(7))
    assert len({f.location for f in files}) == 6
    assert all(10 <= f.size <= 20 for f in files)
    assert all(f.name.startswith("heavy-a-") for f in files)


def test_address_files_sets_fingerprint_and_key():
    files = random_files("x", 2, 4, 4)
    address_files(FakeAddresser(), "0xowner", "0xbucket", files)
    assert all(f.fingerprint.startswith("0x") and f.file_key.startswith("0x") for f in files)
    assert files[0].file_key != files[1].file_key


def test_same_hex():
    assert same_hex("0xABCD", "abcd")
    assert not same_hex("0xabcd", "0xabce")
    assert same_hex("", "")
