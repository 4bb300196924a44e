from __future__ import annotations

import os
import random
import time
from pathlib import Path
from typing import Iterable, Optional

from logger import get_logger
from pipeline.artifacts import FileSpec
from providers.base import ContentAddresser

log = get_logger("sentinel.stages")


def load_payload(path: Optional[Path], fallback_size: int) -> tuple[str, bytes]:
    """
    Bytes for the monitor's single file. Falls back to random bytes when
    the configured file is not present, so a fresh checkout can still run.
    """
    if path is not None and path.is_file():
        return path.name, path.read_bytes()

    log.warning(
        "Test file %s not found; using %d random bytes instead",
        path,
        fallback_size,
    )
    return "random.bin", os.urandom(fallback_size)


def random_files(
    prefix: str,
    count: int,
    min_size: int,
    max_size: int,
    *,
    rng: random.Random | None = None,
) -> list[FileSpec]:
    rng = rng or random.Random()
    stamp = int(time.time() * 1000)
    files: list[FileSpec] = []
    for i in range(count):
        size = rng.randint(min_size, max_size)
        name = f"{prefix}-{stamp}-{i}-{size}.bin"
        files.append(FileSpec(name=name, location=name, data=os.urandom(size)))
    return files


def address_files(
    addresser: ContentAddresser,
    owner: str,
    bucket_id: str,
    files: Iterable[FileSpec],
) -> None:
    for f in files:
        f.fingerprint = addresser.fingerprint(f.data)
        f.file_key = addresser.file_key(owner, bucket_id, f.location, f.size, f.fingerprint)
        log.debug("%s: fingerprint=%s fileKey=%s size=%dB", f.name, f.fingerprint, f.file_key, f.size)


def same_hex(a: str, b: str) -> bool:
    def norm(v: str) -> str:
        v = (v or "").lower()
        return v[2:] if v.startswith("0x") else v

    return norm(a) == norm(b)
