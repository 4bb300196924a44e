from __future__ import annotations

import logging
from pathlib import Path


def enforce_retention(log_dir: Path, keep: int) -> list[Path]:
    """
    Keep the newest `keep` log files in log_dir, delete the rest.
    Returns the files that were removed.
    """
    if keep <= 0:
        return []

    logs = sorted(
        log_dir.glob("*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    removed: list[Path] = []
    for old in logs[keep:]:
        try:
            old.unlink()
            removed.append(old)
        except OSError as e:
            # Handlers are not attached yet; stderr via lastResort is fine.
            logging.getLogger("sentinel.logger").debug("Could not remove %s: %s", old, e)
    return removed
