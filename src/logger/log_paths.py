from __future__ import annotations

from pathlib import Path

from env.paths import logs_dir


def module_logs_dir(command: str) -> Path:
    path = logs_dir() / command
    path.mkdir(parents=True, exist_ok=True)
    return path
