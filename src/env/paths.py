from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------
# Project root
# ---------------------------------------------------------------------

# This file lives in src/env/, so project root is two levels up
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
RESOURCES_DIR = PROJECT_ROOT / "resources"


# ---------------------------------------------------------------------
# Base directories (override-friendly)
# ---------------------------------------------------------------------


def _resolve_dir(env_var: str, default: Path, *, create: bool = True) -> Path:
    """
    Resolve a directory path from an environment variable or default.
    Ensures the directory exists unless create=False.
    """
    raw = os.environ.get(env_var)
    path = Path(raw).expanduser().resolve() if raw else default
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def logs_dir() -> Path:
    """
    Root log directory. Resolved on every call so tests and the CLI can
    repoint it through SENTINEL_LOGS_DIR.
    """
    return _resolve_dir("SENTINEL_LOGS_DIR", PROJECT_ROOT / "logs")


def output_dir(default_name: str = "badges") -> Path:
    """
    Directory that receives badge and status files.
    """
    return _resolve_dir("SENTINEL_OUTPUT_DIR", PROJECT_ROOT / default_name, create=False)


def default_test_file() -> Path:
    return RESOURCES_DIR / "adolphus.jpg"
