from __future__ import annotations

from pathlib import Path
from typing import Optional

INITIALIZED: bool = False
RUN_ID: Optional[str] = None
COMMAND: Optional[str] = None
LOG_DIR: Optional[Path] = None
LOG_FILE_PATH: Optional[Path] = None


def reset() -> None:
    global INITIALIZED, RUN_ID, COMMAND, LOG_DIR, LOG_FILE_PATH
    INITIALIZED = False
    RUN_ID = None
    COMMAND = None
    LOG_DIR = None
    LOG_FILE_PATH = None
