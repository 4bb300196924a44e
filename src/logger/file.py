from __future__ import annotations

import logging
from pathlib import Path

FILE_FORMAT = "%(asctime)s | [%(levelname)s] | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_file_handler(logfile: Path) -> logging.FileHandler:
    logfile.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(logfile, encoding="utf-8")
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def repoint_file_handler(handler: logging.FileHandler, new_logfile: Path) -> None:
    """Swap the target file of an existing handler without re-adding it."""
    new_logfile.parent.mkdir(parents=True, exist_ok=True)

    handler.acquire()
    try:
        handler.close()
        handler.baseFilename = str(new_logfile.resolve())
        handler.stream = handler._open()
    finally:
        handler.release()
