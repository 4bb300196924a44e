from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from env.paths import logs_dir

RUN_STATUS_PREFIX = "RUN_STATUS="


# ----------------------------
# Help dispatch (subparser-local)
# ----------------------------


def dispatch_subparser_help(
    parser: argparse.ArgumentParser, path: list[str] | None
) -> int:
    """
    Implements consistent `X help [subcmd ...]` behavior for a subtree parser.
    """
    if not path:
        parser.print_help()
        return 0

    try:
        parser.parse_args(path + ["--help"])
    except SystemExit:
        pass
    return 0


# ----------------------------
# Logs filesystem helpers
# ----------------------------


def resolve_log_dir(*, command: str | None, explicit: str | None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()

    base = logs_dir()
    return (base / command).resolve() if command else base


def find_log_file(log_dir: Path, name: str) -> Path | None:
    if not log_dir.exists():
        return None

    for p in (log_dir / name, log_dir / f"{name}.log"):
        if p.exists() and p.is_file():
            return p

    for p in log_dir.rglob("*.log"):
        if p.stem == name or p.stem.endswith(f"-{name}"):
            return p

    return None


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def print_tail(path: Path, lines: int) -> None:
    try:
        data = read_text(path).splitlines()
    except OSError as e:
        print(f"[error reading log] {e}")
        return

    tail = data[-lines:] if lines > 0 else data
    for line in tail:
        print(line)


# ----------------------------
# Run status inference (log-driven)
# ----------------------------


def infer_run_status(path: Path) -> str:
    """
    The run handlers write a final `RUN_STATUS=<passed|failed>` line.
    Logs without one (crashed or still running) report "unknown".
    """
    try:
        text = read_text(path)
    except OSError:
        return "unknown"

    status = "unknown"
    for line in text.splitlines():
        idx = line.find(RUN_STATUS_PREFIX)
        if idx >= 0:
            status = line[idx + len(RUN_STATUS_PREFIX):].strip() or status
    return status


@dataclass(frozen=True)
class RunFile:
    name: str
    path: Path
    mtime: float
    size: int


def list_run_files(log_dir: Path) -> list[RunFile]:
    if not log_dir.exists():
        return []

    items: list[RunFile] = []
    for p in log_dir.rglob("*.log"):
        try:
            st = p.stat()
        except OSError:
            continue
        items.append(RunFile(name=p.stem, path=p, mtime=st.st_mtime, size=st.st_size))

    items.sort(key=lambda r: r.mtime, reverse=True)
    return items


def format_mtime(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")
