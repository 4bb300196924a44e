from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.table import Table

from branding import STATUS_SYMBOLS, SYMBOLS

# Plain, non-log output for CLI commands (tables, dumps).
RENDER = Console(highlight=False, soft_wrap=True)


def table(title: str | None, headers: list[str], rows: Iterable[Iterable[object]]) -> Table:
    t = Table(title=title, show_lines=False, header_style="bold cyan")
    for h in headers:
        t.add_column(h)
    for row in rows:
        t.add_row(*(str(c) for c in row))
    return t


def status_cell(status: str) -> str:
    return f"{STATUS_SYMBOLS.get(status, SYMBOLS.INFO)} {status}"
