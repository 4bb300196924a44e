from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from env import get_logging_env

# stdout so CI job logs interleave with badge output in order
CONSOLE = Console(
    file=sys.stdout,
    soft_wrap=True,
)


class QuietGateFilter(logging.Filter):
    """
    Drop console records when SENTINEL_QUIET flips on after init.
    The file handler is unaffected.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return not get_logging_env().quiet


def build_console_handler(level: int = logging.INFO) -> logging.Handler:
    handler = RichHandler(
        console=CONSOLE,
        level=level,
        show_level=True,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    # RichHandler renders time and level columns itself.
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(QuietGateFilter())
    return handler
