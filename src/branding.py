from __future__ import annotations

import shutil
from typing import Literal

# --------------------------------------------------
# Layout constants
# --------------------------------------------------

DEFAULT_WIDTH = 72
LOG_GUTTER_WIDTH = 10

Width = int | Literal["auto"]


def _resolve_width(width: Width) -> int:
    if width == "auto":
        try:
            cols = shutil.get_terminal_size().columns
        except OSError:
            cols = DEFAULT_WIDTH
        return max(DEFAULT_WIDTH, cols - LOG_GUTTER_WIDTH)
    return max(DEFAULT_WIDTH, int(width))


# --------------------------------------------------
# Banner
# --------------------------------------------------

SENTINEL_BANNER = r"""
  ___ ___ _  _ _____ ___ _  _ ___ _
 / __| __| \| |_   _|_ _| \| | __| |
 \__ \ _|| .` | | |  | || .` | _|| |__
 |___/___|_|\_| |_| |___|_|\_|___|____|
"""


# --------------------------------------------------
# Headers / sections
# --------------------------------------------------


def SENTINEL_HEADER(
    title: str,
    *,
    width: Width = DEFAULT_WIDTH,
    pad: int = 6,
    motif: str = "◆",
) -> str:
    title = title.strip()
    inner = max(_resolve_width(width) - 2, len(title) + pad * 2)

    filler = inner - len(motif)
    left = filler // 2
    right = filler - left

    top = f"┏{'━' * left}{motif}{'━' * right}┓"
    mid = f"┃{title.center(inner)}┃"
    bot = f"┗{'━' * left}{motif}{'━' * right}┛"

    return f"\n{top}\n{mid}\n{bot}"


def SENTINEL_SECTION_END(
    *,
    width: Width = DEFAULT_WIDTH,
    motif: str = "◆",
    fill: str = "─",
) -> str:
    w = _resolve_width(width)
    side = max(0, (w - len(motif)) // 2)
    return f"{fill * side}{motif}{fill * (w - side - len(motif))}"


# --------------------------------------------------
# Symbols
# --------------------------------------------------


class SYMBOLS:
    # Status
    OK = "✔"
    FAIL = "✖"
    WARN = "⚠"
    INFO = "ℹ"

    # Flow
    RUNNING = "▶"
    SKIPPED = "⤼"
    BLOCKED = "⛔"
    RETRY = "↻"
    WAIT = "⏳"
    CLEANUP = "🧹"

    # Storage
    BUCKET = "🪣"
    FILE = "📄"
    UPLOAD = "⬆"
    DOWNLOAD = "⬇"
    CHAIN = "⛓"
    AUTH = "🔒"
    BADGE = "🏷"


STATUS_SYMBOLS = {
    "passed": SYMBOLS.OK,
    "failed": SYMBOLS.FAIL,
    "skipped": SYMBOLS.SKIPPED,
}
