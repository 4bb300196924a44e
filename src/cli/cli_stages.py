from __future__ import annotations

import argparse

from cli.render import RENDER, table


def build_stages_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("stages", help="List pipeline stages and target aliases")
    p.add_argument("--heavy", action="store_true", help="Show the heavy pipeline")


def handle_stages(args: argparse.Namespace) -> int:
    from runner import FULL, TARGET_ALIASES
    from stages import HEAVY_PIPELINE, MONITOR_PIPELINE

    stages = HEAVY_PIPELINE if args.heavy else MONITOR_PIPELINE
    name = "heavy" if args.heavy else "monitor"

    aliases: dict[str, list[str]] = {}
    for alias, stage_id in TARGET_ALIASES.items():
        aliases.setdefault(stage_id, []).append(alias)

    rows = [
        [i, s.id, s.label, ", ".join(aliases.get(s.id, []))]
        for i, s in enumerate(stages, start=1)
    ]
    RENDER.print(table(f"{name} stages", ["#", "id", "label", "aliases"], rows))
    RENDER.print(f"Default target: {FULL}")
    return 0
