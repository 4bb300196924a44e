from __future__ import annotations

import argparse

from env import get_env
from env.networks import NETWORKS
from cli.common import dispatch_subparser_help
from cli.render import RENDER, table


def build_env_parser(subparsers: argparse._SubParsersAction) -> None:
    env = subparsers.add_parser("env", help="Environment utilities")
    sub = env.add_subparsers(dest="env_cmd", required=True)

    help_p = sub.add_parser("help", help="Show help for env")
    help_p.add_argument("path", nargs="*", help="Subcommand path")
    help_p.set_defaults(action="help", _help_parser=env)

    dump_p = sub.add_parser("dump", help="Show resolved runtime environment")
    dump_p.set_defaults(action="dump")

    networks_p = sub.add_parser("networks", help="List built-in network presets")
    networks_p.set_defaults(action="networks")


def handle_env(args: argparse.Namespace) -> int:
    if args.action == "help":
        return dispatch_subparser_help(
            args._help_parser, list(getattr(args, "path", []) or [])
        )

    if args.action == "dump":
        return handle_env_dump()

    if args.action == "networks":
        return handle_env_networks()

    raise RuntimeError(f"Unknown env action: {args.action}")


def handle_env_dump() -> int:
    env = get_env()
    data = env.as_dict()

    RENDER.print("\n[bold]Runtime Environment[/bold]")
    RENDER.print("─" * 50)

    for section, values in data.items():
        RENDER.print(f"\n[bold cyan]{section}[/bold cyan]")
        for key, value in values.items():
            RENDER.print(f"  {key:<24} = {value}")

    RENDER.print()
    return 0


def handle_env_networks() -> int:
    rows = [
        [n.key, n.chain.id, n.max_replication, n.msp.base_url, f"{n.msp.timeout_sec:g}s"]
        for n in NETWORKS.values()
    ]
    RENDER.print(table("Networks", ["key", "chain id", "max replicas", "msp", "timeout"], rows))
    return 0
