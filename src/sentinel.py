#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys

from bootstrap import bootstrap_base_env, bootstrap_run_context


def _dispatch_help(parser: argparse.ArgumentParser, argv: list[str]) -> int:
    # Support:
    #   sentinel help
    #   sentinel help run
    #   sentinel run help
    if argv and argv[0] == "help":
        argv = argv[1:]
    argv = [a for a in argv if a != "help"]

    if not argv:
        parser.print_help()
        return 0

    try:
        build_parser().parse_args(argv + ["--help"])
    except SystemExit:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sentinel",
        description="Storage network sentinel: staged health checks against chain + MSP backend",
    )

    sub = p.add_subparsers(dest="command", required=True)

    help_cmd = sub.add_parser("help", help="Show help")
    help_cmd.add_argument("path", nargs="*", help="Command path to show help for")
    help_cmd.set_defaults(_help=True)

    # Keep imports inside builder to avoid early side effects.
    from cli.cli_env import build_env_parser
    from cli.cli_logs import build_logs_parser
    from cli.cli_run import build_heavy_parser, build_run_parser
    from cli.cli_stages import build_stages_parser
    from cli.cli_sweep import build_sweep_parser

    build_run_parser(sub)
    build_heavy_parser(sub)
    build_stages_parser(sub)
    build_sweep_parser(sub)
    build_env_parser(sub)
    build_logs_parser(sub)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Load .env and base environment early
    bootstrap_base_env(required=False)

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0

    args, unknown = parser.parse_known_args(argv)

    # Unified help routing
    if getattr(args, "_help", False) or (unknown and unknown[-1] == "help"):
        return _dispatch_help(parser, argv)
    if unknown:
        parser.error(f"unrecognized arguments: {' '.join(unknown)}")

    # Stamp run context early (so subprocesses inherit it)
    bootstrap_run_context(
        command=args.command,
        verbose=bool(getattr(args, "verbose", False)),
        quiet=bool(getattr(args, "quiet", False)),
        target=getattr(args, "target", None),
        output_dir=getattr(args, "output_dir", None),
    )

    # Initialize logging AFTER run-context env stamping
    from logger import get_logger, init_logging

    logfile = init_logging()

    log = get_logger("sentinel")
    log.debug("Command: %s (log: %s)", args.command, logfile)

    # Dispatch
    if args.command in ("run", "heavy"):
        from cli.cli_run import handle_heavy, handle_run

        return handle_heavy(args) if args.command == "heavy" else handle_run(args)

    if args.command == "stages":
        from cli.cli_stages import handle_stages

        return handle_stages(args)

    if args.command == "sweep":
        from cli.cli_sweep import handle_sweep

        return handle_sweep(args)

    if args.command == "env":
        from cli.cli_env import handle_env

        return handle_env(args)

    if args.command == "logs":
        from cli.cli_logs import handle_logs

        return handle_logs(args)

    raise RuntimeError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
