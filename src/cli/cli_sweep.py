from __future__ import annotations

import argparse

import config
from branding import SENTINEL_HEADER
from cli.render import RENDER, table
from env import ConfigError, get_env


def build_sweep_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "sweep", help="Find (and optionally delete) buckets left by monitor runs"
    )
    p.add_argument("--prefix", default=config.BUCKET_NAME_PREFIX, help="Bucket name prefix")
    p.add_argument("--execute", action="store_true", help="Submit deletions (default: dry-run)")
    p.add_argument("--with-files", action="store_true", help="Delete bucket files first")
    p.add_argument("--limit", type=int, default=None, help="Process at most N buckets")
    p.add_argument("--verbose", action="store_true")
    p.add_argument("--quiet", action="store_true")


def handle_sweep(args: argparse.Namespace) -> int:
    from logger import get_logger
    from pipeline.errors import describe
    from pipeline.settings import monitor_settings
    from runner import build_context
    from stages import common
    from stages.sweep import Sweeper

    log = get_logger("sentinel.sweep")

    try:
        env = get_env()
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return 2

    log.info(SENTINEL_HEADER("Sweep"))
    log.info("Network: %s", env.network.name)
    log.info("Execute: %s", "YES" if args.execute else "NO (dry-run)")

    ctx = None
    try:
        ctx = build_context(env, monitor_settings(env))
        common.connect(ctx)
        common.sign_in(ctx)
        report = Sweeper(ctx, execute=args.execute).sweep(
            prefix=args.prefix,
            with_files=args.with_files,
            limit=args.limit,
        )
    except Exception as e:
        log.error("Sweep failed: %s", describe(e))
        log.debug("Sweep traceback", exc_info=True)
        return 1
    finally:
        if ctx is not None:
            ctx.close()

    rows = [
        [
            b.name,
            b.bucket_id,
            len(b.files),
            f"{b.files_deleted}/{b.files_failed}" if args.with_files else "-",
            "yes" if b.bucket_deleted else ("error" if b.error else "dry-run"),
        ]
        for b in report.buckets
    ]
    RENDER.print(
        table(
            f"Swept {len(report.buckets)}/{report.total_buckets} buckets",
            ["name", "bucket id", "files", "deleted/failed", "bucket"],
            rows,
        )
    )
    return 1 if report.failures else 0
