from __future__ import annotations

import argparse
import os

from branding import SENTINEL_BANNER, SENTINEL_HEADER
from cli.common import RUN_STATUS_PREFIX
from env import ConfigError, get_env


def _add_run_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--output-dir", help="Where badge and status files are written")
    p.add_argument("--verbose", action="store_true")
    p.add_argument("--quiet", action="store_true")


def build_run_parser(subparsers: argparse._SubParsersAction) -> None:
    run = subparsers.add_parser("run", help="Run the monitor pipeline")
    run.add_argument(
        "--target",
        help="Stop after this stage id (default: full). Cleanup still runs.",
    )
    _add_run_flags(run)


def build_heavy_parser(subparsers: argparse._SubParsersAction) -> None:
    heavy = subparsers.add_parser("heavy", help="Run the heavy (batched) pipeline")
    heavy.add_argument("--target", help="Stop after this stage id (default: full)")
    _add_run_flags(heavy)


def _run(pipeline: str, args: argparse.Namespace) -> int:
    from logger import get_logger
    from pipeline.settings import fallback_settings, heavy_settings, monitor_settings
    from runner import abort_pipeline, run_pipeline
    from stages import PIPELINES

    log = get_logger("sentinel")
    log.info(SENTINEL_BANNER)

    try:
        env = get_env()
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        outcome = abort_pipeline(
            PIPELINES[pipeline],
            fallback_settings(pipeline),
            e,
            network_name=os.environ.get("DATAHAVEN_NETWORK", "unknown"),
        )
        log.info("%sfailed", RUN_STATUS_PREFIX)
        return outcome.exit_code

    settings = heavy_settings(env) if pipeline == "heavy" else monitor_settings(env)

    log.info(SENTINEL_HEADER(f"{pipeline} on {env.network.name}"))
    log.info("Run id: %s", env.run_id)
    log.info("Output: %s", settings.output_dir)

    outcome = run_pipeline(PIPELINES[pipeline], settings, env=env)

    log.info("%s%s", RUN_STATUS_PREFIX, "passed" if outcome.passed else "failed")
    return outcome.exit_code


def handle_run(args: argparse.Namespace) -> int:
    return _run("monitor", args)


def handle_heavy(args: argparse.Namespace) -> int:
    return _run("heavy", args)
