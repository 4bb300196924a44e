from __future__ import annotations

"""bootstrap.py

Process bootstrap for the storage sentinel.

Rules:
1) Only bootstrap mutates os.environ for shared run context.
2) Call bootstrap_base_env() once at the true entrypoint.
3) Call bootstrap_run_context() after argparse parsing, before init_logging().

Everything else treats environment variables as the source of truth.
"""

import os
from datetime import datetime

from env import CONFIG_DIR, _load_dotenv, reset_env_caches


_BOOTSTRAPPED = False


def bootstrap_base_env(*, required: bool = False) -> None:
    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return

    dotenv_path = CONFIG_DIR / ".env"

    # CI passes credentials as real environment variables, so the file is optional.
    if required and not dotenv_path.exists():
        raise RuntimeError(
            f"Missing required env file: {dotenv_path}\n"
            "Expected config/.env relative to project root."
        )

    _load_dotenv(dotenv_path)

    os.environ.setdefault(
        "SENTINEL_RUN_ID",
        datetime.now().strftime("%Y-%m-%d_%H-%M-%S"),
    )

    reset_env_caches()
    _BOOTSTRAPPED = True


def bootstrap_run_context(
    *,
    command: str,
    verbose: bool | None = None,
    quiet: bool | None = None,
    target: str | None = None,
    output_dir: str | None = None,
) -> None:
    """Establish run-scoped context used by logging + pipeline stages."""

    os.environ["SENTINEL_COMMAND"] = command

    if verbose is not None:
        os.environ["SENTINEL_VERBOSE"] = "1" if verbose else "0"
    if quiet is not None:
        os.environ["SENTINEL_QUIET"] = "1" if quiet else "0"
    if target:
        os.environ["SENTINEL_TARGET"] = target
    if output_dir:
        os.environ["SENTINEL_OUTPUT_DIR"] = output_dir

    # Context changes must invalidate cached env views.
    reset_env_caches()


def reset_bootstrap() -> None:
    global _BOOTSTRAPPED
    _BOOTSTRAPPED = False
