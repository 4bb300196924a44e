from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from env.networks import NetworkConfig, get_network
from env.paths import default_test_file

# ------------------------------------------------------------
# dotenv loader (read-only helper, bootstrap owns usage)
# ------------------------------------------------------------


def _load_dotenv(path: Path) -> None:
    """
    Load a dotenv file.
    - Silent when the file is missing
    - Never overrides existing os.environ
    """
    if not path.exists():
        return

    load_dotenv(path, override=False)


# ------------------------------------------------------------
# Errors / helpers
# ------------------------------------------------------------


class ConfigError(RuntimeError):
    pass


def _require(name: str) -> str:
    v = os.environ.get(name)
    if not v:
        raise ConfigError(f"Missing required environment variable: {name}")
    return v


def _as_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(v: str, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _as_float(v: str, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _as_schedule(v: str, default: tuple[float, ...]) -> tuple[float, ...]:
    parts = [p.strip() for p in (v or "").split(",") if p.strip()]
    if not parts:
        return default
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise ConfigError(f"Invalid delay schedule: {v!r}") from None


# ------------------------------------------------------------
# Logging environment (SAFE ANYWHERE)
# ------------------------------------------------------------


@dataclass(frozen=True)
class LoggingEnvironment:
    log_level: str
    log_retention: int
    verbose: bool
    quiet: bool


def get_logging_env() -> LoggingEnvironment:
    log_level = os.environ.get("LOG_LEVEL", "INFO")
    log_retention = _as_int(os.environ.get("LOG_RETENTION", "30"), 30)

    verbose = _as_bool(os.environ.get("SENTINEL_VERBOSE", "0"))
    quiet = _as_bool(os.environ.get("SENTINEL_QUIET", "0"))

    return LoggingEnvironment(
        log_level=log_level,
        log_retention=log_retention,
        verbose=verbose,
        quiet=quiet,
    )


# ------------------------------------------------------------
# Full runtime environment (PIPELINE ONLY)
# ------------------------------------------------------------

DEFAULT_CONFLICT_SCHEDULE: tuple[float, ...] = (30.0, 60.0, 90.0)


def _normalize_private_key(key: str) -> str:
    key = key.strip()
    return key if key.startswith("0x") else f"0x{key}"


def _apply_network_overrides(network: NetworkConfig) -> NetworkConfig:
    chain = network.chain
    msp = network.msp
    delays = network.delays

    if os.environ.get("SENTINEL_EVM_RPC_URL"):
        chain = replace(chain, evm_rpc_url=os.environ["SENTINEL_EVM_RPC_URL"])
    if os.environ.get("SENTINEL_SUBSTRATE_WS_URL"):
        chain = replace(chain, substrate_ws_url=os.environ["SENTINEL_SUBSTRATE_WS_URL"])
    if os.environ.get("SENTINEL_MSP_URL"):
        msp = replace(msp, base_url=os.environ["SENTINEL_MSP_URL"].rstrip("/"))
    if os.environ.get("SENTINEL_MSP_TIMEOUT_SEC"):
        msp = replace(
            msp,
            timeout_sec=_as_float(os.environ["SENTINEL_MSP_TIMEOUT_SEC"], msp.timeout_sec),
        )

    delays = replace(
        delays,
        post_storage_request=_as_float(
            os.environ.get("SENTINEL_DELAY_POST_STORAGE_REQUEST", ""),
            delays.post_storage_request,
        ),
        before_upload=_as_float(
            os.environ.get("SENTINEL_DELAY_BEFORE_UPLOAD", ""),
            delays.before_upload,
        ),
        before_bucket_delete=_as_float(
            os.environ.get("SENTINEL_DELAY_BEFORE_BUCKET_DELETE", ""),
            delays.before_bucket_delete,
        ),
    )

    return replace(network, chain=chain, msp=msp, delays=delays)


class Environment:
    def __init__(self):
        # Logging snapshot (immutable)
        self._logging = get_logging_env()

        # ---- NETWORK ----
        self.network_key = os.environ.get("DATAHAVEN_NETWORK", "stagenet").strip().lower()
        try:
            self.network = _apply_network_overrides(get_network(self.network_key))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        # ---- RUN CONTEXT ----
        self.command = os.environ.get("SENTINEL_COMMAND", "bootstrap")
        self.run_id = os.environ.get("SENTINEL_RUN_ID", "")
        self.target = os.environ.get("SENTINEL_TARGET", "full").strip().lower() or "full"
        self.output_dir = os.environ.get("SENTINEL_OUTPUT_DIR", "")
        self.chain_adapter = os.environ.get("SENTINEL_CHAIN_ADAPTER", "")

        test_file = os.environ.get("SENTINEL_TEST_FILE", "")
        self.test_file = Path(test_file).expanduser() if test_file else default_test_file()

        # ---- RETRY POLICY ----
        self.conflict_schedule = _as_schedule(
            os.environ.get("SENTINEL_CONFLICT_SCHEDULE", ""),
            DEFAULT_CONFLICT_SCHEDULE,
        )

    @property
    def private_key(self) -> str:
        # Resolved lazily so `env dump` works without the credential.
        return _normalize_private_key(_require("ACCOUNT_PRIVATE_KEY"))

    @property
    def has_private_key(self) -> bool:
        return bool(os.environ.get("ACCOUNT_PRIVATE_KEY"))

    def as_dict(self) -> dict:
        return {
            "Logging": {
                "log_level": self.log_level,
                "log_retention": self.log_retention,
                "verbose": self.verbose,
                "quiet": self.quiet,
            },
            "Run": {
                "command": self.command,
                "run_id": self.run_id,
                "target": self.target,
                "output_dir": self.output_dir or "(default)",
                "chain_adapter": self.chain_adapter or "(unset)",
                "test_file": str(self.test_file),
                "conflict_schedule": ", ".join(f"{d:g}s" for d in self.conflict_schedule),
            },
            "Network": {
                "network": self.network.name,
                "chain_id": self.network.chain.id,
                "evm_rpc_url": self.network.chain.evm_rpc_url,
                "substrate_ws_url": self.network.chain.substrate_ws_url,
                "msp_url": self.network.msp.base_url,
                "msp_timeout_sec": self.network.msp.timeout_sec,
                "max_replication": self.network.max_replication,
            },
            "Delays": {
                "post_storage_request": self.network.delays.post_storage_request,
                "before_upload": self.network.delays.before_upload,
                "before_bucket_delete": self.network.delays.before_bucket_delete,
            },
            "Credentials": {
                "account_private_key": "set" if self.has_private_key else "missing",
            },
        }

    # ---- logging passthrough ----
    @property
    def log_level(self) -> str:
        return self._logging.log_level

    @property
    def log_retention(self) -> int:
        return self._logging.log_retention

    @property
    def verbose(self) -> bool:
        return self._logging.verbose

    @property
    def quiet(self) -> bool:
        return self._logging.quiet


_ENV: Optional[Environment] = None


def reset_env_caches() -> None:
    """Invalidate cached views of environment variables."""
    global _ENV
    _ENV = None


def get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment()
    return _ENV
