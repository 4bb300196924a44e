from env.env import (
    DEFAULT_CONFLICT_SCHEDULE,
    ConfigError,
    Environment,
    _load_dotenv,
    get_env,
    get_logging_env,
    reset_env_caches,
)
from env.networks import NetworkConfig, NetworkDelays, get_network
from env.paths import CONFIG_DIR, PROJECT_ROOT

__all__ = [
    "Environment",
    "get_env",
    "reset_env_caches",
    "get_logging_env",
    "ConfigError",
    "DEFAULT_CONFLICT_SCHEDULE",
    "NetworkConfig",
    "NetworkDelays",
    "get_network",
    "PROJECT_ROOT",
    "CONFIG_DIR",
    "_load_dotenv",
]
