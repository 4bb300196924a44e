import logging

import pytest


@pytest.fixture(autouse=True)
def clean_env_and_logging(monkeypatch, tmp_path):
    """
    Ensure tests don't leak env, logger state, or cached environment views.
    """

    keys = [
        "ACCOUNT_PRIVATE_KEY",
        "DATAHAVEN_NETWORK",
        "LOG_LEVEL",
        "LOG_RETENTION",
        "SENTINEL_COMMAND",
        "SENTINEL_RUN_ID",
        "SENTINEL_VERBOSE",
        "SENTINEL_QUIET",
        "SENTINEL_TARGET",
        "SENTINEL_OUTPUT_DIR",
        "SENTINEL_CHAIN_ADAPTER",
        "SENTINEL_TEST_FILE",
        "SENTINEL_CONFLICT_SCHEDULE",
        "SENTINEL_EVM_RPC_URL",
        "SENTINEL_SUBSTRATE_WS_URL",
        "SENTINEL_MSP_URL",
        "SENTINEL_MSP_TIMEOUT_SEC",
        "SENTINEL_DELAY_POST_STORAGE_REQUEST",
        "SENTINEL_DELAY_BEFORE_UPLOAD",
        "SENTINEL_DELAY_BEFORE_BUCKET_DELETE",
    ]
    for k in keys:
        monkeypatch.delenv(k, raising=False)

    # Logs never land in the checkout
    monkeypatch.setenv("SENTINEL_LOGS_DIR", str(tmp_path / "logs"))

    from env import reset_env_caches
    import logger.state

    reset_env_caches()
    logger.state.reset()

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    yield

    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    reset_env_caches()
