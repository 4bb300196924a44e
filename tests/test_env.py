import pytest

from env import ConfigError, get_env, reset_env_caches


def test_env_defaults():
    env = get_env()

    assert env.network_key == "stagenet"
    assert env.network.chain.id == 55932
    assert env.network.max_replication == 1
    assert env.target == "full"
    assert env.conflict_schedule == (30.0, 60.0, 90.0)
    assert env.verbose is False
    assert env.quiet is False


def test_env_is_cached_until_reset(monkeypatch):
    first = get_env()
    monkeypatch.setenv("DATAHAVEN_NETWORK", "testnet")
    assert get_env() is first

    reset_env_caches()
    env = get_env()
    assert env.network.chain.id == 55931
    assert env.network.max_replication == 2


def test_unknown_network_is_config_error(monkeypatch):
    monkeypatch.setenv("DATAHAVEN_NETWORK", "mainnet")
    with pytest.raises(ConfigError, match="Unknown network"):
        get_env()


def test_private_key_is_lazy_and_prefixed(monkeypatch):
    env = get_env()
    assert env.has_private_key is False
    with pytest.raises(ConfigError, match="ACCOUNT_PRIVATE_KEY"):
        _ = env.private_key

    monkeypatch.setenv("ACCOUNT_PRIVATE_KEY", "abcd")
    assert env.private_key == "0xabcd"


def test_endpoint_and_delay_overrides(monkeypatch):
    monkeypatch.setenv("SENTINEL_MSP_URL", "http://localhost:8080/")
    monkeypatch.setenv("SENTINEL_MSP_TIMEOUT_SEC", "7.5")
    monkeypatch.setenv("SENTINEL_DELAY_BEFORE_UPLOAD", "1")
    monkeypatch.setenv("SENTINEL_DELAY_POST_STORAGE_REQUEST", "not-a-number")

    env = get_env()

    assert env.network.msp.base_url == "http://localhost:8080"
    assert env.network.msp.timeout_sec == 7.5
    assert env.network.delays.before_upload == 1.0
    assert env.network.delays.post_storage_request == 10.0


def test_conflict_schedule_override(monkeypatch):
    monkeypatch.setenv("SENTINEL_CONFLICT_SCHEDULE", "1, 2.5,4")
    assert get_env().conflict_schedule == (1.0, 2.5, 4.0)


def test_bad_conflict_schedule_is_config_error(monkeypatch):
    monkeypatch.setenv("SENTINEL_CONFLICT_SCHEDULE", "1,soon")
    with pytest.raises(ConfigError):
        get_env()


def test_as_dict_never_leaks_the_key(monkeypatch):
    monkeypatch.setenv("ACCOUNT_PRIVATE_KEY", "0xsecret")
    data = get_env().as_dict()

    assert data["Credentials"]["account_private_key"] == "set"
    assert "0xsecret" not in repr(data)


def test_settings_follow_environment(monkeypatch, tmp_path):
    from pipeline.settings import heavy_settings, monitor_settings

    monkeypatch.setenv("SENTINEL_CONFLICT_SCHEDULE", "5")
    env = get_env()

    monitor = monitor_settings(env)
    heavy = heavy_settings(env)

    assert monitor.output_dir.name == "badges"
    assert heavy.output_dir.name == "badges-heavy"
    assert heavy.badge_label_prefix == "Heavy"
    assert monitor.upload_retry.conflict_schedule == (5.0,)

    monkeypatch.setenv("SENTINEL_OUTPUT_DIR", str(tmp_path / "custom"))
    reset_env_caches()
    assert monitor_settings(get_env()).output_dir == tmp_path / "custom"
