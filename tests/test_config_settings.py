"""
Tests for environment-driven settings.

Environment variables are set with monkeypatch so nothing leaks between tests;
reset_settings() clears the cached singleton around each test.
"""

from pathlib import Path

import pytest

from bar_replay.config.settings import (
    BinanceSettings,
    LoggingSettings,
    RedisSettings,
    ServerSettings,
    Settings,
    get_settings,
    reset_settings,
)

ENV_VARS = (
    "BINANCE_BASE_URL", "BINANCE_TIMEOUT_SECONDS", "BINANCE_PAGE_LIMIT",
    "BINANCE_MIN_SLEEP_SECONDS", "BINANCE_MAX_RETRIES",
    "REDIS_HOST", "REDIS_PORT", "REDIS_DB", "REDIS_PASSWORD",
    "SERVER_HOST", "SERVER_PORT", "LOG_LEVEL", "LOG_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_defaults():
    settings = Settings.from_env()

    assert settings.binance.base_url == "https://api.binance.com"
    assert settings.binance.page_limit == 1000
    assert settings.redis.port == 6380
    assert settings.redis.db == 3
    assert settings.redis.password is None
    assert settings.server.port == 5000
    assert settings.logging.level == "INFO"
    assert settings.logging.log_dir is None


def test_values_read_from_environment(monkeypatch):
    monkeypatch.setenv("BINANCE_PAGE_LIMIT", "500")
    monkeypatch.setenv("BINANCE_MIN_SLEEP_SECONDS", "0.5")
    monkeypatch.setenv("REDIS_HOST", "cache.internal")
    monkeypatch.setenv("REDIS_PASSWORD", "hunter2")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_DIR", "/tmp/bar-replay-logs")

    settings = Settings.from_env()

    assert settings.binance.page_limit == 500
    assert settings.binance.min_sleep_seconds == 0.5
    assert settings.redis.host == "cache.internal"
    assert settings.redis.password == "hunter2"
    assert settings.logging.level == "DEBUG"
    assert settings.logging.log_dir == Path("/tmp/bar-replay-logs")


def test_non_numeric_value_names_the_variable(monkeypatch):
    monkeypatch.setenv("REDIS_PORT", "six-thousand")

    with pytest.raises(ValueError, match="REDIS_PORT"):
        RedisSettings.from_env()


@pytest.mark.parametrize("kwargs", [
    {"page_limit": 0},
    {"page_limit": 1001},
    {"timeout_seconds": 0},
    {"min_sleep_seconds": -0.1},
    {"max_retries": -1},
    {"base_url": ""},
])
def test_binance_settings_validation(kwargs):
    with pytest.raises(ValueError):
        BinanceSettings(**kwargs)


def test_other_settings_validation():
    with pytest.raises(ValueError):
        RedisSettings(port=0)
    with pytest.raises(ValueError):
        RedisSettings(db=-1)
    with pytest.raises(ValueError):
        ServerSettings(port=70000)
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        LoggingSettings(level="LOUD")


def test_get_settings_is_cached_until_reset(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("SERVER_PORT", "8080")

    assert get_settings() is first
    assert get_settings().server.port == 5000

    reset_settings()
    assert get_settings().server.port == 8080
