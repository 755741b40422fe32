"""
Configuration settings for bar replay tooling.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). All settings are validated
at construction, so a bad port or a negative timeout fails at startup rather
than halfway through a download or a request.

**What is configured here**:
  - BinanceSettings: the public market-data API used by the downloader.
  - RedisSettings: where replay results are persisted.
  - ServerSettings: bind address of the result query API.
  - LoggingSettings: log level and log file directory.

**Teaching note**: The replay engine and portfolio reporter never read these
objects. They take explicit parameters, so a backtest is fully described by
its inputs. Only the action scripts and the outer services (store, API,
downloader) consult settings.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (no-op when the file is absent)
PROJECT_ROOT = Path(__file__).parent.parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}")


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw}")


@dataclass(frozen=True)
class BinanceSettings:
    """
    Configuration for the Binance public market-data API.

    **Conceptual**: Historical klines (candles) are public, so no API key is
    needed. The settings control where requests go, how long to wait, how big
    each page is and how politely to pace requests.

    **Rate limiting**: Binance weighs requests per IP and answers 429 (and
    eventually 418) when the budget is exhausted. min_sleep_seconds adds a
    pause between pages.

    Attributes:
        base_url: API root (default https://api.binance.com).
        timeout_seconds: HTTP request timeout in seconds (default 30).
        page_limit: Klines requested per page, 1..1000 (default 1000).
        min_sleep_seconds: Pause between page requests (default 0.2).
        max_retries: Retries on 502/503/504 responses (default 3).
    """
    base_url: str = "https://api.binance.com"
    timeout_seconds: int = 30
    page_limit: int = 1000
    min_sleep_seconds: float = 0.2
    max_retries: int = 3

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.base_url:
            raise ValueError(
                "BINANCE_BASE_URL must not be empty. "
                "Unset it to use https://api.binance.com."
            )
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got: {self.timeout_seconds}")
        if not 1 <= self.page_limit <= 1000:
            raise ValueError(f"page_limit must be between 1 and 1000, got: {self.page_limit}")
        if self.min_sleep_seconds < 0:
            raise ValueError(
                f"min_sleep_seconds must be non-negative, got: {self.min_sleep_seconds}"
            )
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got: {self.max_retries}")

    @classmethod
    def from_env(cls) -> "BinanceSettings":
        """
        Load Binance settings from environment variables.

        **Environment variables** (all optional):
          - BINANCE_BASE_URL (default "https://api.binance.com")
          - BINANCE_TIMEOUT_SECONDS (default 30)
          - BINANCE_PAGE_LIMIT (default 1000)
          - BINANCE_MIN_SLEEP_SECONDS (default 0.2)
          - BINANCE_MAX_RETRIES (default 3)

        Raises:
            ValueError: If a value can't be parsed or fails validation.
        """
        return cls(
            base_url=os.getenv("BINANCE_BASE_URL", "https://api.binance.com"),
            timeout_seconds=_read_int("BINANCE_TIMEOUT_SECONDS", "30"),
            page_limit=_read_int("BINANCE_PAGE_LIMIT", "1000"),
            min_sleep_seconds=_read_float("BINANCE_MIN_SLEEP_SECONDS", "0.2"),
            max_retries=_read_int("BINANCE_MAX_RETRIES", "3"),
        )


@dataclass(frozen=True)
class RedisSettings:
    """
    Connection settings for the result store.

    Attributes:
        host: Redis host (default "localhost").
        port: Redis port (default 6380).
        db: Logical database index (default 3).
        password: Optional password; None for unauthenticated local servers.
    """
    host: str = "localhost"
    port: int = 6380
    db: int = 3
    password: Optional[str] = None

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.host:
            raise ValueError("REDIS_HOST must not be empty.")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"REDIS_PORT must be between 1 and 65535, got: {self.port}")
        if self.db < 0:
            raise ValueError(f"REDIS_DB must be non-negative, got: {self.db}")

    @classmethod
    def from_env(cls) -> "RedisSettings":
        """
        Load Redis settings from REDIS_HOST, REDIS_PORT, REDIS_DB and
        REDIS_PASSWORD (all optional).
        """
        return cls(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=_read_int("REDIS_PORT", "6380"),
            db=_read_int("REDIS_DB", "3"),
            password=os.getenv("REDIS_PASSWORD") or None,
        )


@dataclass(frozen=True)
class ServerSettings:
    """Bind address for the result query API."""
    host: str = "127.0.0.1"
    port: int = 5000

    def __post_init__(self):
        if not 1 <= self.port <= 65535:
            raise ValueError(f"SERVER_PORT must be between 1 and 65535, got: {self.port}")

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            host=os.getenv("SERVER_HOST", "127.0.0.1"),
            port=_read_int("SERVER_PORT", "5000"),
        )


@dataclass(frozen=True)
class LoggingSettings:
    """
    Logging configuration consumed by bar_replay.utils.logging.configure_logging.

    Attributes:
        level: Minimum level for the stderr sink (loguru level name).
        log_dir: Directory for the rotating log file; None disables the file sink.
    """
    level: str = "INFO"
    log_dir: Optional[Path] = None

    def __post_init__(self):
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got: {self.level}"
            )

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        log_dir = os.getenv("LOG_DIR")
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(log_dir) if log_dir else None,
        )


@dataclass(frozen=True)
class Settings:
    """
    Top-level settings aggregating every subsystem.

    **Usage pattern**:
      ```python
      from bar_replay.config.settings import get_settings

      settings = get_settings()
      store = ResultStore.from_settings(settings.redis)
      ```
    """
    binance: BinanceSettings = field(default_factory=BinanceSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Load every subsystem's settings from the environment.

        Raises:
            ValueError: If any subsystem's values are invalid.
        """
        return cls(
            binance=BinanceSettings.from_env(),
            redis=RedisSettings.from_env(),
            server=ServerSettings.from_env(),
            logging=LoggingSettings.from_env(),
        )


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton, loading it from the environment on first call.

    Tests should construct Settings objects directly or call reset_settings()
    after changing environment variables.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()
    return _default_settings


def reset_settings():
    """Clear the cached settings so the next get_settings() reloads them."""
    global _default_settings
    _default_settings = None
