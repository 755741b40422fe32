"""
Versioned persistence of portfolio results in Redis.

**Conceptual**: Every replay of the same (pair, strategy, time range) gets the
same result id. Re-running it does not overwrite earlier output; it stores a
new version next to the old ones:

    data:version:{id}     -> current version counter (1, 2, 3, ...)
    data:{id}_{version}   -> PortfolioResult JSON of that version

    id = {base}_{quote}_{sanitized_strategy}_{start_epoch}_{end_epoch}

Sanitising lowercases the strategy name and replaces every character that is
not a letter or decimal digit with "-", so the id never contains "_" inside the
strategy part and can be split back into its fields.

**Atomicity**: the version bump and the payload write happen in one
WATCH/MULTI/EXEC transaction on the counter key. If another writer bumps the
counter first, redis-py retries the whole transaction; if Redis fails, neither
key is written.

**Teaching note**: Redis errors are wrapped in StorageError so callers (the
API, the action scripts) depend on this module's exceptions, not on redis-py.
"""

from dataclasses import dataclass
from typing import Any

import pandas as pd
import redis
from loguru import logger

from bar_replay.analytics.portfolio import PortfolioResult
from bar_replay.config.settings import RedisSettings
from bar_replay.utils.time import epoch_seconds_to_timestamp, timestamp_to_epoch_seconds

VERSION_KEY_PREFIX = "data:version:"
DATA_KEY_PREFIX = "data:"

_log = logger.bind(component="result_store")


class StorageError(Exception):
    """Raised when the result store backend fails (connection, protocol, timeout)."""
    pass


class ResultNotFoundError(KeyError):
    """
    Raised when a (result_id, version) pair has no stored payload.

    Attributes:
        result_id: The requested id.
        version: The requested version.
    """

    def __init__(self, result_id: str, version: int):
        self.result_id = result_id
        self.version = version
        super().__init__(f"No stored result for id '{result_id}' version {version}")

    def __str__(self) -> str:
        return self.args[0]


@dataclass(frozen=True)
class StoredResultRef:
    """Address of one stored result version."""
    result_id: str
    version: int


@dataclass(frozen=True)
class StoredResultSummary:
    """
    One listing entry: the fields encoded in a result id plus its latest version.

    Attributes:
        result_id: Full result id.
        base_coin: Base asset parsed from the id.
        quote_coin: Quote asset parsed from the id.
        strategy: Sanitised strategy name parsed from the id.
        start_date: First bar time (UTC).
        end_date: Last bar time (UTC).
        current_version: Latest stored version.
    """
    result_id: str
    base_coin: str
    quote_coin: str
    strategy: str
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    current_version: int

    def to_dict(self) -> dict:
        return {
            "id": self.result_id,
            "base_coin": self.base_coin,
            "quote_coin": self.quote_coin,
            "strategy": self.strategy,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "current_version": self.current_version,
        }


def sanitize_strategy_name(name: str) -> str:
    """
    Lowercase and replace every character that is not a letter or a decimal
    digit with "-" (so "²" or "½" become "-" too).

    Example:
        >>> sanitize_strategy_name("Fixed Grid (v2)")
        'fixed-grid--v2-'
    """
    return "".join(ch if ch.isalpha() or ch.isdecimal() else "-" for ch in name.lower())


def build_result_id(result: PortfolioResult) -> str:
    """
    Derive the storage id from pair, strategy and the series time range.

    Raises:
        ValueError: If a coin contains "_", which would make the id unparseable.
    """
    for coin in (result.base_coin, result.quote_coin):
        if "_" in coin:
            raise ValueError(f"Coin '{coin}' contains '_' and can't be part of a result id")
    start_epoch = int(timestamp_to_epoch_seconds(result.start))
    end_epoch = int(timestamp_to_epoch_seconds(result.end))
    return (
        f"{result.base_coin}_{result.quote_coin}_"
        f"{sanitize_strategy_name(result.strategy)}_{start_epoch}_{end_epoch}"
    )


def version_key(result_id: str) -> str:
    return f"{VERSION_KEY_PREFIX}{result_id}"


def payload_key(result_id: str, version: int) -> str:
    return f"{DATA_KEY_PREFIX}{result_id}_{version}"


def parse_result_id(result_id: str, current_version: int) -> StoredResultSummary:
    """
    Split a result id back into its fields.

    Raises:
        ValueError: If the id does not have exactly five "_"-separated parts or
                    the epoch parts are not integers.
    """
    parts = result_id.split("_")
    if len(parts) != 5:
        raise ValueError(
            f"Result id '{result_id}' must have 5 '_'-separated parts, got {len(parts)}"
        )
    base_coin, quote_coin, strategy, start_raw, end_raw = parts
    try:
        start_epoch = int(start_raw)
        end_epoch = int(end_raw)
    except ValueError:
        raise ValueError(f"Result id '{result_id}' has non-integer epoch parts")

    return StoredResultSummary(
        result_id=result_id,
        base_coin=base_coin,
        quote_coin=quote_coin,
        strategy=strategy,
        start_date=epoch_seconds_to_timestamp(start_epoch),
        end_date=epoch_seconds_to_timestamp(end_epoch),
        current_version=current_version,
    )


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class ResultStore:
    """
    Redis-backed, append-only store of PortfolioResult versions.

    **Usage**:
        store = ResultStore.from_settings(get_settings().redis)
        ref = store.store(result)
        same = store.fetch(ref.result_id, ref.version)
    """

    def __init__(self, client: redis.Redis):
        """
        Args:
            client: redis-py client (a fakeredis client works the same in tests).
        """
        self._client = client

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "ResultStore":
        client = redis.Redis(
            host=settings.host,
            port=settings.port,
            db=settings.db,
            password=settings.password,
            decode_responses=True,
        )
        return cls(client)

    def store(self, result: PortfolioResult) -> StoredResultRef:
        """
        Persist a result as the next version of its id.

        Returns:
            StoredResultRef with the id and the version just written.

        Raises:
            StorageError: If Redis fails; nothing is written in that case.
        """
        result_id = build_result_id(result)
        counter_key = version_key(result_id)
        payload = result.to_json()

        def write_next_version(pipe: redis.client.Pipeline) -> int:
            current = pipe.get(counter_key)
            version = int(_as_text(current)) + 1 if current is not None else 1
            pipe.multi()
            pipe.set(counter_key, version)
            pipe.set(payload_key(result_id, version), payload)
            return version

        try:
            version = self._client.transaction(
                write_next_version, counter_key, value_from_callable=True
            )
        except redis.RedisError as e:
            raise StorageError(f"Failed to store result '{result_id}': {e}") from e

        _log.info("Stored result {} version {}", result_id, version)
        return StoredResultRef(result_id=result_id, version=version)

    def list_results(self) -> list[StoredResultSummary]:
        """
        List every stored result id with its current version, sorted by id.

        Ids that can't be parsed are skipped with a warning.

        Raises:
            StorageError: If Redis fails.
        """
        summaries = []
        try:
            for raw_key in self._client.scan_iter(match=f"{VERSION_KEY_PREFIX}*"):
                key = _as_text(raw_key)
                result_id = key[len(VERSION_KEY_PREFIX):]
                current = self._client.get(key)
                if current is None:
                    continue
                try:
                    summaries.append(parse_result_id(result_id, int(_as_text(current))))
                except ValueError as e:
                    _log.warning("Skipping unparseable result key {}: {}", key, e)
        except redis.RedisError as e:
            raise StorageError(f"Failed to list results: {e}") from e

        return sorted(summaries, key=lambda summary: summary.result_id)

    def current_version(self, result_id: str) -> int | None:
        """Latest version stored for an id, or None if the id is unknown."""
        try:
            current = self._client.get(version_key(result_id))
        except redis.RedisError as e:
            raise StorageError(f"Failed to read version of '{result_id}': {e}") from e
        return int(_as_text(current)) if current is not None else None

    def fetch_payload(self, result_id: str, version: int) -> str:
        """
        Return the stored JSON text of one version, byte-for-byte as written.

        Raises:
            ResultNotFoundError: If that version does not exist.
            StorageError: If Redis fails.
        """
        try:
            raw = self._client.get(payload_key(result_id, version))
        except redis.RedisError as e:
            raise StorageError(
                f"Failed to fetch result '{result_id}' version {version}: {e}"
            ) from e
        if raw is None:
            raise ResultNotFoundError(result_id, version)
        return _as_text(raw)

    def fetch(self, result_id: str, version: int) -> PortfolioResult:
        """Fetch and decode one version. Raises like fetch_payload."""
        return PortfolioResult.from_json(self.fetch_payload(result_id, version))
