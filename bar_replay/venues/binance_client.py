"""
HTTP client for the Binance public klines endpoint.

**Conceptual**: This module is a thin wrapper around one HTTP request:
`GET {base_url}/api/v3/klines`. It handles request construction, retries on
gateway errors, status-code to exception mapping and response parsing into
Bars. It does NOT page through history or write files; that is
HistoricalDownloader's job (binance_downloader.py).

**Kline format**: Binance answers with a JSON array of arrays, one per candle:

    [open_time_ms, "open", "high", "low", "close", "volume", close_time_ms, ...]

Prices arrive as decimal strings and are parsed at full float64 precision.
Candles are returned oldest first and the request's `endTime` is inclusive.

**Retries**: 502/503/504 are retried up to BinanceSettings.max_retries times
by urllib3's Retry on the session adapter, with exponential backoff. Other
statuses are mapped to exceptions immediately.
"""

import pandas as pd
import requests
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from bar_replay.config.settings import BinanceSettings
from bar_replay.data.price_series import Bar
from bar_replay.utils.time import timestamp_to_epoch_millis

RETRY_STATUSES = (502, 503, 504)

_log = logger.bind(component="binance")


class BinanceClientError(Exception):
    """
    Base exception for Binance API client errors.

    Caller can catch BinanceClientError to handle all Binance-related errors,
    or catch specific subclasses for fine-grained handling.
    """
    pass


class BinanceAuthenticationError(BinanceClientError):
    """
    Raised on 401 Unauthorized / 403 Forbidden.

    The klines endpoint is public, so this usually means the IP is blocked
    (WAF) or the base URL points at a gated mirror.
    """
    pass


class BinanceBadRequestError(BinanceClientError):
    """
    Raised on 400 Bad Request.

    Typical causes: unknown symbol ("BTCUSD" instead of "BTCUSDT") or an
    interval Binance doesn't support.
    """
    pass


class BinanceRateLimitError(BinanceClientError):
    """
    Raised on 429 Too Many Requests or 418 (IP auto-banned after repeated 429s).

    **Recovery**: raise BINANCE_MIN_SLEEP_SECONDS and wait before retrying.
    """
    pass


class BinanceServerError(BinanceClientError):
    """Raised on 5xx responses that are still failing after retries."""
    pass


def _build_session(max_retries: int) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=max_retries,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset(["GET"]),
        backoff_factor=0.5,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({
        "Accept": "application/json",
        "User-Agent": "bar_replay/0.1",
    })
    return session


def parse_kline(row: list) -> Bar:
    """
    Convert one raw kline array into a Bar.

    Raises:
        BinanceClientError: If the row is too short or a field is not numeric.
    """
    if not isinstance(row, (list, tuple)) or len(row) < 5:
        raise BinanceClientError(f"Malformed kline row (need >= 5 fields): {row!r}")
    try:
        return Bar(
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            timestamp=pd.Timestamp(int(row[0]), unit="ms", tz="UTC"),
        )
    except (TypeError, ValueError) as e:
        raise BinanceClientError(f"Malformed kline row {row!r}: {e}") from e


class BinanceClient:
    """
    Thin HTTP client for Binance klines.

    **Example usage**:
        >>> with BinanceClient(BinanceSettings.from_env()) as client:
        ...     bars = client.get_klines("BTCUSDT", "1h", end_time=pd.Timestamp.now(tz="UTC"))
        >>> bars[0].timestamp < bars[-1].timestamp
        True
    """

    def __init__(self, settings: BinanceSettings):
        """
        Args:
            settings: Base URL, timeout, page size and retry budget.
        """
        self.settings = settings
        self.session = _build_session(settings.max_retries)

    def get_klines(
        self,
        symbol: str,
        interval: str,
        end_time: pd.Timestamp,
        limit: int | None = None,
    ) -> list[Bar]:
        """
        Fetch up to `limit` candles ending at `end_time` (inclusive).

        Args:
            symbol: Exchange symbol without separator (e.g. "BTCUSDT").
            interval: Candle interval (e.g. "1h").
            end_time: Latest candle open time to include.
            limit: Candles per request; defaults to settings.page_limit.

        Returns:
            Bars ascending by time. Empty when nothing exists before end_time.

        Raises:
            BinanceAuthenticationError: 401/403.
            BinanceBadRequestError: 400.
            BinanceRateLimitError: 418/429.
            BinanceServerError: 5xx after retries.
            requests.Timeout: If the request exceeds the timeout.
            BinanceClientError: Other HTTP errors, connection failures, bad JSON.
            ValueError: If symbol or interval is empty.
        """
        if not symbol or not symbol.strip():
            raise ValueError("Symbol cannot be empty")
        if not interval:
            raise ValueError("Interval cannot be empty")

        url = f"{self.settings.base_url}/api/v3/klines"
        params = {
            "symbol": symbol.strip().upper(),
            "interval": interval,
            "endTime": timestamp_to_epoch_millis(end_time),
            "limit": limit or self.settings.page_limit,
        }

        try:
            response = self.session.get(
                url,
                params=params,
                timeout=self.settings.timeout_seconds,
            )
        except requests.Timeout as e:
            raise requests.Timeout(
                f"Request to Binance timed out after {self.settings.timeout_seconds}s. "
                f"Check network connection or increase BINANCE_TIMEOUT_SECONDS."
            ) from e
        except requests.ConnectionError as e:
            raise BinanceClientError(
                f"Failed to connect to Binance at {self.settings.base_url}. "
                f"Check network connection and base URL."
            ) from e
        except requests.RequestException as e:
            raise BinanceClientError(f"HTTP request failed: {e}") from e

        self._raise_for_status(response, symbol)

        try:
            data = response.json()
        except ValueError as e:
            raise BinanceClientError(
                f"Failed to parse JSON response: {e}. Response: {response.text}"
            )

        if not isinstance(data, list):
            raise BinanceClientError(
                f"Expected a JSON array of klines, got {type(data).__name__}"
            )

        bars = [parse_kline(row) for row in data]
        bars.sort(key=lambda bar: bar.timestamp)
        _log.debug(
            "Fetched {} {} {} klines ending {}", len(bars), params["symbol"], interval, end_time
        )
        return bars

    @staticmethod
    def _raise_for_status(response: requests.Response, symbol: str) -> None:
        status = response.status_code
        if status in (401, 403):
            raise BinanceAuthenticationError(
                f"Access denied (status {status}). Response: {response.text}"
            )
        if status == 400:
            raise BinanceBadRequestError(
                f"Bad request for symbol '{symbol}' (status 400). Response: {response.text}"
            )
        if status in (418, 429):
            raise BinanceRateLimitError(
                f"Rate limit exceeded (status {status}). Slow down requests. "
                f"Response: {response.text}"
            )
        if status >= 500:
            raise BinanceServerError(
                f"Binance server error (status {status}). Response: {response.text}"
            )
        if 400 <= status < 500:
            raise BinanceClientError(
                f"Client error (status {status}). Response: {response.text}"
            )

    def close(self):
        """Close the HTTP session and release pooled connections."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
