"""
Paginated download of historical klines into price CSVs.

**Conceptual**: Binance returns at most `page_limit` candles per request, so
longer ranges are fetched page by page, walking backwards from the end of the
range:

    cursor = end
    while cursor > start:
        page = get_klines(symbol, interval, end_time=cursor)
        if page is empty: stop
        keep page
        cursor = page[0].timestamp - 1 ms

The pages are then merged: de-duplicated by timestamp, sorted ascending and
clipped to [start, end], because the first page fetched usually reaches back
before `start`.

**Validation helpers** (used by actions/download_price_history.py):
  - validate_interval: only 1m, 3m, 5m, 15m, 30m and 1h are accepted.
  - pair_to_symbol: "BTC/USDT" -> "BTCUSDT".
  - validate_date_range: start before end, neither in the future.
"""

import time
from pathlib import Path
from typing import Callable

import pandas as pd
from loguru import logger

from bar_replay.data.io import write_price_csv
from bar_replay.data.price_series import Bar
from bar_replay.utils.time import Clock, RealClock, ensure_utc
from bar_replay.venues.binance_client import BinanceClient

VALID_INTERVALS = ("1m", "3m", "5m", "15m", "30m", "1h")
FILENAME_TIME_FORMAT = "%Y%m%d%H%M"

_log = logger.bind(component="downloader")


class DownloadError(Exception):
    """Raised when a download produces no usable bars."""
    pass


def validate_interval(interval: str) -> str:
    """
    Check that an interval is one the downloader supports.

    Raises:
        ValueError: If the interval is not in VALID_INTERVALS.
    """
    if interval not in VALID_INTERVALS:
        raise ValueError(
            f"Invalid interval '{interval}'. Expected one of: {', '.join(VALID_INTERVALS)}"
        )
    return interval


def pair_to_symbol(pair: str) -> str:
    """
    Convert "BASE/QUOTE" to the exchange symbol "BASEQUOTE".

    Raises:
        ValueError: If the pair does not have exactly two non-empty parts.
    """
    parts = [part.strip() for part in pair.split("/")]
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Pair must look like 'BASE/QUOTE' (e.g. 'BTC/USDT'), got: {pair!r}")
    return "".join(parts).upper()


def validate_date_range(
    start: pd.Timestamp,
    end: pd.Timestamp,
    clock: Clock | None = None,
) -> tuple[pd.Timestamp, pd.Timestamp]:
    """
    Normalise a download range to UTC and sanity-check it.

    Returns:
        (start, end) as UTC Timestamps.

    Raises:
        ValueError: If start is not before end, or either lies in the future.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    now = ensure_utc((clock or RealClock()).now())

    if start >= end:
        raise ValueError(f"start ({start}) must be before end ({end})")
    if start > now:
        raise ValueError(f"start ({start}) is in the future")
    if end > now:
        raise ValueError(f"end ({end}) is in the future")
    return start, end


def build_output_filename(symbol: str, interval: str, start: pd.Timestamp, end: pd.Timestamp) -> str:
    """e.g. BTCUSDT_1h_202306010000_202306100000.csv"""
    return (
        f"{symbol}_{interval}_"
        f"{start.strftime(FILENAME_TIME_FORMAT)}_{end.strftime(FILENAME_TIME_FORMAT)}.csv"
    )


class HistoricalDownloader:
    """
    Walks a time range page by page and collects the bars.

    **Usage**:
        with BinanceClient(settings.binance) as client:
            downloader = HistoricalDownloader(client, settings.binance.min_sleep_seconds)
            path = downloader.download_to_csv("BTC/USDT", "1h", start, end, Path("data"))
    """

    def __init__(
        self,
        client: BinanceClient,
        sleep_seconds: float = 0.0,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            client: Client used for each page request.
            sleep_seconds: Pause between page requests.
            clock: Time source for the "not in the future" check.
            sleep: Sleep function (tests pass a no-op).
        """
        if sleep_seconds < 0:
            raise ValueError(f"sleep_seconds must be non-negative, got {sleep_seconds}")
        self.client = client
        self.sleep_seconds = sleep_seconds
        self.clock = clock or RealClock()
        self._sleep = sleep

    def fetch_bars(
        self,
        symbol: str,
        interval: str,
        start: pd.Timestamp,
        end: pd.Timestamp,
    ) -> list[Bar]:
        """
        Fetch every bar of [start, end].

        Returns:
            Bars ascending by time, unique per timestamp, all within [start, end].
            Empty if the venue has no data for the range.
        """
        validate_interval(interval)
        start = ensure_utc(start)
        end = ensure_utc(end)

        pages: list[list[Bar]] = []
        cursor = end
        while cursor > start:
            page = self.client.get_klines(symbol, interval, end_time=cursor)
            if not page:
                _log.info("Empty page at cursor {}; stopping", cursor)
                break

            pages.append(page)
            next_cursor = page[0].timestamp - pd.Timedelta(milliseconds=1)
            if next_cursor >= cursor:
                # No progress means the venue ignored endTime
                _log.warning("Cursor did not move back from {}; stopping", cursor)
                break
            cursor = next_cursor
            _log.info("Fetched {} bars, next cursor {}", len(page), cursor)

            if cursor > start and self.sleep_seconds > 0:
                self._sleep(self.sleep_seconds)

        merged: dict[pd.Timestamp, Bar] = {}
        for page in reversed(pages):
            for bar in page:
                if start <= bar.timestamp <= end:
                    merged[bar.timestamp] = bar
        return [merged[ts] for ts in sorted(merged)]

    def download_to_csv(
        self,
        pair: str,
        interval: str,
        start: pd.Timestamp,
        end: pd.Timestamp,
        output_dir: Path | str,
    ) -> Path:
        """
        Download a pair's bars for [start, end] and write them as a price CSV.

        Args:
            pair: "BASE/QUOTE" pair, e.g. "BTC/USDT".
            interval: One of VALID_INTERVALS.
            start: Range start (naive values are UTC).
            end: Range end (naive values are UTC).
            output_dir: Directory for the CSV (created if missing).

        Returns:
            Path of the written CSV.

        Raises:
            ValueError: Invalid pair, interval or range.
            DownloadError: If no bars were returned for the range.
            BinanceClientError: On API failures.
        """
        symbol = pair_to_symbol(pair)
        validate_interval(interval)
        start, end = validate_date_range(start, end, self.clock)

        bars = self.fetch_bars(symbol, interval, start, end)
        if not bars:
            raise DownloadError(
                f"No {interval} bars returned for {symbol} between {start} and {end}"
            )

        path = Path(output_dir) / build_output_filename(symbol, interval, start, end)
        write_price_csv(bars, path)
        _log.info("Wrote {} bars to {}", len(bars), path)
        return path
