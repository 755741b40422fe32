"""
Tests for HistoricalDownloader pagination and the download validation helpers.

A FakeKlineClient stands in for BinanceClient: it holds a fixed hourly
history and answers get_klines like the real endpoint (the newest `page_size`
candles at or before endTime, oldest first).
"""

from datetime import datetime, timezone

import pandas as pd
import pytest

from bar_replay.data.io import read_price_csv
from bar_replay.data.price_series import Bar
from bar_replay.utils.time import FrozenClock
from bar_replay.venues.binance_downloader import (
    DownloadError,
    HistoricalDownloader,
    build_output_filename,
    pair_to_symbol,
    validate_date_range,
    validate_interval,
)

T0 = pd.Timestamp("2023-06-01 00:00", tz="UTC")
CLOCK = FrozenClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


def hourly_bars(count, start=T0):
    return [
        Bar(open=100.0 + i, high=101.0 + i, low=99.0 + i, close=100.5 + i,
            timestamp=start + pd.Timedelta(hours=i))
        for i in range(count)
    ]


class FakeKlineClient:
    def __init__(self, history, page_size=3):
        self.history = history
        self.page_size = page_size
        self.calls = []

    def get_klines(self, symbol, interval, end_time, limit=None):
        self.calls.append(end_time)
        eligible = [bar for bar in self.history if bar.timestamp <= end_time]
        return eligible[-self.page_size:]


class StuckClient(FakeKlineClient):
    """Ignores endTime and always returns the same page."""

    def get_klines(self, symbol, interval, end_time, limit=None):
        self.calls.append(end_time)
        return self.history[-self.page_size:]


# ============================================================================
# Helpers
# ============================================================================

@pytest.mark.parametrize("interval", ["1m", "3m", "5m", "15m", "30m", "1h"])
def test_validate_interval_accepts_supported(interval):
    assert validate_interval(interval) == interval


@pytest.mark.parametrize("interval", ["2m", "4h", "1d", ""])
def test_validate_interval_rejects_others(interval):
    with pytest.raises(ValueError, match="Invalid interval"):
        validate_interval(interval)


def test_pair_to_symbol():
    assert pair_to_symbol("BTC/USDT") == "BTCUSDT"
    assert pair_to_symbol("eth/btc") == "ETHBTC"
    with pytest.raises(ValueError):
        pair_to_symbol("BTCUSDT")
    with pytest.raises(ValueError):
        pair_to_symbol("BTC/")


def test_validate_date_range():
    start, end = validate_date_range("2023-06-01", "2023-06-02", clock=CLOCK)

    assert start == T0
    assert end == T0 + pd.Timedelta(days=1)


@pytest.mark.parametrize("start,end", [
    ("2023-06-02", "2023-06-01"),
    ("2023-06-01", "2023-06-01"),
    ("2023-06-01", "2024-02-01"),
    ("2024-02-01", "2024-03-01"),
])
def test_validate_date_range_rejects(start, end):
    with pytest.raises(ValueError):
        validate_date_range(start, end, clock=CLOCK)


def test_build_output_filename():
    name = build_output_filename("BTCUSDT", "1h", T0, T0 + pd.Timedelta(days=9))

    assert name == "BTCUSDT_1h_202306010000_202306100000.csv"


# ============================================================================
# Pagination
# ============================================================================

def test_fetch_bars_pages_backwards_and_merges():
    history = hourly_bars(10)
    client = FakeKlineClient(history, page_size=3)
    downloader = HistoricalDownloader(client, clock=CLOCK)

    bars = downloader.fetch_bars("BTCUSDT", "1h", T0, T0 + pd.Timedelta(hours=9))

    assert bars == history
    # 10 bars at 3 per page: 07-09, 04-06, 01-03, 00
    assert len(client.calls) == 4
    assert client.calls[0] == T0 + pd.Timedelta(hours=9)
    assert client.calls[1] == T0 + pd.Timedelta(hours=7) - pd.Timedelta(milliseconds=1)


def test_fetch_bars_clips_to_range():
    history = hourly_bars(12)
    downloader = HistoricalDownloader(FakeKlineClient(history, page_size=4), clock=CLOCK)

    bars = downloader.fetch_bars(
        "BTCUSDT", "1h", T0 + pd.Timedelta(hours=2), T0 + pd.Timedelta(hours=6)
    )

    assert [bar.timestamp for bar in bars] == [
        T0 + pd.Timedelta(hours=h) for h in range(2, 7)
    ]


def test_fetch_bars_stops_on_empty_page():
    # History only starts at 05:00; the range asks for 00:00 onwards
    history = hourly_bars(5, start=T0 + pd.Timedelta(hours=5))
    client = FakeKlineClient(history, page_size=2)
    downloader = HistoricalDownloader(client, clock=CLOCK)

    bars = downloader.fetch_bars("BTCUSDT", "1h", T0, T0 + pd.Timedelta(hours=9))

    assert bars == history
    assert len(client.calls) == 4


def test_fetch_bars_stops_when_cursor_does_not_move():
    history = hourly_bars(3)
    client = StuckClient(history, page_size=3)
    downloader = HistoricalDownloader(client, clock=CLOCK)

    # The returned page lies after the range end, so the next cursor would move forward
    bars = downloader.fetch_bars(
        "BTCUSDT", "1h", T0 - pd.Timedelta(days=1), T0 - pd.Timedelta(hours=1)
    )

    assert bars == []
    assert len(client.calls) == 1


def test_fetch_bars_sleeps_between_pages_only():
    sleeps = []
    client = FakeKlineClient(hourly_bars(6), page_size=3)
    downloader = HistoricalDownloader(client, sleep_seconds=0.25, clock=CLOCK, sleep=sleeps.append)

    downloader.fetch_bars("BTCUSDT", "1h", T0, T0 + pd.Timedelta(hours=5))

    # Two pages cover the range; the pause falls between them
    assert sleeps == [0.25]


def test_negative_sleep_rejected():
    with pytest.raises(ValueError):
        HistoricalDownloader(FakeKlineClient([]), sleep_seconds=-1)


# ============================================================================
# CSV output
# ============================================================================

def test_download_to_csv_writes_readable_file(tmp_path):
    history = hourly_bars(6)
    downloader = HistoricalDownloader(FakeKlineClient(history, page_size=4), clock=CLOCK)

    path = downloader.download_to_csv(
        "BTC/USDT", "1h", T0, T0 + pd.Timedelta(hours=5), tmp_path / "data"
    )

    assert path.name == "BTCUSDT_1h_202306010000_202306010500.csv"
    series = read_price_csv(path)
    assert list(series) == history


def test_download_to_csv_raises_when_nothing_returned(tmp_path):
    downloader = HistoricalDownloader(FakeKlineClient([]), clock=CLOCK)

    with pytest.raises(DownloadError):
        downloader.download_to_csv("BTC/USDT", "1h", T0, T0 + pd.Timedelta(hours=5), tmp_path)

    assert list(tmp_path.iterdir()) == []
