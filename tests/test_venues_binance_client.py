"""
Tests for BinanceClient HTTP wrapper.

**Purpose**: Verify that BinanceClient builds the klines request correctly,
parses kline arrays into Bars and maps HTTP status codes to exceptions.

**Testing philosophy**: requests.Session.get is mocked, so no network calls
are made and error statuses can be produced on demand.
"""

from unittest.mock import Mock, patch

import pandas as pd
import pytest
import requests

from bar_replay.config.settings import BinanceSettings
from bar_replay.venues.binance_client import (
    BinanceAuthenticationError,
    BinanceBadRequestError,
    BinanceClient,
    BinanceClientError,
    BinanceRateLimitError,
    BinanceServerError,
    parse_kline,
)

END = pd.Timestamp("2023-06-01 02:00", tz="UTC")


@pytest.fixture
def binance_settings():
    return BinanceSettings(
        base_url="https://api.test-binance.com",
        timeout_seconds=10,
        page_limit=500,
        min_sleep_seconds=0.0,
        max_retries=0,
    )


def kline(ts_ms, o, h, l, c):
    return [ts_ms, str(o), str(h), str(l), str(c), "12.5", ts_ms + 3_599_999, "0", 10, "0", "0", "0"]


def mock_response(status_code=200, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


# ============================================================================
# Parsing
# ============================================================================

def test_parse_kline_full_precision():
    bar = parse_kline([1685577600000, "27210.12345678", "27300.5", "27100.25", "27250.87654321"])

    assert bar.timestamp == pd.Timestamp("2023-06-01", tz="UTC")
    assert bar.open == 27210.12345678
    assert bar.close == 27250.87654321


def test_parse_kline_keeps_milliseconds():
    bar = parse_kline([1685577600123, "1", "1", "1", "1"])

    assert bar.timestamp == pd.Timestamp("2023-06-01 00:00:00.123", tz="UTC")


@pytest.mark.parametrize("row", [
    [1685577600000, "1", "1"],
    [1685577600000, "abc", "1", "1", "1"],
    "not a row",
])
def test_parse_kline_rejects_malformed(row):
    with pytest.raises(BinanceClientError):
        parse_kline(row)


# ============================================================================
# Requests
# ============================================================================

def test_client_session_headers(binance_settings):
    client = BinanceClient(binance_settings)

    assert client.session.headers["Accept"] == "application/json"


@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_success(mock_get, binance_settings):
    # Returned out of order on purpose
    mock_get.return_value = mock_response(payload=[
        kline(1685581200000, 101, 102, 100, 101.5),
        kline(1685577600000, 100, 101, 99, 100.5),
    ])

    client = BinanceClient(binance_settings)
    bars = client.get_klines("btcusdt", "1h", end_time=END)

    mock_get.assert_called_once()
    call_args = mock_get.call_args
    assert call_args.args[0] == "https://api.test-binance.com/api/v3/klines"
    assert call_args.kwargs["params"] == {
        "symbol": "BTCUSDT",
        "interval": "1h",
        "endTime": 1685584800000,
        "limit": 500,
    }
    assert call_args.kwargs["timeout"] == 10

    assert [bar.timestamp for bar in bars] == [
        pd.Timestamp("2023-06-01 00:00", tz="UTC"),
        pd.Timestamp("2023-06-01 01:00", tz="UTC"),
    ]
    assert bars[0].open == 100.0


@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_explicit_limit(mock_get, binance_settings):
    mock_get.return_value = mock_response(payload=[])

    bars = BinanceClient(binance_settings).get_klines("BTCUSDT", "1m", end_time=END, limit=5)

    assert bars == []
    assert mock_get.call_args.kwargs["params"]["limit"] == 5


@pytest.mark.parametrize("status,exc_type", [
    (400, BinanceBadRequestError),
    (401, BinanceAuthenticationError),
    (403, BinanceAuthenticationError),
    (404, BinanceClientError),
    (418, BinanceRateLimitError),
    (429, BinanceRateLimitError),
    (500, BinanceServerError),
    (503, BinanceServerError),
])
@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_status_mapping(mock_get, status, exc_type, binance_settings):
    mock_get.return_value = mock_response(status_code=status, text="nope")

    with pytest.raises(exc_type):
        BinanceClient(binance_settings).get_klines("BTCUSDT", "1h", end_time=END)


def test_specific_errors_are_client_errors():
    for exc_type in (BinanceAuthenticationError, BinanceBadRequestError,
                     BinanceRateLimitError, BinanceServerError):
        assert issubclass(exc_type, BinanceClientError)


@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_connection_error(mock_get, binance_settings):
    mock_get.side_effect = requests.ConnectionError("refused")

    with pytest.raises(BinanceClientError, match="Failed to connect"):
        BinanceClient(binance_settings).get_klines("BTCUSDT", "1h", end_time=END)


@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_timeout(mock_get, binance_settings):
    mock_get.side_effect = requests.Timeout("slow")

    with pytest.raises(requests.Timeout, match="timed out"):
        BinanceClient(binance_settings).get_klines("BTCUSDT", "1h", end_time=END)


@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_rejects_non_array_body(mock_get, binance_settings):
    mock_get.return_value = mock_response(payload={"code": -1121, "msg": "Invalid symbol."})

    with pytest.raises(BinanceClientError, match="JSON array"):
        BinanceClient(binance_settings).get_klines("BTCUSDT", "1h", end_time=END)


@patch("bar_replay.venues.binance_client.requests.Session.get")
def test_get_klines_invalid_json(mock_get, binance_settings):
    response = mock_response(text="<html>")
    response.json.side_effect = ValueError("Expecting value")
    mock_get.return_value = response

    with pytest.raises(BinanceClientError, match="parse JSON"):
        BinanceClient(binance_settings).get_klines("BTCUSDT", "1h", end_time=END)


def test_get_klines_empty_symbol(binance_settings):
    with pytest.raises(ValueError, match="Symbol"):
        BinanceClient(binance_settings).get_klines("  ", "1h", end_time=END)


def test_context_manager_closes_session(binance_settings):
    with BinanceClient(binance_settings) as client:
        client.session = Mock()
    client.session.close.assert_called_once()
