#!/usr/bin/env python3
"""
Download historical klines from Binance into a price CSV.

**Usage**:
    python actions/download_price_history.py --pair BTC/USDT --interval 1h \
        --start 2023-06-01 --end 2023-06-10

    python actions/download_price_history.py --pair ETH/USDT --interval 15m \
        --start "2023-06-01 12:00" --end "2023-06-02 12:00" --output-dir data/raw

**What this script does**:
  1. Validate the pair, interval and date range (start before end, not in the future).
  2. Page backwards through Binance klines from --end to --start.
  3. Write data/{SYMBOL}_{interval}_{start}_{end}.csv ascending by time.

Dates are parsed as UTC. Accepted intervals: 1m, 3m, 5m, 15m, 30m, 1h.

**Example output**:
    Downloading BTCUSDT 1h from 2023-06-01 00:00:00+00:00 to 2023-06-10 00:00:00+00:00...
    ✓ Saved to data/BTCUSDT_1h_202306010000_202306100000.csv
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

# Add project root to Python path so we can import bar_replay modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bar_replay.config.settings import get_settings
from bar_replay.utils.logging import configure_logging
from bar_replay.venues.binance_client import (
    BinanceBadRequestError,
    BinanceClient,
    BinanceClientError,
    BinanceRateLimitError,
)
from bar_replay.venues.binance_downloader import (
    VALID_INTERVALS,
    DownloadError,
    HistoricalDownloader,
    pair_to_symbol,
    validate_date_range,
    validate_interval,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Download historical klines from Binance into a price CSV",
    )
    parser.add_argument("--pair", required=True, help="Trading pair, e.g. BTC/USDT")
    parser.add_argument("--interval", required=True, choices=VALID_INTERVALS,
                        help="Candle interval")
    parser.add_argument("--start", required=True, help="Range start (UTC), e.g. 2023-06-01")
    parser.add_argument("--end", required=True, help="Range end (UTC), e.g. 2023-06-10")
    parser.add_argument("--output-dir", default="data",
                        help="Directory for the CSV (default: data/)")
    return parser.parse_args(argv)


def validate_date(date_str: str) -> pd.Timestamp:
    """
    Parse a date string as a UTC Timestamp.

    Raises:
        ValueError: If the string can't be parsed.
    """
    try:
        return pd.Timestamp(date_str, tz="UTC")
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid date: '{date_str}'. Error: {e}") from e


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.logging)

    try:
        symbol = pair_to_symbol(args.pair)
        interval = validate_interval(args.interval)
        start, end = validate_date_range(validate_date(args.start), validate_date(args.end))
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    print(f"Downloading {symbol} {interval} from {start} to {end}...")
    with BinanceClient(settings.binance) as client:
        downloader = HistoricalDownloader(client, settings.binance.min_sleep_seconds)
        try:
            path = downloader.download_to_csv(args.pair, interval, start, end, args.output_dir)
        except BinanceBadRequestError as e:
            print(f"✗ Binance rejected the request (check the pair): {e}", file=sys.stderr)
            return 1
        except BinanceRateLimitError as e:
            print(f"✗ Rate limited, raise BINANCE_MIN_SLEEP_SECONDS: {e}", file=sys.stderr)
            return 1
        except (BinanceClientError, DownloadError) as e:
            print(f"✗ {e}", file=sys.stderr)
            return 1

    print(f"✓ Saved to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
