"""
CSV readers and writers for price feeds.

**Conceptual**: This module is the only I/O boundary for price CSVs. Every
series replayed by the engine is read through read_price_csv, and every file
produced by the downloader is written through write_price_csv, so both sides
share one contract (see schemas.py):

    timestamp,open,high,low,close
    1685577600,27210.1,27350.0,27190.4,27300.2
    ...

Timestamps on disk are fractional Unix epoch seconds; in memory they are
timezone-aware UTC pandas Timestamps. Rows are stored ascending by time, the
order the engine replays them in.

**Rule**: Never use pd.read_csv or df.to_csv directly for price data in
strategies, engines or actions. Import these functions instead.
"""

from pathlib import Path
from typing import Iterable

import pandas as pd

from bar_replay.data.price_series import Bar, PriceSeries
from bar_replay.data.schemas import (
    PRICE_FEED_COLUMNS,
    PriceFeedError,
    coerce_numeric_columns,
    validate_price_feed_header,
)
from bar_replay.utils.time import epoch_seconds_to_timestamp, timestamp_to_epoch_seconds


def read_price_csv(path: Path | str) -> PriceSeries:
    """
    Read a price CSV into a validated PriceSeries.

    **Functionally**:
      1. Reads the header line only and validates it (case-insensitive).
      2. Reads the body as strings and converts each required field to float.
      3. Converts epoch-second timestamps to UTC Timestamps.
      4. Builds Bars (rejecting rows where open/close fall outside low..high).

    No partial result is ever returned: any problem raises before the series
    is built.

    Args:
        path: Path to the CSV file.

    Returns:
        PriceSeries in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        PriceFeedError: If the header is wrong, a field is non-numeric, a bar
                        breaks the OHLC invariant, or the file has no data rows.

    Example:
        >>> series = read_price_csv("data/raw/BTCUSDT_1h_202306010000_202306100000.csv")
        >>> series.first.open
        27210.1
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Price CSV not found: {path}. "
            f"Download one with actions/download_price_history.py."
        )

    try:
        header = pd.read_csv(path, nrows=0, dtype=str)
    except pd.errors.EmptyDataError as e:
        raise PriceFeedError(f"{path}: file is empty, expected a header row.") from e

    validate_price_feed_header(list(header.columns), context=str(path))

    try:
        body = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            usecols=range(len(PRICE_FEED_COLUMNS)),
        )
    except pd.errors.ParserError as e:
        raise PriceFeedError(f"{path}: malformed CSV row: {e}") from e
    body.columns = PRICE_FEED_COLUMNS

    if body.empty:
        raise PriceFeedError(f"{path}: no price rows found after the header.")

    numeric = coerce_numeric_columns(body, context=str(path))
    return frame_to_price_series(numeric, context=str(path))


def frame_to_price_series(df: pd.DataFrame, context: str | None = None) -> PriceSeries:
    """
    Build a PriceSeries from a numeric frame whose timestamp column holds epoch seconds.

    Args:
        df: Frame with PRICE_FEED_COLUMNS as floats.
        context: Optional source description for error messages.

    Raises:
        PriceFeedError: If a row breaks the OHLC invariant or the frame is empty.
    """
    ctx = f"{context}: " if context else ""
    if df.empty:
        raise PriceFeedError(f"{ctx}no price rows found.")

    timestamps = pd.to_datetime(df["timestamp"], unit="s", utc=True)

    bars = []
    for position, (ts, row) in enumerate(zip(timestamps, df.itertuples(index=False))):
        try:
            bars.append(
                Bar(
                    open=float(row.open),
                    high=float(row.high),
                    low=float(row.low),
                    close=float(row.close),
                    timestamp=ts,
                )
            )
        except ValueError as e:
            raise PriceFeedError(f"{ctx}row {position + 2}: {e}") from e

    return PriceSeries(bars)


def write_price_csv(bars: Iterable[Bar], path: Path | str) -> Path:
    """
    Write bars to a price CSV in the canonical format.

    **Canonical format on disk**:
      - Header: timestamp,open,high,low,close
      - Timestamps as Unix epoch seconds (fractional only when needed)
      - Rows sorted ascending by timestamp
      - Parent directory created if missing

    Args:
        bars: Bars to write (any order; duplicates by timestamp keep the last).
        path: Destination path.

    Returns:
        The path written.

    Raises:
        PriceFeedError: If there are no bars to write.
        OSError: If the file can't be written.
    """
    path = Path(path)
    bars = list(bars)
    if not bars:
        raise PriceFeedError(f"{path}: refusing to write a price CSV with no rows.")

    df = pd.DataFrame(
        {
            "timestamp": [timestamp_to_epoch_seconds(bar.timestamp) for bar in bars],
            "open": [bar.open for bar in bars],
            "high": [bar.high for bar in bars],
            "low": [bar.low for bar in bars],
            "close": [bar.close for bar in bars],
        },
        columns=PRICE_FEED_COLUMNS,
    )
    df = (
        df.drop_duplicates(subset="timestamp", keep="last")
        .sort_values("timestamp", ascending=True)
        .reset_index(drop=True)
    )

    # Whole seconds are written without a trailing ".0"
    if (df["timestamp"] % 1 == 0).all():
        df["timestamp"] = df["timestamp"].astype("int64")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)
    except OSError as e:
        raise OSError(f"Failed to write price CSV to {path}: {e}") from e

    return path


def bars_from_epoch_rows(rows: Iterable[tuple[float, float, float, float, float]]) -> list[Bar]:
    """
    Build bars from (epoch_seconds, open, high, low, close) tuples.

    Convenience for tests and adapters that already hold numeric rows.
    """
    return [
        Bar(
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            timestamp=epoch_seconds_to_timestamp(ts),
        )
        for ts, o, h, l, c in rows
    ]
