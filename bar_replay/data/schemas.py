"""
Price-feed CSV schema and validation.

**Conceptual**: This module defines the data contract for price CSVs: the
first five columns are `timestamp, open, high, low, close` (matched
case-insensitively), timestamps are fractional Unix epoch seconds, and every
field is numeric. Validation happens at the I/O boundary so that a malformed
file aborts the run before any bar is replayed.

**Schema rules**:
  - Header checked before any row is read; misnamed or missing columns abort.
  - Columns after the fifth (e.g. volume) are ignored.
  - Every required field in every row must parse as a finite float.
  - Errors name the row, column and offending value.
"""

from typing import Sequence

import numpy as np
import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when tabular data does not conform to the expected schema.

    Carries enough context (source path, row, column, value) for quick
    remediation.
    """
    pass


class PriceFeedError(SchemaValidationError):
    """Raised when a price CSV has a bad header, a non-numeric field, or no rows."""
    pass


PRICE_FEED_COLUMNS = ["timestamp", "open", "high", "low", "close"]


def validate_price_feed_header(
    columns: Sequence[str],
    context: str | None = None,
) -> None:
    """
    Validate that the first five header cells are timestamp, open, high, low, close.

    Matching ignores case and surrounding whitespace, so "Timestamp" and
    " OPEN " are accepted.

    Args:
        columns: Header cells in file order.
        context: Optional description of the source (e.g. the file path),
                 prefixed to error messages.

    Raises:
        PriceFeedError: If fewer than five columns exist or any of the first
                        five does not match the expected name at its position.
    """
    ctx = f"{context}: " if context else ""
    normalized = [str(col).strip().lower() for col in columns]

    if len(normalized) < len(PRICE_FEED_COLUMNS):
        raise PriceFeedError(
            f"{ctx}Header has {len(normalized)} columns, expected at least "
            f"{len(PRICE_FEED_COLUMNS)}: {PRICE_FEED_COLUMNS}. Found: {list(columns)}."
        )

    for position, expected in enumerate(PRICE_FEED_COLUMNS):
        if normalized[position] != expected:
            raise PriceFeedError(
                f"{ctx}Header column {position + 1} is '{columns[position]}', "
                f"expected '{expected}'. Make sure the CSV starts with the columns "
                f"{', '.join(PRICE_FEED_COLUMNS)}."
            )


def coerce_numeric_columns(
    df: pd.DataFrame,
    context: str | None = None,
    first_row_number: int = 2,
) -> pd.DataFrame:
    """
    Convert the price-feed columns of a string DataFrame to float64.

    **Functionally**:
      - Input frame holds raw strings (read with dtype=str) under the
        canonical lower-case column names.
      - Each column is parsed with pd.to_numeric; a value that fails to parse,
        is empty, or parses to NaN/inf is reported with its file row number.
      - Returns a new frame; the input is not modified.

    Args:
        df: Frame with PRICE_FEED_COLUMNS holding raw string values.
        context: Optional source description for error messages.
        first_row_number: File line number of the first data row (header is
                          line 1, so the default is 2).

    Returns:
        DataFrame with PRICE_FEED_COLUMNS as float64.

    Raises:
        PriceFeedError: On the first non-numeric value encountered, scanning
                        rows top to bottom and columns left to right.
    """
    ctx = f"{context}: " if context else ""
    parsed = {}
    bad_rows = {}

    for col in PRICE_FEED_COLUMNS:
        raw = df[col].astype(str).str.strip()
        values = pd.to_numeric(raw, errors="coerce").astype(np.float64)
        invalid = ~np.isfinite(values.to_numpy())
        if invalid.any():
            bad_rows[col] = int(np.argmax(invalid))
        parsed[col] = values

    if bad_rows:
        # Report the earliest row; ties resolve to the leftmost column
        col = min(bad_rows, key=lambda c: (bad_rows[c], PRICE_FEED_COLUMNS.index(c)))
        position = bad_rows[col]
        raise PriceFeedError(
            f"{ctx}Invalid value '{df[col].iloc[position]}' in column '{col}' "
            f"at row {first_row_number + position}. "
            f"Make sure the CSV contains only valid float numbers."
        )

    return pd.DataFrame(parsed, columns=PRICE_FEED_COLUMNS)
