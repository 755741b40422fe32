"""
Time and clock abstractions plus epoch conversion helpers.

This module provides a testable way to obtain "now" via a clock object rather
than calling datetime.now() directly, and the conversions between the price
feed's fractional Unix epochs and the timezone-aware pandas Timestamps used
everywhere else in the package.

Result records carry a creation timestamp; injecting a FrozenClock makes those
records reproducible in tests.
"""

from datetime import datetime, timezone
from typing import Protocol

import pandas as pd


class Clock(Protocol):
    """
    Abstract time source protocol.

    **Conceptual**: A Clock is any object that can answer the question "what time
    is it right now?" Consumers accept a Clock (constructor or function
    parameter) and call clock.now() whenever they need the current time. In
    production pass a RealClock; in tests pass a FrozenClock.

    **Example**:
        def build_report(result, clock: Clock):
            created_at = clock.now()

        build_report(result, RealClock())
        build_report(result, FrozenClock(datetime(2023, 6, 1, tzinfo=timezone.utc)))
    """

    def now(self) -> datetime:
        """
        Return the current time according to this clock.

        Returns:
            datetime object representing "now" (timezone-aware, UTC preferred).
        """
        ...


class RealClock:
    """Clock that returns the actual current system time (UTC)."""

    def now(self) -> datetime:
        """
        Return the current UTC time from the system clock.

        Returns:
            datetime object with current time in UTC timezone.
        """
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Clock that always returns a fixed timestamp.

    **Usage**:
        clock = FrozenClock(datetime(2023, 6, 10, tzinfo=timezone.utc))
        clock.now()  # Always 2023-06-10T00:00:00+00:00
    """

    def __init__(self, fixed_now: datetime):
        """
        Initialize a FrozenClock with a fixed timestamp.

        Args:
            fixed_now: The datetime to return on every call to now().
                       Should be timezone-aware (UTC recommended).
        """
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        return self._fixed_now


def epoch_seconds_to_timestamp(value: float) -> pd.Timestamp:
    """
    Convert fractional Unix epoch seconds to a UTC pandas Timestamp.

    The sub-second part is the decimal fraction, so 1685577600.5 is half a
    second after 2023-06-01 00:00:00 UTC.

    Args:
        value: Seconds since 1970-01-01T00:00:00Z, possibly fractional.

    Returns:
        Timezone-aware pd.Timestamp in UTC.
    """
    return pd.Timestamp(value, unit="s", tz="UTC")


def timestamp_to_epoch_seconds(ts: pd.Timestamp) -> float:
    """
    Convert a Timestamp to fractional Unix epoch seconds.

    Naive timestamps are treated as UTC.
    """
    ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.value / 1e9


def timestamp_to_epoch_millis(ts: pd.Timestamp) -> int:
    """Convert a Timestamp to whole Unix epoch milliseconds (market-data APIs use these)."""
    ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.value // 1_000_000


def ensure_utc(ts: pd.Timestamp | datetime | str) -> pd.Timestamp:
    """
    Coerce a timestamp-like value to a timezone-aware UTC pandas Timestamp.

    Naive values are interpreted as UTC; aware values are converted.
    """
    ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")
