"""
OHLC bars and the immutable price series the replay engine iterates over.

**Conceptual**: A Bar is one OHLC observation for a fixed interval, stamped with
the interval's opening time. A PriceSeries is the ordered, non-empty sequence of
bars for one run. Ordering is assumed, not verified: the CSV readers and the
downloader produce ascending series, and the engine trusts them.

**Invariant**: every Bar satisfies low <= open, close <= high. A bar that
breaks it is rejected at construction so that range checks during replay
(Bar.contains) never see an inverted range.
"""

from dataclasses import dataclass
from typing import Iterator, Sequence

import pandas as pd

from bar_replay.utils.time import ensure_utc


@dataclass(frozen=True)
class Bar:
    """
    One OHLC price observation.

    Attributes:
        open: First traded price of the interval.
        high: Highest price reached during the interval.
        low: Lowest price reached during the interval.
        close: Last traded price of the interval.
        timestamp: Opening time of the interval (UTC pd.Timestamp).
    """
    open: float
    high: float
    low: float
    close: float
    timestamp: pd.Timestamp

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError(
                f"Bar at {self.timestamp}: low {self.low} is above high {self.high}"
            )
        for label, value in (("open", self.open), ("close", self.close)):
            if not self.low <= value <= self.high:
                raise ValueError(
                    f"Bar at {self.timestamp}: {label} {value} outside "
                    f"[low {self.low}, high {self.high}]"
                )

    def contains(self, price: float) -> bool:
        """
        Return True if `price` was reachable during this bar.

        The range is inclusive at both ends: a level equal to the bar's low or
        high counts as touched.
        """
        return self.low <= price <= self.high

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "Bar":
        return cls(
            open=float(payload["open"]),
            high=float(payload["high"]),
            low=float(payload["low"]),
            close=float(payload["close"]),
            timestamp=ensure_utc(payload["timestamp"]),
        )


class PriceSeries(Sequence[Bar]):
    """
    Immutable, non-empty, time-ordered sequence of bars.

    **Conceptual**: The series is the substrate of a run: the engine walks it
    once, and the portfolio reporter prices holdings at its first and last
    bar's open. It behaves like a read-only list (len, iteration, indexing,
    slicing returns a new PriceSeries).

    Raises:
        ValueError: If constructed with no bars.
    """

    def __init__(self, bars: Sequence[Bar]):
        bars = tuple(bars)
        if not bars:
            raise ValueError("PriceSeries requires at least one bar.")
        self._bars = bars

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return PriceSeries(self._bars[index])
        return self._bars[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, PriceSeries):
            return NotImplemented
        return self._bars == other._bars

    def __hash__(self) -> int:
        return hash(self._bars)

    def __repr__(self) -> str:
        return f"PriceSeries({len(self)} bars, {self.start} -> {self.end})"

    @property
    def first(self) -> Bar:
        return self._bars[0]

    @property
    def last(self) -> Bar:
        return self._bars[-1]

    @property
    def start(self) -> pd.Timestamp:
        """Timestamp of the first bar."""
        return self._bars[0].timestamp

    @property
    def end(self) -> pd.Timestamp:
        """Timestamp of the last bar."""
        return self._bars[-1].timestamp
