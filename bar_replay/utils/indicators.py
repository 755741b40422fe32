"""
Streaming technical indicators for bar-by-bar strategies.

**Conceptual**: Vectorised pandas indicators (`Series.rolling`, `Series.ewm`)
need the whole history up front. Strategies in the replay engine only ever see
one bar at a time, so the indicators here are incremental: call `update(value)`
once per bar and read the current value back. Each object keeps the minimum
state its formula needs.

**Teaching note**: Feeding an indicator the same bar twice corrupts it (the
value is counted twice in the window or the average). Strategies must call
`update` exactly once per bar and reuse the returned value.
"""

from collections import deque

import numpy as np


class RollingMean:
    """
    Simple moving average (SMA) over the last `window` values.

    **Mathematical**:
        SMA_t = (1 / window) * Σ(x_{t-i}) for i = 0 to window-1

    **Functionally**:
    - `update(x)` appends x and drops the oldest value once the window is full.
    - `value` is None until `window` values have been seen.
    - `is_ready` turns True on the window-th update and stays True.
    """

    def __init__(self, window: int):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.window = window
        self._values: deque[float] = deque(maxlen=window)

    def update(self, value: float) -> float | None:
        self._values.append(float(value))
        return self.value

    @property
    def count(self) -> int:
        """Number of values currently in the window (capped at `window`)."""
        return len(self._values)

    @property
    def is_ready(self) -> bool:
        return len(self._values) == self.window

    @property
    def value(self) -> float | None:
        if not self.is_ready:
            return None
        return float(np.mean(np.fromiter(self._values, dtype=np.float64, count=self.window)))


class RelativeStrengthIndex:
    """
    Relative Strength Index with Wilder smoothing.

    **Conceptual**: RSI compares the size of recent up-moves with recent
    down-moves and maps the balance to 0..100. Readings above 70 are commonly
    called overbought and readings below 30 oversold.

    **Mathematical**: With change d_t = x_t - x_{t-1}, gain g_t = max(d_t, 0)
    and loss l_t = max(-d_t, 0):

        seed:  avg_gain = mean(g_1..g_n), avg_loss = mean(l_1..l_n)
        then:  avg_gain = (avg_gain * (n - 1) + g_t) / n
               avg_loss = (avg_loss * (n - 1) + l_t) / n
        RS  = avg_gain / avg_loss
        RSI = 100 - 100 / (1 + RS)

    **Edge cases**:
    - value is None until `period` changes (period + 1 inputs) have been seen.
    - avg_loss == 0 gives RSI 100 (or 50 when avg_gain is also 0, a flat
      series).
    """

    def __init__(self, period: int = 14):
        if period < 1:
            raise ValueError(f"period must be >= 1, got {period}")
        self.period = period
        self._previous: float | None = None
        self._seed_gains: list[float] = []
        self._seed_losses: list[float] = []
        self._avg_gain: float | None = None
        self._avg_loss: float | None = None

    def update(self, value: float) -> float | None:
        value = float(value)
        if self._previous is None:
            self._previous = value
            return None

        change = value - self._previous
        self._previous = value
        gain = max(change, 0.0)
        loss = max(-change, 0.0)

        if self._avg_gain is None:
            self._seed_gains.append(gain)
            self._seed_losses.append(loss)
            if len(self._seed_gains) == self.period:
                self._avg_gain = float(np.mean(self._seed_gains))
                self._avg_loss = float(np.mean(self._seed_losses))
            return self.value

        n = self.period
        self._avg_gain = (self._avg_gain * (n - 1) + gain) / n
        self._avg_loss = (self._avg_loss * (n - 1) + loss) / n
        return self.value

    @property
    def is_ready(self) -> bool:
        return self._avg_gain is not None

    @property
    def value(self) -> float | None:
        if self._avg_gain is None or self._avg_loss is None:
            return None
        if self._avg_loss == 0:
            return 50.0 if self._avg_gain == 0 else 100.0
        rs = self._avg_gain / self._avg_loss
        return 100.0 - 100.0 / (1.0 + rs)
