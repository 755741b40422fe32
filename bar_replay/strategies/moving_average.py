"""
Moving-average cross strategy.

**Conceptual**: Treats the simple moving average of closes as a fair-value
anchor and bets on reversion towards it:
  - Open above the SMA: the market is stretched up, so SELL with a take-profit
    above the open and a cancel below it.
  - Open below the SMA: stretched down, so BUY with a take-profit below the
    open and a cancel above it.
  - Open equal to the SMA, or fewer than `window` bars seen: no intent.

Levels are percentages of the bar's open price.

**Example** (window=100, take_profit_pct=0.05, cancel_pct=0.10, open=20000,
SMA=19500):
    SELL, take_profit_price=21000, cancel_price=18000
"""

from bar_replay.data.price_series import Bar
from bar_replay.execution.orders import OrderIntent
from bar_replay.strategies.base import buy_intent, sell_intent
from bar_replay.utils.indicators import RollingMean


class MovingAverageCrossStrategy:
    """
    SMA mean-reversion strategy polled once per bar.

    Attributes:
        window: SMA length in bars.
        take_profit_pct: Take-profit distance as a fraction of the open.
        cancel_pct: Cancel distance as a fraction of the open.
    """

    def __init__(
        self,
        window: int = 100,
        take_profit_pct: float = 0.05,
        cancel_pct: float = 0.10,
    ):
        if take_profit_pct < 0 or cancel_pct < 0:
            raise ValueError(
                f"take_profit_pct and cancel_pct must be non-negative, "
                f"got {take_profit_pct} and {cancel_pct}"
            )
        self.window = window
        self.take_profit_pct = take_profit_pct
        self.cancel_pct = cancel_pct
        self._sma = RollingMean(window)

    def decide(self, bar: Bar) -> OrderIntent | None:
        average = self._sma.update(bar.close)
        if average is None:
            return None

        take_profit = bar.open * self.take_profit_pct
        cancel = bar.open * self.cancel_pct
        if bar.open > average:
            return sell_intent(bar.open, take_profit, cancel)
        if bar.open < average:
            return buy_intent(bar.open, take_profit, cancel)
        return None

    def name(self) -> str:
        return "Moving Average Cross"
