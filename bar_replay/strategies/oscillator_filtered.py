"""
Moving-average cross strategy gated by an RSI filter.

Same SMA mean-reversion signal as MovingAverageCrossStrategy, with one extra
condition per side:
  - SELL only while RSI < overbought.
  - BUY only while RSI > oversold.

The RSI is advanced exactly once per bar (on the close) and the resulting
value is used for both checks. A bar on which the RSI has not warmed up yet
produces no intent.
"""

from bar_replay.data.price_series import Bar
from bar_replay.execution.orders import OrderIntent
from bar_replay.strategies.base import buy_intent, sell_intent
from bar_replay.utils.indicators import RelativeStrengthIndex, RollingMean


class OscillatorFilteredStrategy:
    """SMA mean reversion with RSI overbought/oversold gates."""

    def __init__(
        self,
        window: int = 100,
        rsi_period: int = 14,
        overbought: float = 70.0,
        oversold: float = 30.0,
        take_profit_pct: float = 0.05,
        cancel_pct: float = 0.10,
    ):
        if not 0 <= oversold <= overbought <= 100:
            raise ValueError(
                f"need 0 <= oversold <= overbought <= 100, got oversold={oversold}, "
                f"overbought={overbought}"
            )
        self.window = window
        self.rsi_period = rsi_period
        self.overbought = overbought
        self.oversold = oversold
        self.take_profit_pct = take_profit_pct
        self.cancel_pct = cancel_pct
        self._sma = RollingMean(window)
        self._rsi = RelativeStrengthIndex(rsi_period)

    def decide(self, bar: Bar) -> OrderIntent | None:
        average = self._sma.update(bar.close)
        rsi = self._rsi.update(bar.close)
        if average is None or rsi is None:
            return None

        take_profit = bar.open * self.take_profit_pct
        cancel = bar.open * self.cancel_pct
        if bar.open > average and rsi < self.overbought:
            return sell_intent(bar.open, take_profit, cancel)
        if bar.open < average and rsi > self.oversold:
            return buy_intent(bar.open, take_profit, cancel)
        return None

    def name(self) -> str:
        return "Oscillator Filtered Moving Average Cross"
