"""
Alternating BUY/SELL strategies that quote around every bar's open.

Both variants keep a call counter and emit an intent on every bar:
odd calls (1st, 3rd, ...) BUY, even calls SELL. They differ only in how the
take-profit distance is measured:

  - FixedGridStrategy: take-profit and cancel are percentages of the open.
  - StepAlternatingStrategy: take-profit is an absolute price offset, cancel a
    percentage of the open.

**Example** (FixedGridStrategy defaults, open=100):
    call 1 -> BUY,  take_profit_price=99,  cancel_price=110
    call 2 -> SELL, take_profit_price=101, cancel_price=90
"""

from bar_replay.data.price_series import Bar
from bar_replay.execution.orders import OrderIntent
from bar_replay.strategies.base import buy_intent, sell_intent


class FixedGridStrategy:
    """Alternate BUY/SELL every bar with percentage take-profit and cancel levels."""

    def __init__(self, take_profit_pct: float = 0.01, cancel_pct: float = 0.10):
        self.take_profit_pct = take_profit_pct
        self.cancel_pct = cancel_pct
        self.step = 0

    def decide(self, bar: Bar) -> OrderIntent | None:
        self.step += 1
        take_profit = bar.open * self.take_profit_pct
        cancel = bar.open * self.cancel_pct
        if self.step % 2 == 0:
            return sell_intent(bar.open, take_profit, cancel)
        return buy_intent(bar.open, take_profit, cancel)

    def name(self) -> str:
        return "Fixed Grid"


class StepAlternatingStrategy:
    """Alternate BUY/SELL every bar with an absolute take-profit offset."""

    def __init__(self, take_profit_offset: float = 10.0, cancel_pct: float = 0.10):
        self.take_profit_offset = take_profit_offset
        self.cancel_pct = cancel_pct
        self.step = 0

    def decide(self, bar: Bar) -> OrderIntent | None:
        self.step += 1
        cancel = bar.open * self.cancel_pct
        if self.step % 2 == 0:
            return sell_intent(bar.open, self.take_profit_offset, cancel)
        return buy_intent(bar.open, self.take_profit_offset, cancel)

    def name(self) -> str:
        return "Step Alternating"
