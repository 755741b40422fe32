"""
Strategy interface and baseline implementations.

**Conceptual**: This module defines the contract between strategies and the
replay engine. The engine shows the strategy one bar at a time and asks for at
most one order intent. Everything else (whether the order is affordable, how it
resolves, how capital moves) is the engine's business.

A strategy may keep arbitrary internal state (rolling windows, step counters),
but it never sees or touches the engine's holdings or ledger.

**Teaching note**: This is a Protocol (structural typing), not an ABC. Any
object with matching `decide` and `name` methods is a Strategy; the concrete
variants in this package share no base class.
"""

from typing import Mapping, Protocol

from bar_replay.data.price_series import Bar
from bar_replay.execution.orders import Direction, OrderIntent


class Strategy(Protocol):
    """
    Strategy interface for the replay engine.

    Called once per bar, in series order.
    """

    def decide(self, bar: Bar) -> OrderIntent | None:
        """
        Propose an order for the current bar, or None to stay idle.

        Args:
            bar: The bar being replayed. Only this bar and earlier bars (kept
                 in the strategy's own state) are ever visible.

        Returns:
            An OrderIntent, or None. Returning None is the normal answer while
            an indicator warms up.
        """
        ...

    def name(self) -> str:
        """Human-readable strategy name, stored with results."""
        ...


# ============================================================================
# Baseline strategies for testing and demonstration
# ============================================================================

class NoTradeStrategy:
    """
    Strategy that never proposes an order.

    **Expected behavior in a run**: holdings at the end equal holdings at the
    start and the ledger stays empty.
    """

    def decide(self, bar: Bar) -> OrderIntent | None:
        return None

    def name(self) -> str:
        return "No Trade"


class ScheduledIntentStrategy:
    """
    Strategy that replays a fixed schedule of intents keyed by bar index.

    Bar indices count calls to decide(), starting at 0. Useful for
    hand-calculated scenarios in tests and for replaying a recorded decision
    log.
    """

    def __init__(self, schedule: Mapping[int, OrderIntent], label: str = "Scheduled"):
        """
        Args:
            schedule: Mapping of bar index -> intent to emit on that bar.
            label: Name reported by name().
        """
        self._schedule = dict(schedule)
        self._label = label
        self._step = 0

    def decide(self, bar: Bar) -> OrderIntent | None:
        intent = self._schedule.get(self._step)
        self._step += 1
        return intent

    def name(self) -> str:
        return self._label


# ============================================================================
# Intent helpers shared by the concrete variants
# ============================================================================

def sell_intent(open_price: float, take_profit_offset: float, cancel_offset: float) -> OrderIntent:
    """
    SELL with take-profit above the open and cancel below it.

    Offsets are absolute price distances (callers convert percentages).
    """
    return OrderIntent(
        direction=Direction.SELL,
        take_profit_price=open_price + take_profit_offset,
        cancel_price=open_price - cancel_offset,
    )


def buy_intent(open_price: float, take_profit_offset: float, cancel_offset: float) -> OrderIntent:
    """BUY with take-profit below the open and cancel above it (mirror of sell_intent)."""
    return OrderIntent(
        direction=Direction.BUY,
        take_profit_price=open_price - take_profit_offset,
        cancel_price=open_price + cancel_offset,
    )
