"""
Order models for the replay engine.

**Conceptual**: A strategy proposes an OrderIntent (direction plus two price
levels). When the engine accepts the intent and capital allows, the intent
becomes an Order owned by the OrderLedger. An order starts OPEN and ends in
exactly one terminal state:

    OPEN --(cancel price touched)--> CANCELED   (canceled_at set)
    OPEN --(take-profit touched)---> FILLED     (filled_at set)

Terminal states never transition again, and at most one of canceled_at /
filled_at is ever set.

**Financial terms**:
  - BUY acquires the base asset with quote (reserved amount is quote units).
  - SELL disposes of the base asset for quote (reserved amount is base units).
"""

from dataclasses import dataclass
from enum import Enum

import pandas as pd

from bar_replay.utils.time import ensure_utc


class Direction(Enum):
    """Side of an order relative to the base asset."""
    BUY = "BUY"
    SELL = "SELL"


class OrderState(Enum):
    """Lifecycle state of an order. CANCELED and FILLED are terminal."""
    OPEN = "OPEN"
    CANCELED = "CANCELED"
    FILLED = "FILLED"


class InvalidOrderStateError(RuntimeError):
    """
    Raised when a lifecycle transition is attempted on a non-OPEN order.

    This signals a logic defect in the caller (the replay loop must only
    resolve open orders), never a market condition.
    """
    pass


@dataclass(frozen=True)
class OrderIntent:
    """
    A strategy's proposal for a new order, consumed in the same bar it is produced.

    Attributes:
        direction: BUY or SELL.
        take_profit_price: Level at which the order settles favourably.
        cancel_price: Level at which the order is abandoned and capital returned.
    """
    direction: Direction
    take_profit_price: float
    cancel_price: float


@dataclass
class Order:
    """
    An order held in the ledger.

    Attributes:
        order_id: Sequential id assigned by the ledger, starting at 1.
        direction: BUY or SELL.
        state: Current lifecycle state.
        opened_at: Timestamp of the bar the order was opened on.
        reserved_amount: Capital set aside at open (quote units for BUY,
                         base units for SELL).
        open_price: Open price of the bar the order was opened on.
        take_profit_price: Take-profit level copied from the intent.
        cancel_price: Cancel level copied from the intent.
        canceled_at: Set when the order is canceled, else None.
        filled_at: Set when the order is filled, else None.
    """
    order_id: int
    direction: Direction
    state: OrderState
    opened_at: pd.Timestamp
    reserved_amount: float
    open_price: float
    take_profit_price: float
    cancel_price: float
    canceled_at: pd.Timestamp | None = None
    filled_at: pd.Timestamp | None = None

    @property
    def is_open(self) -> bool:
        return self.state is OrderState.OPEN

    def to_dict(self) -> dict:
        """Serialise to JSON-compatible primitives (ISO timestamps, enum names)."""
        return {
            "order_id": self.order_id,
            "direction": self.direction.value,
            "state": self.state.value,
            "opened_at": self.opened_at.isoformat(),
            "canceled_at": self.canceled_at.isoformat() if self.canceled_at is not None else None,
            "filled_at": self.filled_at.isoformat() if self.filled_at is not None else None,
            "reserved_amount": self.reserved_amount,
            "open_price": self.open_price,
            "take_profit_price": self.take_profit_price,
            "cancel_price": self.cancel_price,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "Order":
        """Inverse of to_dict."""
        canceled_at = payload.get("canceled_at")
        filled_at = payload.get("filled_at")
        return cls(
            order_id=int(payload["order_id"]),
            direction=Direction(payload["direction"]),
            state=OrderState(payload["state"]),
            opened_at=ensure_utc(payload["opened_at"]),
            reserved_amount=float(payload["reserved_amount"]),
            open_price=float(payload["open_price"]),
            take_profit_price=float(payload["take_profit_price"]),
            cancel_price=float(payload["cancel_price"]),
            canceled_at=ensure_utc(canceled_at) if canceled_at is not None else None,
            filled_at=ensure_utc(filled_at) if filled_at is not None else None,
        )
