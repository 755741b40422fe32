"""
Order ledger: the record of every order opened during a run.

**Conceptual**: The ledger owns the Order objects and performs the lifecycle
transitions. It knows nothing about capital: the replay engine
decides whether an order may be opened and applies settlement to Holdings;
the ledger only records what happened.

Orders are never removed, so after a run the ledger is the complete order
history used by the portfolio reporter.
"""

from typing import Iterator

import pandas as pd

from bar_replay.execution.orders import (
    InvalidOrderStateError,
    Order,
    OrderIntent,
    OrderState,
)


class OrderLedger:
    """
    Append-only collection of orders with OPEN -> CANCELED/FILLED transitions.

    Transition methods fail loudly (InvalidOrderStateError) when called on an
    order that is not OPEN.
    """

    def __init__(self):
        self._orders: list[Order] = []

    def open(
        self,
        intent: OrderIntent,
        reserved_amount: float,
        open_price: float,
        opened_at: pd.Timestamp,
    ) -> Order:
        """
        Create an OPEN order from an intent and append it to the ledger.

        No capital checks happen here; the caller has already reserved
        `reserved_amount` from holdings.

        Args:
            intent: Strategy proposal supplying direction and price levels.
            reserved_amount: Capital set aside for the order.
            open_price: Open price of the current bar.
            opened_at: Timestamp of the current bar.

        Returns:
            The newly created Order.
        """
        order = Order(
            order_id=len(self._orders) + 1,
            direction=intent.direction,
            state=OrderState.OPEN,
            opened_at=opened_at,
            reserved_amount=reserved_amount,
            open_price=open_price,
            take_profit_price=intent.take_profit_price,
            cancel_price=intent.cancel_price,
        )
        self._orders.append(order)
        return order

    def mark_canceled(self, order: Order, at: pd.Timestamp) -> None:
        """
        Move an OPEN order to CANCELED and stamp canceled_at.

        Raises:
            InvalidOrderStateError: If the order is not OPEN.
        """
        self._require_open(order, "cancel")
        order.state = OrderState.CANCELED
        order.canceled_at = at

    def mark_filled(self, order: Order, at: pd.Timestamp) -> None:
        """
        Move an OPEN order to FILLED and stamp filled_at.

        Raises:
            InvalidOrderStateError: If the order is not OPEN.
        """
        self._require_open(order, "fill")
        order.state = OrderState.FILLED
        order.filled_at = at

    @staticmethod
    def is_open(order: Order) -> bool:
        return order.state is OrderState.OPEN

    @property
    def orders(self) -> tuple[Order, ...]:
        """All orders in creation order."""
        return tuple(self._orders)

    def open_orders(self) -> list[Order]:
        """Snapshot list of orders that are still OPEN."""
        return [order for order in self._orders if order.state is OrderState.OPEN]

    def count_open(self) -> int:
        return sum(1 for order in self._orders if order.state is OrderState.OPEN)

    def __len__(self) -> int:
        return len(self._orders)

    def __iter__(self) -> Iterator[Order]:
        return iter(self._orders)

    @staticmethod
    def _require_open(order: Order, action: str) -> None:
        if order.state is not OrderState.OPEN:
            raise InvalidOrderStateError(
                f"Cannot {action} order {order.order_id}: state is {order.state.value}, "
                f"expected {OrderState.OPEN.value}."
            )
