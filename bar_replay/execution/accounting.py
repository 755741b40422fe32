"""
Capital accounting for the replay engine.

**Conceptual**: Holdings is the pair of balances (base asset, quote asset) that
a run trades with. Opening an order reserves capital out of holdings; when the
order resolves, the reservation is either released (cancel) or converted
(fill). All four settlement rules price the order at its open price, never at
the price that triggered the cancel or fill inside the bar.

**Settlement rules**:

    | Event  | Direction | Effect                                         |
    |--------|-----------|------------------------------------------------|
    | Cancel | SELL      | base_amount  += reserved_amount                |
    | Cancel | BUY       | quote_amount += reserved_amount * open_price   |
    | Fill   | SELL      | quote_amount += reserved_amount * open_price   |
    | Fill   | BUY       | base_amount  += reserved_amount / open_price   |

The BUY-cancel rule multiplies an amount that is already quote-denominated by
the open price again. It is reproduced as-is so results stay comparable with
earlier runs; see DESIGN.md.
"""

from dataclasses import dataclass

from bar_replay.execution.orders import Direction, Order


@dataclass
class Holdings:
    """
    Mutable base/quote balances owned by one replay engine for one run.

    Attributes:
        base_amount: Units of the base asset (e.g. BTC in BTC/USDT).
        quote_amount: Units of the quote asset (e.g. USDT in BTC/USDT).
    """
    base_amount: float
    quote_amount: float

    def reserve(
        self,
        direction: Direction,
        amount_per_order: float,
        open_price: float,
    ) -> float | None:
        """
        Reserve capital for a new order if the balance allows it.

        **Financial logic**:
          - SELL: needs amount_per_order / open_price base units.
          - BUY: needs amount_per_order quote units.
          - If the balance covers the requirement (<=), deduct it and return
            the reserved amount; otherwise leave holdings untouched and
            return None.

        Insufficient balance is an expected condition, not an error.

        Args:
            direction: Side of the proposed order.
            amount_per_order: Quote value committed per order.
            open_price: Open price of the current bar.

        Returns:
            Reserved amount (base units for SELL, quote units for BUY), or None
            if the order can't be afforded.
        """
        if direction is Direction.SELL:
            candidate = amount_per_order / open_price
            if candidate <= self.base_amount:
                self.base_amount -= candidate
                return candidate
            return None

        if amount_per_order <= self.quote_amount:
            self.quote_amount -= amount_per_order
            return amount_per_order
        return None

    def release(self, order: Order) -> None:
        """Return a canceled order's reservation to holdings."""
        if order.direction is Direction.SELL:
            self.base_amount += order.reserved_amount
        else:
            self.quote_amount += order.reserved_amount * order.open_price

    def settle(self, order: Order) -> None:
        """Convert a filled order's reservation into the opposite asset."""
        if order.direction is Direction.SELL:
            self.quote_amount += order.reserved_amount * order.open_price
        else:
            self.base_amount += order.reserved_amount / order.open_price

    def copy(self) -> "Holdings":
        return Holdings(base_amount=self.base_amount, quote_amount=self.quote_amount)
