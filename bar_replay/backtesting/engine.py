"""
Bar-replay engine for strategy evaluation.

**Conceptual**: The engine walks a PriceSeries bar by bar. For every bar it
runs two phases, always in this order:

  1. Resolution: every order still OPEN is checked against the bar's
     [low, high] range. A touched cancel price cancels the order and releases
     its reservation; otherwise a touched take-profit price fills it and
     settles it. Cancel is checked first and short-circuits, so a bar that
     touches both levels always cancels.
  2. Opening: the strategy is asked once for an intent. If it returns one and
     holdings can cover it, capital is reserved and an order is opened at the
     bar's open price. Unaffordable intents are dropped without error.

Because resolution runs before opening, an order opened on bar N is first
checked against bar N+1. Orders still OPEN when the series ends stay OPEN.

**Ownership**: one engine owns one OrderLedger and one Holdings for one run.
Nothing is shared between engines, so independent runs (parameter sweeps) can
execute side by side as long as each builds its own engine.

**Teaching note**: The engine is synchronous and has no global state: the
strategy, parameters and (optionally) a logger are passed in at construction.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger as _module_logger

from bar_replay.data.price_series import Bar, PriceSeries
from bar_replay.execution.accounting import Holdings
from bar_replay.execution.ledger import OrderLedger
from bar_replay.execution.orders import Order
from bar_replay.strategies.base import Strategy

if TYPE_CHECKING:
    from loguru import Logger


@dataclass(frozen=True)
class BacktestParams:
    """
    Parameters for a replay run.

    Attributes:
        pair: Trading pair as "BASE/QUOTE" (e.g. "BTC/USDT"). Coins may not contain "_".
        amount_per_order: Quote value committed by each order. Must be positive.
        initial_base_amount: Starting base balance. Must be non-negative.
        initial_quote_amount: Starting quote balance. Must be non-negative.
    """
    pair: str
    amount_per_order: float
    initial_base_amount: float
    initial_quote_amount: float

    def __post_init__(self):
        """Validate parameters after initialization."""
        parts = self.pair.split("/")
        if len(parts) != 2 or not all(part.strip() for part in parts):
            raise ValueError(
                f"pair must look like 'BASE/QUOTE' (e.g. 'BTC/USDT'), got: {self.pair!r}"
            )
        if "_" in self.pair:
            # "_" separates the fields of a stored result id
            raise ValueError(f"pair coins must not contain '_', got: {self.pair!r}")
        if self.amount_per_order <= 0:
            raise ValueError(
                f"amount_per_order must be positive, got {self.amount_per_order}"
            )
        if self.initial_base_amount < 0:
            raise ValueError(
                f"initial_base_amount must be non-negative, got {self.initial_base_amount}"
            )
        if self.initial_quote_amount < 0:
            raise ValueError(
                f"initial_quote_amount must be non-negative, got {self.initial_quote_amount}"
            )

    @property
    def base_coin(self) -> str:
        return self.pair.split("/")[0].strip()

    @property
    def quote_coin(self) -> str:
        return self.pair.split("/")[1].strip()


@dataclass(frozen=True)
class ReplayResult:
    """
    Everything a finished run produced, ready for the portfolio reporter.

    Attributes:
        params: The BacktestParams of the run.
        holdings: Final balances (a copy; the engine's own object is not exposed).
        orders: Every order opened during the run, in creation order.
        series: The replayed price series.
        strategy_name: Name reported by the strategy.
    """
    params: BacktestParams
    holdings: Holdings
    orders: tuple[Order, ...]
    series: PriceSeries
    strategy_name: str


class ReplayEngine:
    """
    Drives one strategy over one price series.

    **Usage**:
        engine = ReplayEngine(series, strategy, params)
        result = engine.run()

    An engine runs once; build a new one for another run.
    """

    def __init__(
        self,
        series: PriceSeries,
        strategy: Strategy,
        params: BacktestParams,
        logger: "Logger | None" = None,
    ):
        """
        Args:
            series: Bars to replay, ascending by time.
            strategy: Decision function polled once per bar.
            params: Pair, order size and starting balances.
            logger: Optional loguru logger to observe the run. Defaults to the
                    package logger, which is silent unless logging has been
                    configured.
        """
        self.series = series
        self.strategy = strategy
        self.params = params
        self.ledger = OrderLedger()
        self.holdings = Holdings(
            base_amount=params.initial_base_amount,
            quote_amount=params.initial_quote_amount,
        )
        self._log = logger if logger is not None else _module_logger.bind(component="replay")
        self._has_run = False

    def run(self) -> ReplayResult:
        """
        Replay every bar of the series and return the outcome.

        Returns:
            ReplayResult with final holdings and the full order history.

        Raises:
            RuntimeError: If this engine has already run.
            InvalidOrderStateError: If the ledger detects an illegal transition
                                    (indicates a defect, never market data).
        """
        if self._has_run:
            raise RuntimeError("ReplayEngine.run() may only be called once per engine.")
        self._has_run = True

        strategy_name = self.strategy.name()
        self._log.info(
            "Replaying {} bars of {} with strategy '{}' ({} -> {})",
            len(self.series), self.params.pair, strategy_name,
            self.series.start, self.series.end,
        )

        for bar in self.series:
            self.step(bar)

        for order in self.ledger:
            self._log.debug("History order: {}", order.to_dict())

        self._log.info(
            "Replay finished: {} orders ({} still open), base={} quote={}",
            len(self.ledger), self.ledger.count_open(),
            self.holdings.base_amount, self.holdings.quote_amount,
        )

        return ReplayResult(
            params=self.params,
            holdings=self.holdings.copy(),
            orders=self.ledger.orders,
            series=self.series,
            strategy_name=strategy_name,
        )

    def step(self, bar: Bar) -> Order | None:
        """
        Process one bar: resolve open orders, then maybe open a new one.

        Returns:
            The order opened on this bar, or None.
        """
        self._resolve(bar)
        return self._open(bar)

    def _resolve(self, bar: Bar) -> None:
        # Snapshot first: orders opened later on this bar must not be resolved now
        for order in self.ledger.open_orders():
            if bar.contains(order.cancel_price):
                self.ledger.mark_canceled(order, bar.timestamp)
                self.holdings.release(order)
                self._log.debug(
                    "Order {} ({}) canceled at {} (cancel price {})",
                    order.order_id, order.direction.value, bar.timestamp, order.cancel_price,
                )
                continue

            if bar.contains(order.take_profit_price):
                self.ledger.mark_filled(order, bar.timestamp)
                self.holdings.settle(order)
                self._log.debug(
                    "Order {} ({}) filled at {} (take-profit price {})",
                    order.order_id, order.direction.value, bar.timestamp, order.take_profit_price,
                )

    def _open(self, bar: Bar) -> Order | None:
        intent = self.strategy.decide(bar)
        if intent is None:
            return None

        reserved = self.holdings.reserve(
            intent.direction, self.params.amount_per_order, bar.open
        )
        if reserved is None:
            self._log.debug(
                "Dropped {} intent at {}: insufficient balance (base={}, quote={})",
                intent.direction.value, bar.timestamp,
                self.holdings.base_amount, self.holdings.quote_amount,
            )
            return None

        order = self.ledger.open(intent, reserved, bar.open, bar.timestamp)
        self._log.debug(
            "Opened order {} ({}) at {}: reserved={} open={} tp={} cancel={}",
            order.order_id, order.direction.value, bar.timestamp, reserved,
            bar.open, intent.take_profit_price, intent.cancel_price,
        )
        return order


def run_backtest(
    series: PriceSeries,
    strategy: Strategy,
    params: BacktestParams,
    logger: "Logger | None" = None,
) -> ReplayResult:
    """
    Run a full replay with a fresh engine.

    Args:
        series: Bars to replay, ascending by time.
        strategy: Strategy polled once per bar.
        params: Pair, order size and starting balances.
        logger: Optional loguru logger observing the run.

    Returns:
        ReplayResult for the run.
    """
    return ReplayEngine(series, strategy, params, logger=logger).run()
