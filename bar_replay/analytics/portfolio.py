"""
Portfolio summary metrics and the serialisable result record.

**Conceptual**: After a replay, the reporter values the starting and ending
holdings in quote units and summarises the run:

    initial_value = initial_base * first_bar.open + initial_quote
    current_value = current_base * last_bar.open  + current_quote
    profit        = current_value - initial_value
    profit_margin = profit / initial_value * 100
    years         = (last_bar.timestamp - first_bar.timestamp) in days / 365.25
    cagr          = ((current_value / initial_value) ** (1 / years) - 1) * 100

Profit margin and CAGR are percentages. Both are undefined in some edge cases
(zero-length series, zero starting value, value ratio below zero, a gain
too large to annualise over a very short series). Those cases
raise DegenerateMetricError from the metric helpers; the reporter records the
metric as None and adds a named entry to `metric_warnings` instead of letting
NaN or infinity into the result.

**Serialisation**: PortfolioResult.to_json() is deterministic (sorted keys), so
the same result always produces the same bytes.
"""

import json
import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import pandas as pd
from loguru import logger as _module_logger

from bar_replay.backtesting.engine import ReplayResult
from bar_replay.data.price_series import Bar, PriceSeries
from bar_replay.execution.orders import Order
from bar_replay.utils.time import Clock, RealClock, ensure_utc

if TYPE_CHECKING:
    from loguru import Logger


DAYS_PER_YEAR = 365.25


class DegenerateMetricError(ArithmeticError):
    """
    Raised when a summary metric is mathematically undefined for the inputs.

    Examples: CAGR over a zero-length period, margin over a zero starting value.
    """
    pass


def compute_profit_margin(initial_value: float, current_value: float) -> float:
    """
    Compute profit as a percentage of the starting value.

    Args:
        initial_value: Holdings value at the start, in quote units.
        current_value: Holdings value at the end, in quote units.

    Returns:
        Profit margin in percent (e.g. 12.5 = 12.5%).

    Raises:
        DegenerateMetricError: If initial_value is zero or negative.
    """
    if initial_value <= 0:
        raise DegenerateMetricError(
            f"profit margin undefined for non-positive initial value {initial_value}"
        )
    return (current_value - initial_value) / initial_value * 100


def compute_years(start: pd.Timestamp, end: pd.Timestamp) -> float:
    """Length of [start, end] in years of 365.25 days (fractional days count)."""
    return (end - start).total_seconds() / 86400 / DAYS_PER_YEAR


def compute_cagr(initial_value: float, current_value: float, years: float) -> float:
    """
    Compute the compound annual growth rate of holdings value.

    **Mathematical**:
        CAGR = ((V_end / V_start) ^ (1 / years) - 1) * 100

    **Edge cases**:
      - years <= 0: no time elapsed, the exponent is undefined.
      - initial_value <= 0: the ratio is undefined.
      - current_value < 0: fractional power of a negative number.
      - A gain over a very short period: the annualised ratio exceeds the
        float range (e.g. +10% over one minute).

    Args:
        initial_value: Holdings value at the start, in quote units.
        current_value: Holdings value at the end, in quote units.
        years: Elapsed time in years.

    Returns:
        CAGR in percent.

    Raises:
        DegenerateMetricError: For any of the edge cases above.
    """
    if years <= 0:
        raise DegenerateMetricError(
            f"CAGR undefined for a series spanning {years} years (need a positive duration)"
        )
    if initial_value <= 0:
        raise DegenerateMetricError(
            f"CAGR undefined for non-positive initial value {initial_value}"
        )
    ratio = current_value / initial_value
    if ratio < 0:
        raise DegenerateMetricError(
            f"CAGR undefined for negative value ratio {ratio}"
        )
    try:
        growth = ratio ** (1 / years)
    except OverflowError as e:
        raise DegenerateMetricError(
            f"CAGR overflows: value ratio {ratio} annualised over {years} years"
        ) from e
    if math.isinf(growth):
        raise DegenerateMetricError(
            f"CAGR overflows: value ratio {ratio} annualised over {years} years"
        )
    return (growth - 1) * 100


@dataclass(frozen=True)
class PortfolioResult:
    """
    Summary of one replay run; the unit persisted to the result store.

    Attributes:
        pair: Trading pair ("BTC/USDT").
        base_coin: Base asset ("BTC").
        quote_coin: Quote asset ("USDT").
        amount_per_order: Quote value committed per order.
        initial_base_amount: Base balance at the start.
        current_base_amount: Base balance at the end.
        initial_quote_amount: Quote balance at the start.
        current_quote_amount: Quote balance at the end.
        initial_value: Start holdings valued at the first bar's open.
        current_value: End holdings valued at the last bar's open.
        profit: current_value - initial_value.
        profit_margin: Profit in percent of initial_value, or None if undefined.
        cagr: Compound annual growth rate in percent, or None if undefined.
        metric_warnings: One entry per undefined metric ("cagr: ...").
        orders: Snapshot of every order at the end of the run.
        bars: The replayed price series.
        strategy: Strategy name.
        created_at: When the result was built (UTC).
    """
    pair: str
    base_coin: str
    quote_coin: str
    amount_per_order: float
    initial_base_amount: float
    current_base_amount: float
    initial_quote_amount: float
    current_quote_amount: float
    initial_value: float
    current_value: float
    profit: float
    profit_margin: float | None
    cagr: float | None
    metric_warnings: tuple[str, ...]
    orders: tuple[Order, ...]
    bars: PriceSeries
    strategy: str
    created_at: pd.Timestamp

    @property
    def start(self) -> pd.Timestamp:
        return self.bars.start

    @property
    def end(self) -> pd.Timestamp:
        return self.bars.end

    def to_dict(self) -> dict:
        return {
            "pair": self.pair,
            "base_coin": self.base_coin,
            "quote_coin": self.quote_coin,
            "amount_per_order": self.amount_per_order,
            "initial_base_amount": self.initial_base_amount,
            "current_base_amount": self.current_base_amount,
            "initial_quote_amount": self.initial_quote_amount,
            "current_quote_amount": self.current_quote_amount,
            "initial_value": self.initial_value,
            "current_value": self.current_value,
            "profit": self.profit,
            "profit_margin": self.profit_margin,
            "cagr": self.cagr,
            "metric_warnings": list(self.metric_warnings),
            "orders": [order.to_dict() for order in self.orders],
            "bars": [bar.to_dict() for bar in self.bars],
            "strategy": self.strategy,
            "created_at": self.created_at.isoformat(),
        }

    def to_json(self) -> str:
        """Serialise to compact JSON with sorted keys."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), allow_nan=False)

    @classmethod
    def from_dict(cls, payload: dict) -> "PortfolioResult":
        profit_margin = payload.get("profit_margin")
        cagr = payload.get("cagr")
        return cls(
            pair=payload["pair"],
            base_coin=payload["base_coin"],
            quote_coin=payload["quote_coin"],
            amount_per_order=float(payload["amount_per_order"]),
            initial_base_amount=float(payload["initial_base_amount"]),
            current_base_amount=float(payload["current_base_amount"]),
            initial_quote_amount=float(payload["initial_quote_amount"]),
            current_quote_amount=float(payload["current_quote_amount"]),
            initial_value=float(payload["initial_value"]),
            current_value=float(payload["current_value"]),
            profit=float(payload["profit"]),
            profit_margin=float(profit_margin) if profit_margin is not None else None,
            cagr=float(cagr) if cagr is not None else None,
            metric_warnings=tuple(payload.get("metric_warnings", ())),
            orders=tuple(Order.from_dict(item) for item in payload["orders"]),
            bars=PriceSeries([Bar.from_dict(item) for item in payload["bars"]]),
            strategy=payload["strategy"],
            created_at=ensure_utc(payload["created_at"]),
        )

    @classmethod
    def from_json(cls, payload: str | bytes) -> "PortfolioResult":
        return cls.from_dict(json.loads(payload))


def build_portfolio_result(
    replay: ReplayResult,
    clock: Clock | None = None,
    logger: "Logger | None" = None,
) -> PortfolioResult:
    """
    Summarise a finished replay into a PortfolioResult.

    Pure with respect to its inputs: nothing in `replay` is mutated, and
    orders are copied so later changes to ledger objects can't leak into the
    result.

    Args:
        replay: Output of ReplayEngine.run().
        clock: Source of created_at. Defaults to RealClock.
        logger: Optional loguru logger. Undefined metrics are logged at WARNING.

    Returns:
        PortfolioResult. Undefined metrics are None with an entry in
        metric_warnings.
    """
    log = logger if logger is not None else _module_logger.bind(component="portfolio")
    clock = clock or RealClock()

    params = replay.params
    series = replay.series
    holdings = replay.holdings

    initial_value = params.initial_base_amount * series.first.open + params.initial_quote_amount
    current_value = holdings.base_amount * series.last.open + holdings.quote_amount
    profit = current_value - initial_value

    warnings: list[str] = []

    try:
        profit_margin = compute_profit_margin(initial_value, current_value)
    except DegenerateMetricError as e:
        profit_margin = None
        warnings.append(f"profit_margin: {e}")

    try:
        cagr = compute_cagr(initial_value, current_value, compute_years(series.start, series.end))
    except DegenerateMetricError as e:
        cagr = None
        warnings.append(f"cagr: {e}")

    for warning in warnings:
        log.warning("Degenerate metric for {} / {}: {}", params.pair, replay.strategy_name, warning)

    created_at = ensure_utc(clock.now())

    result = PortfolioResult(
        pair=params.pair,
        base_coin=params.base_coin,
        quote_coin=params.quote_coin,
        amount_per_order=params.amount_per_order,
        initial_base_amount=params.initial_base_amount,
        current_base_amount=holdings.base_amount,
        initial_quote_amount=params.initial_quote_amount,
        current_quote_amount=holdings.quote_amount,
        initial_value=initial_value,
        current_value=current_value,
        profit=profit,
        profit_margin=profit_margin,
        cagr=cagr,
        metric_warnings=tuple(warnings),
        orders=tuple(replace(order) for order in replay.orders),
        bars=series,
        strategy=replay.strategy_name,
        created_at=created_at,
    )

    log.info(
        "Portfolio {} [{}]: initial={:.4f} current={:.4f} profit={:.4f} margin={} cagr={}",
        result.pair, result.strategy, initial_value, current_value, profit,
        profit_margin, cagr,
    )
    return result
