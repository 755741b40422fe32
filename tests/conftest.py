"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import bar_replay...' and
'import actions...' work, and provides shared bar/series factories.
"""
import sys
from pathlib import Path

import pandas as pd
import pytest
from loguru import logger

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from bar_replay.data.price_series import Bar, PriceSeries  # noqa: E402

T0 = pd.Timestamp("2023-06-01 00:00:00", tz="UTC")


@pytest.fixture(autouse=True)
def silence_package_logging():
    """Keep the package logger disabled between tests (some tests enable it)."""
    yield
    logger.disable("bar_replay")


@pytest.fixture
def make_bar():
    """
    Factory for bars at hourly offsets from 2023-06-01 00:00 UTC.

    Usage: make_bar(open, high, low, close, hour=0)
    """
    def _make(open_, high, low, close, hour=0):
        return Bar(
            open=open_,
            high=high,
            low=low,
            close=close,
            timestamp=T0 + pd.Timedelta(hours=hour),
        )
    return _make


@pytest.fixture
def make_series(make_bar):
    """
    Factory for a PriceSeries from (open, high, low, close) tuples, one hour apart.
    """
    def _make(rows, start_hour=0):
        return PriceSeries(
            [make_bar(o, h, l, c, hour=start_hour + i) for i, (o, h, l, c) in enumerate(rows)]
        )
    return _make


@pytest.fixture
def flat_series(make_series):
    """Ten bars that never move from 100."""
    return make_series([(100.0, 100.0, 100.0, 100.0)] * 10)


@pytest.fixture
def sample_result(make_series):
    """
    A small PortfolioResult: one SELL filled on the second of three bars.

    created_at is pinned with a FrozenClock so the JSON payload is stable.
    """
    from datetime import datetime, timezone

    from bar_replay.analytics.portfolio import build_portfolio_result
    from bar_replay.backtesting.engine import BacktestParams, run_backtest
    from bar_replay.execution.orders import Direction, OrderIntent
    from bar_replay.strategies.base import ScheduledIntentStrategy
    from bar_replay.utils.time import FrozenClock

    series = make_series([
        (100.0, 101.0, 99.0, 100.0),
        (100.0, 106.0, 99.0, 105.0),
        (105.0, 106.0, 104.0, 105.0),
    ])
    params = BacktestParams("BTC/USDT", 10.0, initial_base_amount=1.0, initial_quote_amount=0.0)
    intent = OrderIntent(direction=Direction.SELL, take_profit_price=105.0, cancel_price=90.0)
    replay = run_backtest(series, ScheduledIntentStrategy({0: intent}, label="Fixed Grid"), params)
    return build_portfolio_result(replay, clock=FrozenClock(datetime(2024, 1, 1, tzinfo=timezone.utc)))
