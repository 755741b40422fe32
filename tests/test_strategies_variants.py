"""
Tests for the concrete strategy variants and the registry.

Each variant is driven bar by bar and its intents compared with levels
computed by hand from the bar's open price.
"""

import pytest

from bar_replay.execution.orders import Direction
from bar_replay.strategies.base import NoTradeStrategy, ScheduledIntentStrategy
from bar_replay.strategies.fixed_grid import FixedGridStrategy, StepAlternatingStrategy
from bar_replay.strategies.moving_average import MovingAverageCrossStrategy
from bar_replay.strategies.oscillator_filtered import OscillatorFilteredStrategy
from bar_replay.strategies.registry import available_strategies, build_strategy


# ============================================================================
# Moving average cross
# ============================================================================

def test_moving_average_silent_during_warm_up(make_bar):
    strategy = MovingAverageCrossStrategy(window=3)

    assert strategy.decide(make_bar(100, 100, 100, 100, hour=0)) is None
    assert strategy.decide(make_bar(100, 100, 100, 100, hour=1)) is None


def test_moving_average_sells_above_and_buys_below(make_bar):
    strategy = MovingAverageCrossStrategy(window=3, take_profit_pct=0.05, cancel_pct=0.10)
    strategy.decide(make_bar(100, 100, 100, 100, hour=0))
    strategy.decide(make_bar(100, 100, 100, 100, hour=1))

    # SMA of closes (100, 100, 100) = 100; open 110 is above
    sell = strategy.decide(make_bar(110, 110, 100, 100, hour=2))
    assert sell.direction is Direction.SELL
    assert sell.take_profit_price == pytest.approx(115.5)
    assert sell.cancel_price == pytest.approx(99.0)

    # SMA of closes (100, 100, 100) = 100; open 90 is below
    buy = strategy.decide(make_bar(90, 100, 90, 100, hour=3))
    assert buy.direction is Direction.BUY
    assert buy.take_profit_price == pytest.approx(85.5)
    assert buy.cancel_price == pytest.approx(99.0)


def test_moving_average_no_intent_when_open_equals_average(make_bar):
    strategy = MovingAverageCrossStrategy(window=1)

    assert strategy.decide(make_bar(100, 100, 100, 100)) is None


# ============================================================================
# Oscillator filtered
# ============================================================================

def test_oscillator_blocks_sell_when_overbought(make_bar):
    strategy = OscillatorFilteredStrategy(window=2, rsi_period=2)
    closes = [100, 101, 102, 103]
    for hour, close in enumerate(closes):
        strategy.decide(make_bar(close, close, close, close, hour=hour))

    # Rising closes: RSI = 100, open above SMA would SELL but is filtered
    bar = make_bar(110, 110, 103, 104, hour=4)
    assert strategy.decide(bar) is None


def test_oscillator_allows_buy_when_not_oversold(make_bar):
    strategy = OscillatorFilteredStrategy(window=2, rsi_period=2)
    closes = [100, 101, 100, 101]
    for hour, close in enumerate(closes):
        strategy.decide(make_bar(close, close, close, close, hour=hour))

    # Choppy closes keep RSI in the middle; open below SMA -> BUY
    intent = strategy.decide(make_bar(95, 101, 95, 100, hour=4))
    assert intent is not None
    assert intent.direction is Direction.BUY


def test_oscillator_rejects_inverted_thresholds():
    with pytest.raises(ValueError):
        OscillatorFilteredStrategy(overbought=20, oversold=80)


# ============================================================================
# Alternating variants
# ============================================================================

def test_fixed_grid_alternates_buy_then_sell(make_bar):
    strategy = FixedGridStrategy()

    first = strategy.decide(make_bar(100, 100, 100, 100, hour=0))
    second = strategy.decide(make_bar(100, 100, 100, 100, hour=1))
    third = strategy.decide(make_bar(100, 100, 100, 100, hour=2))

    assert first.direction is Direction.BUY
    assert first.take_profit_price == pytest.approx(99.0)
    assert first.cancel_price == pytest.approx(110.0)
    assert second.direction is Direction.SELL
    assert second.take_profit_price == pytest.approx(101.0)
    assert second.cancel_price == pytest.approx(90.0)
    assert third.direction is Direction.BUY


def test_step_alternating_uses_absolute_take_profit(make_bar):
    strategy = StepAlternatingStrategy()

    buy = strategy.decide(make_bar(1000, 1000, 1000, 1000, hour=0))
    sell = strategy.decide(make_bar(1000, 1000, 1000, 1000, hour=1))

    assert buy.take_profit_price == pytest.approx(990.0)
    assert buy.cancel_price == pytest.approx(1100.0)
    assert sell.take_profit_price == pytest.approx(1010.0)
    assert sell.cancel_price == pytest.approx(900.0)


def test_scheduled_strategy_emits_by_bar_index(make_bar):
    strategy = FixedGridStrategy()
    intent = strategy.decide(make_bar(100, 100, 100, 100))
    scheduled = ScheduledIntentStrategy({1: intent}, label="Replay")

    assert scheduled.decide(make_bar(100, 100, 100, 100, hour=0)) is None
    assert scheduled.decide(make_bar(100, 100, 100, 100, hour=1)) is intent
    assert scheduled.name() == "Replay"


# ============================================================================
# Registry
# ============================================================================

def test_build_strategy_passes_params():
    strategy = build_strategy("moving-average-cross", window=20)

    assert isinstance(strategy, MovingAverageCrossStrategy)
    assert strategy.window == 20


def test_build_strategy_returns_fresh_instances():
    assert build_strategy("fixed-grid") is not build_strategy("fixed-grid")


def test_build_strategy_unknown_key_lists_known():
    with pytest.raises(KeyError) as exc_info:
        build_strategy("martingale")

    assert "fixed-grid" in str(exc_info.value)


def test_registry_names():
    assert "no-trade" in available_strategies()
    assert isinstance(build_strategy("no-trade"), NoTradeStrategy)
    assert build_strategy("oscillator-filtered").name() == "Oscillator Filtered Moving Average Cross"
