"""
Tests for streaming indicators.

RollingMean is checked against pandas' rolling mean; RelativeStrengthIndex
against a hand-computed Wilder RSI.
"""

import numpy as np
import pandas as pd
import pytest

from bar_replay.utils.indicators import RelativeStrengthIndex, RollingMean


def test_rolling_mean_warms_up_then_matches_pandas():
    values = [1.0, 2.0, 4.0, 8.0, 16.0, 32.0]
    sma = RollingMean(3)

    streamed = [sma.update(v) for v in values]
    expected = pd.Series(values).rolling(window=3).mean().tolist()

    assert streamed[:2] == [None, None]
    assert streamed[2:] == pytest.approx(expected[2:])
    assert sma.count == 3
    assert sma.is_ready


def test_rolling_mean_rejects_zero_window():
    with pytest.raises(ValueError):
        RollingMean(0)


def test_rsi_none_until_period_changes_seen():
    rsi = RelativeStrengthIndex(period=3)

    assert rsi.update(10.0) is None
    assert rsi.update(11.0) is None
    assert rsi.update(12.0) is None
    assert rsi.update(13.0) is not None


def test_rsi_all_gains_is_100_and_flat_is_50():
    rising = RelativeStrengthIndex(period=3)
    for v in [1.0, 2.0, 3.0, 4.0, 5.0]:
        value = rising.update(v)
    assert value == 100.0

    flat = RelativeStrengthIndex(period=3)
    for v in [5.0] * 5:
        value = flat.update(v)
    assert value == 50.0


def test_rsi_wilder_smoothing_known_answer():
    prices = [10.0, 11.0, 10.5, 11.5, 11.0]
    rsi = RelativeStrengthIndex(period=3)

    values = [rsi.update(p) for p in prices]

    # Seed over changes +1, -0.5, +1
    avg_gain = np.mean([1.0, 0.0, 1.0])
    avg_loss = np.mean([0.0, 0.5, 0.0])
    assert values[3] == pytest.approx(100 - 100 / (1 + avg_gain / avg_loss))

    # Next change -0.5, smoothed
    avg_gain = (avg_gain * 2 + 0.0) / 3
    avg_loss = (avg_loss * 2 + 0.5) / 3
    assert values[4] == pytest.approx(100 - 100 / (1 + avg_gain / avg_loss))
