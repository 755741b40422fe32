"""
Lookup table from configuration keys to strategy constructors.

Scripts and configuration refer to strategies by a short key
("moving-average-cross", "fixed-grid", ...). build_strategy() turns the key
plus keyword parameters into a fresh strategy instance. Each call returns a new
object, so strategy state is never shared between runs.
"""

from typing import Any, Callable

from bar_replay.strategies.base import NoTradeStrategy, Strategy
from bar_replay.strategies.fixed_grid import FixedGridStrategy, StepAlternatingStrategy
from bar_replay.strategies.moving_average import MovingAverageCrossStrategy
from bar_replay.strategies.oscillator_filtered import OscillatorFilteredStrategy


STRATEGY_REGISTRY: dict[str, Callable[..., Strategy]] = {
    "moving-average-cross": MovingAverageCrossStrategy,
    "oscillator-filtered": OscillatorFilteredStrategy,
    "fixed-grid": FixedGridStrategy,
    "step-alternating": StepAlternatingStrategy,
    "no-trade": NoTradeStrategy,
}


def available_strategies() -> list[str]:
    """Registry keys in sorted order."""
    return sorted(STRATEGY_REGISTRY)


def build_strategy(key: str, **params: Any) -> Strategy:
    """
    Instantiate a strategy by registry key.

    Args:
        key: Registry key, e.g. "fixed-grid".
        **params: Keyword arguments forwarded to the strategy constructor.

    Returns:
        A new strategy instance.

    Raises:
        KeyError: If the key is not registered (message lists known keys).
        TypeError: If params don't match the constructor.
    """
    try:
        factory = STRATEGY_REGISTRY[key]
    except KeyError:
        raise KeyError(
            f"Unknown strategy '{key}'. Known strategies: {', '.join(available_strategies())}"
        ) from None
    return factory(**params)
