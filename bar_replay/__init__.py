"""
bar_replay – replay historical OHLC bars through a trading strategy.

The package stays silent when imported as a library; action scripts call
bar_replay.utils.logging.configure_logging() to turn log output on.
"""

from loguru import logger

logger.disable("bar_replay")

__version__ = "0.1.0"
