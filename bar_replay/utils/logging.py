"""
Logging setup for scripts and services.

**Conceptual**: Library modules log through loguru's global `logger` but the
package disables its own records on import (`logger.disable("bar_replay")` in
bar_replay/__init__.py), so importing the package never prints anything.
Entry points (action scripts, the API server) call configure_logging() once
to install sinks and re-enable the package:

  - stderr sink at the configured level, human-readable format.
  - optional file sink under LoggingSettings.log_dir, rotated daily and kept
    for 30 days.

Calling configure_logging() again replaces the sinks instead of stacking them.
"""

import sys
from pathlib import Path

from loguru import logger

from bar_replay.config.settings import LoggingSettings

PACKAGE_NAME = "bar_replay"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[component]} | {message}"

_sink_ids: list[int] = []


def configure_logging(
    settings: LoggingSettings | None = None,
    rotation: str = "1 day",
    retention: str = "30 days",
) -> Path | None:
    """
    Install the stderr and (optionally) file sinks and enable package logging.

    Args:
        settings: Level and log directory. Defaults to LoggingSettings.from_env().
        rotation: loguru rotation policy for the file sink.
        retention: loguru retention policy for the file sink.

    Returns:
        Path pattern of the log file sink, or None when no log_dir is configured.
    """
    settings = settings or LoggingSettings.from_env()

    logger.remove()
    _sink_ids.clear()
    logger.configure(extra={"component": "-"})

    _sink_ids.append(
        logger.add(sys.stderr, level=settings.level, format=CONSOLE_FORMAT)
    )

    log_path = None
    if settings.log_dir is not None:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{PACKAGE_NAME}_{{time:YYYY-MM-DD}}.log"
        _sink_ids.append(
            logger.add(
                str(log_path),
                level=settings.level,
                format=FILE_FORMAT,
                rotation=rotation,
                retention=retention,
                enqueue=True,
                backtrace=True,
                diagnose=False,
            )
        )

    logger.enable(PACKAGE_NAME)
    logger.bind(component="logging").debug(
        "Logging configured: level={} log_dir={}", settings.level, settings.log_dir
    )
    return log_path


def disable_logging() -> None:
    """Remove installed sinks and silence the package again."""
    for sink_id in _sink_ids:
        logger.remove(sink_id)
    _sink_ids.clear()
    logger.disable(PACKAGE_NAME)
