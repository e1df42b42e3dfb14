"""Logging setup for pairlink.

Everything logs under the "pairlink" logger. Records go to stderr so that
command output on stdout stays machine readable, and optionally to a file.
"""

import logging
import sys
from pathlib import Path

from pairlink.config import Config

LOGGER_NAME = "pairlink"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger: logging.Logger | None = None


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _handlers(config: Config) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        path = Path(config.log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    return handlers


def setup_logging(config: Config, verbose: bool = False) -> logging.Logger:
    """Configure the pairlink logger once per process.

    Args:
        config: Supplies log_level and log_file.
        verbose: Log at DEBUG whatever the configured level.

    Returns:
        The "pairlink" logger.
    """
    global _logger
    if _logger is not None:
        return _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else _level(config.log_level))
    logger.handlers.clear()

    # 2025-01-27 10:30:45 [INFO] message
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(config):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False

    _logger = logger
    return logger


def reset_logging() -> None:
    """Forget the configured logger. Used by tests."""
    global _logger
    if _logger is not None:
        _logger.handlers.clear()
        _logger.propagate = True
        _logger = None
