"""Logging utilities for hmmgibbs.

Provides per-module loggers under the ``hmmgibbs`` namespace with a shared
stderr handler configuration.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

_LEVEL_ENV_VAR = "HMMGIBBS_LOG_LEVEL"


def _level_from_env() -> int:
    name = os.getenv(_LEVEL_ENV_VAR, "WARNING")
    return getattr(logging, name.upper(), logging.WARNING)


# Default logging level
_DEFAULT_LEVEL = _level_from_env()

_DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# Set by configure_logging(); None means stderr and the default format
_configured_stream: Optional[object] = None
_configured_format: Optional[str] = None

# Module-level logger cache
_loggers: dict[str, logging.Logger] = {}


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get or create a logger for the given module name.

    Loggers are cached to avoid duplicate handlers. The logger name should
    typically be `__name__` from the calling module.

    Args:
        name: Logger name (typically `__name__`). If None, returns the
            package logger.

    Returns:
        Configured logger instance.

    Example:
        >>> from hmmgibbs.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Starting chain 0")
    """
    if name is None:
        name = "hmmgibbs"

    logger_name = name if name == "hmmgibbs" or name.startswith("hmmgibbs.") else f"hmmgibbs.{name}"

    if logger_name in _loggers:
        return _loggers[logger_name]

    logger = logging.getLogger(logger_name)

    # Only configure if not already configured (avoid duplicate handlers)
    if not logger.handlers:
        logger.setLevel(_DEFAULT_LEVEL)

        stream = _configured_stream if _configured_stream is not None else sys.stderr
        handler = logging.StreamHandler(stream)
        handler.setLevel(_DEFAULT_LEVEL)
        handler.setFormatter(logging.Formatter(_configured_format or _DEFAULT_FORMAT))

        logger.addHandler(handler)
        logger.propagate = False

    _loggers[logger_name] = logger
    return logger


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def set_log_level(level: int | str) -> None:
    """Set the logging level for all hmmgibbs loggers.

    Args:
        level: Logging level (logging.DEBUG, logging.INFO, etc.) or string
            ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
    """
    level = _coerce_level(level)

    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)

    global _DEFAULT_LEVEL
    _DEFAULT_LEVEL = level


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[object] = None,
) -> None:
    """Configure logging for hmmgibbs.

    Replaces the handlers of every existing hmmgibbs logger and sets the
    default used for loggers created later.

    Args:
        level: Logging level (default: WARNING).
        format_string: Custom format string. If None, uses default.
        stream: Output stream (default: sys.stderr).

    Example:
        >>> import logging
        >>> from hmmgibbs.logging import configure_logging
        >>> configure_logging(level=logging.INFO)
    """
    level = _coerce_level(level)

    if stream is None:
        stream = sys.stderr

    if format_string is None:
        format_string = _DEFAULT_FORMAT

    formatter = logging.Formatter(format_string)

    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        handler = logging.StreamHandler(stream)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    global _DEFAULT_LEVEL, _configured_stream, _configured_format
    _DEFAULT_LEVEL = level
    _configured_stream = stream
    _configured_format = format_string
