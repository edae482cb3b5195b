"""Centralized logging configuration for the ``expense_tracker`` package.

Entrypoints (the CLI, or a host application) call :func:`configure_logging`
once at startup; it attaches a single ``StreamHandler`` to the package root
logger ``"expense_tracker"``. Library modules never attach handlers. They call
``get_logger(__name__)`` and stay silent until an entrypoint configures output.

The level resolves from, in order: the explicit ``level`` argument, the
``EXPENSE_TRACKER_LOG_LEVEL`` environment variable, then ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "expense_tracker"
_LEVEL_ENV = "EXPENSE_TRACKER_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_handler: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
        raise ValueError(f"unknown log level: {level!r}")
    env_val = os.getenv(_LEVEL_ENV)
    if env_val:
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure the package root logger; later calls only adjust the level.

    Parameters
    ----------
    level:
        ``int`` or level name (``"DEBUG"``, ``"info"`` ...). ``None`` defers to
        ``EXPENSE_TRACKER_LOG_LEVEL`` and then ``INFO``.
    fmt:
        Optional format string for the handler.
    stream:
        Destination stream; defaults to ``sys.stderr`` so stdout stays clean
        for command output.
    """

    global _handler
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    resolved = _parse_level(level)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
        logger.addHandler(_handler)
        # Avoid double emission via the root logger.
        logger.propagate = False

    _handler.setLevel(resolved)
    logger.setLevel(resolved)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name with library-safe defaults.

    Before :func:`configure_logging` runs, the package root logger carries a
    ``NullHandler`` so library use produces no output and no warnings.
    """

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
