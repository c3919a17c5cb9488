"""Logging configuration for the ``budgetledger`` package.

``configure_logging`` attaches one ``StreamHandler`` to the package logger
and is called once by the CLI. Library modules only use
``logging.getLogger(__name__)`` and never add handlers themselves.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Optional, Union

PACKAGE_LOGGER = "budgetledger"
LOG_LEVEL_ENV = "BUDGETLEDGER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


class _StderrHandler(logging.StreamHandler):
    """Stream handler that always writes to the current ``sys.stderr``."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def parse_level(level: Union[int, str, None]) -> int:
    """Resolve a level name or number, falling back to the environment.

    Unset or unknown values mean ``WARNING``.
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
        return logging.WARNING
    env_value = os.getenv(LOG_LEVEL_ENV)
    if env_value:
        return parse_level(env_value)
    return logging.WARNING


def configure_logging(
    level: Union[int, str, None] = None,
    *,
    fmt: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Configure the package logger once per process.

    Args:
        level: Level as int or name; ``None`` reads ``BUDGETLEDGER_LOG_LEVEL``
        fmt: Optional format string
        stream: Output stream, defaults to ``sys.stderr``
    """
    global _configured
    logger = logging.getLogger(PACKAGE_LOGGER)
    resolved = parse_level(level)

    if _configured:
        logger.setLevel(resolved)
        return

    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream) if stream is not None else _StderrHandler()
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False

    _configured = True
