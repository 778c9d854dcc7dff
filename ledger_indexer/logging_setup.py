"""Centralized logging configuration for the ``ledger_indexer`` package.

Three public helpers:

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger (``"ledger_indexer"``). Called once by the CLI root callback.
- ``get_logger(name)``: acquire a module logger, making sure the package root
  has at least a ``NullHandler`` so library use stays silent until an
  application configures output.
- ``set_level(level)``: change the package level after configuration;
  ``export --verbose`` uses it to switch to DEBUG and see the built payloads.

Library modules never attach handlers themselves. Log lines follow a compact
``event:name key=value`` format so operators can grep for a pipeline stage,
e.g. ``export:batch_submitted batch=2 ledgers=50 documents=1830``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_indexer"
_LEVEL_ENV = "LEDGER_INDEXER_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelNamesMapping().get(name)
        if numeric is not None:
            return numeric
        raise ValueError(f"Unknown log level: {level!r}")
    env_val = os.getenv(_LEVEL_ENV)
    if env_val:
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        ``int`` or level name. When ``None``, ``LEDGER_INDEXER_LOG_LEVEL`` is
        consulted and ``INFO`` is the fallback.
    fmt:
        Optional format string for the single handler.
    stream:
        Output stream for the handler (``sys.stderr`` by default, keeping
        stdout free for command output such as ``stats``).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _parse_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def set_level(level: int | str) -> None:
    """Change the package log level after configuration (e.g. ``--verbose``)."""

    resolved = _parse_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    logger.setLevel(resolved)
    for h in logger.handlers:
        h.setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name with library-safe defaults."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "set_level"]
