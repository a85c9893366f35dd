"""Logging for the ``finance_dashboard`` package.

Library modules log through ``get_logger("finance_dashboard.<module>")`` with
short ``event:key=value`` messages and never attach handlers. Entrypoints call
:func:`configure_logging`, which owns the single stream handler on the package
logger.

Environment variables (read alongside the dispatcher's ``FD_*`` settings)
-------------------------------------------------------------------------
``FD_LOG_LEVEL``
    Level name or number used when no explicit level is given (default INFO).
``FD_LOG_FORMAT``
    Format string for the stream handler.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from typing import IO

_PKG_LOGGER_NAME = "finance_dashboard"
LEVEL_ENV = "FD_LOG_LEVEL"
FORMAT_ENV = "FD_LOG_FORMAT"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None, environ: Mapping[str, str] | None = None) -> int:
    """Turn a level name, number or ``None`` into a logging level.

    ``None`` (or a blank string) falls back to ``FD_LOG_LEVEL`` and then to
    ``INFO``. Unknown names raise ``ValueError``.
    """

    if isinstance(level, int) and not isinstance(level, bool):
        return level
    text = str(level).strip() if level is not None else ""
    if not text:
        env = os.environ if environ is None else environ
        text = (env.get(LEVEL_ENV) or "").strip()
        if not text:
            return logging.INFO
    if text.isdigit():
        return int(text)
    numeric = logging.getLevelNamesMapping().get(text.upper())
    if numeric is None:
        raise ValueError(f"unknown log level: {text!r}")
    return numeric


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> int:
    """Attach the package stream handler (first call) and set the level.

    Later calls only change the level, so a long-lived process or a test
    runner invoking the CLI repeatedly never stacks handlers. Returns the
    resolved level.
    """

    global _handler

    resolved = resolve_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        _handler.setFormatter(
            logging.Formatter(fmt or os.environ.get(FORMAT_ENV) or DEFAULT_FORMAT)
        )
        logger.addHandler(_handler)
        logger.propagate = False

    _handler.setLevel(resolved)
    logger.setLevel(resolved)
    return resolved


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; the package stays silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
