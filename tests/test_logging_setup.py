# ruff: noqa: E402, I001
from __future__ import annotations

import io
import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `finance_dashboard` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

import finance_dashboard.logging_setup as logging_setup
from finance_dashboard.logging_setup import configure_logging, get_logger, resolve_level


@pytest.fixture
def pkg_logger(monkeypatch: pytest.MonkeyPatch) -> Iterator[logging.Logger]:
    """Hand out the package logger unconfigured and restore it afterwards.

    Other modules assert on records through caplog, which relies on the
    package logger propagating to the root logger.
    """

    logger = logging.getLogger("finance_dashboard")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    monkeypatch.setattr(logging_setup, "_handler", None)
    try:
        yield logger
    finally:
        logger.handlers[:] = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]


# ---- resolve_level -------------------------------------------------------------


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        ("debug", logging.DEBUG),
        (" WARNING ", logging.WARNING),
        ("15", 15),
        (logging.ERROR, logging.ERROR),
    ],
)
def test_resolve_level_accepts_names_and_numbers(level, expected: int) -> None:
    assert resolve_level(level, environ={}) == expected


@pytest.mark.parametrize("level", [None, "", "  "])
def test_resolve_level_falls_back_to_env_then_info(level) -> None:
    assert resolve_level(level, environ={"FD_LOG_LEVEL": "error"}) == logging.ERROR
    assert resolve_level(level, environ={"FD_LOG_LEVEL": " "}) == logging.INFO
    assert resolve_level(level, environ={}) == logging.INFO


def test_explicit_level_wins_over_env() -> None:
    assert resolve_level("debug", environ={"FD_LOG_LEVEL": "error"}) == logging.DEBUG


@pytest.mark.parametrize("level", ["chatty", "-1"])
def test_resolve_level_rejects_unknown_names(level: str) -> None:
    with pytest.raises(ValueError, match="unknown log level"):
        resolve_level(level, environ={})


def test_resolve_level_reads_process_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FD_LOG_LEVEL", "warning")

    assert resolve_level(None) == logging.WARNING


# ---- configure_logging ---------------------------------------------------------


def test_configure_logging_writes_event_messages(pkg_logger: logging.Logger) -> None:
    stream = io.StringIO()

    level = configure_logging("info", fmt="%(levelname)s %(message)s", stream=stream)
    get_logger("finance_dashboard.metrics").info("compute_locally:done transactions=%d", 3)
    get_logger("finance_dashboard.metrics").debug("hidden:event")

    assert level == logging.INFO
    assert stream.getvalue() == "INFO compute_locally:done transactions=3\n"
    assert pkg_logger.propagate is False
    assert not any(isinstance(h, logging.NullHandler) for h in pkg_logger.handlers)


def test_reconfiguring_changes_level_without_stacking_handlers(
    pkg_logger: logging.Logger,
) -> None:
    stream = io.StringIO()
    configure_logging("warning", fmt="%(message)s", stream=stream)
    handlers = list(pkg_logger.handlers)

    configure_logging("debug", stream=io.StringIO())
    get_logger("finance_dashboard.dispatcher").debug("dispatch:start rows=%d", 2)

    assert pkg_logger.handlers == handlers
    assert pkg_logger.level == logging.DEBUG
    assert stream.getvalue() == "dispatch:start rows=2\n"


def test_configure_logging_uses_env_format_and_level(
    pkg_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FD_LOG_LEVEL", "error")
    monkeypatch.setenv("FD_LOG_FORMAT", "[%(name)s] %(message)s")
    stream = io.StringIO()

    assert configure_logging(stream=stream) == logging.ERROR
    get_logger("finance_dashboard.parser").warning("parse:skipped")
    get_logger("finance_dashboard.parser").error("parse:failed")

    assert stream.getvalue() == "[finance_dashboard.parser] parse:failed\n"


def test_bad_level_leaves_logger_unconfigured(pkg_logger: logging.Logger) -> None:
    with pytest.raises(ValueError):
        configure_logging("chatty", stream=io.StringIO())

    assert logging_setup._handler is None
