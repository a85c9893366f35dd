"""Pytest configuration for test isolation.

The dispatcher configuration and the package log level are read from ``FD_*``
environment variables. A developer's shell (or a ``.env`` loaded by an earlier
CLI test) must not leak endpoints into tests that expect the offline path, so
every test starts with them unset.
"""

from __future__ import annotations

import os

import pytest

_ISOLATED_PREFIXES = ("FD_",)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove dashboard-related variables from the environment for each test."""

    for name in list(os.environ):
        if name.startswith(_ISOLATED_PREFIXES):
            monkeypatch.delenv(name, raising=False)
