"""Dispatcher configuration.

Endpoints are passed to :class:`~finance_dashboard.dispatcher.AnalysisDispatcher`
explicitly. :meth:`DispatcherConfig.from_env` is the only place environment
variables are read; the CLI loads a local ``.env`` before calling it.

Environment variables
---------------------
``FD_DISPATCH_URL``
    Remote analysis endpoint (POST). Required.
``FD_STATUS_URL``
    Status endpoint polled for asynchronous jobs (GET). Required.
``FD_POLL_INTERVAL_MS``
    Poll interval in milliseconds (default 2000).
``FD_REQUEST_TIMEOUT_S``
    Per-request HTTP timeout in seconds (default 30).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_POLL_INTERVAL_MS = 2000
DEFAULT_REQUEST_TIMEOUT_S = 30.0


@dataclass(frozen=True, slots=True)
class DispatcherConfig:
    dispatch_url: str
    status_url: str
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S

    def __post_init__(self) -> None:
        if not self.dispatch_url.strip():
            raise ValueError("dispatch_url must be non-empty")
        if not self.status_url.strip():
            raise ValueError("status_url must be non-empty")
        # Booleans are ints; disallow them explicitly.
        if (
            isinstance(self.poll_interval_ms, bool)
            or not isinstance(self.poll_interval_ms, int)
            or self.poll_interval_ms <= 0
        ):
            raise ValueError("poll_interval_ms must be a positive integer")
        if self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be positive")

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DispatcherConfig:
        env = os.environ if environ is None else environ

        def _required(name: str) -> str:
            val = (env.get(name) or "").strip()
            if not val:
                raise ValueError(f"{name} is not set in the environment")
            return val

        def _number(name: str, default: float, cast: type) -> float:
            raw = (env.get(name) or "").strip()
            if not raw:
                return default
            try:
                return cast(raw)
            except ValueError as e:
                raise ValueError(f"{name} must be a number, got {raw!r}") from e

        return cls(
            dispatch_url=_required("FD_DISPATCH_URL"),
            status_url=_required("FD_STATUS_URL"),
            poll_interval_ms=int(_number("FD_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS, int)),
            request_timeout_s=float(
                _number("FD_REQUEST_TIMEOUT_S", DEFAULT_REQUEST_TIMEOUT_S, float)
            ),
        )


__all__ = ["DEFAULT_POLL_INTERVAL_MS", "DEFAULT_REQUEST_TIMEOUT_S", "DispatcherConfig"]
