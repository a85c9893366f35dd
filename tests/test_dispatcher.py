# ruff: noqa: E402, I001
from __future__ import annotations

import sys
import threading
import time
from collections.abc import Callable
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import requests

# Make sure the workspace `packages/` dir is on sys.path so `finance_dashboard` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from finance_dashboard.config import DispatcherConfig
from finance_dashboard.dispatcher import AnalysisDispatcher, CancellationToken
from finance_dashboard.errors import AnalysisCancelledError, NoDataError
from finance_dashboard.metrics import compute_locally
from finance_dashboard.models import Transaction

from tests.helpers.http_stub import (
    DISPATCH_URL,
    STATUS_URL,
    SessionStub,
    StubResponse,
    accepted,
    direct,
    insights_payload,
    status,
)


# ---- Helpers -----------------------------------------------------------------


def _config(poll_interval_ms: int = 10) -> DispatcherConfig:
    return DispatcherConfig(
        dispatch_url=DISPATCH_URL, status_url=STATUS_URL, poll_interval_ms=poll_interval_ms
    )


def _txs() -> list[Transaction]:
    return [
        Transaction(Decimal("1000"), "Salary", {"Amount": "1000", "Category": "Salary"}),
        Transaction(Decimal("-400"), "Rent", {"Amount": "-400", "Category": "Rent"}),
        Transaction(Decimal("-100"), "Food", {"Amount": "-100", "Category": "Food"}),
    ]


def _no_wait(ticks: list[float] | None = None) -> Callable[[float, CancellationToken], None]:
    def _tick(seconds: float, token: CancellationToken) -> None:
        if ticks is not None:
            ticks.append(seconds)

    return _tick


def _make(session: SessionStub, **kw: Any) -> AnalysisDispatcher:
    kw.setdefault("ticker", _no_wait())
    return AnalysisDispatcher(_config(), session=session, **kw)  # type: ignore[arg-type]


def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.005)


# ---- Direct path ---------------------------------------------------------------


def test_direct_insights_complete_without_polling() -> None:
    session = SessionStub(post=[direct()])
    dispatcher = _make(session)

    result = dispatcher.analyze(_txs(), cancel_token=CancellationToken())

    assert result.summary == "Remote summary"
    assert result.metrics.savings_rate == 50
    assert len(session.posts) == 1
    assert session.gets == []
    assert dispatcher.active_job is None


def test_dispatch_request_shape() -> None:
    session = SessionStub(post=[direct()])

    _make(session).analyze(_txs(), cancel_token=CancellationToken())

    (call,) = session.posts
    assert call["url"] == DISPATCH_URL
    assert call["json"] == {
        "data": [
            {"Amount": "1000", "Category": "Salary"},
            {"Amount": "-400", "Category": "Rent"},
            {"Amount": "-100", "Category": "Food"},
        ]
    }
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["timeout"] == 30.0


def test_empty_input_raises_without_any_request() -> None:
    session = SessionStub(post=[direct()])
    dispatcher = _make(session)

    with pytest.raises(NoDataError) as exc:
        dispatcher.analyze([], cancel_token=CancellationToken())

    assert str(exc.value) == "No data to process"
    assert session.calls == []


# ---- Fallback ------------------------------------------------------------------


@pytest.mark.parametrize(
    "answer",
    [
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
        StubResponse(500, {"error": "boom"}),
        StubResponse(404, None),
        StubResponse(200, invalid_json=True),
        StubResponse(200, {"unexpected": True}),
        StubResponse(200, {"data": {}}),
        StubResponse(200, {"data": {"correlationId": "   "}}),
        direct(insights_payload(metrics={"totalIncome": 1000, "totalExpenses": 500, "netCashFlow": 1})),
        direct(insights_payload(metrics={"totalIncome": float("inf"), "totalExpenses": 500})),
        direct(insights_payload(metrics={"totalIncome": float("nan"), "totalExpenses": 500})),
        direct(
            insights_payload(
                metrics={"totalIncome": 1000, "totalExpenses": 500, "savingsRate": float("inf")}
            )
        ),
    ],
    ids=[
        "connection-error",
        "timeout",
        "http-500",
        "http-404",
        "invalid-json",
        "no-data",
        "empty-data",
        "blank-correlation-id",
        "inconsistent-insights",
        "infinite-income",
        "nan-income",
        "infinite-savings-rate",
    ],
)
def test_initial_failure_falls_back_to_local_metrics(answer: Any) -> None:
    session = SessionStub(post=[answer])
    dispatcher = _make(session)

    result = dispatcher.analyze(_txs(), cancel_token=CancellationToken())

    assert result == compute_locally(_txs())
    assert len(session.posts) == 1
    assert session.gets == []


def test_fallback_uses_injected_local_engine() -> None:
    seen: list[tuple[Transaction, ...]] = []

    def _engine(txs):
        seen.append(tuple(txs))
        return compute_locally(txs)

    session = SessionStub(post=[StubResponse(502, None)])
    _make(session, local_engine=_engine).analyze(_txs(), cancel_token=CancellationToken())

    assert len(seen) == 1
    assert len(seen[0]) == 3


# ---- Polling -------------------------------------------------------------------


def test_polling_until_completed() -> None:
    ticks: list[float] = []
    session = SessionStub(
        post=[accepted("job-42")],
        get=[status("pending"), status("processing"), status("completed", insights_payload())],
    )
    dispatcher = _make(session, ticker=_no_wait(ticks))

    result = dispatcher.analyze(_txs(), cancel_token=CancellationToken())

    assert result.summary == "Remote summary"
    assert len(session.gets) == 3
    assert all(g["url"] == STATUS_URL for g in session.gets)
    assert all(g["params"] == {"correlationId": "job-42"} for g in session.gets)
    assert ticks == [0.01, 0.01, 0.01]
    assert dispatcher.active_job is None


def test_completed_status_may_wrap_insights() -> None:
    session = SessionStub(
        post=[accepted()], get=[status("completed", {"insights": insights_payload()})]
    )

    result = _make(session).analyze(_txs(), cancel_token=CancellationToken())

    assert result.summary == "Remote summary"


def test_polling_has_no_attempt_ceiling() -> None:
    pending = [status("pending")] * 60
    session = SessionStub(post=[accepted()], get=[*pending, status("completed", insights_payload())])

    result = _make(session).analyze(_txs(), cancel_token=CancellationToken())

    assert result.summary == "Remote summary"
    assert len(session.gets) == 61


def test_poll_errors_are_retried_on_next_tick() -> None:
    session = SessionStub(
        post=[accepted()],
        get=[
            requests.ConnectionError("flaky"),
            StubResponse(503, None),
            StubResponse(200, invalid_json=True),
            StubResponse(200, ["not", "an", "object"]),
            status("completed", insights_payload()),
        ],
    )

    result = _make(session).analyze(_txs(), cancel_token=CancellationToken())

    assert result.summary == "Remote summary"
    assert len(session.gets) == 5


@pytest.mark.parametrize(
    "final",
    [
        status("completed", {"summary": "missing metrics"}),
        status("completed"),
        status("failed"),
        status("error"),
    ],
    ids=["malformed-result", "no-data", "failed", "error"],
)
def test_unusable_terminal_status_falls_back(final: StubResponse) -> None:
    session = SessionStub(post=[accepted()], get=[status("pending"), final])

    result = _make(session).analyze(_txs(), cancel_token=CancellationToken())

    assert result == compute_locally(_txs())
    assert len(session.gets) == 2


# ---- Cancellation --------------------------------------------------------------


def test_cancelled_token_stops_polling() -> None:
    token = CancellationToken()
    ticks: list[float] = []

    def _ticker(seconds: float, tok: CancellationToken) -> None:
        ticks.append(seconds)
        if len(ticks) == 2:
            token.cancel()

    session = SessionStub(post=[accepted()], get=[status("pending")])
    dispatcher = _make(session, ticker=_ticker)

    with pytest.raises(AnalysisCancelledError):
        dispatcher.analyze(_txs(), cancel_token=token)

    assert len(session.gets) == 1
    assert dispatcher.active_job is None


def test_token_cancelled_up_front_sends_nothing() -> None:
    token = CancellationToken()
    token.cancel()
    session = SessionStub(post=[direct()])

    with pytest.raises(AnalysisCancelledError):
        _make(session).analyze(_txs(), cancel_token=token)

    assert session.calls == []


def test_second_analyze_cancels_the_active_poll_loop() -> None:
    session = SessionStub(post=[accepted("job-1"), direct()], get=[status("pending")])
    dispatcher = AnalysisDispatcher(_config(poll_interval_ms=5), session=session)
    first_token = CancellationToken()
    outcome: dict[str, BaseException] = {}

    def _first() -> None:
        try:
            dispatcher.analyze(_txs(), cancel_token=first_token)
        except BaseException as e:  # noqa: BLE001 - surfaced via outcome
            outcome["error"] = e

    t = threading.Thread(target=_first, daemon=True)
    t.start()
    _wait_until(lambda: len(session.gets) >= 2)
    assert dispatcher.active_job is not None
    assert dispatcher.active_job.correlation_id == "job-1"

    result = dispatcher.analyze(_txs(), cancel_token=CancellationToken())

    t.join(timeout=2.0)
    assert not t.is_alive()
    assert isinstance(outcome.get("error"), AnalysisCancelledError)
    assert first_token.cancelled
    assert result.summary == "Remote summary"

    gets_after = len(session.gets)
    time.sleep(0.05)
    assert len(session.gets) == gets_after


def test_cancel_interrupts_a_waiting_poll_loop() -> None:
    # A long interval proves the wait itself is interrupted.
    session = SessionStub(post=[accepted()], get=[status("pending")])
    dispatcher = AnalysisDispatcher(_config(poll_interval_ms=60_000), session=session)
    token = CancellationToken()
    outcome: dict[str, BaseException] = {}

    def _run() -> None:
        try:
            dispatcher.analyze(_txs(), cancel_token=token)
        except BaseException as e:  # noqa: BLE001 - surfaced via outcome
            outcome["error"] = e

    t = threading.Thread(target=_run, daemon=True)
    t.start()
    _wait_until(lambda: dispatcher.active_job is not None and len(session.posts) == 1)

    dispatcher.cancel()

    t.join(timeout=2.0)
    assert not t.is_alive()
    assert isinstance(outcome.get("error"), AnalysisCancelledError)
    assert token.cancelled
    assert session.gets == []
    assert dispatcher.active_job is None


def test_cancel_without_active_job_is_a_no_op() -> None:
    dispatcher = _make(SessionStub())

    dispatcher.cancel()

    assert dispatcher.active_job is None
