"""Upload-to-dashboard workflow behind the presentation boundary.

:class:`DashboardSession` composes parse → normalize → analyze → project for
one upload cycle and holds the state a UI renders: the normalized
transactions, the finished :class:`DashboardView`, or a single user-visible
error message. A view and an error are never held at the same time.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any

from ..dispatcher import AnalysisDispatcher, CancellationToken
from ..errors import NoDataError, ParseError
from ..ingest.parser import load_rows
from ..logging_setup import get_logger
from ..metrics import compute_locally
from ..models import AnalysisResult, Metrics, Transaction
from ..normalizer import normalize
from ..projector import ProjectedSeries, project

_logger = get_logger("finance_dashboard.workflows.dashboard_flow")

PREVIEW_ROWS = 5


@dataclass(frozen=True, slots=True)
class DashboardView:
    """Everything the presentation layer consumes for one finished analysis."""

    transactions: tuple[Transaction, ...]
    result: AnalysisResult
    series: ProjectedSeries

    @property
    def preview(self) -> tuple[Transaction, ...]:
        return self.transactions[:PREVIEW_ROWS]

    @property
    def preview_caption(self) -> str | None:
        total = len(self.transactions)
        if total <= PREVIEW_ROWS:
            return None
        return f"Showing {PREVIEW_ROWS} of {total} transactions"

    @property
    def metrics(self) -> Metrics:
        return self.result.metrics

    def to_payload(self) -> dict[str, Any]:
        return {
            "transactions": [tx.as_row() for tx in self.transactions],
            "metrics": self.result.metrics.model_dump(by_alias=True),
            "summary": self.result.summary,
            "suggestions": list(self.result.suggestions),
            "chartSeries": {
                "incomeExpenseByPeriod": self.series.income_expense_by_period,
                "expenseShareByCategory": self.series.expense_share_by_category,
            },
        }


def format_money(value: float) -> str:
    return f"${value:,.2f}"


def format_metrics(metrics: Metrics) -> dict[str, str]:
    """Render the metrics block as display strings.

    Net cash flow is shown as a magnitude with a trailing ``+``/``-`` sign.
    """

    net = metrics.net_cash_flow
    return {
        "Total Income": format_money(metrics.total_income),
        "Total Expenses": format_money(metrics.total_expenses),
        "Net Cash Flow": f"{format_money(abs(net))} {'+' if net >= 0 else '-'}",
        "Savings Rate": f"{metrics.savings_rate}%",
        "Top Expense Category": metrics.top_expense_category,
    }


class DashboardSession:
    """State for one user's upload cycles.

    Parameters
    ----------
    dispatcher:
        Analyzer used by :meth:`build_dashboard`. ``None`` runs offline and
        computes every dashboard with the local metrics engine.
    read_bytes:
        Optional byte reader passed through to the parser.
    """

    def __init__(
        self,
        dispatcher: AnalysisDispatcher | None,
        *,
        read_bytes: Callable[[Path], bytes] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._read_bytes = read_bytes
        self.transactions: list[Transaction] | None = None
        self.view: DashboardView | None = None
        self.error: str | None = None

    def clear(self) -> None:
        """Drop all state and cancel any analysis still in flight."""

        if self._dispatcher is not None:
            self._dispatcher.cancel()
        self.transactions = None
        self.view = None
        self.error = None

    def upload(self, path: str | PathLike[str]) -> list[Transaction] | None:
        """Start a new cycle from ``path``; return the normalized transactions.

        On a parse failure the message is stored in :attr:`error` and ``None``
        is returned; no rows from the failed file are retained.
        """

        self.clear()
        try:
            rows = load_rows(path, read_bytes=self._read_bytes or Path.read_bytes)
        except ParseError as e:
            _logger.warning("upload:parse_failed path=%s error=%s", path, e)
            self.error = str(e)
            return None
        self.transactions = normalize(rows)
        return self.transactions

    def upload_rows(self, rows: list[Mapping[str, Any]]) -> list[Transaction]:
        """Start a new cycle from already-parsed rows."""

        self.clear()
        self.transactions = normalize(rows)
        return self.transactions

    def build_dashboard(
        self, *, cancel_token: CancellationToken | None = None
    ) -> DashboardView | None:
        """Analyze the uploaded transactions and store the resulting view.

        Returns ``None`` and sets :attr:`error` when there is nothing to
        analyze. Cancellation propagates as
        :class:`~finance_dashboard.errors.AnalysisCancelledError`.
        """

        self.view = None
        self.error = None
        token = cancel_token if cancel_token is not None else CancellationToken()
        try:
            result = self._analyze(self.transactions or [], token)
        except NoDataError as e:
            self.error = str(e)
            return None
        self.view = DashboardView(
            transactions=tuple(self.transactions or ()),
            result=result,
            series=project(result),
        )
        return self.view

    def _analyze(
        self, transactions: list[Transaction], token: CancellationToken
    ) -> AnalysisResult:
        if self._dispatcher is not None:
            return self._dispatcher.analyze(transactions, cancel_token=token)
        if not transactions:
            raise NoDataError()
        return compute_locally(transactions)


__all__ = [
    "PREVIEW_ROWS",
    "DashboardSession",
    "DashboardView",
    "format_metrics",
    "format_money",
]
