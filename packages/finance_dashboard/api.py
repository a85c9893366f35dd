"""Public API entry points for the ``finance_dashboard`` package.

The concrete pieces live in their own modules (``ingest.parser``,
``normalizer``, ``dispatcher``, ``metrics``, ``projector``); this module
composes them for callers that just want a dashboard from a file. Interactive
callers that need clear/re-upload semantics use
:class:`~finance_dashboard.workflows.dashboard_flow.DashboardSession`.
"""

from __future__ import annotations

from os import PathLike

from .config import DispatcherConfig
from .dispatcher import AnalysisDispatcher, CancellationToken
from .errors import NoDataError
from .ingest.parser import load_rows
from .metrics import compute_locally
from .normalizer import normalize
from .projector import project
from .workflows.dashboard_flow import DashboardView


def analyze_file(
    path: str | PathLike[str],
    *,
    config: DispatcherConfig | None = None,
    cancel_token: CancellationToken | None = None,
) -> DashboardView:
    """End-to-end: file → rows → transactions → analysis → projected view.

    Parameters
    ----------
    path:
        A ``.csv``, ``.xlsx`` or ``.xls`` ledger.
    config:
        Remote endpoints. ``None`` computes the dashboard locally without any
        network call.
    cancel_token:
        Optional token to stop a polling analysis from another thread.

    Raises
    ------
    ParseError
        When the file cannot be parsed (unsupported extension or content).
    NoDataError
        When the file holds no transactions.
    """

    transactions = normalize(load_rows(path))
    if config is None:
        if not transactions:
            raise NoDataError()
        result = compute_locally(transactions)
    else:
        result = AnalysisDispatcher(config).analyze(
            transactions, cancel_token=cancel_token or CancellationToken()
        )
    return DashboardView(transactions=tuple(transactions), result=result, series=project(result))


__all__ = ["analyze_file"]
