"""Result projector: :class:`AnalysisResult` → flat chart series.

Presentation consumes two lists of plain dicts. Series present on the result
are passed through unchanged; a missing or empty series is replaced by the
documented placeholder from :mod:`finance_dashboard.models` and a warning is
logged, so a chart is never silently empty.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from .logging_setup import get_logger
from .models import PLACEHOLDER_CATEGORY_SHARE, PLACEHOLDER_PERIOD_SERIES, AnalysisResult

_logger = get_logger("finance_dashboard.projector")


class ProjectedSeries(NamedTuple):
    income_expense_by_period: list[dict[str, Any]]
    """``{"period", "income", "expenses"}`` per entry, in result order."""

    expense_share_by_category: list[dict[str, Any]]
    """``{"category", "value"}`` per entry, in result order."""


def project(result: AnalysisResult) -> ProjectedSeries:
    series = result.chart_series
    periods = (
        [p.model_dump() for p in series.income_expense_by_period] if series is not None else []
    )
    shares = (
        [s.model_dump() for s in series.expense_share_by_category] if series is not None else []
    )

    if not periods:
        _logger.warning("project:placeholder series=income_expense_by_period")
        periods = [dict(p) for p in PLACEHOLDER_PERIOD_SERIES]
    if not shares:
        _logger.warning("project:placeholder series=expense_share_by_category")
        shares = [dict(s) for s in PLACEHOLDER_CATEGORY_SHARE]

    return ProjectedSeries(income_expense_by_period=periods, expense_share_by_category=shares)


__all__ = ["ProjectedSeries", "project"]
