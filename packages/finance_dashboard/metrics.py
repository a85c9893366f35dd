"""Local metrics engine: the deterministic fallback producer.

Computes the same :class:`AnalysisResult` shape as the remote service from
the transactions alone. It does not bucket by date; the period series is the
documented placeholder.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .logging_setup import get_logger
from .models import (
    NO_EXPENSE_CATEGORY,
    PLACEHOLDER_PERIOD_SERIES,
    AnalysisResult,
    Transaction,
    is_usable_amount,
    round_percent,
    savings_rate_for,
)

_logger = get_logger("finance_dashboard.metrics")

_CENT = Decimal("0.01")

_SUMMARY_TEMPLATE = (
    "Your savings rate is {savings_rate}%. "
    "Your largest expense category is {top_category}."
)
_SUGGESTIONS_TEMPLATE: tuple[str, ...] = (
    "Review your spending in {top_category} to find opportunities to save.",
    "Aim to keep your savings rate above 20% (currently {savings_rate}%).",
    "Set a monthly budget for each expense category and track it regularly.",
)


def _cents(d: Decimal) -> Decimal:
    return d.quantize(_CENT, rounding=ROUND_HALF_UP)


def _top_category(category_totals: dict[str, Decimal]) -> str:
    # Strictly-greater comparison keeps the first-encountered category on ties.
    top: str | None = None
    best = Decimal(0)
    for category, total in category_totals.items():
        if top is None or total > best:
            top, best = category, total
    return top if top is not None else NO_EXPENSE_CATEGORY


def _category_shares(
    category_totals: dict[str, Decimal], total_expenses: Decimal
) -> list[dict[str, Any]]:
    if total_expenses <= 0:
        return []
    return [
        {"category": category, "value": round_percent(total / total_expenses * 100)}
        for category, total in category_totals.items()
    ]


def compute_locally(transactions: Iterable[Transaction]) -> AnalysisResult:
    """Derive metrics, chart series and template text from ``transactions``.

    Positive amounts count as income, negative amounts as expenses (their
    absolute value, also accumulated per category in first-seen order). Zero
    amounts, and amounts that are not finite or too large to round to cents,
    contribute to neither side.
    """

    income = Decimal(0)
    expenses = Decimal(0)
    category_totals: dict[str, Decimal] = {}

    for tx in transactions:
        if not is_usable_amount(tx.amount):
            _logger.warning("compute_locally:skip_amount amount=%s", tx.amount)
            continue
        if tx.amount > 0:
            income += tx.amount
        elif tx.amount < 0:
            magnitude = -tx.amount
            expenses += magnitude
            category_totals[tx.category] = category_totals.get(tx.category, Decimal(0)) + magnitude

    total_income = _cents(income)
    total_expenses = _cents(expenses)
    net = total_income - total_expenses
    savings_rate = savings_rate_for(total_income, net)
    top_category = _top_category(category_totals)

    fmt = {"savings_rate": savings_rate, "top_category": top_category}
    payload = {
        "summary": _SUMMARY_TEMPLATE.format(**fmt),
        "suggestions": [s.format(**fmt) for s in _SUGGESTIONS_TEMPLATE],
        "metrics": {
            "totalIncome": float(total_income),
            "totalExpenses": float(total_expenses),
            "netCashFlow": float(net),
            "savingsRate": savings_rate,
            "topExpenseCategory": top_category,
        },
        "chartSeries": {
            "incomeExpenseByPeriod": [dict(p) for p in PLACEHOLDER_PERIOD_SERIES],
            "expenseShareByCategory": _category_shares(category_totals, expenses),
        },
    }
    return AnalysisResult.from_payload(payload)


__all__ = ["compute_locally"]
