"""Data models and type aliases for ``finance_dashboard``.

Raw rows stay loosely typed (whatever the CSV or spreadsheet held). Everything
after the normalizer is canonical: :class:`Transaction` for input records and
:class:`AnalysisResult` for the output shared by the remote service and the
local metrics engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import MalformedResponseError

# ---------------------------------------------------------------------------
# Raw rows
# ---------------------------------------------------------------------------

type Cell = str | int | float | None

type RawRow = Mapping[str, Cell]
"""One parsed input row keyed by header label, before normalization."""


UNCATEGORIZED = "Uncategorized"
NO_EXPENSE_CATEGORY = "None"

# Tolerance used when checking money invariants on remote payloads.
_MONEY_TOLERANCE = 0.01
_RATE_TOLERANCE = 1

# Documented placeholder series. Used when no time bucketing is available.
PLACEHOLDER_PERIOD_SERIES: tuple[Mapping[str, Any], ...] = tuple(
    {"period": month, "income": 0.0, "expenses": 0.0}
    for month in ("Jan", "Feb", "Mar", "Apr", "May", "Jun")
)
PLACEHOLDER_CATEGORY_SHARE: tuple[Mapping[str, Any], ...] = (
    {"category": NO_EXPENSE_CATEGORY, "value": 100},
)


def round_percent(value: Decimal | float | int) -> int:
    """Round to the nearest integer percentage, halves away from zero."""

    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# Largest accepted amount exponent (9.99e15). Totals of bigger amounts cannot
# be rounded to cents within the default decimal context.
_MAX_AMOUNT_EXPONENT = 15


def is_usable_amount(d: Decimal) -> bool:
    """True for finite amounts small enough to total and round to cents."""

    return d.is_finite() and (d.is_zero() or d.adjusted() <= _MAX_AMOUNT_EXPONENT)


def savings_rate_for(total_income: Decimal | float, net_cash_flow: Decimal | float) -> int:
    income = Decimal(str(total_income))
    if income <= 0:
        return 0
    return round_percent(Decimal(str(net_cash_flow)) / income * 100)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A normalized transaction.

    ``amount`` keeps the sign found in the source data: positive is income,
    negative is an expense. ``fields`` is a read-only copy of the original
    row so presentation can show every column the user uploaded.
    """

    amount: Decimal
    category: str = UNCATEGORIZED
    fields: Mapping[str, Cell] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def as_row(self) -> dict[str, Cell]:
        """Return the original row as a plain, JSON-serializable dict."""

        return dict(self.fields)


class JobStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class AnalysisJob:
    """One dispatch-to-completion attempt owned by the dispatcher.

    ``status`` leaves ``pending`` exactly once, through :meth:`complete` or
    :meth:`fail`.
    """

    transactions: tuple[Transaction, ...]
    status: JobStatus = JobStatus.PENDING
    result: AnalysisResult | None = None
    correlation_id: str | None = None
    failure: str | None = None

    def _ensure_pending(self) -> None:
        if self.status is not JobStatus.PENDING:
            raise RuntimeError(f"analysis job already {self.status.value}")

    def complete(self, result: AnalysisResult) -> None:
        self._ensure_pending()
        self.status = JobStatus.COMPLETED
        self.result = result

    def fail(self, reason: str) -> None:
        self._ensure_pending()
        self.status = JobStatus.FAILED
        self.failure = reason


# ---------------------------------------------------------------------------
# Analysis result (shared by remote and local producers)
# ---------------------------------------------------------------------------


class _ResultModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


class PeriodPoint(_ResultModel):
    period: str = Field(validation_alias=AliasChoices("period", "name", "month"))
    income: float = 0.0
    expenses: float = 0.0

    @field_validator("period", mode="before")
    @classmethod
    def _period_to_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int | float) else v


class CategoryShare(_ResultModel):
    category: str = Field(validation_alias=AliasChoices("category", "name"))
    value: float


class ChartSeries(_ResultModel):
    income_expense_by_period: list[PeriodPoint] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "incomeExpenseByPeriod", "income_expense_by_period", "monthlyTrends"
        ),
    )
    expense_share_by_category: list[CategoryShare] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "expenseShareByCategory", "expense_share_by_category", "expensesByCategory"
        ),
    )


class Metrics(_ResultModel):
    """Headline numbers.

    ``net_cash_flow`` and ``savings_rate`` are derived from the totals when a
    producer omits them; when present they must agree with the totals.
    """

    total_income: float = Field(ge=0)
    total_expenses: float = Field(ge=0)
    net_cash_flow: float
    savings_rate: int
    top_expense_category: str = NO_EXPENSE_CATEGORY

    @model_validator(mode="before")
    @classmethod
    def _derive_missing(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        out = dict(data)
        income = out.get("totalIncome", out.get("total_income"))
        expenses = out.get("totalExpenses", out.get("total_expenses"))
        if income is None or expenses is None:
            return out
        try:
            income_d = Decimal(str(income))
            expenses_d = Decimal(str(expenses))
        except ArithmeticError:
            return out  # field validation reports the bad value
        if not (income_d.is_finite() and expenses_d.is_finite()):
            return out
        if "netCashFlow" not in out and "net_cash_flow" not in out:
            out["netCashFlow"] = float(income_d - expenses_d)
        if "savingsRate" not in out and "savings_rate" not in out:
            out["savingsRate"] = savings_rate_for(income_d, income_d - expenses_d)
        return out

    @field_validator("savings_rate", mode="before")
    @classmethod
    def _rate_to_int(cls, v: Any) -> Any:
        if isinstance(v, float):
            return round_percent(v)
        return v

    @field_validator("top_expense_category", mode="before")
    @classmethod
    def _blank_category(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return NO_EXPENSE_CATEGORY
        return v

    @model_validator(mode="after")
    def _check_invariants(self) -> Metrics:
        expected_net = self.total_income - self.total_expenses
        if abs(self.net_cash_flow - expected_net) > _MONEY_TOLERANCE:
            raise ValueError(
                f"netCashFlow {self.net_cash_flow} != totalIncome - totalExpenses ({expected_net})"
            )
        expected_rate = savings_rate_for(self.total_income, self.net_cash_flow)
        # Producers may round halves differently (e.g. toward +inf), so allow one point.
        if abs(self.savings_rate - expected_rate) > _RATE_TOLERANCE:
            raise ValueError(f"savingsRate {self.savings_rate} != expected {expected_rate}")
        return self


class AnalysisResult(_ResultModel):
    summary: str = ""
    suggestions: list[str] = Field(default_factory=list)
    metrics: Metrics
    chart_series: ChartSeries | None = Field(
        default=None, validation_alias=AliasChoices("chartSeries", "chart_series", "chartData")
    )

    @classmethod
    def from_payload(cls, payload: Any) -> AnalysisResult:
        """Validate a result-like mapping into an :class:`AnalysisResult`.

        This is the only constructor used by both the remote response parser
        and the local metrics engine, so both producers share one shape and
        one set of invariants. Raises :class:`MalformedResponseError`.
        """

        if not isinstance(payload, Mapping):
            raise MalformedResponseError("analysis result must be a JSON object")
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as e:
            raise MalformedResponseError(f"invalid analysis result: {e}") from e
        except ArithmeticError as e:
            # decimal raises outside pydantic for values it cannot represent
            raise MalformedResponseError(f"analysis result out of range: {e!r}") from e

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used on the wire."""

        return self.model_dump(by_alias=True, mode="json")


__all__ = [
    "NO_EXPENSE_CATEGORY",
    "PLACEHOLDER_CATEGORY_SHARE",
    "PLACEHOLDER_PERIOD_SERIES",
    "UNCATEGORIZED",
    "AnalysisJob",
    "AnalysisResult",
    "CategoryShare",
    "Cell",
    "ChartSeries",
    "JobStatus",
    "Metrics",
    "PeriodPoint",
    "RawRow",
    "Transaction",
    "is_usable_amount",
    "round_percent",
    "savings_rate_for",
]
