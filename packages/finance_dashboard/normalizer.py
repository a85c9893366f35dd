"""Raw row → :class:`Transaction` normalization.

``normalize`` is total: a row with no usable amount becomes a zero-amount
transaction and a row with no category becomes ``"Uncategorized"``. The sign
of the amount is taken from the source as-is; nothing here infers polarity.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation

from .logging_setup import get_logger
from .models import UNCATEGORIZED, Cell, RawRow, Transaction, is_usable_amount

_logger = get_logger("finance_dashboard.normalizer")

_ZERO = Decimal(0)


def _lookup(row: Mapping[str, Cell], canonical: str) -> Cell:
    """Return the value for ``canonical`` using the first key that matches.

    Order: the canonical label, its lowercase alias, then any label equal to
    it ignoring case and surrounding whitespace (in row order).
    """

    for key in (canonical, canonical.lower()):
        if key in row:
            return row[key]
    wanted = canonical.casefold()
    for key, value in row.items():
        if isinstance(key, str) and key.strip().casefold() == wanted:
            return value
    return None


def _parse_amount_text(raw: str) -> Decimal:
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")
    negative = False

    # Strip leading sign, currency symbol and accounting parentheses in any
    # order until the text stops changing, e.g. "-($1,234.56)".
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith("$"):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not is_usable_amount(d):
        raise ValueError(f"amount out of range: {raw!r}")
    return -abs(d) if negative else d


def to_amount(value: Cell) -> Decimal:
    """Coerce a raw cell into a signed ``Decimal``; anything unusable is ``0``."""

    if value is None or isinstance(value, bool):
        return _ZERO
    if isinstance(value, int | float):
        d = Decimal(value) if isinstance(value, int) else Decimal(str(value))
        return d if is_usable_amount(d) else _ZERO
    try:
        return _parse_amount_text(str(value))
    except ValueError:
        return _ZERO


def to_category(value: Cell) -> str:
    if value is None:
        return UNCATEGORIZED
    text = str(value).strip()
    return text or UNCATEGORIZED


def normalize_row(row: RawRow) -> Transaction:
    return Transaction(
        amount=to_amount(_lookup(row, "Amount")),
        category=to_category(_lookup(row, "Category")),
        fields=row,
    )


def normalize(rows: Iterable[RawRow]) -> list[Transaction]:
    """Map raw rows onto canonical transactions, preserving order."""

    out = [normalize_row(r) for r in rows]
    _logger.info("normalize:done transactions=%d", len(out))
    return out


__all__ = ["normalize", "normalize_row", "to_amount", "to_category"]
