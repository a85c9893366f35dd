"""Record parser: raw file bytes → ordered :data:`RawRow` mappings.

Two input kinds are supported:

- delimited text (``.csv``) read with the stdlib :mod:`csv` module. The first
  row is the header; short rows are padded with ``None`` and surplus cells
  are dropped so every row still maps onto the header labels.
- spreadsheets (``.xlsx``/``.xls``) read with pandas. Only the first sheet is
  used and its first row is the header.

Repeated header labels are renamed ``X.1``, ``X.2``, ... for both kinds, the
way pandas names duplicate columns.

The kind is resolved from the file name before any byte is read, so an
unsupported extension fails without touching the file. An empty file is not
an error here; it simply yields no rows.
"""

from __future__ import annotations

import csv
import io
import math
from collections.abc import Callable
from datetime import date, datetime, time
from enum import StrEnum
from os import PathLike
from pathlib import Path
from typing import Any

import pandas as pd

from ..errors import MalformedContentError, UnsupportedFormatError
from ..logging_setup import get_logger
from ..models import Cell, RawRow

_logger = get_logger("finance_dashboard.ingest.parser")


class FileKind(StrEnum):
    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"


_EXTENSIONS: dict[str, FileKind] = {
    ".csv": FileKind.DELIMITED,
    ".xlsx": FileKind.SPREADSHEET,
    ".xls": FileKind.SPREADSHEET,
}


def file_kind_for(name: str | PathLike[str]) -> FileKind:
    """Map a file name to its :class:`FileKind` by extension (case-insensitive)."""

    suffix = Path(name).suffix.lower()
    kind = _EXTENSIONS.get(suffix)
    if kind is None:
        raise UnsupportedFormatError(str(name))
    return kind


# ---------------------------------------------------------------------------
# Delimited text
# ---------------------------------------------------------------------------


def _decode(file_bytes: bytes) -> str:
    try:
        return file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        return file_bytes.decode("latin-1")


def _dedupe_labels(labels: list[str]) -> list[str]:
    """Rename repeated header labels to ``X.1``, ``X.2``, ... as pandas does.

    The first occurrence keeps its name, so lookups of ``Amount`` see the
    leftmost column for both delimited and spreadsheet input.
    """

    counts: dict[str, int] = {}
    out: list[str] = []
    for label in labels:
        name = label
        seen = counts.get(name, 0)
        while seen > 0:
            counts[name] = seen + 1
            name = f"{name}.{seen}"
            seen = counts.get(name, 0)
        if name != label:
            _logger.warning("parse:duplicate_header label=%s renamed=%s", label, name)
        counts[name] = seen + 1
        out.append(name)
    return out


def _parse_delimited(file_bytes: bytes) -> list[RawRow]:
    text = _decode(file_bytes)
    rows: list[RawRow] = []
    try:
        with io.StringIO(text, newline="") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None:
                return []
            labels = _dedupe_labels([h.strip() for h in header])
            for cells in reader:
                # Skip blank lines (no cells or only empty cells)
                if not any(c.strip() for c in cells):
                    continue
                if len(cells) != len(labels):
                    _logger.debug(
                        "parse:row_width_mismatch line=%d expected=%d got=%d",
                        reader.line_num,
                        len(labels),
                        len(cells),
                    )
                row: dict[str, Cell] = {}
                for pos, label in enumerate(labels):
                    row[label] = cells[pos] if pos < len(cells) else None
                rows.append(row)
    except csv.Error as e:
        raise MalformedContentError(f"Error parsing CSV file: {e}") from e
    return rows


# ---------------------------------------------------------------------------
# Spreadsheets
# ---------------------------------------------------------------------------


def _to_cell(value: Any) -> Cell:
    """Coerce a spreadsheet value into a JSON-friendly cell."""

    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if hasattr(value, "item") and not isinstance(value, str):
        # numpy scalars → Python scalars
        value = value.item()
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int | float | str):
        return value
    return str(value)


def _parse_spreadsheet(file_bytes: bytes) -> list[RawRow]:
    if not file_bytes:
        return []
    try:
        df = pd.read_excel(io.BytesIO(file_bytes), sheet_name=0, header=0, dtype=object)
    except Exception as e:  # noqa: BLE001 - engines raise a wide range of types
        raise MalformedContentError(f"Error processing Excel file: {e}") from e

    labels = _dedupe_labels([str(c).strip() for c in df.columns])
    rows: list[RawRow] = []
    for values in df.itertuples(index=False, name=None):
        cells = [_to_cell(v) for v in values]
        if all(c is None or (isinstance(c, str) and not c.strip()) for c in cells):
            continue
        rows.append(dict(zip(labels, cells, strict=True)))
    return rows


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def parse(file_bytes: bytes, file_kind: FileKind) -> list[RawRow]:
    """Parse ``file_bytes`` into header-keyed rows in file order.

    Raises
    ------
    MalformedContentError
        When the content cannot be read as the given kind.
    """

    if file_kind is FileKind.DELIMITED:
        rows = _parse_delimited(file_bytes)
    elif file_kind is FileKind.SPREADSHEET:
        rows = _parse_spreadsheet(file_bytes)
    else:  # pragma: no cover - exhaustive over FileKind
        raise UnsupportedFormatError(str(file_kind))
    _logger.info("parse:done kind=%s rows=%d", file_kind.value, len(rows))
    return rows


def load_rows(
    path: str | PathLike[str],
    *,
    read_bytes: Callable[[Path], bytes] = Path.read_bytes,
) -> list[RawRow]:
    """Resolve the kind from ``path``, read it, and parse it.

    ``read_bytes`` is only invoked once the extension has been accepted.
    """

    p = Path(path)
    kind = file_kind_for(p)
    return parse(read_bytes(p), kind)


__all__ = ["FileKind", "file_kind_for", "load_rows", "parse"]
