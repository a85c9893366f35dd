"""File ingestion: raw CSV/spreadsheet bytes to header-keyed rows."""

from .parser import FileKind, file_kind_for, load_rows, parse

__all__ = ["FileKind", "file_kind_for", "load_rows", "parse"]
