"""Exception taxonomy for ingestion and analysis.

``ParseError`` subclasses abort an upload cycle and are shown to the user as
is. ``AnalysisError`` subclasses raised during the initial dispatch are
recovered by the local fallback; only ``NoDataError`` (and a caller-requested
``AnalysisCancelledError``) escape ``AnalysisDispatcher.analyze``.
"""

from __future__ import annotations


class ParseError(Exception):
    """Base class for file parsing failures."""


class UnsupportedFormatError(ParseError):
    def __init__(self, name: str | None = None) -> None:
        super().__init__("Please upload a CSV or Excel file")
        self.name = name


class MalformedContentError(ParseError):
    """The file has a supported extension but its content could not be read."""


class AnalysisError(Exception):
    """Base class for analysis failures."""


class NoDataError(AnalysisError):
    def __init__(self) -> None:
        super().__init__("No data to process")


class TransportFailureError(AnalysisError):
    """Network failure or non-2xx HTTP status from the remote service."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(AnalysisError):
    """The remote service answered with a payload we cannot interpret."""


class AnalysisCancelledError(AnalysisError):
    """The active job was cancelled (clear, new upload, or caller timeout)."""


__all__ = [
    "AnalysisCancelledError",
    "AnalysisError",
    "MalformedContentError",
    "MalformedResponseError",
    "NoDataError",
    "ParseError",
    "TransportFailureError",
    "UnsupportedFormatError",
]
