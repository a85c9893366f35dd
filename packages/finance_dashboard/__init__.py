"""Public interface for the ``finance_dashboard`` package.

Symbol re-exports only; there is no runtime logic here.
"""

from .api import analyze_file
from .config import DispatcherConfig
from .dispatcher import AnalysisDispatcher, CancellationToken
from .errors import (
    AnalysisCancelledError,
    AnalysisError,
    MalformedContentError,
    MalformedResponseError,
    NoDataError,
    ParseError,
    TransportFailureError,
    UnsupportedFormatError,
)
from .ingest.parser import FileKind, file_kind_for, load_rows, parse
from .metrics import compute_locally
from .models import (
    AnalysisJob,
    AnalysisResult,
    CategoryShare,
    ChartSeries,
    JobStatus,
    Metrics,
    PeriodPoint,
    RawRow,
    Transaction,
)
from .normalizer import normalize
from .projector import ProjectedSeries, project
from .workflows.dashboard_flow import DashboardSession, DashboardView

__all__ = [
    # API
    "analyze_file",
    "compute_locally",
    "file_kind_for",
    "load_rows",
    "normalize",
    "parse",
    "project",
    # Dispatch
    "AnalysisDispatcher",
    "CancellationToken",
    "DispatcherConfig",
    # Workflow
    "DashboardSession",
    "DashboardView",
    # Models / types
    "AnalysisJob",
    "AnalysisResult",
    "CategoryShare",
    "ChartSeries",
    "FileKind",
    "JobStatus",
    "Metrics",
    "PeriodPoint",
    "ProjectedSeries",
    "RawRow",
    "Transaction",
    # Errors
    "AnalysisCancelledError",
    "AnalysisError",
    "MalformedContentError",
    "MalformedResponseError",
    "NoDataError",
    "ParseError",
    "TransportFailureError",
    "UnsupportedFormatError",
]
