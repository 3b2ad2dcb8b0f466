"""Complexity grid.

Resamples the bits and QP a video decoder reports per coding unit onto a
uniform 16x16 grid, redistributing per-CTU overhead bits so that every
aggregation level adds up exactly.
"""

from .config import GRID_CELL_SIZE, GROUP_SIZE, MAX_COLS, MAX_ROWS, ReportConfig
from .errors import ContractViolation, TraceFormatError
from .grid import CellAccumulator, GridStore
from .report import (
    JsonlReporter,
    MemoryReporter,
    MultiReporter,
    PictureReport,
    Reporter,
    TextReporter,
    build_reporter,
)
from .resampler import (
    GroupResult,
    ingest_group,
    ingest_native,
    ingest_subunit,
    ingest_superunit,
    ingest_unit,
)
from .session import PictureSession, SessionState

__all__ = [
    "GRID_CELL_SIZE",
    "GROUP_SIZE",
    "MAX_COLS",
    "MAX_ROWS",
    "CellAccumulator",
    "ContractViolation",
    "GridStore",
    "GroupResult",
    "JsonlReporter",
    "MemoryReporter",
    "MultiReporter",
    "PictureReport",
    "PictureSession",
    "ReportConfig",
    "Reporter",
    "SessionState",
    "TextReporter",
    "TraceFormatError",
    "build_reporter",
    "ingest_group",
    "ingest_native",
    "ingest_subunit",
    "ingest_superunit",
    "ingest_unit",
]
