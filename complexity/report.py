"""Picture reports and the sinks that write them.

Text format (one block per picture, compatible with the ffmpeg patch)::

    Picture <index>, POC <poc>
    <cell index>\t<bits>\t<qp>          # cells file
    <group index>\t<group bits>\t<qp>   # groups file

With coordinate annotation on, each record line is prefixed with
``<col>,<row>\t``.  QP is truncated to an integer for display only.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator, List, Optional, Sequence

import numpy as np

from complexity.config import GRID_CELL_SIZE, GROUP_SIZE, ReportConfig
from complexity.grid import GridStore

logger = logging.getLogger(__name__)

# cells between group anchors along each axis
GROUP_STEP = GROUP_SIZE // GRID_CELL_SIZE


@dataclass(frozen=True)
class CellRecord:
    index: int      # row * (max_col + 1) + col
    row: int
    col: int
    bits: int
    quality: int

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "row": self.row,
            "col": self.col,
            "bits": self.bits,
            "qp": self.quality,
        }


@dataclass(frozen=True)
class GroupRecord:
    row: int            # anchor cell
    col: int
    group_index: int
    group_bits: int
    quality: int        # QP of the anchor cell

    def to_dict(self) -> dict:
        return {
            "row": self.row,
            "col": self.col,
            "group_index": self.group_index,
            "group_bits": self.group_bits,
            "qp": self.quality,
        }


@dataclass
class PictureReport:
    """Read-only view of a finished picture."""
    picture_index: int
    poc: int
    grid: GridStore

    @property
    def max_row(self) -> int:
        return self.grid.max_row

    @property
    def max_col(self) -> int:
        return self.grid.max_col

    @property
    def width(self) -> int:
        return self.grid.width

    @property
    def height(self) -> int:
        return self.grid.height

    @property
    def header(self) -> str:
        return f"Picture {self.picture_index}, POC {self.poc}"

    @property
    def total_bits(self) -> int:
        return int(self.grid.occupied(self.grid.bits).sum())

    def bits_plane(self) -> np.ndarray:
        return self.grid.occupied(self.grid.bits)

    def quality_plane(self) -> np.ndarray:
        return self.grid.occupied(self.grid.quality)

    def cells(self) -> Iterator[CellRecord]:
        """Every cell of the occupied extent, row-major."""
        stride = self.max_col + 1
        for r in range(self.max_row + 1):
            for c in range(self.max_col + 1):
                yield CellRecord(
                    index=r * stride + c,
                    row=r,
                    col=c,
                    bits=int(self.grid.bits[r, c]),
                    quality=int(self.grid.quality[r, c]),
                )

    def groups(self) -> Iterator[GroupRecord]:
        """One record per group, sampled at the group's top-left cell."""
        for r in range(0, self.max_row + 1, GROUP_STEP):
            for c in range(0, self.max_col + 1, GROUP_STEP):
                if not self.grid.has_group(r, c):
                    continue
                yield GroupRecord(
                    row=r,
                    col=c,
                    group_index=int(self.grid.group_index[r, c]),
                    group_bits=int(self.grid.group_bits[r, c]),
                    quality=int(self.grid.quality[r, c]),
                )

    def to_dict(self) -> dict:
        return {
            "picture_index": self.picture_index,
            "poc": self.poc,
            "width": self.width,
            "height": self.height,
            "max_row": self.max_row,
            "max_col": self.max_col,
            "total_bits": self.total_bits,
            "cells": [cell.to_dict() for cell in self.cells()],
            "groups": [group.to_dict() for group in self.groups()],
        }


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class Reporter:
    """Receives each finished picture."""

    def emit(self, report: PictureReport) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class MemoryReporter(Reporter):
    """Keeps every report in ``self.reports``."""

    def __init__(self):
        self.reports: List[PictureReport] = []

    def emit(self, report: PictureReport) -> None:
        self.reports.append(report)


class MultiReporter(Reporter):
    """Fans reports out to several sinks."""

    def __init__(self, reporters: Sequence[Reporter]):
        self.reporters = list(reporters)

    def emit(self, report: PictureReport) -> None:
        for reporter in self.reporters:
            reporter.emit(report)

    def close(self) -> None:
        for reporter in self.reporters:
            reporter.close()


def _open_sink(path: Optional[Path]) -> Optional[IO[str]]:
    if path is None:
        return None
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return open(path, "w")


class TextReporter(Reporter):
    """Writes the per-cell and per-group text reports.

    Either path may be ``None``, which disables that file.
    """

    def __init__(
        self,
        cells_path: Optional[Path] = None,
        groups_path: Optional[Path] = None,
        dump_xy: bool = False,
    ):
        self.cells_path = cells_path
        self.groups_path = groups_path
        self.dump_xy = dump_xy
        self._cells_file = _open_sink(cells_path)
        self._groups_file = _open_sink(groups_path)

    def _prefix(self, row: int, col: int) -> str:
        return f"{col},{row}\t" if self.dump_xy else ""

    def emit(self, report: PictureReport) -> None:
        if self._cells_file is not None:
            f = self._cells_file
            f.write(report.header + "\n")
            for cell in report.cells():
                f.write(f"{self._prefix(cell.row, cell.col)}{cell.index}\t{cell.bits}\t{cell.quality}\n")

        if self._groups_file is not None:
            f = self._groups_file
            f.write(report.header + "\n")
            for group in report.groups():
                f.write(
                    f"{self._prefix(group.row, group.col)}"
                    f"{group.group_index}\t{group.group_bits}\t{group.quality}\n"
                )

    def close(self) -> None:
        for f, path in ((self._cells_file, self.cells_path), (self._groups_file, self.groups_path)):
            if f is not None and not f.closed:
                f.close()
                logger.info("Report written to %s", path)


class JsonlReporter(Reporter):
    """One JSON object per picture."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._file = _open_sink(self.path)
        self.count = 0

    def emit(self, report: PictureReport) -> None:
        self._file.write(json.dumps(report.to_dict()) + "\n")
        self.count += 1

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            logger.info("Wrote %d pictures → %s", self.count, self.path)


def build_reporter(config: ReportConfig) -> MultiReporter:
    """Create the sinks enabled in ``config``.  May be empty."""
    reporters: List[Reporter] = []
    if config.cells_path is not None or config.groups_path is not None:
        reporters.append(TextReporter(config.cells_path, config.groups_path, config.dump_xy))
    if config.jsonl_path is not None:
        reporters.append(JsonlReporter(config.jsonl_path))
    if config.heatmap_dir is not None:
        from complexity.heatmap import HeatmapReporter
        reporters.append(HeatmapReporter(config.heatmap_dir))
    return MultiReporter(reporters)
