"""Per-picture grid of 16x16 cell accumulators.

The store is dense and sized to the picture being decoded: a picture of
``width x height`` pixels gets ``ceil(height / 16)`` rows and
``ceil(width / 16)`` columns.  Each field of the cell accumulator lives in
its own numpy array so reporters and QC renderers can work on whole planes.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from complexity.config import GRID_CELL_SIZE, MAX_COLS, MAX_ROWS
from complexity.errors import ContractViolation

logger = logging.getLogger(__name__)

# group_index value of a cell no group has reported for yet
NO_GROUP = -1

Cell = Tuple[int, int]  # (row, col)


@dataclass(frozen=True)
class CellAccumulator:
    """Snapshot of one grid cell."""
    bits: int                   # bits assigned to the cell
    quality: float              # QP, assigned or averaged
    unit_bits: int              # bits of the unit(s) the cell was built from
    unit_count: float           # 1 native, n for n sub-units, 1/blocks for a super-unit
    group_bits: Optional[int] = None    # total bits of the enclosing group
    group_index: Optional[int] = None   # index of the enclosing group


def validate_dimensions(width: int, height: int) -> None:
    """Reject picture dimensions the grid cannot hold."""
    if width <= 0 or height <= 0:
        raise ContractViolation(f"Picture dimensions must be positive, got {width}x{height}")
    if width >= GRID_CELL_SIZE * MAX_COLS:
        raise ContractViolation(
            f"Picture width {width} exceeds grid capacity ({GRID_CELL_SIZE * MAX_COLS})"
        )
    if height >= GRID_CELL_SIZE * MAX_ROWS:
        raise ContractViolation(
            f"Picture height {height} exceeds grid capacity ({GRID_CELL_SIZE * MAX_ROWS})"
        )


class GridStore:
    """Cell accumulators for one picture, plus the observed extent."""

    def __init__(self, width: int, height: int):
        validate_dimensions(width, height)
        self.width = width
        self.height = height
        self.rows = -(-height // GRID_CELL_SIZE)
        self.cols = -(-width // GRID_CELL_SIZE)

        shape = (self.rows, self.cols)
        self.bits = np.zeros(shape, dtype=np.int64)
        self.quality = np.zeros(shape, dtype=np.float64)
        self.unit_bits = np.zeros(shape, dtype=np.int64)
        self.unit_count = np.zeros(shape, dtype=np.float64)
        self.group_bits = np.zeros(shape, dtype=np.int64)
        self.group_index = np.full(shape, NO_GROUP, dtype=np.int64)

        # highest occupied row / column, 0 while nothing has been ingested
        self.max_row = 0
        self.max_col = 0
        self.frozen = False

        logger.debug("Grid %dx%d cells for %dx%d picture", self.rows, self.cols, width, height)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def _planes(self) -> List[np.ndarray]:
        return [
            self.bits, self.quality, self.unit_bits,
            self.unit_count, self.group_bits, self.group_index,
        ]

    def check_cell(self, row: int, col: int) -> None:
        if row < 0 or col < 0:
            raise ContractViolation(f"Negative cell coordinate ({row}, {col})")
        if row >= MAX_ROWS or col >= MAX_COLS:
            raise ContractViolation(
                f"Cell ({row}, {col}) beyond grid capacity {MAX_ROWS}x{MAX_COLS}"
            )
        if row >= self.rows or col >= self.cols:
            raise ContractViolation(
                f"Cell ({row}, {col}) outside {self.width}x{self.height} picture "
                f"({self.rows}x{self.cols} cells)"
            )

    def observe(self, row: int, col: int) -> None:
        """Widen the occupied extent to include ``(row, col)``."""
        if row > self.max_row:
            self.max_row = row
        if col > self.max_col:
            self.max_col = col

    def covered_cells(self, row: int, col: int, span: int) -> List[Cell]:
        """Cells of the ``span x span`` block anchored at ``(row, col)``.

        Cells starting at or beyond the picture's right / bottom edge are
        dropped, so edge units only cover their in-picture part.  Order is
        row-major, which is the order remainders are handed out in.
        """
        cells: List[Cell] = []
        for r in range(span):
            if (row + r) * GRID_CELL_SIZE >= self.height:
                break
            for c in range(span):
                if (col + c) * GRID_CELL_SIZE >= self.width:
                    break
                self.check_cell(row + r, col + c)
                cells.append((row + r, col + c))
        return cells

    def cell(self, row: int, col: int) -> CellAccumulator:
        self.check_cell(row, col)
        group_index = int(self.group_index[row, col])
        has_group = group_index != NO_GROUP
        return CellAccumulator(
            bits=int(self.bits[row, col]),
            quality=float(self.quality[row, col]),
            unit_bits=int(self.unit_bits[row, col]),
            unit_count=float(self.unit_count[row, col]),
            group_bits=int(self.group_bits[row, col]) if has_group else None,
            group_index=group_index if has_group else None,
        )

    def has_group(self, row: int, col: int) -> bool:
        return int(self.group_index[row, col]) != NO_GROUP

    def total_bits(self, cells: Optional[Iterable[Cell]] = None) -> int:
        if cells is None:
            return int(self.bits.sum())
        return sum(int(self.bits[r, c]) for r, c in cells)

    def occupied(self, plane: np.ndarray) -> np.ndarray:
        """View of ``plane`` restricted to the occupied extent."""
        return plane[: self.max_row + 1, : self.max_col + 1]

    def freeze(self) -> None:
        """Make every plane read-only; the picture has been reported."""
        for plane in self._planes():
            plane.flags.writeable = False
        self.frozen = True
