"""Resample decoder unit reports onto the 16x16 grid.

Decoders report bits and QP per coding unit, and coding units come in
quadtree sizes from 8x8 up to 64x64.  Four paths bring them onto the
uniform grid:

  - native      unit is exactly one cell: recorded as-is
  - sub-unit    unit is smaller than a cell: bits summed, QP averaged
  - super-unit  unit spans n x n cells: bits split evenly, QP copied
  - group       the CTU total, reported after its units: the header /
                overhead bits not carried by any unit are spread over the
                group's cells

Every path conserves bits exactly; integer remainders go to cells in
row-major order.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from complexity.config import GRID_CELL_SIZE
from complexity.errors import ContractViolation
from complexity.grid import GridStore

logger = logging.getLogger(__name__)


@dataclass
class GroupResult:
    """Outcome of redistributing one group's bits."""
    group_index: int
    blocks: int             # cells covered after edge clipping
    child_bits: int         # bits already held by those cells
    overhead_bits: int      # bits spread on top of child_bits
    quality: float = 0.0

    @property
    def total_bits(self) -> int:
        return self.child_bits + self.overhead_bits


def _check_bits(bits: int, what: str) -> None:
    if bits < 0:
        raise ContractViolation(f"{what} reports negative bits ({bits})")


def _to_cell(x: int, y: int, what: str) -> Tuple[int, int]:
    """Pixel position of a grid-aligned unit -> (row, col)."""
    if x < 0 or y < 0:
        raise ContractViolation(f"{what} at negative position ({x}, {y})")
    if x % GRID_CELL_SIZE or y % GRID_CELL_SIZE:
        raise ContractViolation(
            f"{what} at ({x}, {y}) is not aligned to the {GRID_CELL_SIZE}px grid"
        )
    return y // GRID_CELL_SIZE, x // GRID_CELL_SIZE


def _check_multi_cell_size(size: int, what: str) -> int:
    if size <= GRID_CELL_SIZE or size % GRID_CELL_SIZE:
        raise ContractViolation(
            f"{what} size {size} must be a multiple of {GRID_CELL_SIZE} larger than it"
        )
    return size // GRID_CELL_SIZE


def ingest_native(grid: GridStore, x: int, y: int, size: int, bits: int, quality: float) -> None:
    """Record a unit of exactly one cell.  A repeat report replaces the first."""
    if size != GRID_CELL_SIZE:
        raise ContractViolation(f"Native unit size {size} != {GRID_CELL_SIZE}")
    _check_bits(bits, "Native unit")
    row, col = _to_cell(x, y, "Native unit")
    grid.check_cell(row, col)
    grid.observe(row, col)

    grid.bits[row, col] = bits
    grid.quality[row, col] = quality
    grid.unit_bits[row, col] = bits
    grid.unit_count[row, col] = 1.0


def ingest_subunit(grid: GridStore, x: int, y: int, size: int, bits: int, quality: float) -> None:
    """Fold a unit smaller than a cell into its enclosing cell.

    Bits accumulate; the cell QP becomes the mean QP of all sub-units that
    contributed so far.
    """
    if size <= 0 or size >= GRID_CELL_SIZE:
        raise ContractViolation(f"Sub-unit size {size} must be in (0, {GRID_CELL_SIZE})")
    _check_bits(bits, "Sub-unit")
    if x < 0 or y < 0:
        raise ContractViolation(f"Sub-unit at negative position ({x}, {y})")
    if x % size or y % size:
        raise ContractViolation(f"Sub-unit at ({x}, {y}) is not aligned to its size {size}")

    row, col = y // GRID_CELL_SIZE, x // GRID_CELL_SIZE
    grid.check_cell(row, col)
    grid.observe(row, col)

    grid.bits[row, col] += bits
    grid.unit_bits[row, col] += bits

    count = grid.unit_count[row, col]
    grid.quality[row, col] = (grid.quality[row, col] * count + quality) / (count + 1)
    grid.unit_count[row, col] = count + 1


def ingest_superunit(grid: GridStore, x: int, y: int, size: int, bits: int, quality: float) -> None:
    """Spread a unit larger than a cell over the cells it covers.

    Units hanging over the right / bottom picture edge only cover their
    in-picture cells.  Each covered cell gets ``bits // blocks``; the first
    ``bits % blocks`` cells (row-major) get one bit more.
    """
    span = _check_multi_cell_size(size, "Super-unit")
    _check_bits(bits, "Super-unit")
    row, col = _to_cell(x, y, "Super-unit")
    grid.check_cell(row, col)

    cells = grid.covered_cells(row, col, span)
    blocks = len(cells)
    share, extra = divmod(bits, blocks)

    for i, (r, c) in enumerate(cells):
        grid.observe(r, c)
        grid.bits[r, c] = share + 1 if i < extra else share
        grid.quality[r, c] = quality
        grid.unit_bits[r, c] = bits
        grid.unit_count[r, c] = 1.0 / blocks


def ingest_group(
    grid: GridStore,
    group_index: int,
    x: int,
    y: int,
    size: int,
    total_bits: int,
    quality: float,
) -> GroupResult:
    """Redistribute a group's overhead bits over its cells.

    Must run after every unit inside the group has been ingested.  The
    group total minus the bits its cells already hold is the overhead; it
    is handed out as an equal share per cell, then one bit per cell in
    row-major order for what is left.  Afterwards the covered cells sum to
    exactly ``total_bits``.

    Raises:
        ContractViolation: if the cells already hold more than
            ``total_bits``, or the overhead could not be fully placed.
    """
    if group_index < 0:
        raise ContractViolation(f"Group index {group_index} is negative")
    span = _check_multi_cell_size(size, "Group")
    _check_bits(total_bits, f"Group {group_index}")
    row, col = _to_cell(x, y, f"Group {group_index}")
    grid.check_cell(row, col)

    cells = grid.covered_cells(row, col, span)
    blocks = len(cells)

    child_bits = grid.total_bits(cells)
    remaining = total_bits - child_bits
    if remaining < 0:
        raise ContractViolation(
            f"Group {group_index} at ({x}, {y}) reports {total_bits} bits but its "
            f"cells already hold {child_bits}"
        )

    for r, c in cells:
        grid.group_bits[r, c] = total_bits
        grid.group_index[r, c] = group_index

    overhead = remaining
    extra = remaining // blocks
    for r, c in cells:
        if remaining <= 0 or extra <= 0:
            break
        grid.bits[r, c] += extra
        remaining -= extra

    for r, c in cells:
        if remaining <= 0:
            break
        grid.bits[r, c] += 1
        remaining -= 1

    if remaining != 0:
        raise ContractViolation(
            f"Group {group_index}: {remaining} overhead bits left after redistribution"
        )

    result = GroupResult(
        group_index=group_index,
        blocks=blocks,
        child_bits=child_bits,
        overhead_bits=overhead,
        quality=quality,
    )
    logger.debug(
        "Group %d: %d cells, %d bits (%d child + %d overhead), qp %.1f",
        group_index, blocks, result.total_bits, child_bits, overhead, result.quality,
    )
    return result


def ingest_unit(grid: GridStore, x: int, y: int, size: int, bits: int, quality: float) -> None:
    """Route a unit report by its size relative to the grid cell."""
    if size < GRID_CELL_SIZE:
        ingest_subunit(grid, x, y, size, bits, quality)
    elif size > GRID_CELL_SIZE:
        ingest_superunit(grid, x, y, size, bits, quality)
    else:
        ingest_native(grid, x, y, size, bits, quality)
