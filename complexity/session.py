"""Picture lifecycle: one grid per decoded picture.

The decoder calls ``start`` once per picture, then reports units and
groups, then calls ``finish``.  ffmpeg decodes the first picture twice;
the second ``start`` with an unchanged POC puts the session in the
suppressed state, where reports are dropped and nothing is emitted.

States::

    IDLE --start(new poc)--> ACTIVE    --finish--> IDLE  (report emitted)
    IDLE --start(same poc)-> SUPPRESSED --finish--> IDLE  (nothing emitted)
"""

import logging
from enum import Enum
from typing import Optional

from complexity.errors import ContractViolation
from complexity.grid import GridStore, validate_dimensions
from complexity.report import PictureReport, Reporter
from complexity.resampler import GroupResult, ingest_group, ingest_unit

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SUPPRESSED = "suppressed"


class PictureSession:
    """Owns the grid of the picture currently being decoded.

    Not thread safe: exactly one picture may be in flight per session.
    """

    def __init__(self, reporter: Optional[Reporter] = None):
        self.reporter = reporter
        self.state = SessionState.IDLE
        self.poc: Optional[int] = None
        self.picture_index: Optional[int] = None
        self.grid: Optional[GridStore] = None
        self.duplicates = 0
        self._next_index = 0

    @property
    def suppressed(self) -> bool:
        return self.state == SessionState.SUPPRESSED

    def start(self, poc: int, width: int, height: int) -> SessionState:
        """Begin a picture.  Returns the resulting state."""
        validate_dimensions(width, height)
        if self.state != SessionState.IDLE:
            logger.warning(
                "POC %s started while POC %s is still in progress (%s)",
                poc, self.poc, self.state.value,
            )

        if self.poc is not None and poc == self.poc:
            self.duplicates += 1
            self.state = SessionState.SUPPRESSED
            logger.warning("POC %d started again; suppressing duplicate picture", poc)
            return self.state

        self.grid = GridStore(width, height)
        self.poc = poc
        self.picture_index = self._next_index
        self._next_index += 1
        self.state = SessionState.ACTIVE
        logger.debug(
            "Picture %d started: POC %d, %dx%d",
            self.picture_index, poc, width, height,
        )
        return self.state

    def _require_picture(self, what: str) -> bool:
        """True if reports should be applied, False if suppressed."""
        if self.state == SessionState.IDLE:
            raise ContractViolation(f"{what} reported outside of a picture")
        return self.state == SessionState.ACTIVE

    def add_unit(self, x: int, y: int, size: int, bits: int, quality: float) -> None:
        if not self._require_picture("Unit"):
            return
        ingest_unit(self.grid, x, y, size, bits, quality)

    def add_group(
        self,
        group_index: int,
        x: int,
        y: int,
        size: int,
        total_bits: int,
        quality: float,
    ) -> Optional[GroupResult]:
        if not self._require_picture("Group"):
            return None
        return ingest_group(self.grid, group_index, x, y, size, total_bits, quality)

    def finish(self) -> Optional[PictureReport]:
        """End the picture and hand it to the reporter.

        Returns the report, or ``None`` for a suppressed duplicate.
        """
        if self.state == SessionState.IDLE:
            raise ContractViolation("finish() called with no picture in progress")

        if self.state == SessionState.SUPPRESSED:
            self.state = SessionState.IDLE
            logger.debug("Duplicate POC %d finished; not reported", self.poc)
            return None

        self.grid.freeze()
        report = PictureReport(
            picture_index=self.picture_index,
            poc=self.poc,
            grid=self.grid,
        )
        self.state = SessionState.IDLE
        if self.reporter is not None:
            self.reporter.emit(report)
        logger.debug(
            "Picture %d finished: POC %d, %d bits",
            report.picture_index, report.poc, report.total_bits,
        )
        return report

    def close(self) -> None:
        if self.reporter is not None:
            self.reporter.close()
