"""Complexity grid configuration: grid geometry and report sinks."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


# ---------------------------------------------------------------------------
# Grid geometry
# ---------------------------------------------------------------------------
GRID_CELL_SIZE = 16     # cell edge in pixels
GROUP_SIZE = 64         # coarse group (CTU) edge in pixels

# Grid capacity in cells.  Pictures must be strictly smaller than
# GRID_CELL_SIZE * MAX_COLS by GRID_CELL_SIZE * MAX_ROWS pixels.
MAX_ROWS = 1024
MAX_COLS = 1024


# ---------------------------------------------------------------------------
# Environment toggles
# ---------------------------------------------------------------------------
ENV_CELLS_FILE = "COMPLEXITY_FILENAME"
ENV_GROUPS_FILE = "COMPLEXITY_CTU_FILENAME"
ENV_JSONL_FILE = "COMPLEXITY_JSONL_FILENAME"
ENV_HEATMAP_DIR = "COMPLEXITY_HEATMAP_DIR"
ENV_DUMP_XY = "COMPLEXITY_DUMP_XY"
# spelling used by the ffmpeg patch
ENV_DUMP_XY_LEGACY = "complexity_DUMP_XY"


def _optional_path(value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    return Path(value)


@dataclass
class ReportConfig:
    """Which report sinks are active for a decoding run.

    A sink whose path is ``None`` is disabled.
    """
    cells_path: Optional[Path] = None     # per-cell text report
    groups_path: Optional[Path] = None    # per-group text report
    jsonl_path: Optional[Path] = None     # one JSON object per picture
    heatmap_dir: Optional[Path] = None    # one PNG per picture
    dump_xy: bool = False                 # prefix records with "col,row"

    @property
    def any_enabled(self) -> bool:
        return any(
            p is not None
            for p in (self.cells_path, self.groups_path, self.jsonl_path, self.heatmap_dir)
        )

    def to_dict(self) -> dict:
        d = {}
        for k, v in self.__dict__.items():
            if isinstance(v, Path):
                d[k] = str(v)
            else:
                d[k] = v
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ReportConfig":
        return cls(
            cells_path=_optional_path(d.get("cells_path")),
            groups_path=_optional_path(d.get("groups_path")),
            jsonl_path=_optional_path(d.get("jsonl_path")),
            heatmap_dir=_optional_path(d.get("heatmap_dir")),
            dump_xy=bool(d.get("dump_xy", False)),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ReportConfig":
        """Read the sink toggles from environment variables.

        Absent or empty variables leave the sink disabled.  Any value of the
        dump-xy variable enables coordinate annotation, as long as it is set.
        """
        env = os.environ if environ is None else environ
        return cls(
            cells_path=_optional_path(env.get(ENV_CELLS_FILE)),
            groups_path=_optional_path(env.get(ENV_GROUPS_FILE)),
            jsonl_path=_optional_path(env.get(ENV_JSONL_FILE)),
            heatmap_dir=_optional_path(env.get(ENV_HEATMAP_DIR)),
            dump_xy=ENV_DUMP_XY in env or ENV_DUMP_XY_LEGACY in env,
        )
