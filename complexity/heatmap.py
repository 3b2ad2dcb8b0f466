"""Visual QC for picture reports.

Generates inspection-friendly images:
  - Per-cell bits as a colour map, blown up with a cell grid overlay
  - Group boundaries drawn in a brighter colour
  - A caption bar with picture / POC / totals
"""

import logging
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np
from PIL import Image

from complexity.report import GROUP_STEP, PictureReport, Reporter

logger = logging.getLogger(__name__)

CELL_GRID_COLOR = (60, 60, 60)
GROUP_GRID_COLOR = (255, 255, 255)
CAPTION_HEIGHT = 40


def bits_to_colormap(bits: np.ndarray) -> np.ndarray:
    """Map a 2D bits plane to RGB, brightest at the maximum.

    Returns an (H x W x 3) uint8 array.
    """
    peak = int(bits.max()) if bits.size else 0
    if peak > 0:
        norm = (bits.astype(np.float64) * 255.0 / peak).astype(np.uint8)
    else:
        norm = np.zeros(bits.shape, dtype=np.uint8)
    bgr = cv2.applyColorMap(norm, cv2.COLORMAP_INFERNO)
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def render_heatmap(
    report: PictureReport,
    scale: int = 16,
    cell_color: Tuple[int, int, int] = CELL_GRID_COLOR,
    group_color: Tuple[int, int, int] = GROUP_GRID_COLOR,
) -> np.ndarray:
    """Blow up the per-cell bits of ``report`` and overlay the grid.

    Args:
        report: The finished picture.
        scale: Output pixels per grid cell.
        cell_color: RGB colour for cell boundaries.
        group_color: RGB colour for group boundaries.

    Returns:
        RGB numpy array of the heat map with a caption bar below it.
    """
    bits = report.bits_plane()
    h, w = bits.shape
    colored = bits_to_colormap(bits)

    # Nearest-neighbor upscale
    big = cv2.resize(colored, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)

    out_h, out_w = big.shape[:2]
    for i, y in enumerate(range(0, out_h, scale)):
        big[y, :] = group_color if i % GROUP_STEP == 0 else cell_color
    for i, x in enumerate(range(0, out_w, scale)):
        big[:, x] = group_color if i % GROUP_STEP == 0 else cell_color

    bar = np.full((CAPTION_HEIGHT, max(out_w, 320), 3), 30, dtype=np.uint8)
    quality = report.quality_plane()
    mean_qp = float(quality.mean()) if quality.size else 0.0
    caption = (
        f"{report.header}  |  {h}x{w} cells  |  "
        f"{report.total_bits} bits  |  mean qp {mean_qp:.1f}"
    )
    cv2.putText(bar, caption, (6, 25), cv2.FONT_HERSHEY_SIMPLEX,
                0.4, (220, 220, 220), 1, cv2.LINE_AA)

    if out_w < bar.shape[1]:
        pad = np.full((out_h, bar.shape[1] - out_w, 3), 30, dtype=np.uint8)
        big = np.hstack([big, pad])
    return np.vstack([big, bar])


def save_heatmap(report: PictureReport, output_path: Path, scale: int = 16) -> Path:
    """Render and save a heat map.  Returns the output path."""
    image = render_heatmap(report, scale=scale)
    Image.fromarray(image).save(output_path)
    logger.debug("Heat map saved: %s", output_path)
    return output_path


class HeatmapReporter(Reporter):
    """Writes one heat-map PNG per picture into ``output_dir``."""

    def __init__(self, output_dir: Path, scale: int = 16):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.scale = scale
        self.count = 0

    def path_for(self, report: PictureReport) -> Path:
        return self.output_dir / f"picture_{report.picture_index:05d}_poc_{report.poc}.png"

    def emit(self, report: PictureReport) -> None:
        save_heatmap(report, self.path_for(report), scale=self.scale)
        self.count += 1

    def close(self) -> None:
        if self.count:
            logger.info("Saved %d heat maps → %s", self.count, self.output_dir)
