"""
Text formation asset.

Rasterizes text lines with OpenCV's Hershey fonts and samples particle
targets uniformly over the glyph pixels. The result is a flat (z = 0)
point cloud centered on the origin, in the same world units as the tree.
"""

import logging
from typing import Sequence

import cv2
import numpy as np

from ..errors import FormationError

logger = logging.getLogger(__name__)

_FONT = cv2.FONT_HERSHEY_DUPLEX


def sample_text_points(
    lines: Sequence[str],
    count: int,
    rng: np.random.Generator,
    size: float = 6.0,
    line_spacing: float = 12.0,
    pixels_per_unit: float = 12.0,
    mirror_x: bool = True,
) -> np.ndarray:
    """
    Sample `count` points on the rendered text.

    Args:
        lines: Text lines, top to bottom
        count: Number of points (one per particle)
        rng: Random generator used for sampling
        size: Glyph cap height in world units
        line_spacing: Distance between line centers in world units
        pixels_per_unit: Raster resolution
        mirror_x: Flip horizontally so the text reads from the -z side

    Returns:
        (count, 3) float array

    Raises:
        FormationError: if there is no visible text to sample
    """
    lines = [line for line in lines if line.strip()]
    if not lines or count <= 0:
        raise FormationError("Text formation needs at least one non-empty line")

    (_, ref_height), _ = cv2.getTextSize("M", _FONT, 1.0, 1)
    font_scale = size * pixels_per_unit / ref_height
    thickness = max(1, int(round(font_scale * 1.5)))

    sizes = [cv2.getTextSize(line, _FONT, font_scale, thickness)[0] for line in lines]
    margin = int(size * pixels_per_unit)
    width = max(w for w, _ in sizes) + 2 * margin
    height = int(len(lines) * line_spacing * pixels_per_unit) + 2 * margin

    mask = np.zeros((height, width), dtype=np.uint8)
    center_x = width / 2.0
    center_y = height / 2.0

    for k, (line, (w, h)) in enumerate(zip(lines, sizes)):
        # Line centers are symmetric about the origin
        offset = ((len(lines) - 1) / 2.0 - k) * line_spacing
        cy = center_y - offset * pixels_per_unit
        org = (int(center_x - w / 2.0), int(cy + h / 2.0))
        cv2.putText(mask, line, org, _FONT, font_scale, 255, thickness, cv2.LINE_AA)

    rows, cols = np.nonzero(mask > 127)
    if rows.size == 0:
        raise FormationError(f"Text {lines!r} rendered no pixels")

    pick = rng.integers(0, rows.size, size=count)
    jitter = rng.random((count, 2))

    points = np.zeros((count, 3), dtype=np.float64)
    points[:, 0] = (cols[pick] + jitter[:, 0] - center_x) / pixels_per_unit
    points[:, 1] = (center_y - rows[pick] - jitter[:, 1]) / pixels_per_unit
    if mirror_x:
        points[:, 0] = -points[:, 0]

    logger.debug("Sampled %d text points from %d glyph pixels", count, rows.size)
    return points
