"""
Hand Feature Extraction
========================

Geometric features computed from 21 hand landmarks.

All thresholds are expressed as multiples of the palm scale (wrist to middle
finger knuckle), so detection behaves the same whether the hand is close to
the camera or far away.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

import numpy as np

from ..core.types import HandFeatures
from ..detection.landmarks import FINGERTIPS, NUM_LANDMARKS, HandLandmarks, LandmarkIndex
from ..errors import InvalidLandmarksError

logger = logging.getLogger(__name__)

# (tip, pip) pairs for the four non-thumb fingers
FINGER_TIP_PIP = (
    (LandmarkIndex.INDEX_TIP, LandmarkIndex.INDEX_PIP),
    (LandmarkIndex.MIDDLE_TIP, LandmarkIndex.MIDDLE_PIP),
    (LandmarkIndex.RING_TIP, LandmarkIndex.RING_PIP),
    (LandmarkIndex.PINKY_TIP, LandmarkIndex.PINKY_PIP),
)

PoseLike = Union[HandLandmarks, np.ndarray, Sequence[Sequence[float]]]


@dataclass
class FeatureExtractorConfig:
    """Extension tolerances, as fractions of the palm scale."""
    finger_tolerance: float = 0.15
    thumb_tolerance: float = 0.1

    @classmethod
    def from_dict(cls, config: dict) -> "FeatureExtractorConfig":
        """Create config from dictionary."""
        return cls(
            finger_tolerance=config.get("finger_tolerance", 0.15),
            thumb_tolerance=config.get("thumb_tolerance", 0.1),
        )


def _distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def to_points(pose: PoseLike) -> np.ndarray:
    """Validate a hand pose and return its (21, 2) x/y array.

    Raises:
        InvalidLandmarksError: if the pose does not have exactly 21 landmarks or
            any coordinate is not finite.
    """
    if isinstance(pose, HandLandmarks):
        arr = pose.to_numpy()
    else:
        try:
            arr = np.asarray(pose, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidLandmarksError(f"Landmarks are not numeric: {e}") from e

    if arr.ndim != 2 or arr.shape[1] < 2:
        raise InvalidLandmarksError(f"Expected (21, 2|3) landmarks, got shape {arr.shape}")
    if arr.shape[0] != NUM_LANDMARKS:
        raise InvalidLandmarksError(f"Expected {NUM_LANDMARKS} landmarks, got {arr.shape[0]}")
    if not np.all(np.isfinite(arr)):
        raise InvalidLandmarksError("Landmarks contain non-finite coordinates")

    return arr[:, :2]


class FeatureExtractor:
    """
    Computes palm scale, finger extension, centroid and spread.

    Example:
        >>> extractor = FeatureExtractor()
        >>> features = extractor.extract(hand)
        >>> features.spread
        0.92
    """

    def __init__(self, config: Optional[FeatureExtractorConfig] = None):
        self.config = config or FeatureExtractorConfig()

    def extract(self, pose: PoseLike) -> HandFeatures:
        """
        Compute the full feature bundle for one hand pose.

        Args:
            pose: HandLandmarks, or any (21, 2|3) array-like

        Returns:
            HandFeatures

        Raises:
            InvalidLandmarksError: malformed pose or degenerate palm scale
        """
        points = to_points(pose)
        palm_scale = self.palm_scale(points)
        if palm_scale <= 0.0:
            raise InvalidLandmarksError("Palm scale is zero")

        extended = tuple(
            self.is_finger_extended(points, tip, pip, palm_scale)
            for tip, pip in FINGER_TIP_PIP
        )
        thumb = self.is_thumb_extended(points, palm_scale)
        centroid = self.centroid(points, FINGERTIPS)

        return HandFeatures(
            palm_scale=palm_scale,
            finger_extended=extended,
            thumb_extended=thumb,
            centroid=(float(centroid[0]), float(centroid[1])),
            spread=self.spread(points, palm_scale, centroid),
            points=points,
        )

    @staticmethod
    def palm_scale(points: np.ndarray) -> float:
        """Wrist to middle MCP distance, the normalization unit."""
        return _distance(points[LandmarkIndex.WRIST], points[LandmarkIndex.MIDDLE_MCP])

    def is_finger_extended(
        self,
        points: np.ndarray,
        tip_idx: int,
        pip_idx: int,
        palm_scale: float,
    ) -> bool:
        """Tip is farther from the wrist than the PIP joint, by a palm-relative margin."""
        wrist = points[LandmarkIndex.WRIST]
        d_tip = _distance(points[tip_idx], wrist)
        d_pip = _distance(points[pip_idx], wrist)
        return d_tip > d_pip + palm_scale * self.config.finger_tolerance

    def is_thumb_extended(self, points: np.ndarray, palm_scale: float) -> bool:
        """
        Thumb extension measured against the pinky MCP.

        The thumb folds across the palm rather than toward the wrist, so the
        wrist-based rule used for the other fingers does not apply.
        """
        pinky_mcp = points[LandmarkIndex.PINKY_MCP]
        d_tip = _distance(points[LandmarkIndex.THUMB_TIP], pinky_mcp)
        d_ip = _distance(points[LandmarkIndex.THUMB_IP], pinky_mcp)
        return d_tip > d_ip + palm_scale * self.config.thumb_tolerance

    @staticmethod
    def centroid(points: np.ndarray, indices: Iterable[int]) -> np.ndarray:
        """Arithmetic mean of the given landmarks."""
        idx = [int(i) for i in indices]
        return points[idx].mean(axis=0)

    def spread(
        self,
        points: np.ndarray,
        palm_scale: float,
        centroid: Optional[np.ndarray] = None,
    ) -> float:
        """
        Mean fingertip distance to the fingertip centroid, in palm units.

        Roughly 0.3 for a closed fist and 1.3 for a fully open hand.
        """
        if centroid is None:
            centroid = self.centroid(points, FINGERTIPS)
        tips = points[[int(i) for i in FINGERTIPS]]
        dists = np.hypot(tips[:, 0] - centroid[0], tips[:, 1] - centroid[1])
        return float(dists.mean() / palm_scale)

