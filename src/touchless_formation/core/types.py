"""
Shared domain types for the Touchless Formation system.

Centralizes enums and value objects used across modules to avoid circular
imports and keep the per-tick data contract in one place.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..detection.landmarks import HandLandmarks


# =============================================================================
# Enums
# =============================================================================

class GestureType(Enum):
    """Gesture labels emitted by the classifier."""
    NONE = "NONE"
    GENERAL = "GENERAL"
    POINTING = "POINTING"


class FormationState(Enum):
    """Particle formation currently being blended toward."""
    TREE = "TREE"
    EXPLODE = "EXPLODE"
    TEXT = "TEXT"


class ShapeKind(Enum):
    SPHERE = "sphere"
    CUBE = "cube"


class ColorClass(Enum):
    GOLD = "gold"
    RED = "red"
    GREEN = "green"


# =============================================================================
# Value objects
# =============================================================================

@dataclass(frozen=True)
class TrackingResult:
    """Per-tick tracking snapshot. Replaced wholesale every frame."""
    x: float = 0.5
    y: float = 0.5
    is_detected: bool = False
    gesture: GestureType = GestureType.NONE
    hand_spread: float = 0.0

    @staticmethod
    def neutral() -> "TrackingResult":
        """Result used whenever no usable hand is present."""
        return TrackingResult()

    @property
    def is_pointing(self) -> bool:
        return self.is_detected and self.gesture == GestureType.POINTING


@dataclass(frozen=True)
class HandFeatures:
    """Scale-normalized geometric features of one hand pose.

    `finger_extended` is ordered (index, middle, ring, pinky). `points`
    holds the (21, 2) landmark array the features were computed from so the
    classifier can look up target landmarks.
    """
    palm_scale: float
    finger_extended: Tuple[bool, bool, bool, bool]
    thumb_extended: bool
    centroid: Tuple[float, float]
    spread: float
    points: np.ndarray

    @property
    def index_extended(self) -> bool:
        return self.finger_extended[0]

    @property
    def middle_extended(self) -> bool:
        return self.finger_extended[1]

    @property
    def ring_extended(self) -> bool:
        return self.finger_extended[2]

    @property
    def pinky_extended(self) -> bool:
        return self.finger_extended[3]


@dataclass(frozen=True)
class VelocitySample:
    """Last spread sample kept for instantaneous velocity."""
    spread: float
    timestamp_ms: int


@dataclass(frozen=True)
class FrameContext:
    """Everything the core needs for one tick, supplied by the host loop."""
    hand: Optional[HandLandmarks]
    timestamp_ms: int
    time_s: float = 0.0
    frame_size: Optional[Tuple[int, int]] = None
