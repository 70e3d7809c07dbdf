"""
Gesture Classifier
===================

Rule-based gesture recognition from extracted hand features.

Only two gestures matter to the formation display:

- POINTING: middle, ring and pinky curled while the index (or, failing
  that, the thumb) is extended. The target is that fingertip.
- GENERAL: anything else. The target is the fingertip centroid.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..core.types import GestureType, HandFeatures
from ..detection.landmarks import LandmarkIndex

logger = logging.getLogger(__name__)


@dataclass
class GestureClassifierConfig:
    """Gesture classifier configuration."""
    # Mirror x so the output matches a front-facing, mirrored camera view
    mirror_x: bool = True
    # Allow the thumb to act as a pointer when the index is curled
    thumb_pointing: bool = True
    # Enable detailed logging
    debug: bool = False

    @classmethod
    def from_dict(cls, config: dict) -> "GestureClassifierConfig":
        """Create config from dictionary."""
        return cls(
            mirror_x=config.get("mirror_x", True),
            thumb_pointing=config.get("thumb_pointing", True),
            debug=config.get("debug", False),
        )


@dataclass(frozen=True)
class Classification:
    """Classifier output for one pose."""
    gesture: GestureType
    target: Tuple[float, float]       # mirrored, what downstream consumers use
    raw_target: Tuple[float, float]   # camera-space, for the debug overlay
    pointer_index: Optional[int] = None


class GestureClassifier:
    """
    Priority-ordered pointing/general classifier.

    Example:
        >>> classifier = GestureClassifier()
        >>> result = classifier.classify(extractor.extract(hand))
        >>> result.gesture, result.target
        (<GestureType.POINTING: 'POINTING'>, (0.25, 0.5))
    """

    def __init__(self, config: Optional[GestureClassifierConfig] = None):
        self.config = config or GestureClassifierConfig()

    def classify(self, features: HandFeatures) -> Classification:
        """
        Classify a hand from its features.

        Args:
            features: Output of FeatureExtractor.extract()

        Returns:
            Classification with gesture label and target point
        """
        others_curled = (
            not features.middle_extended
            and not features.ring_extended
            and not features.pinky_extended
        )

        pointer: Optional[int] = None
        if others_curled and features.index_extended:
            pointer = LandmarkIndex.INDEX_TIP
        elif others_curled and features.thumb_extended and self.config.thumb_pointing:
            pointer = LandmarkIndex.THUMB_TIP

        if pointer is not None:
            gesture = GestureType.POINTING
            px, py = features.points[pointer]
            raw = (float(px), float(py))
        else:
            gesture = GestureType.GENERAL
            raw = features.centroid

        if self.config.debug:
            logger.debug(
                "fingers=%s thumb=%s -> %s",
                features.finger_extended, features.thumb_extended, gesture.value,
            )

        return Classification(
            gesture=gesture,
            target=self.mirror(raw),
            raw_target=raw,
            pointer_index=int(pointer) if pointer is not None else None,
        )

    def mirror(self, point: Tuple[float, float]) -> Tuple[float, float]:
        """Flip x horizontally; y passes through."""
        x, y = point
        if self.config.mirror_x:
            x = 1.0 - x
        return (x, y)
