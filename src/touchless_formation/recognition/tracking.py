"""
Tracking Frame Producer
========================

Turns one (possibly absent) hand pose into a TrackingResult.

This is the failure boundary of the per-frame loop: missing hands,
zero-sized frames and any error raised while extracting or classifying
features all come back as the neutral no-detection result. A single bad
frame never propagates an exception to the caller.
"""

import logging
from typing import Callable, Optional, Sequence, Tuple

from ..core.types import TrackingResult
from ..detection.landmarks import HandLandmarks
from ..errors import InvalidLandmarksError
from .feature_extractor import FeatureExtractor, PoseLike
from .gesture_classifier import Classification, GestureClassifier

logger = logging.getLogger(__name__)

# Called with (pose, classification) after every successful detection
OverlayCallback = Callable[[PoseLike, Classification], None]


class TrackingFrameProducer:
    """
    Orchestrates FeatureExtractor and GestureClassifier once per frame.

    Example:
        >>> producer = TrackingFrameProducer()
        >>> result = producer.process(hands[0] if hands else None)
        >>> if result.is_detected:
        ...     print(result.gesture, result.x, result.y)
    """

    # Log a warning once every N consecutive faulty frames
    FAULT_WARN_INTERVAL = 30

    def __init__(
        self,
        extractor: Optional[FeatureExtractor] = None,
        classifier: Optional[GestureClassifier] = None,
        overlay: Optional[OverlayCallback] = None,
    ):
        self.extractor = extractor or FeatureExtractor()
        self.classifier = classifier or GestureClassifier()
        self.overlay = overlay

        self._fault_count = 0
        self._frames = 0
        self._detections = 0
        self._last: TrackingResult = TrackingResult.neutral()

    def process(
        self,
        pose: Optional[PoseLike],
        frame_size: Optional[Tuple[int, int]] = None,
    ) -> TrackingResult:
        """
        Produce the tracking result for one frame.

        Args:
            pose: Landmarks of the tracked hand, or None when absent
            frame_size: (width, height) of the source frame, if known

        Returns:
            TrackingResult (neutral when nothing usable was found)
        """
        self._frames += 1

        if pose is None or self._is_degenerate_frame(frame_size):
            return self._emit(TrackingResult.neutral())

        try:
            features = self.extractor.extract(pose)
            classification = self.classifier.classify(features)
        except InvalidLandmarksError as e:
            logger.debug("Invalid landmarks, treating as no detection: %s", e)
            return self._emit(TrackingResult.neutral())
        except Exception as e:
            self._fault_count += 1
            if self._fault_count % self.FAULT_WARN_INTERVAL == 1:
                logger.warning("Feature computation failed (%d faults so far): %s",
                               self._fault_count, e)
            return self._emit(TrackingResult.neutral())

        if self.overlay is not None:
            try:
                self.overlay(pose, classification)
            except Exception as e:
                logger.debug("Overlay callback failed: %s", e)

        x, y = classification.target
        self._detections += 1
        return self._emit(TrackingResult(
            x=x,
            y=y,
            is_detected=True,
            gesture=classification.gesture,
            hand_spread=features.spread,
        ))

    def process_hands(
        self,
        hands: Sequence[HandLandmarks],
        frame_size: Optional[Tuple[int, int]] = None,
    ) -> TrackingResult:
        """Process a detector result list; only the first hand is used."""
        return self.process(hands[0] if hands else None, frame_size)

    def _emit(self, result: TrackingResult) -> TrackingResult:
        self._last = result
        return result

    @staticmethod
    def _is_degenerate_frame(frame_size: Optional[Tuple[int, int]]) -> bool:
        if frame_size is None:
            return False
        width, height = frame_size
        return not width or not height or width <= 0 or height <= 0

    @property
    def last_result(self) -> TrackingResult:
        return self._last

    @property
    def fault_count(self) -> int:
        return self._fault_count

    @property
    def detection_rate(self) -> float:
        """Fraction of processed frames that produced a detection."""
        if self._frames == 0:
            return 0.0
        return self._detections / self._frames
