"""
Hand Detection Module - MediaPipe Tasks API
============================================

Wraps the MediaPipe HandLandmarker and converts its output into
`HandLandmarks`. Tracks at most one hand in VIDEO mode.

Tries the GPU delegate first and falls back to CPU when the GPU is not
available on the host.
"""

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from .landmarks import HandLandmarks, Landmark

logger = logging.getLogger(__name__)

# Model download URL
HAND_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent.parent / "models" / "hand_landmarker.task"


@dataclass
class HandDetectorConfig:
    """Configuration for hand detector."""
    model_path: str = ""
    max_num_hands: int = 1
    delegate: str = "GPU"  # GPU or CPU
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    min_presence_confidence: float = 0.5

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from dictionary."""
        return cls(
            model_path=d.get("model_path", "") or "",
            max_num_hands=d.get("max_num_hands", 1),
            delegate=str(d.get("delegate", "GPU")).upper(),
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
        )


def resolve_model(model_path: str = "", url: str = HAND_LANDMARKER_MODEL_URL) -> Optional[Path]:
    """Path of a usable .task file, fetching it on first run.

    Returns:
        The model path, or None if it is missing and could not be fetched
    """
    path = Path(model_path) if model_path else DEFAULT_MODEL_PATH
    if path.exists():
        return path

    logger.info("Hand landmarker model not found, downloading to %s", path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        urllib.request.urlretrieve(url, str(path))
    except OSError as e:
        logger.error("Failed to download model: %s", e)
        return None
    return path


def _to_hands(result) -> List[HandLandmarks]:
    """HandLandmarkerResult -> HandLandmarks, in detection order."""
    hands = []
    for points, categories in zip(result.hand_landmarks, result.handedness or []):
        best = categories[0]
        hands.append(HandLandmarks(
            landmarks=[Landmark(p.x, p.y, p.z) for p in points],
            handedness=best.category_name,
            confidence=best.score,
        ))
    return hands


class HandDetector:
    """
    Hand detection wrapper using MediaPipe Tasks API (HandLandmarker).

    Example:
        >>> detector = HandDetector(HandDetectorConfig())
        >>> detector.start()
        >>> hands = detector.detect(frame.rgb, timestamp_ms)  # RGB format!
        >>> detector.stop()
    """

    # Log a warning once every N failed inferences
    FAULT_WARN_INTERVAL = 30

    def __init__(self, config: Optional[HandDetectorConfig] = None):
        self.config = config or HandDetectorConfig()
        self._landmarker: Optional[vision.HandLandmarker] = None
        self._last_timestamp_ms = -1
        self.active_delegate: Optional[str] = None
        self._fault_count = 0

    def start(self) -> bool:
        """Initialize the hand landmarker."""
        model = resolve_model(self.config.model_path)
        if model is None:
            return False
        model_path = str(model)

        delegates = [self.config.delegate]
        if self.config.delegate != "CPU":
            delegates.append("CPU")

        for delegate in delegates:
            try:
                self._landmarker = vision.HandLandmarker.create_from_options(
                    self._options(model_path, delegate))
            except (RuntimeError, ValueError, NotImplementedError) as e:
                logger.warning("HandLandmarker %s delegate unavailable: %s", delegate, e)
                continue
            self.active_delegate = delegate
            logger.info("HandLandmarker initialized with model: %s (%s delegate)",
                        model_path, delegate)
            return True

        logger.error("Failed to initialize HandLandmarker")
        return False

    def _options(self, model_path: str, delegate: str) -> "vision.HandLandmarkerOptions":
        base_options = python.BaseOptions(
            model_asset_path=model_path,
            delegate=getattr(python.BaseOptions.Delegate, delegate),
        )
        return vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.VIDEO,
            num_hands=self.config.max_num_hands,
            min_hand_detection_confidence=self.config.min_detection_confidence,
            min_hand_presence_confidence=self.config.min_presence_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
        )

    def stop(self) -> None:
        """Release resources."""
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
        logger.info("HandLandmarker stopped")

    def detect(self, image: np.ndarray, timestamp_ms: int) -> List[HandLandmarks]:
        """
        Detect hands in the given image.

        Args:
            image: RGB image as numpy array (H, W, 3)
            timestamp_ms: Frame timestamp; VIDEO mode requires it to increase

        Returns:
            List of HandLandmarks (empty when no hand is visible)
        """
        if self._landmarker is None:
            logger.warning("HandLandmarker not initialized. Call start() first.")
            return []

        # MediaPipe rejects non-increasing timestamps
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        try:
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image)
            result = self._landmarker.detect_for_video(mp_image, timestamp_ms)
        except Exception as e:
            self._fault_count += 1
            if self._fault_count % self.FAULT_WARN_INTERVAL == 1:
                logger.warning("Hand detection failed (%d faults so far): %s",
                               self._fault_count, e)
            return []
        return _to_hands(result)

    @property
    def fault_count(self) -> int:
        """Frames whose inference raised and were reported as no hand."""
        return self._fault_count

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
