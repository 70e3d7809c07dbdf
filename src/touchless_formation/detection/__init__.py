"""Hand landmark types. The MediaPipe detector lives in `detection.hand_detector`."""
from .landmarks import (
    FINGERTIPS,
    HAND_CONNECTIONS,
    NUM_LANDMARKS,
    HandLandmarks,
    Landmark,
    LandmarkIndex,
)

__all__ = [
    "FINGERTIPS",
    "HAND_CONNECTIONS",
    "NUM_LANDMARKS",
    "HandLandmarks",
    "Landmark",
    "LandmarkIndex",
]
