"""Gesture recognition module."""
from .feature_extractor import FeatureExtractor, FeatureExtractorConfig
from .gesture_classifier import Classification, GestureClassifier, GestureClassifierConfig
from .tracking import TrackingFrameProducer

__all__ = [
    "FeatureExtractor",
    "FeatureExtractorConfig",
    "Classification",
    "GestureClassifier",
    "GestureClassifierConfig",
    "TrackingFrameProducer",
]
