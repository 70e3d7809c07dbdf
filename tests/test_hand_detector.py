"""
Tests for the MediaPipe Hand Detector Wrapper
==============================================

The landmarker itself is mocked; only the wrapper's behaviour is tested.
"""

import logging
import pytest
import numpy as np
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

pytest.importorskip("mediapipe")

from touchless_formation.detection.hand_detector import HandDetector, HandDetectorConfig


def make_result(num_hands=1):
    points = [SimpleNamespace(x=i / 21, y=0.5, z=0.0) for i in range(21)]
    return SimpleNamespace(
        hand_landmarks=[points] * num_hands,
        handedness=[[SimpleNamespace(category_name="Left", score=0.9)]] * num_hands,
    )


@pytest.fixture
def detector():
    det = HandDetector(HandDetectorConfig())
    det._landmarker = MagicMock()
    det._landmarker.detect_for_video.return_value = make_result()
    return det


@pytest.fixture
def rgb():
    return np.zeros((48, 64, 3), dtype=np.uint8)


class TestHandDetectorConfig:
    def test_from_dict_normalizes_delegate(self):
        config = HandDetectorConfig.from_dict({"delegate": "cpu", "model_path": None})
        assert config.delegate == "CPU"
        assert config.model_path == ""
        assert config.max_num_hands == 1


class TestHandDetector:
    """Test suite for HandDetector."""

    def test_not_started(self, rgb):
        assert HandDetector().detect(rgb, 0) == []

    def test_converts_result(self, detector, rgb):
        hands = detector.detect(rgb, 10)

        assert len(hands) == 1
        assert hands[0].handedness == "Left"
        assert hands[0].confidence == pytest.approx(0.9)
        assert len(hands[0].landmarks) == 21

    def test_timestamps_strictly_increase(self, detector, rgb):
        detector.detect(rgb, 100)
        detector.detect(rgb, 100)
        detector.detect(rgb, 50)

        stamps = [c.args[1] for c in detector._landmarker.detect_for_video.call_args_list]
        assert stamps == [100, 101, 102]

    def test_inference_error_is_no_detection(self, detector, rgb, caplog):
        detector._landmarker.detect_for_video.side_effect = RuntimeError("graph failed")

        with caplog.at_level(logging.WARNING):
            assert detector.detect(rgb, 10) == []
            assert detector.detect(rgb, 20) == []

        assert detector.fault_count == 2
        assert caplog.text.count("Hand detection failed") == 1

    def test_recovers_after_error(self, detector, rgb):
        detector._landmarker.detect_for_video.side_effect = [RuntimeError("x"), make_result()]

        assert detector.detect(rgb, 10) == []
        assert len(detector.detect(rgb, 20)) == 1
