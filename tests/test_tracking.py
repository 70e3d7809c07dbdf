"""
Tests for the Tracking Frame Producer
======================================
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from touchless_formation.core.types import GestureType, TrackingResult
from touchless_formation.recognition.tracking import TrackingFrameProducer
from landmark_builders import INDEX_TIP_UP, fist, open_hand, pointing_hand


def assert_neutral(result: TrackingResult):
    assert result.is_detected is False
    assert result.gesture == GestureType.NONE
    assert (result.x, result.y) == (0.5, 0.5)
    assert result.hand_spread == 0.0


class TestTrackingFrameProducer:
    """Test suite for TrackingFrameProducer."""

    @pytest.fixture
    def producer(self):
        return TrackingFrameProducer()

    def test_no_hand_is_neutral(self, producer):
        for _ in range(10):
            assert_neutral(producer.process(None))
        assert producer.detection_rate == 0.0

    def test_pointing_hand(self, producer):
        result = producer.process(pointing_hand(), frame_size=(1280, 720))

        assert result.is_detected
        assert result.is_pointing
        assert result.x == pytest.approx(1.0 - INDEX_TIP_UP[0])
        assert result.y == pytest.approx(INDEX_TIP_UP[1])
        assert result.hand_spread > 0

    def test_general_hand(self, producer):
        result = producer.process(open_hand())
        assert result.is_detected
        assert result.gesture == GestureType.GENERAL
        assert not result.is_pointing

    @pytest.mark.parametrize("frame_size", [(0, 720), (1280, 0), (0, 0)])
    def test_degenerate_frame_is_neutral(self, producer, frame_size):
        assert_neutral(producer.process(open_hand(), frame_size=frame_size))

    def test_malformed_landmarks_are_neutral(self, producer):
        assert_neutral(producer.process([(0.5, 0.5)] * 5))
        assert producer.fault_count == 0

    def test_extra_landmarks_are_neutral(self, producer):
        assert_neutral(producer.process([(0.5, 0.5, 0.0)] * 22))
        assert_neutral(producer.process(open_hand().landmarks + [open_hand().landmarks[0]]))

    def test_unexpected_error_is_neutral(self, producer):
        producer.classifier.classify = Mock(side_effect=RuntimeError("boom"))

        assert_neutral(producer.process(open_hand()))
        assert producer.fault_count == 1

    def test_recovers_after_fault(self, producer):
        producer.extractor.extract = Mock(side_effect=ZeroDivisionError())
        producer.process(open_hand())

        del producer.extractor.extract  # Back to the real method
        assert producer.process(open_hand()).is_detected

    def test_first_hand_only(self, producer):
        result = producer.process_hands([pointing_hand(), fist()])
        assert result.gesture == GestureType.POINTING

    def test_empty_hand_list(self, producer):
        assert_neutral(producer.process_hands([]))

    def test_last_result(self, producer):
        producer.process(open_hand())
        assert producer.last_result.is_detected
        producer.process(None)
        assert not producer.last_result.is_detected

    def test_detection_rate(self, producer):
        producer.process(open_hand())
        producer.process(None)
        assert producer.detection_rate == pytest.approx(0.5)


class TestOverlayCallback:
    """The overlay is a side channel and never changes the result."""

    def test_overlay_called_on_detection(self):
        overlay = Mock()
        producer = TrackingFrameProducer(overlay=overlay)
        hand = pointing_hand()

        producer.process(hand)

        overlay.assert_called_once()
        pose, classification = overlay.call_args[0]
        assert pose is hand
        assert classification.gesture == GestureType.POINTING

    def test_overlay_not_called_without_hand(self):
        overlay = Mock()
        producer = TrackingFrameProducer(overlay=overlay)
        producer.process(None)
        overlay.assert_not_called()

    def test_overlay_error_is_ignored(self):
        producer = TrackingFrameProducer(overlay=Mock(side_effect=RuntimeError("draw failed")))
        result = producer.process(open_hand())
        assert result.is_detected
        assert producer.fault_count == 0
