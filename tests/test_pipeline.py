"""
Tests for the per-tick Pipeline
================================
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from touchless_formation.control.formation import FormationStateMachine
from touchless_formation.core.events import EventBus, Events
from touchless_formation.core.pipeline import Pipeline
from touchless_formation.core.types import FormationState, FrameContext, GestureType
from touchless_formation.recognition.tracking import TrackingFrameProducer
from touchless_formation.render.camera_steering import CameraSteering
from touchless_formation.render.particles import ParticleBlender, ParticleConfig
from landmark_builders import fist, open_hand, pointing_hand


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def pipeline(bus):
    return Pipeline(
        producer=TrackingFrameProducer(),
        formation=FormationStateMachine(event_bus=bus),
        steering=CameraSteering(),
        blender=ParticleBlender(ParticleConfig(count=300, seed=1, text_lines=["HO HO"])),
        event_bus=bus,
    )


def record(bus, event_name):
    received = []
    bus.subscribe(event_name, lambda **kw: received.append(kw))
    return received


def tick(pipeline, hand, t_ms):
    return pipeline.tick(FrameContext(hand=hand, timestamp_ms=t_ms, time_s=t_ms / 1000.0,
                                      frame_size=(1280, 720)))


class TestPipeline:
    """Test suite for Pipeline.tick()."""

    def test_no_hand_keeps_tree(self, pipeline):
        start_radius = pipeline.steering.radius
        for i in range(10):
            result = tick(pipeline, None, i * 16)

            assert not result.tracking.is_detected
            assert result.formation == FormationState.TREE
            assert not result.transitioned
            assert result.spread_normalized == 0.0
            assert result.auto_rotate is True

        assert pipeline.frame_count == 10
        assert pipeline.steering.radius == pytest.approx(start_radius)
        assert pipeline.formation.last_sample is None

    def test_result_contents(self, pipeline):
        result = tick(pipeline, open_hand(), 0)

        assert result.tracking.is_detected
        assert result.particles.positions.shape == (300, 3)
        assert result.camera_position.shape == (3,)
        assert result.latency_ms >= 0.0
        assert result.timestamp_ms == 0

    def test_open_hand_zooms_in(self, pipeline):
        start_radius = pipeline.steering.radius
        result = tick(pipeline, open_hand(), 0)

        assert result.spread_normalized == pytest.approx(0.9, abs=0.01)
        assert pipeline.steering.radius < start_radius

    def test_fast_open_explodes(self, pipeline, bus):
        changes = record(bus, Events.FORMATION_CHANGED)

        tick(pipeline, fist(), 1000)
        result = tick(pipeline, open_hand(), 1200)

        assert result.transitioned
        assert result.formation == FormationState.EXPLODE
        assert pipeline.formation.auto_rotate is False
        assert len(changes) == 1

    def test_full_cycle_through_hand_poses(self, pipeline):
        tick(pipeline, fist(), 0)
        assert tick(pipeline, open_hand(), 200).formation == FormationState.EXPLODE
        tick(pipeline, open_hand(), 1000)
        assert tick(pipeline, fist(), 1300).formation == FormationState.TEXT
        tick(pipeline, fist(), 2200)
        assert tick(pipeline, open_hand(), 2400).formation == FormationState.TREE

    def test_lost_hand_does_not_feed_formation(self, pipeline):
        tick(pipeline, open_hand(), 0)
        tick(pipeline, None, 200)
        # A fist after the gap is measured against the last detected sample
        result = tick(pipeline, fist(), 400)
        assert result.formation == FormationState.TREE
        assert pipeline.formation.last_sample.timestamp_ms == 400

    def test_pointing_steers_camera(self, pipeline):
        result = tick(pipeline, pointing_hand(), 0)
        assert result.tracking.is_pointing
        assert result.auto_rotate is False

        result = tick(pipeline, open_hand(), 16)
        assert result.auto_rotate is True

    def test_particles_follow_formation(self, pipeline):
        pipeline.formation.force(FormationState.EXPLODE, 0)
        before = pipeline.blender.distance_to_target(FormationState.EXPLODE)
        tick(pipeline, None, 16)
        assert pipeline.blender.distance_to_target(FormationState.EXPLODE) < before


class TestPipelineEvents:
    """Hand and gesture events fire on edges only."""

    def test_hand_detected_and_lost(self, pipeline, bus):
        detected = record(bus, Events.HAND_DETECTED)
        lost = record(bus, Events.HAND_LOST)

        tick(pipeline, open_hand(), 0)
        tick(pipeline, open_hand(), 16)
        tick(pipeline, None, 32)
        tick(pipeline, None, 48)

        assert len(detected) == 1
        assert len(lost) == 1

    def test_gesture_changed(self, pipeline, bus):
        changes = record(bus, Events.GESTURE_CHANGED)

        tick(pipeline, open_hand(), 0)
        tick(pipeline, open_hand(), 16)
        tick(pipeline, pointing_hand(), 32)
        tick(pipeline, None, 48)

        assert [c["current"] for c in changes] == [
            GestureType.GENERAL, GestureType.POINTING, GestureType.NONE,
        ]
        assert changes[0]["previous"] == GestureType.NONE


class TestTextFormation:
    """Test suite for Pipeline.load_text_formation()."""

    def test_load_text_formation(self, pipeline, bus):
        ready = record(bus, Events.TEXT_TARGETS_READY)

        assert pipeline.load_text_formation() is True
        assert pipeline.blender.text_targets_ready
        assert ready == [{"lines": ["HO HO"]}]

    def test_load_is_idempotent(self, pipeline, bus):
        ready = record(bus, Events.TEXT_TARGETS_READY)
        pipeline.load_text_formation()
        assert pipeline.load_text_formation() is True
        assert len(ready) == 1

    def test_empty_text_falls_back_to_tree(self, bus):
        pipeline = Pipeline(
            producer=TrackingFrameProducer(),
            formation=FormationStateMachine(event_bus=bus),
            steering=CameraSteering(),
            blender=ParticleBlender(ParticleConfig(count=100, seed=1, text_lines=[""])),
            event_bus=bus,
        )

        assert pipeline.load_text_formation() is False
        assert not pipeline.blender.text_targets_ready
