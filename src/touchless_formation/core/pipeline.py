"""
Per-tick pipeline for the formation display.

Architecture:
    HandLandmarks -> TrackingFrameProducer -> normalize_spread
    -> FormationStateMachine + CameraSteering -> ParticleBlender

The host loop owns the camera, detector and window; it builds a
FrameContext each animation tick and calls `Pipeline.tick()`. Everything
inside the tick is synchronous and single-threaded: the pipeline is the
only writer of the particle arrays and the formation state.
"""

import time
import logging
from typing import Optional

from ..control.formation import FormationStateMachine
from ..errors import FormationError
from ..recognition.tracking import TrackingFrameProducer
from ..render.camera_steering import CameraSteering
from ..render.particles import ParticleBlender, ParticleFrame
from ..render.text_layout import sample_text_points
from .events import EventBus, Events
from .types import FormationState, FrameContext, GestureType, TrackingResult

logger = logging.getLogger(__name__)


class PipelineResult:
    """Result of a single pipeline tick."""

    __slots__ = (
        "tracking", "spread_normalized", "formation", "transitioned",
        "particles", "camera_position", "auto_rotate", "latency_ms",
        "timestamp_ms",
    )

    def __init__(self, tracking: TrackingResult, timestamp_ms: int):
        self.tracking = tracking
        self.spread_normalized = 0.0
        self.formation = FormationState.TREE
        self.transitioned = False
        self.particles: Optional[ParticleFrame] = None
        self.camera_position = None
        self.auto_rotate = True
        self.latency_ms = 0.0
        self.timestamp_ms = timestamp_ms


class Pipeline:
    """Composable tracking -> formation -> particles pipeline.

    Example:
        >>> pipeline = Pipeline(producer, machine, steering, blender)
        >>> ctx = FrameContext(hand=hands[0] if hands else None,
        ...                    timestamp_ms=now_ms, time_s=now_ms / 1000)
        >>> result = pipeline.tick(ctx)
        >>> render(result.particles, result.camera_position)
    """

    def __init__(
        self,
        producer: TrackingFrameProducer,
        formation: FormationStateMachine,
        steering: CameraSteering,
        blender: ParticleBlender,
        event_bus: Optional[EventBus] = None,
    ):
        self._producer = producer
        self._formation = formation
        self._steering = steering
        self._blender = blender
        self._bus = event_bus or EventBus()

        self._frame_count = 0
        self._last_timestamp_ms: Optional[int] = None
        self._hand_present = False
        self._last_gesture = GestureType.NONE
        self._spread_normalized = 0.0

    def tick(self, ctx: FrameContext) -> PipelineResult:
        """Execute one full pipeline iteration.

        Returns:
            PipelineResult with tracking, formation and particle data
        """
        start = time.perf_counter()
        self._frame_count += 1

        # --- 1. Tracking ---
        tracking = self._producer.process(ctx.hand, ctx.frame_size)
        result = PipelineResult(tracking, ctx.timestamp_ms)
        self._publish_edges(tracking)

        # --- 2. Spread: zoom + formation switching ---
        if tracking.is_detected:
            self._spread_normalized = self._formation.normalize(tracking.hand_spread)
            self._steering.zoom(self._spread_normalized)
            if self._formation.update(self._spread_normalized, ctx.timestamp_ms) is not None:
                result.transitioned = True
                self._steering.auto_rotate = self._formation.auto_rotate

        # --- 3. Camera ---
        self._steering.steer(tracking)
        if self._last_timestamp_ms is not None:
            self._steering.advance((ctx.timestamp_ms - self._last_timestamp_ms) / 1000.0)
        self._last_timestamp_ms = ctx.timestamp_ms

        # --- 4. Particles ---
        result.particles = self._blender.tick(self._formation.state, ctx.time_s)

        result.spread_normalized = self._spread_normalized
        result.formation = self._formation.state
        result.camera_position = self._steering.position.copy()
        result.auto_rotate = self._steering.auto_rotate
        result.latency_ms = (time.perf_counter() - start) * 1000
        return result

    def load_text_formation(self) -> bool:
        """Build the TEXT formation targets from the configured text lines.

        Until this succeeds the TEXT formation reuses the tree targets.

        Returns:
            True if the targets were installed
        """
        if self._blender.text_targets_ready:
            return True

        cfg = self._blender.config
        try:
            points = sample_text_points(
                cfg.text_lines,
                self._blender.count,
                self._blender.rng,
                size=cfg.text_size,
                line_spacing=cfg.text_line_spacing,
            )
            self._blender.set_text_targets(points)
        except FormationError as e:
            logger.warning("Text formation unavailable, TEXT will mirror TREE: %s", e)
            return False

        self._bus.emit(Events.TEXT_TARGETS_READY, lines=list(cfg.text_lines))
        return True

    def _publish_edges(self, tracking: TrackingResult):
        """Emit hand/gesture events only when they change."""
        if tracking.is_detected and not self._hand_present:
            self._hand_present = True
            self._bus.emit(Events.HAND_DETECTED, tracking=tracking)
        elif not tracking.is_detected and self._hand_present:
            self._hand_present = False
            self._bus.emit(Events.HAND_LOST)

        if tracking.gesture != self._last_gesture:
            previous = self._last_gesture
            self._last_gesture = tracking.gesture
            self._bus.emit(Events.GESTURE_CHANGED, previous=previous, current=tracking.gesture)

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def formation_state(self) -> FormationState:
        return self._formation.state

    @property
    def formation(self) -> FormationStateMachine:
        return self._formation

    @property
    def steering(self) -> CameraSteering:
        return self._steering

    @property
    def blender(self) -> ParticleBlender:
        return self._blender

    @property
    def event_bus(self) -> EventBus:
        return self._bus
