"""
Visualization Module
=====================

Debug overlays on the camera frame and a software preview of the particle
formation, both drawn with OpenCV.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from ..core.types import FormationState, GestureType, TrackingResult
from ..detection.landmarks import FINGERTIPS, HAND_CONNECTIONS
from ..recognition.feature_extractor import PoseLike, to_points
from ..recognition.gesture_classifier import Classification
from ..render.camera_steering import CameraSteering
from ..render.particles import ParticleFrame

# Particle palette (BGR), indexed like ColorClass: gold, red, green
PARTICLE_COLORS = np.array([
    (0, 215, 255),
    (40, 40, 220),
    (60, 160, 40),
], dtype=np.uint8)


@dataclass
class VisualizerConfig:
    """Visualization settings."""
    show_skeleton: bool = True
    show_status: bool = True
    show_particles: bool = True
    preview_size: Tuple[int, int] = (480, 480)
    field_of_view_deg: float = 45.0

    # Colors (BGR format)
    landmark_color: Tuple[int, int, int] = (0, 255, 0)        # Green
    connection_color: Tuple[int, int, int] = (255, 255, 255)  # White
    pointing_color: Tuple[int, int, int] = (0, 255, 255)      # Yellow
    general_color: Tuple[int, int, int] = (255, 255, 0)       # Cyan
    text_color: Tuple[int, int, int] = (0, 255, 255)
    warning_color: Tuple[int, int, int] = (0, 0, 255)

    font_scale: float = 0.6
    font_thickness: int = 2

    @classmethod
    def from_dict(cls, config: dict) -> "VisualizerConfig":
        """Create config from dictionary."""
        return cls(
            show_skeleton=config.get("show_skeleton", True),
            show_status=config.get("show_status", True),
            show_particles=config.get("show_particles", True),
            preview_size=tuple(config.get("preview_size", (480, 480))),
            field_of_view_deg=config.get("field_of_view_deg", 45.0),
            font_scale=config.get("font_scale", 0.6),
            font_thickness=config.get("font_thickness", 2),
        )


class Visualizer:
    """
    Debug overlay and formation preview.

    Pass `on_tracking` to TrackingFrameProducer as its overlay callback; the
    latest pose and classification are cached and drawn by `draw_tracking`.

    Example:
        >>> viz = Visualizer()
        >>> producer = TrackingFrameProducer(overlay=viz.on_tracking)
        >>> result = pipeline.tick(ctx)
        >>> viz.draw_tracking(frame.image, result.tracking)
        >>> viz.draw_status(frame.image, result, fps=monitor.fps)
        >>> preview = viz.render_particles(result.particles, blender.color_index, steering)
    """

    def __init__(self, config: Optional[VisualizerConfig] = None):
        self.config = config or VisualizerConfig()
        self._font = cv2.FONT_HERSHEY_SIMPLEX
        self._pose: Optional[PoseLike] = None
        self._classification: Optional[Classification] = None

    # =========================================================================
    # Camera frame overlay
    # =========================================================================

    def on_tracking(self, pose: PoseLike, classification: Classification) -> None:
        """Overlay callback: remember the latest detection for drawing."""
        self._pose = pose
        self._classification = classification

    def draw_tracking(self, image: np.ndarray, tracking: TrackingResult) -> np.ndarray:
        """Draw the cached detection if this frame had one, then clear it."""
        if tracking.is_detected and self._pose is not None:
            if self.config.show_skeleton:
                self.draw_hand(image, self._pose)
            if self._classification is not None:
                self.draw_active_point(image, self._classification)
        self._pose = None
        self._classification = None
        return image

    def draw_hand(self, image: np.ndarray, pose: PoseLike) -> np.ndarray:
        """
        Draw landmarks and skeleton connections.

        Args:
            image: BGR image to draw on
            pose: Hand landmarks in normalized coordinates

        Returns:
            Image with hand drawn
        """
        height, width = image.shape[:2]
        pixels = [(int(x * width), int(y * height)) for x, y in to_points(pose)]

        for start_idx, end_idx in HAND_CONNECTIONS:
            cv2.line(image, pixels[start_idx], pixels[end_idx],
                     self.config.connection_color, 2)

        for i, (x, y) in enumerate(pixels):
            if i in FINGERTIPS:
                cv2.circle(image, (x, y), 6, (0, 0, 255), -1)
            else:
                cv2.circle(image, (x, y), 4, self.config.landmark_color, -1)

        return image

    def draw_active_point(self, image: np.ndarray, classification: Classification) -> np.ndarray:
        """Mark the control point: yellow when pointing, cyan for an open hand."""
        height, width = image.shape[:2]
        # The camera frame is not mirrored, so use the raw target
        x, y = classification.raw_target
        center = (int(x * width), int(y * height))
        color = (self.config.pointing_color
                 if classification.gesture == GestureType.POINTING
                 else self.config.general_color)
        cv2.circle(image, center, 12, color, -1)
        cv2.circle(image, center, 16, (0, 0, 0), 2)
        return image

    def draw_status(
        self,
        image: np.ndarray,
        formation: FormationState,
        tracking: TrackingResult,
        spread_normalized: float = 0.0,
        fps: float = 0.0,
    ) -> np.ndarray:
        """Draw formation, gesture, spread bar and FPS in the top-left corner."""
        if not self.config.show_status:
            return image

        x, y = 20, 30
        line_height = 25
        scale, thickness = self.config.font_scale, self.config.font_thickness

        cv2.putText(image, f"Formation: {formation.value}", (x, y),
                    self._font, scale, self.config.text_color, thickness)
        y += line_height

        gesture_color = (self.config.text_color if tracking.is_detected
                         else self.config.warning_color)
        cv2.putText(image, f"Gesture: {tracking.gesture.value}", (x, y),
                    self._font, scale, gesture_color, thickness)
        y += line_height

        bar_w, bar_h = 150, 12
        filled = int(bar_w * max(0.0, min(1.0, spread_normalized)))
        cv2.rectangle(image, (x, y - bar_h), (x + bar_w, y), (80, 80, 80), -1)
        cv2.rectangle(image, (x, y - bar_h), (x + filled, y), self.config.general_color, -1)
        cv2.putText(image, "Spread", (x + bar_w + 10, y),
                    self._font, 0.5, self.config.text_color, 1)
        y += line_height

        fps_color = self.config.landmark_color if fps >= 25 else self.config.warning_color
        cv2.putText(image, f"FPS: {fps:.1f}", (x, y),
                    self._font, scale, fps_color, thickness)

        return image

    # =========================================================================
    # Formation preview
    # =========================================================================

    def project(self, positions: np.ndarray, steering: CameraSteering) -> Tuple[np.ndarray, np.ndarray]:
        """
        Perspective-project world positions through the orbit camera.

        Returns:
            (pixels (N, 2) float, depth (N,)); depth <= 0 is behind the camera
        """
        width, height = self.config.preview_size
        focal = (height / 2.0) / math.tan(math.radians(self.config.field_of_view_deg) / 2.0)

        cam = (positions - steering.position) @ steering.view_matrix().T
        depth = -cam[:, 2]
        safe = np.where(depth > 1e-6, depth, 1e-6)

        pixels = np.empty((len(positions), 2), dtype=np.float64)
        pixels[:, 0] = width / 2.0 + focal * cam[:, 0] / safe
        pixels[:, 1] = height / 2.0 - focal * cam[:, 1] / safe
        return pixels, depth

    def render_particles(
        self,
        frame: ParticleFrame,
        color_index: np.ndarray,
        steering: CameraSteering,
    ) -> np.ndarray:
        """
        Draw a particle frame into a new BGR preview image.

        Far particles are drawn first so near ones cover them.
        """
        width, height = self.config.preview_size
        canvas = np.zeros((height, width, 3), dtype=np.uint8)
        if not self.config.show_particles:
            return canvas

        pixels, depth = self.project(frame.positions, steering)
        focal = (height / 2.0) / math.tan(math.radians(self.config.field_of_view_deg) / 2.0)

        visible = (depth > 0.1) \
            & (pixels[:, 0] >= 0) & (pixels[:, 0] < width) \
            & (pixels[:, 1] >= 0) & (pixels[:, 1] < height)
        order = np.flatnonzero(visible)
        order = order[np.argsort(-depth[order])]

        radii = np.maximum(1, (frame.scales[order] * focal / depth[order]).astype(int))
        colors = PARTICLE_COLORS[color_index[order]]

        for (u, v), r, color in zip(pixels[order].astype(int), radii, colors):
            cv2.circle(canvas, (int(u), int(v)), int(r), tuple(int(c) for c in color), -1)

        return canvas
