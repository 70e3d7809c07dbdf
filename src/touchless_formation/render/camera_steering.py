"""
Camera Steering
================

Maps tracking output onto the orbit camera looking at the formation.

- Pointing: the pointing target picks an azimuth/polar angle on the orbit
  sphere and the camera eases toward it; auto-rotate is suspended.
- Spread: the normalized hand spread sets the orbit radius (open hand
  zooms in). Only the vector length is eased, never the direction.
- Otherwise the camera slowly auto-rotates around the vertical axis.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..core.types import TrackingResult

logger = logging.getLogger(__name__)


@dataclass
class CameraSteeringConfig:
    """Orbit camera settings."""
    initial_position: Tuple[float, float, float] = (0.0, 20.0, 90.0)
    far_radius: float = 200.0      # Radius at spread 0
    zoom_span: float = 145.0       # Radius reduction at spread 1
    easing: float = 0.1            # Fraction of the remaining gap per tick
    auto_rotate_speed: float = 0.8  # One turn per 60s / speed

    @classmethod
    def from_dict(cls, config: dict) -> "CameraSteeringConfig":
        """Create config from dictionary."""
        return cls(
            initial_position=tuple(config.get("initial_position", (0.0, 20.0, 90.0))),
            far_radius=config.get("far_radius", 200.0),
            zoom_span=config.get("zoom_span", 145.0),
            easing=config.get("easing", 0.1),
            auto_rotate_speed=config.get("auto_rotate_speed", 0.8),
        )


def pointing_angles(x: float, y: float) -> Tuple[float, float]:
    """(azimuth, polar) for a normalized pointing target."""
    azimuth = -(x - 0.5) * 4.0 * math.pi
    polar = y * math.pi
    return azimuth, polar


def spherical_to_cartesian(radius: float, azimuth: float, polar: float) -> np.ndarray:
    """Y-up spherical coordinates to a world position."""
    return np.array([
        radius * math.sin(polar) * math.sin(azimuth),
        radius * math.cos(polar),
        radius * math.sin(polar) * math.cos(azimuth),
    ])


class CameraSteering:
    """
    Gesture-driven orbit camera.

    Example:
        >>> steering = CameraSteering()
        >>> steering.zoom(spread_normalized=0.8)
        >>> steering.steer(tracking_result)
        >>> steering.advance(dt_s=1 / 60)
        >>> steering.position
    """

    def __init__(self, config: Optional[CameraSteeringConfig] = None):
        self.config = config or CameraSteeringConfig()
        self.position = np.array(self.config.initial_position, dtype=np.float64)
        self.target = np.zeros(3, dtype=np.float64)
        self.auto_rotate = True

    def target_radius(self, spread_normalized: float) -> float:
        """Orbit radius for a normalized spread."""
        return self.config.far_radius - spread_normalized * self.config.zoom_span

    def zoom(self, spread_normalized: float) -> float:
        """Ease the orbit radius toward the spread-derived radius.

        Returns:
            The new radius
        """
        offset = self.position - self.target
        length = float(np.linalg.norm(offset))
        if length == 0.0:
            return 0.0
        new_length = length + (self.target_radius(spread_normalized) - length) * self.config.easing
        self.position = self.target + offset * (new_length / length)
        return new_length

    def steer(self, tracking: TrackingResult) -> None:
        """Follow the pointing target, or hand control back to auto-rotate."""
        if not tracking.is_pointing:
            self.auto_rotate = True
            return

        self.auto_rotate = False
        azimuth, polar = pointing_angles(tracking.x, tracking.y)
        desired = self.target + spherical_to_cartesian(self.radius, azimuth, polar)
        self.position = self.position + (desired - self.position) * self.config.easing

    def advance(self, dt_s: float) -> None:
        """Apply auto-rotation for an elapsed time step."""
        if not self.auto_rotate or dt_s <= 0:
            return
        angle = 2.0 * math.pi / 60.0 * self.config.auto_rotate_speed * dt_s
        offset = self.position - self.target
        c, s = math.cos(angle), math.sin(angle)
        # Rotate about +Y, decreasing the azimuth
        x, z = offset[0], offset[2]
        offset[0] = c * x - s * z
        offset[2] = s * x + c * z
        self.position = self.target + offset

    @property
    def radius(self) -> float:
        return float(np.linalg.norm(self.position - self.target))

    @property
    def azimuth(self) -> float:
        offset = self.position - self.target
        return math.atan2(offset[0], offset[2])

    def view_matrix(self) -> np.ndarray:
        """World-to-camera rotation (rows: right, up, -forward) looking at the target."""
        forward = self.target - self.position
        norm = np.linalg.norm(forward)
        if norm == 0.0:
            return np.eye(3)
        forward = forward / norm
        up = np.array([0.0, 1.0, 0.0])
        right = np.cross(forward, up)
        if np.linalg.norm(right) < 1e-9:
            right = np.array([1.0, 0.0, 0.0])
        right /= np.linalg.norm(right)
        true_up = np.cross(right, forward)
        return np.stack([right, true_up, -forward])
