"""
Particle Blender
=================

Owns every particle of the formation display and moves it each frame.

Particles are stored as parallel numpy arrays (struct-of-arrays) so a
4500-particle tick is a handful of vectorized operations. Each particle has
three fixed targets, one per formation; every tick its current position is
lerped a fixed fraction toward the active target, which gives an
exponential approach rather than a snap.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..core.types import ColorClass, FormationState, ShapeKind
from ..errors import FormationError
from .layouts import build_explode_targets, build_tree_targets

logger = logging.getLogger(__name__)

_SHAPES = (ShapeKind.SPHERE, ShapeKind.CUBE)
_COLORS = (ColorClass.GOLD, ColorClass.RED, ColorClass.GREEN)


@dataclass
class ParticleConfig:
    """Particle system settings."""
    count: int = 4500
    tree_height: float = 40.0
    tree_radius: float = 16.0
    blend_rate: float = 0.03          # Fraction of remaining distance per tick
    wobble_amplitude: float = 0.1     # EXPLODE-only cosmetic oscillation
    global_scale: float = 0.5
    sphere_ratio: float = 0.7
    color_weights: Tuple[float, float, float] = (0.7, 0.2, 0.1)  # gold, red, green
    seed: Optional[int] = None
    text_lines: List[str] = field(default_factory=lambda: ["MERRY", "CHRISTMAS"])
    text_size: float = 6.0
    text_line_spacing: float = 12.0

    @classmethod
    def from_dict(cls, config: dict) -> "ParticleConfig":
        """Create config from dictionary."""
        return cls(
            count=config.get("count", 4500),
            tree_height=config.get("tree_height", 40.0),
            tree_radius=config.get("tree_radius", 16.0),
            blend_rate=config.get("blend_rate", 0.03),
            wobble_amplitude=config.get("wobble_amplitude", 0.1),
            global_scale=config.get("global_scale", 0.5),
            sphere_ratio=config.get("sphere_ratio", 0.7),
            color_weights=tuple(config.get("color_weights", (0.7, 0.2, 0.1))),
            seed=config.get("seed"),
            text_lines=list(config.get("text_lines", ["MERRY", "CHRISTMAS"])),
            text_size=config.get("text_size", 6.0),
            text_line_spacing=config.get("text_line_spacing", 12.0),
        )


@dataclass(frozen=True)
class Particle:
    """Read-only snapshot of one particle."""
    id: int
    shape: ShapeKind
    color: ColorClass
    tree_target: Tuple[float, float, float]
    explode_target: Tuple[float, float, float]
    text_target: Tuple[float, float, float]
    position: Tuple[float, float, float]
    base_scale: float
    rotation: Tuple[float, float, float]
    rotation_velocity: Tuple[float, float, float]


@dataclass
class ParticleFrame:
    """What the renderer draws for one tick."""
    positions: np.ndarray   # (N, 3), including cosmetic offsets
    rotations: np.ndarray   # (N, 3) Euler angles
    scales: np.ndarray      # (N,)


def _as_tuple(row: np.ndarray) -> Tuple[float, float, float]:
    return (float(row[0]), float(row[1]), float(row[2]))


class ParticleBlender:
    """
    Per-frame target blending for all particles.

    Example:
        >>> blender = ParticleBlender(ParticleConfig(count=1000, seed=7))
        >>> frame = blender.tick(FormationState.EXPLODE, time_s=1.5)
        >>> frame.positions.shape
        (1000, 3)
    """

    def __init__(self, config: Optional[ParticleConfig] = None,
                 rng: Optional[np.random.Generator] = None):
        self.config = config or ParticleConfig()
        self._rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.global_scale = self.config.global_scale

        n = self.config.count
        if n <= 0:
            raise FormationError(f"Particle count must be positive, got {n}")

        weights = np.asarray(self.config.color_weights, dtype=np.float64)
        self.shape_index = np.where(self._rng.random(n) < self.config.sphere_ratio, 0, 1)
        self.color_index = self._rng.choice(len(_COLORS), size=n, p=weights / weights.sum())
        self.base_scale = 0.4 + self._rng.random(n) * 0.8
        self.rotation_velocity = (self._rng.random((n, 3)) - 0.5) * 0.01
        self.rotation = np.zeros((n, 3), dtype=np.float64)
        self.rotation[:, :2] = self._rng.random((n, 2)) * np.pi

        self._tree = build_tree_targets(n, self.config.tree_height,
                                        self.config.tree_radius, self._rng)
        self._explode = build_explode_targets(n, self._rng)
        # Until the text asset is ready the TEXT formation mirrors the tree
        self._text = self._tree
        self._text_ready = False

        for arr in (self._tree, self._explode):
            arr.setflags(write=False)

        self.positions = self._tree.copy()
        self._phase = np.arange(n, dtype=np.float64)

        logger.info("Particle system created: %d particles (%d spheres, %d cubes)",
                    n, int((self.shape_index == 0).sum()), int((self.shape_index == 1).sum()))

    def set_text_targets(self, points: np.ndarray) -> None:
        """
        Install the TEXT formation targets. Allowed exactly once.

        Raises:
            FormationError: wrong shape, non-finite data, or already set
        """
        if self._text_ready:
            raise FormationError("Text targets are already loaded")

        points = np.array(points, dtype=np.float64)
        if points.shape != (self.count, 3):
            raise FormationError(
                f"Text targets must have shape ({self.count}, 3), got {points.shape}")
        if not np.all(np.isfinite(points)):
            raise FormationError("Text targets contain non-finite values")

        points.setflags(write=False)
        self._text = points
        self._text_ready = True
        logger.info("Text formation targets loaded")

    def targets_for(self, state: FormationState) -> np.ndarray:
        """Target array for a formation state."""
        if state == FormationState.EXPLODE:
            return self._explode
        if state == FormationState.TEXT:
            return self._text
        return self._tree

    def tick(self, state: FormationState, time_s: float = 0.0) -> ParticleFrame:
        """
        Advance every particle one frame.

        Args:
            state: Active formation
            time_s: Host clock in seconds, drives the EXPLODE wobble

        Returns:
            ParticleFrame for rendering
        """
        target = self.targets_for(state)
        self.positions += (target - self.positions) * self.config.blend_rate
        # Only x and y spin; z stays at its initial 0
        self.rotation[:, :2] += self.rotation_velocity[:, :2]

        rendered = self.positions
        if state == FormationState.EXPLODE and self.config.wobble_amplitude:
            wobble = np.sin(time_s + self._phase) * self.config.wobble_amplitude
            rendered = self.positions + wobble[:, None]

        return ParticleFrame(
            positions=rendered.copy() if rendered is self.positions else rendered,
            rotations=self.rotation.copy(),
            scales=self.base_scale * self.global_scale,
        )

    def particle(self, index: int) -> Particle:
        """Snapshot of a single particle."""
        return Particle(
            id=int(index),
            shape=_SHAPES[self.shape_index[index]],
            color=_COLORS[self.color_index[index]],
            tree_target=_as_tuple(self._tree[index]),
            explode_target=_as_tuple(self._explode[index]),
            text_target=_as_tuple(self._text[index]),
            position=_as_tuple(self.positions[index]),
            base_scale=float(self.base_scale[index]),
            rotation=_as_tuple(self.rotation[index]),
            rotation_velocity=_as_tuple(self.rotation_velocity[index]),
        )

    def distance_to_target(self, state: FormationState) -> float:
        """Largest particle distance to its target, for convergence checks."""
        diff = self.targets_for(state) - self.positions
        return float(np.linalg.norm(diff, axis=1).max())

    @property
    def count(self) -> int:
        return self.config.count

    @property
    def text_targets_ready(self) -> bool:
        return self._text_ready

    @property
    def rng(self) -> np.random.Generator:
        """Generator used for layout sampling; shared with asset builders."""
        return self._rng
