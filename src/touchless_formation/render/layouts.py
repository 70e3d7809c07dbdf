"""
Formation layouts: target positions for the tree and exploded cloud.

Each builder returns an (N, 3) float array in world units, one row per
particle, ordered by particle id.
"""

import numpy as np

GOLDEN_ANGLE = 2.3999


def build_tree_targets(count: int, height: float, radius: float,
                       rng: np.random.Generator) -> np.ndarray:
    """Cone spiral: particles climb the tree at the golden angle, narrowing to the top."""
    i = np.arange(count, dtype=np.float64)
    y = i / count * height
    rad = (1.0 - y / height) * radius
    ang = i * GOLDEN_ANGLE

    targets = np.empty((count, 3), dtype=np.float64)
    targets[:, 0] = np.cos(ang) * rad + (rng.random(count) - 0.5) * 1.5
    targets[:, 1] = y - height / 2.0 + 2.0 + (rng.random(count) - 0.5)
    targets[:, 2] = np.sin(ang) * rad + (rng.random(count) - 0.5) * 1.5
    return targets


def build_explode_targets(count: int, rng: np.random.Generator) -> np.ndarray:
    """Uniform directions on the sphere with a heavy-tailed radius (25 to 155)."""
    u = rng.random(count)
    v = rng.random(count)
    theta = 2.0 * np.pi * u
    phi = np.arccos(2.0 * v - 1.0)
    r = 25.0 + rng.random(count) * 70.0 + rng.random(count) ** 3 * 60.0

    targets = np.empty((count, 3), dtype=np.float64)
    targets[:, 0] = r * np.sin(phi) * np.cos(theta)
    targets[:, 1] = r * np.sin(phi) * np.sin(theta)
    targets[:, 2] = r * np.cos(phi)
    return targets
