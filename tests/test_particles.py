"""
Tests for Particle Blending, Layouts and the Text Asset
========================================================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from touchless_formation.core.types import ColorClass, FormationState, ShapeKind
from touchless_formation.errors import FormationError
from touchless_formation.render.layouts import build_explode_targets, build_tree_targets
from touchless_formation.render.particles import ParticleBlender, ParticleConfig
from touchless_formation.render.text_layout import sample_text_points


@pytest.fixture
def blender():
    return ParticleBlender(ParticleConfig(count=600, seed=42))


class TestParticleConfig:
    def test_defaults(self):
        config = ParticleConfig()
        assert config.count == 4500
        assert config.blend_rate == 0.03
        assert config.global_scale == 0.5
        assert config.text_lines == ["MERRY", "CHRISTMAS"]

    def test_from_dict(self):
        config = ParticleConfig.from_dict({"count": 100, "seed": 3, "text_lines": ["HI"]})
        assert config.count == 100
        assert config.seed == 3
        assert config.text_lines == ["HI"]
        assert config.tree_height == 40.0


class TestLayouts:
    """Test suite for tree and explode target builders."""

    def test_tree_shape_and_bounds(self):
        targets = build_tree_targets(4500, 40.0, 16.0, np.random.default_rng(0))
        assert targets.shape == (4500, 3)

        # Heights span the tree, shifted by -H/2 + 2, plus +-0.5 jitter
        assert targets[:, 1].min() >= -18.0 - 0.5
        assert targets[:, 1].max() <= 22.0 + 0.5

        horizontal = np.hypot(targets[:, 0], targets[:, 2])
        assert horizontal.max() <= 16.0 + 1.1

    def test_tree_narrows_toward_top(self):
        targets = build_tree_targets(4500, 40.0, 16.0, np.random.default_rng(0))
        horizontal = np.hypot(targets[:, 0], targets[:, 2])
        assert horizontal[:500].mean() > horizontal[-500:].mean() + 10

    def test_explode_radius_range(self):
        targets = build_explode_targets(4500, np.random.default_rng(1))
        radius = np.linalg.norm(targets, axis=1)
        assert radius.min() >= 25.0 - 1e-9
        assert radius.max() <= 155.0 + 1e-9

    def test_explode_is_roughly_isotropic(self):
        targets = build_explode_targets(4500, np.random.default_rng(1))
        directions = targets / np.linalg.norm(targets, axis=1)[:, None]
        assert np.abs(directions.mean(axis=0)).max() < 0.05


class TestParticleBlender:
    """Test suite for ParticleBlender."""

    def test_starts_on_tree(self, blender):
        assert np.array_equal(blender.positions, blender.targets_for(FormationState.TREE))
        assert blender.count == 600

    def test_attribute_ranges(self, blender):
        assert blender.base_scale.min() >= 0.4
        assert blender.base_scale.max() < 1.2
        assert np.abs(blender.rotation_velocity).max() <= 0.005
        assert np.all(blender.rotation[:, 2] == 0.0)

    def test_distributions(self):
        blender = ParticleBlender(ParticleConfig(count=4500, seed=7))
        spheres = np.mean(blender.shape_index == 0)
        assert spheres == pytest.approx(0.7, abs=0.04)

        colors = np.bincount(blender.color_index, minlength=3) / 4500
        assert colors.tolist() == pytest.approx([0.7, 0.2, 0.1], abs=0.04)

    def test_seeded_construction_is_reproducible(self):
        a = ParticleBlender(ParticleConfig(count=200, seed=11))
        b = ParticleBlender(ParticleConfig(count=200, seed=11))
        assert np.array_equal(a.targets_for(FormationState.EXPLODE),
                              b.targets_for(FormationState.EXPLODE))
        assert np.array_equal(a.color_index, b.color_index)

    def test_invalid_count(self):
        with pytest.raises(FormationError):
            ParticleBlender(ParticleConfig(count=0))

    def test_targets_are_read_only(self, blender):
        with pytest.raises(ValueError):
            blender.targets_for(FormationState.TREE)[0, 0] = 1.0

    def test_monotonic_convergence(self, blender):
        """Distance to the active target never grows and reaches ~0."""
        previous = blender.distance_to_target(FormationState.EXPLODE)
        for i in range(600):
            blender.tick(FormationState.EXPLODE, time_s=i / 60)
            current = blender.distance_to_target(FormationState.EXPLODE)
            assert current <= previous + 1e-12
            previous = current
        assert previous < 1e-3

    def test_single_tick_moves_blend_rate(self, blender):
        start = blender.positions.copy()
        target = blender.targets_for(FormationState.EXPLODE)
        blender.tick(FormationState.EXPLODE)
        assert np.allclose(blender.positions, start + (target - start) * 0.03)

    def test_wobble_only_in_rendered_frame(self, blender):
        frame = blender.tick(FormationState.EXPLODE, time_s=1.0)
        offset = frame.positions - blender.positions
        expected = np.sin(1.0 + np.arange(blender.count)) * 0.1
        for axis in range(3):
            assert np.allclose(offset[:, axis], expected)

    def test_no_wobble_outside_explode(self, blender):
        frame = blender.tick(FormationState.TREE, time_s=1.0)
        assert np.array_equal(frame.positions, blender.positions)
        frame.positions[0, 0] = 999.0
        assert blender.positions[0, 0] != 999.0

    def test_rotation_advances(self, blender):
        start = blender.rotation.copy()
        blender.tick(FormationState.TREE)
        assert np.allclose(blender.rotation[:, :2], start[:, :2] + blender.rotation_velocity[:, :2])

    def test_rotation_z_stays_zero(self, blender):
        for _ in range(5):
            blender.tick(FormationState.EXPLODE, time_s=1.0)
        assert np.all(blender.rotation[:, 2] == 0.0)

    def test_scales(self, blender):
        frame = blender.tick(FormationState.TREE)
        assert np.allclose(frame.scales, blender.base_scale * 0.5)

        blender.global_scale = 1.0
        frame = blender.tick(FormationState.TREE)
        assert np.allclose(frame.scales, blender.base_scale)

    def test_particle_snapshot(self, blender):
        particle = blender.particle(3)
        assert particle.id == 3
        assert isinstance(particle.shape, ShapeKind)
        assert isinstance(particle.color, ColorClass)
        assert particle.position == pytest.approx(tuple(blender.positions[3]))


class TestTextTargets:
    """TEXT mirrors TREE until the asset is loaded, and loads once."""

    def test_text_mirrors_tree_before_load(self, blender):
        assert not blender.text_targets_ready
        assert np.array_equal(blender.targets_for(FormationState.TEXT),
                              blender.targets_for(FormationState.TREE))

    def test_set_text_targets(self, blender):
        points = np.zeros((600, 3))
        blender.set_text_targets(points)
        assert blender.text_targets_ready
        assert np.array_equal(blender.targets_for(FormationState.TEXT), points)

    def test_set_twice_raises(self, blender):
        blender.set_text_targets(np.zeros((600, 3)))
        with pytest.raises(FormationError):
            blender.set_text_targets(np.ones((600, 3)))

    def test_wrong_shape_raises(self, blender):
        with pytest.raises(FormationError):
            blender.set_text_targets(np.zeros((599, 3)))
        assert not blender.text_targets_ready

    def test_non_finite_raises(self, blender):
        points = np.zeros((600, 3))
        points[10, 1] = np.inf
        with pytest.raises(FormationError):
            blender.set_text_targets(points)


class TestTextLayout:
    """Test suite for sample_text_points."""

    def test_shape_and_plane(self):
        points = sample_text_points(["MERRY", "CHRISTMAS"], 1000, np.random.default_rng(0))
        assert points.shape == (1000, 3)
        assert np.all(np.isfinite(points))
        assert np.all(points[:, 2] == 0.0)

    def test_two_lines_straddle_origin(self):
        points = sample_text_points(["MERRY", "CHRISTMAS"], 2000, np.random.default_rng(0))
        assert points[:, 1].max() > 3.0
        assert points[:, 1].min() < -3.0
        # Text is wider than it is tall
        assert np.ptp(points[:, 0]) > np.ptp(points[:, 1])

    def test_roughly_centered(self):
        points = sample_text_points(["MERRY", "CHRISTMAS"], 2000, np.random.default_rng(0))
        center_x = (points[:, 0].max() + points[:, 0].min()) / 2
        assert abs(center_x) < 3.0

    def test_mirror(self):
        mirrored = sample_text_points(["HI"], 300, np.random.default_rng(5), mirror_x=True)
        plain = sample_text_points(["HI"], 300, np.random.default_rng(5), mirror_x=False)
        assert np.allclose(mirrored[:, 0], -plain[:, 0])
        assert np.allclose(mirrored[:, 1], plain[:, 1])

    @pytest.mark.parametrize("lines", [[], [""], ["   "]])
    def test_empty_text_raises(self, lines):
        with pytest.raises(FormationError):
            sample_text_points(lines, 100, np.random.default_rng(0))

    def test_fits_blender(self, blender):
        points = sample_text_points(["MERRY"], blender.count, blender.rng)
        blender.set_text_targets(points)
        assert blender.text_targets_ready
