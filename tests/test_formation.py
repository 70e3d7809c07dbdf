"""
Tests for the Formation State Machine
======================================
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from touchless_formation.control.formation import (
    FormationConfig,
    FormationStateMachine,
    normalize_spread,
)
from touchless_formation.core.events import EventBus, Events
from touchless_formation.core.types import FormationState


class TestNormalizeSpread:
    """Test suite for spread normalization."""

    @pytest.mark.parametrize("raw,expected", [
        (0.35, 0.0),
        (1.0, 1.0),
        (0.675, 0.5),
        (0.0, 0.0),     # Clamped below
        (-1.0, 0.0),
        (2.5, 1.0),     # Clamped above
    ])
    def test_normalize(self, raw, expected):
        assert normalize_spread(raw) == pytest.approx(expected)

    def test_custom_range(self):
        assert normalize_spread(0.5, floor=0.0, span=1.0) == pytest.approx(0.5)

    def test_machine_uses_config(self):
        machine = FormationStateMachine(FormationConfig(spread_floor=0.0, spread_span=2.0))
        assert machine.normalize(1.0) == pytest.approx(0.5)


class TestFormationConfig:
    def test_from_dict(self):
        config = FormationConfig.from_dict({"cooldown_ms": 500, "expand_velocity": 3})
        assert config.cooldown_ms == 500
        assert config.expand_velocity == 3
        assert config.contract_velocity == -1.0  # Default


class TestFormationStateMachine:
    """Test suite for FormationStateMachine."""

    @pytest.fixture
    def bus(self):
        return EventBus()

    @pytest.fixture
    def changes(self, bus):
        received = []
        bus.subscribe(Events.FORMATION_CHANGED, lambda **kw: received.append(kw))
        return received

    @pytest.fixture
    def machine(self, bus):
        return FormationStateMachine(event_bus=bus)

    def test_initial_state(self, machine):
        assert machine.state == FormationState.TREE
        assert machine.auto_rotate is True
        assert machine.last_sample is None

    def test_first_sample_only_seeds(self, machine):
        assert machine.update(0.95, 1000) is None
        assert machine.state == FormationState.TREE
        assert machine.last_sample.spread == 0.95
        assert machine.last_sample.timestamp_ms == 1000

    def test_fast_open_explodes_tree(self, machine, changes):
        """0.30 -> 0.95 in 200ms is 3.25/s, above the expand threshold."""
        machine.update(0.30, 1000)
        assert machine.update(0.95, 1200) == FormationState.EXPLODE

        assert machine.state == FormationState.EXPLODE
        assert machine.last_velocity == pytest.approx(3.25)
        assert machine.auto_rotate is False
        assert len(changes) == 1
        assert changes[0]["previous"] == FormationState.TREE
        assert changes[0]["current"] == FormationState.EXPLODE
        assert changes[0]["timestamp_ms"] == 1200

    def test_full_cycle(self, machine):
        """TREE -> EXPLODE -> TEXT -> TREE."""
        machine.update(0.30, 1000)
        assert machine.update(0.95, 1200) == FormationState.EXPLODE

        # Slow drift while the cooldown runs
        assert machine.update(0.90, 1800) is None
        # Fast close 900ms after the transition
        assert machine.update(0.20, 2100) == FormationState.TEXT
        assert machine.auto_rotate is False

        assert machine.update(0.20, 3000) is None
        assert machine.update(0.90, 3200) == FormationState.TREE
        assert machine.auto_rotate is True

    def test_close_in_tree_does_nothing(self, machine):
        machine.update(0.90, 0)
        assert machine.update(0.10, 200) is None
        assert machine.state == FormationState.TREE

    def test_open_in_explode_does_nothing(self, machine):
        machine.force(FormationState.EXPLODE, 0)
        machine.update(0.10, 1000)
        assert machine.update(0.90, 1200) is None
        assert machine.state == FormationState.EXPLODE

    def test_cooldown_blocks_second_transition(self, machine, changes):
        """Two triggers less than 800ms apart produce one transition."""
        machine.update(0.30, 0)
        assert machine.update(0.95, 200) == FormationState.EXPLODE
        assert machine.update(0.20, 500) is None

        assert machine.state == FormationState.EXPLODE
        assert len(changes) == 1

    def test_cooldown_boundary_is_exclusive(self, machine):
        machine.update(0.30, 0)
        machine.update(0.95, 200)
        machine.update(0.95, 800)
        # Exactly 800ms after the transition: still cooling down
        assert machine.update(0.20, 1000) is None

    def test_velocity_inside_band_never_transitions(self, machine, changes):
        spread = 0.0
        t = 0
        for step in [0.38, -0.19, 0.38, -0.19, 0.38, -0.19, -0.19, 0.38]:
            spread += step
            t += 200
            machine.update(spread, t)
        assert changes == []
        assert machine.state == FormationState.TREE

    def test_thresholds_are_strict(self, machine):
        """A velocity of exactly +2.0/s does not trigger."""
        machine.update(0.25, 0)
        assert machine.update(0.75, 250) is None
        assert machine.last_velocity == 2.0

    def test_short_intervals_are_ignored(self, machine):
        machine.update(0.30, 0)
        assert machine.update(0.95, 50) is None
        assert machine.update(0.95, 100) is None
        assert machine.last_sample.timestamp_ms == 0

        assert machine.update(0.95, 150) == FormationState.EXPLODE

    def test_force(self, machine, changes):
        machine.force(FormationState.TEXT, 500)
        assert machine.state == FormationState.TEXT
        assert machine.auto_rotate is False
        assert changes[0]["velocity"] is None

        machine.force(FormationState.TREE, 600)
        assert machine.auto_rotate is True

    def test_force_same_state_is_noop(self, machine, changes):
        machine.force(FormationState.TREE, 0)
        assert changes == []

    def test_force_starts_cooldown(self, machine):
        machine.force(FormationState.EXPLODE, 1000)
        machine.update(0.9, 1100)
        assert machine.update(0.1, 1300) is None

    def test_reset(self, machine):
        machine.update(0.30, 0)
        machine.update(0.95, 200)
        machine.reset()

        assert machine.state == FormationState.TREE
        assert machine.last_sample is None
        assert machine.auto_rotate is True

    def test_without_event_bus(self):
        machine = FormationStateMachine()
        machine.update(0.30, 0)
        assert machine.update(0.95, 200) == FormationState.EXPLODE
