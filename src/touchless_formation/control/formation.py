"""
Formation State Machine
========================

Switches the particle formation from the speed of hand opening/closing.

    TREE    --fast open-->   EXPLODE
    EXPLODE --fast close-->  TEXT
    TEXT    --fast open-->   TREE

Velocity is measured on the normalized spread (see `normalize_spread`)
between samples at least `min_sample_interval_ms` apart. After a transition
no other transition may fire for `cooldown_ms`, so one quick open/close
movement cannot ping-pong between states.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.events import EventBus, Events
from ..core.types import FormationState, VelocitySample

logger = logging.getLogger(__name__)


@dataclass
class FormationConfig:
    """Formation switching thresholds.

    The asymmetric velocity thresholds are empirically tuned.
    """
    spread_floor: float = 0.35            # Raw spread mapped to 0.0
    spread_span: float = 0.65             # Raw spread range mapped onto 0..1
    min_sample_interval_ms: int = 100     # Velocity is skipped below this
    cooldown_ms: int = 800                # Minimum time between transitions
    expand_velocity: float = 2.0          # Normalized spread units / second
    contract_velocity: float = -1.0

    @classmethod
    def from_dict(cls, config: dict) -> "FormationConfig":
        """Create config from dictionary."""
        return cls(
            spread_floor=config.get("spread_floor", 0.35),
            spread_span=config.get("spread_span", 0.65),
            min_sample_interval_ms=config.get("min_sample_interval_ms", 100),
            cooldown_ms=config.get("cooldown_ms", 800),
            expand_velocity=config.get("expand_velocity", 2.0),
            contract_velocity=config.get("contract_velocity", -1.0),
        )


def normalize_spread(spread: float, floor: float = 0.35, span: float = 0.65) -> float:
    """Map raw hand spread onto the [0, 1] control range."""
    return max(0.0, min(1.0, (spread - floor) / span))


# (state, expanding) -> (next state, auto-rotate after transition)
_TRANSITIONS = {
    (FormationState.TREE, True): (FormationState.EXPLODE, False),
    (FormationState.TEXT, True): (FormationState.TREE, True),
    (FormationState.EXPLODE, False): (FormationState.TEXT, False),
}


class FormationStateMachine:
    """
    Velocity-gated three-state formation controller.

    Example:
        >>> machine = FormationStateMachine()
        >>> machine.update(0.30, timestamp_ms=1000)
        >>> machine.update(0.95, timestamp_ms=1200)
        <FormationState.EXPLODE: 'EXPLODE'>
    """

    def __init__(
        self,
        config: Optional[FormationConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config or FormationConfig()
        self._bus = event_bus

        self._state = FormationState.TREE
        self._last_sample: Optional[VelocitySample] = None
        self._last_transition_ms: Optional[int] = None
        self._last_velocity = 0.0
        self._auto_rotate = True

    def normalize(self, raw_spread: float) -> float:
        """Normalize a raw spread with this machine's floor/span."""
        return normalize_spread(raw_spread, self.config.spread_floor, self.config.spread_span)

    def update(self, spread: float, timestamp_ms: int) -> Optional[FormationState]:
        """
        Feed one normalized spread sample.

        Args:
            spread: Normalized spread in [0, 1]
            timestamp_ms: Monotonic frame timestamp in milliseconds

        Returns:
            The new state if a transition fired, otherwise None
        """
        if self._last_sample is None:
            self._last_sample = VelocitySample(spread, timestamp_ms)
            return None

        dt_ms = timestamp_ms - self._last_sample.timestamp_ms
        if dt_ms <= self.config.min_sample_interval_ms:
            return None

        velocity = (spread - self._last_sample.spread) / (dt_ms / 1000.0)
        self._last_velocity = velocity
        self._last_sample = VelocitySample(spread, timestamp_ms)

        if not self._cooldown_elapsed(timestamp_ms):
            return None

        if velocity > self.config.expand_velocity:
            rule = _TRANSITIONS.get((self._state, True))
        elif velocity < self.config.contract_velocity:
            rule = _TRANSITIONS.get((self._state, False))
        else:
            rule = None

        if rule is None:
            return None

        next_state, auto_rotate = rule
        self._apply(next_state, timestamp_ms, velocity)
        self._auto_rotate = auto_rotate
        return next_state

    def force(self, state: FormationState, timestamp_ms: int) -> None:
        """Jump straight to a state (manual override), restarting the cooldown."""
        if state != self._state:
            self._apply(state, timestamp_ms, velocity=None)
            self._auto_rotate = state == FormationState.TREE

    def reset(self) -> None:
        """Back to TREE with empty velocity history."""
        self._state = FormationState.TREE
        self._last_sample = None
        self._last_transition_ms = None
        self._last_velocity = 0.0
        self._auto_rotate = True

    def _cooldown_elapsed(self, timestamp_ms: int) -> bool:
        if self._last_transition_ms is None:
            return True
        return timestamp_ms - self._last_transition_ms > self.config.cooldown_ms

    def _apply(self, state: FormationState, timestamp_ms: int, velocity: Optional[float]):
        previous = self._state
        self._state = state
        self._last_transition_ms = timestamp_ms

        if velocity is None:
            logger.debug("Formation forced: %s -> %s", previous.value, state.value)
        else:
            logger.debug("Formation: %s -> %s (velocity %.2f/s)",
                         previous.value, state.value, velocity)

        if self._bus is not None:
            self._bus.emit(Events.FORMATION_CHANGED, previous=previous, current=state,
                           velocity=velocity, timestamp_ms=timestamp_ms)

    @property
    def state(self) -> FormationState:
        return self._state

    @property
    def auto_rotate(self) -> bool:
        """Camera auto-rotate preference set by the last transition."""
        return self._auto_rotate

    @property
    def last_velocity(self) -> float:
        return self._last_velocity

    @property
    def last_sample(self) -> Optional[VelocitySample]:
        return self._last_sample
