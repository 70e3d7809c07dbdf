"""
Formation event bus.

The core publishes what happened during a tick (hand found or lost, gesture
switched, formation changed, text targets installed); the host decides what
to do with it (HUD, logging, sound cues). Nothing in the core depends on a
listener being present.

Usage:
    bus = EventBus()
    bus.subscribe(Events.FORMATION_CHANGED, on_formation)
    bus.subscribe(Events.TEXT_TARGETS_READY, on_text, once=True)
    bus.emit(Events.FORMATION_CHANGED, previous=old, current=new)
"""

import time
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


class Listener(NamedTuple):
    priority: int
    callback: Callable
    once: bool


@dataclass(frozen=True)
class EventRecord:
    """What was emitted and when. Payload values are not retained."""
    name: str
    wall_time: float
    data_keys: Tuple[str, ...] = field(default_factory=tuple)
    delivered: int = 0


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class EventBus:
    """Synchronous publish/subscribe bus, one per Pipeline.

    Listeners run on the emitting (tick) thread, highest priority first.
    A listener that raises is logged and skipped so the tick still
    completes.
    """

    def __init__(self, max_history: int = 100):
        self._listeners: Dict[str, List[Listener]] = {}
        self._history: deque = deque(maxlen=max_history)
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable,
                  priority: int = 0, once: bool = False):
        """Register ``callback(**payload)`` for ``event_name``.

        Args:
            priority: Higher runs first; equal priorities keep
                subscription order
            once: Drop the listener after its first delivery
        """
        listeners = self._listeners.setdefault(event_name, [])
        listeners.append(Listener(priority, callback, once))
        listeners.sort(key=lambda entry: -entry.priority)
        logger.debug("'%s' <- %s (priority=%d%s)", event_name,
                     _callback_name(callback), priority, ", once" if once else "")

    def unsubscribe(self, event_name: str, callback: Callable):
        remaining = [entry for entry in self._listeners.get(event_name, ())
                     if entry.callback != callback]
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

    def emit(self, event_name: str, **payload) -> int:
        """Deliver an event.

        Returns:
            Number of listeners that handled it without raising
        """
        if not self._enabled:
            return 0

        delivered = 0
        for entry in tuple(self._listeners.get(event_name, ())):
            if entry.once:
                self.unsubscribe(event_name, entry.callback)
            try:
                entry.callback(**payload)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, _callback_name(entry.callback), e)
                continue
            delivered += 1

        self._history.append(EventRecord(
            name=event_name,
            wall_time=time.time(),
            data_keys=tuple(payload),
            delivered=delivered,
        ))
        return delivered

    def set_enabled(self, enabled: bool):
        self._enabled = enabled

    def clear(self, event_name: Optional[str] = None):
        if event_name is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_name, None)

    @property
    def listener_count(self) -> int:
        return sum(len(entries) for entries in self._listeners.values())

    def get_history(self, last_n: int = 10, name: Optional[str] = None) -> List[EventRecord]:
        """Most recent emitted events, oldest first, optionally for one name."""
        records = [r for r in self._history if name is None or r.name == name]
        return records[-last_n:] if last_n > 0 else []


class Events:
    """Event names published by the pipeline and the host loop."""

    HAND_DETECTED = "hand_detected"
    HAND_LOST = "hand_lost"
    GESTURE_CHANGED = "gesture_changed"
    FORMATION_CHANGED = "formation_changed"
    TEXT_TARGETS_READY = "text_targets_ready"

    SYSTEM_STARTED = "system_started"
    SYSTEM_SHUTDOWN = "system_shutdown"
