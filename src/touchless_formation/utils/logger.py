"""
Structured logging with formation and gesture event logging.
"""

import os
import logging
import logging.handlers
import time
from functools import wraps

from ..core.events import EventBus, Events


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3,
                  console_level="INFO"):
    """Configure structured logging for the application."""
    # Clean console format, compact and readable
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    # Verbose format for log file
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, str(console_level).upper(), logging.INFO))
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class FormationLogger:
    """Records formation transitions and gesture changes published on the bus."""

    def __init__(self, max_history=500):
        self.logger = logging.getLogger("formation_events")
        self._history = []
        self._max_history = max_history

    def attach(self, bus: EventBus):
        """Subscribe to the events this logger records."""
        bus.subscribe(Events.FORMATION_CHANGED, self.log_transition)
        bus.subscribe(Events.GESTURE_CHANGED, self.log_gesture)
        bus.subscribe(Events.HAND_DETECTED, self._on_hand_detected)
        bus.subscribe(Events.HAND_LOST, self._on_hand_lost)
        return self

    def detach(self, bus: EventBus):
        bus.unsubscribe(Events.FORMATION_CHANGED, self.log_transition)
        bus.unsubscribe(Events.GESTURE_CHANGED, self.log_gesture)
        bus.unsubscribe(Events.HAND_DETECTED, self._on_hand_detected)
        bus.unsubscribe(Events.HAND_LOST, self._on_hand_lost)

    def log_transition(self, previous, current, velocity=None, timestamp_ms=None, **_):
        """Log a formation change."""
        self._record("transition", previous=previous.value, current=current.value,
                     velocity=velocity, timestamp_ms=timestamp_ms)
        self.logger.info(
            "Formation: %-7s -> %-7s | Velocity: %s",
            previous.value,
            current.value,
            f"{velocity:+.2f}/s" if velocity is not None else "N/A",
        )

    def log_gesture(self, previous, current, **_):
        """Log a gesture label change."""
        self._record("gesture", previous=previous.value, current=current.value)
        self.logger.debug("Gesture: %-8s -> %s", previous.value, current.value)

    def _on_hand_detected(self, **_):
        self._record("hand", present=True)
        self.logger.debug("Hand detected")

    def _on_hand_lost(self, **_):
        self._record("hand", present=False)
        self.logger.debug("Hand lost")

    def _record(self, kind, **data):
        entry = {"timestamp": time.time(), "kind": kind}
        entry.update(data)
        self._history.append(entry)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

    def get_history(self, last_n=None, kind=None):
        """Get recent entries, optionally only one kind."""
        history = self._history
        if kind:
            history = [e for e in history if e["kind"] == kind]
        if last_n:
            return history[-last_n:]
        return list(history)

    @property
    def total_transitions(self):
        return sum(1 for e in self._history if e["kind"] == "transition")


def log_timing(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
