"""
Frame-Loop Performance Monitoring
==================================

Rolling FPS and per-stage latency for the host loop. The loop has four
stages per tick:

    capture -> detection -> pipeline -> render

Other stage names are accepted and show up in the report after these.
"""

import time
import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)

LOOP_STAGES = ("capture", "detection", "pipeline", "render")


class Timer:
    """
    Wall-clock stopwatch on ``time.perf_counter``.

    Example:
        >>> with Timer("text targets") as t:
        ...     pipeline.load_text_formation()
        >>> logger.info("%s took %.1fms", t.name, t.elapsed_ms)
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None

    def start(self) -> "Timer":
        self._started = time.perf_counter()
        self._stopped = None
        return self

    def stop(self) -> float:
        """Freeze the timer; returns seconds since start()."""
        self._stopped = time.perf_counter()
        return self.elapsed

    @property
    def elapsed(self) -> float:
        """Seconds since start(), live until stop() is called."""
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else time.perf_counter()
        return end - self._started

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


class RollingWindow:
    """Fixed-size window of durations in seconds."""

    def __init__(self, size: int):
        self._samples: deque = deque(maxlen=size)

    def add(self, seconds: float):
        self._samples.append(seconds)

    def clear(self):
        self._samples.clear()

    def __len__(self):
        return len(self._samples)

    @property
    def mean(self) -> float:
        return sum(self._samples) / len(self._samples) if self._samples else 0.0

    @property
    def mean_ms(self) -> float:
        return self.mean * 1000


@dataclass
class PerformanceMetrics:
    """Snapshot of the loop's rolling averages."""
    fps: float = 0.0
    frame_time_ms: float = 0.0
    stages_ms: Dict[str, float] = field(default_factory=dict)
    total_frames: int = 0
    slow_frames: int = 0

    @property
    def capture_time_ms(self) -> float:
        return self.stages_ms.get("capture", 0.0)

    @property
    def detection_time_ms(self) -> float:
        return self.stages_ms.get("detection", 0.0)

    @property
    def pipeline_time_ms(self) -> float:
        return self.stages_ms.get("pipeline", 0.0)

    @property
    def render_time_ms(self) -> float:
        return self.stages_ms.get("render", 0.0)

    @property
    def slow_ratio(self) -> float:
        return self.slow_frames / self.total_frames if self.total_frames else 0.0


class PerformanceMonitor:
    """
    Rolling frame-rate and stage-latency tracker for the animation loop.

    A frame is "slow" when it takes longer than one period at
    ``target_fps``; the particle preview then visibly stutters.

    Example:
        >>> monitor = PerformanceMonitor(target_fps=30)
        >>> monitor.start()
        >>> while running:
        ...     monitor.frame_start()
        ...     with monitor.measure("detection"):
        ...         hands = detector.detect(frame.rgb, now_ms)
        ...     monitor.frame_complete()
    """

    def __init__(self, window_size: int = 30, target_fps: float = 30.0):
        self.window_size = window_size
        self.target_fps = target_fps
        self._frame_budget_s = 1.0 / target_fps
        self._frames = RollingWindow(window_size)
        self._stages: Dict[str, RollingWindow] = {}
        self._tick: Optional[Timer] = None
        self._total_frames = 0
        self._slow_frames = 0

    def start(self) -> None:
        self._frames.clear()
        self._stages.clear()
        self._total_frames = 0
        self._slow_frames = 0
        logger.info("Performance monitor started (target %.0f FPS)", self.target_fps)

    def stop(self) -> None:
        logger.info("Performance monitor stopped: %d frames, %d slow",
                    self._total_frames, self._slow_frames)

    def frame_start(self) -> None:
        self._tick = Timer().start()

    def frame_complete(self) -> None:
        """Close the frame opened by frame_start(); ignored without one."""
        if self._tick is None:
            return
        seconds = self._tick.stop()
        self._tick = None

        self._frames.add(seconds)
        self._total_frames += 1
        if seconds > self._frame_budget_s:
            self._slow_frames += 1

    @contextmanager
    def measure(self, stage: str):
        """Time the enclosed block as ``stage``, even if it raises."""
        timer = Timer(stage).start()
        try:
            yield timer
        finally:
            window = self._stages.get(stage)
            if window is None:
                window = self._stages[stage] = RollingWindow(self.window_size)
            window.add(timer.stop())

    @property
    def fps(self) -> float:
        mean = self._frames.mean
        return 1.0 / mean if mean > 0 else 0.0

    @property
    def frame_time_ms(self) -> float:
        return self._frames.mean_ms

    def stage_time_ms(self, stage: str) -> float:
        window = self._stages.get(stage)
        return window.mean_ms if window is not None else 0.0

    def stage_samples(self, stage: str) -> int:
        """How many measurements the rolling window holds for ``stage``."""
        window = self._stages.get(stage)
        return len(window) if window is not None else 0

    def get_metrics(self) -> PerformanceMetrics:
        names = list(LOOP_STAGES) + sorted(set(self._stages) - set(LOOP_STAGES))
        return PerformanceMetrics(
            fps=self.fps,
            frame_time_ms=self.frame_time_ms,
            stages_ms={name: self.stage_time_ms(name) for name in names},
            total_frames=self._total_frames,
            slow_frames=self._slow_frames,
        )

    def get_report(self) -> str:
        metrics = self.get_metrics()
        lines = [
            "Performance Report",
            "=" * 40,
            f"FPS: {metrics.fps:.1f} (target: {self.target_fps:.0f})",
            f"Frame time: {metrics.frame_time_ms:.2f}ms",
            "",
            "Stages:",
        ]
        lines += [f"  {name.capitalize()}: {ms:.2f}ms" for name, ms in metrics.stages_ms.items()]
        lines += [
            "",
            f"Frames: {metrics.total_frames} total, {metrics.slow_frames} slow "
            f"({100 * metrics.slow_ratio:.1f}%)",
        ]
        return "\n".join(lines) + "\n"
