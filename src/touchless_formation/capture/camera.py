"""
Webcam Capture
===============

One synchronous read per animation tick feeds the hand detector, so there
is no capture thread. Frames are delivered unmirrored: the gesture
classifier applies the mirror to the pointing target instead.

A long-running display outlives flaky USB webcams, so after
``reopen_after_failures`` consecutive failed reads the device is released
and opened again.
"""

import cv2
import time
import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    """Capture device settings."""
    device_id: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30
    buffer_size: int = 1
    flip_horizontal: bool = False
    warmup_frames: int = 5
    reopen_after_failures: int = 30  # 0 disables reopening

    @classmethod
    def from_dict(cls, config: dict) -> "CameraConfig":
        defaults = cls()
        return cls(**{
            name: config.get(name, getattr(defaults, name))
            for name in cls.__dataclass_fields__
        })


@dataclass
class Frame:
    """One captured BGR image."""
    image: np.ndarray
    timestamp: float
    frame_number: int

    @property
    def rgb(self) -> np.ndarray:
        """RGB copy for MediaPipe."""
        return cv2.cvtColor(self.image, cv2.COLOR_BGR2RGB)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the frame size the tracking producer expects."""
        return (self.image.shape[1], self.image.shape[0])


class Camera:
    """
    OpenCV ``VideoCapture`` wrapper.

    Example:
        >>> with Camera(CameraConfig(device_id=0)) as camera:
        ...     frame = camera.read()
        ...     if frame is not None:
        ...         hands = detector.detect(frame.rgb, now_ms)
    """

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap = None
        self._running = False
        self._frame_number = 0
        self._failed_reads = 0
        self._reopen_count = 0
        self._read_times: deque = deque(maxlen=30)
        self.resolution: Optional[Tuple[int, int]] = None

    def _open(self) -> bool:
        cap = cv2.VideoCapture(self.config.device_id)
        if not cap.isOpened():
            cap.release()
            return False

        requested = (
            (cv2.CAP_PROP_FRAME_WIDTH, self.config.width),
            (cv2.CAP_PROP_FRAME_HEIGHT, self.config.height),
            (cv2.CAP_PROP_FPS, self.config.fps),
            (cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size),
        )
        for prop, value in requested:
            cap.set(prop, value)

        # Drivers may silently pick another mode
        self.resolution = (int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                           int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))
        if self.resolution != (self.config.width, self.config.height):
            logger.warning("Camera negotiated %dx%d instead of %dx%d",
                           *self.resolution, self.config.width, self.config.height)

        for _ in range(self.config.warmup_frames):
            cap.read()

        self._cap = cap
        return True

    def _release(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def start(self) -> bool:
        """Open the device. Returns False if it cannot be opened."""
        logger.info("Opening camera %s (%dx%d @ %d fps)", self.config.device_id,
                    self.config.width, self.config.height, self.config.fps)
        if not self._open():
            logger.error("Failed to open camera device %s", self.config.device_id)
            return False

        self._running = True
        self._frame_number = 0
        self._failed_reads = 0
        logger.info("Camera ready: %dx%d", *self.resolution)
        return True

    def stop(self) -> None:
        self._running = False
        self._release()
        logger.info("Camera stopped after %d frames", self._frame_number)

    def read(self) -> Optional[Frame]:
        """Grab the next frame, or None when the read failed."""
        if not self._running or self._cap is None:
            return None

        started = time.perf_counter()
        ok, image = self._cap.read()
        self._read_times.append(time.perf_counter() - started)

        if not ok or image is None:
            self._on_failed_read()
            return None
        self._failed_reads = 0

        if self.config.flip_horizontal:
            image = cv2.flip(image, 1)

        self._frame_number += 1
        return Frame(image=image, timestamp=time.time(), frame_number=self._frame_number)

    def _on_failed_read(self):
        self._failed_reads += 1
        logger.debug("Camera read failed (%d in a row)", self._failed_reads)

        limit = self.config.reopen_after_failures
        if limit <= 0 or self._failed_reads < limit:
            return

        logger.warning("Camera stalled for %d reads, reopening device %s",
                       self._failed_reads, self.config.device_id)
        self._release()
        self._failed_reads = 0
        if self._open():
            self._reopen_count += 1
        else:
            logger.error("Camera device %s did not come back", self.config.device_id)
            self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def reopen_count(self) -> int:
        return self._reopen_count

    @property
    def avg_capture_time_ms(self) -> float:
        if not self._read_times:
            return 0.0
        return 1000 * sum(self._read_times) / len(self._read_times)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
