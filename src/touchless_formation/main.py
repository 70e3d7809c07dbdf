#!/usr/bin/env python3
"""
Touchless Formation - gesture-driven particle display
Main application entry point.

Architecture:
    Camera -> HandDetector -> core.Pipeline -> Visualizer -> cv2.imshow
    core.EventBus carries formation/gesture events to FormationLogger

Usage:
    touchless-formation                      # Default config/config.yaml
    touchless-formation --device 1           # Other webcam
    touchless-formation --debug              # DEBUG logs on the console
    touchless-formation --no-overlay         # Formation preview only

Keys:
    q / ESC   quit
    1 / 2 / 3 force TREE / EXPLODE / TEXT
    p         print the performance report
"""

import time
import signal
import argparse
import logging

import cv2

from .capture.camera import Camera, CameraConfig
from .control.formation import FormationConfig, FormationStateMachine
from .core.events import EventBus, Events
from .core.pipeline import Pipeline
from .core.types import FormationState, FrameContext
from .recognition.feature_extractor import FeatureExtractor, FeatureExtractorConfig
from .recognition.gesture_classifier import GestureClassifier, GestureClassifierConfig
from .recognition.tracking import OverlayCallback, TrackingFrameProducer
from .render.camera_steering import CameraSteering, CameraSteeringConfig
from .render.particles import ParticleBlender, ParticleConfig
from .utils.config import Config
from .utils.logger import FormationLogger, setup_logging
from .utils.performance import PerformanceMonitor
from .utils.visualization import Visualizer, VisualizerConfig

logger = logging.getLogger(__name__)

WINDOW_CAMERA = "Touchless Formation - Camera"
WINDOW_FORMATION = "Touchless Formation"

_FORCE_KEYS = {
    ord("1"): FormationState.TREE,
    ord("2"): FormationState.EXPLODE,
    ord("3"): FormationState.TEXT,
}


def build_pipeline(config: Config, overlay: OverlayCallback = None,
                   event_bus: EventBus = None) -> Pipeline:
    """Wire the per-tick core from a loaded Config."""
    bus = event_bus or EventBus()
    tracking = config.tracking

    producer = TrackingFrameProducer(
        extractor=FeatureExtractor(FeatureExtractorConfig.from_dict(tracking)),
        classifier=GestureClassifier(GestureClassifierConfig.from_dict(tracking)),
        overlay=overlay,
    )
    formation = FormationStateMachine(FormationConfig.from_dict(config.formation), event_bus=bus)
    steering = CameraSteering(CameraSteeringConfig.from_dict(config.camera_steering))
    blender = ParticleBlender(ParticleConfig.from_dict(config.particles))

    return Pipeline(producer, formation, steering, blender, event_bus=bus)


class FormationApplication:
    """Host loop: owns the camera, detector and windows; drives the Pipeline."""

    def __init__(self, config: Config, show_overlay: bool = True):
        self._config = config
        self._show_overlay = show_overlay
        self._running = False

        self._bus = EventBus()
        self._visualizer = Visualizer(VisualizerConfig.from_dict(config.visualization))
        self._pipeline = build_pipeline(
            config,
            overlay=self._visualizer.on_tracking if show_overlay else None,
            event_bus=self._bus,
        )
        self._formation_logger = FormationLogger().attach(self._bus)
        self._perf = PerformanceMonitor()

        self._camera = Camera(CameraConfig.from_dict(config.capture))
        self._detector = None

        logger.info("FormationApplication initialized")

    def _create_detector(self) -> bool:
        # MediaPipe ships as the optional "detector" extra
        try:
            from .detection.hand_detector import HandDetector, HandDetectorConfig
        except ImportError as e:
            logger.error("Hand detector unavailable (install the 'detector' extra): %s", e)
            return False

        self._detector = HandDetector(HandDetectorConfig.from_dict(self._config.detector))
        return self._detector.start()

    def start(self) -> bool:
        """Open devices, build text targets and run the loop until quit."""
        if not self._camera.start():
            logger.error("Failed to open camera. Check connection and permissions.")
            return False

        if not self._create_detector():
            self._camera.stop()
            return False

        self._pipeline.load_text_formation()

        self._running = True
        self._perf.start()
        self._bus.emit(Events.SYSTEM_STARTED)
        logger.info("Starting main loop")

        try:
            self._run_loop()
        finally:
            self._shutdown()
        return True

    def _run_loop(self):
        start = time.perf_counter()

        while self._running:
            self._perf.frame_start()
            now_ms = int((time.perf_counter() - start) * 1000)

            with self._perf.measure("capture"):
                frame = self._camera.read()
            if frame is None:
                if not self._camera.is_running:
                    logger.error("Camera lost, stopping")
                    break
                continue

            with self._perf.measure("detection"):
                hands = self._detector.detect(frame.rgb, now_ms)

            with self._perf.measure("pipeline"):
                result = self._pipeline.tick(FrameContext(
                    hand=hands[0] if hands else None,
                    timestamp_ms=now_ms,
                    time_s=now_ms / 1000.0,
                    frame_size=frame.size,
                ))

            with self._perf.measure("render"):
                preview = self._visualizer.render_particles(
                    result.particles,
                    self._pipeline.blender.color_index,
                    self._pipeline.steering,
                )
                cv2.imshow(WINDOW_FORMATION, preview)

                if self._show_overlay:
                    image = frame.image
                    self._visualizer.draw_tracking(image, result.tracking)
                    self._visualizer.draw_status(
                        image, result.formation, result.tracking,
                        spread_normalized=result.spread_normalized,
                        fps=self._perf.fps,
                    )
                    cv2.imshow(WINDOW_CAMERA, image)

            self._perf.frame_complete()
            self._handle_key(cv2.waitKey(1) & 0xFF, now_ms)

    def _handle_key(self, key: int, now_ms: int):
        if key in (ord("q"), 27):
            self._running = False
        elif key in _FORCE_KEYS:
            self._pipeline.formation.force(_FORCE_KEYS[key], now_ms)
            self._pipeline.steering.auto_rotate = self._pipeline.formation.auto_rotate
        elif key == ord("p"):
            logger.info("\n%s", self._perf.get_report())

    def _shutdown(self):
        logger.info("Shutting down...")
        self._running = False
        self._bus.emit(Events.SYSTEM_SHUTDOWN)
        self._perf.stop()

        if self._detector is not None:
            self._detector.stop()
        self._camera.stop()
        cv2.destroyAllWindows()

        logger.info("Formation transitions this session: %d",
                    self._formation_logger.total_transitions)
        logger.info("Shutdown complete.")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Touchless Formation - gesture-driven particle display"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--device", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Verbose logging"
    )
    parser.add_argument(
        "--no-overlay", action="store_true",
        help="Do not show the camera window with the landmark overlay"
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)

    if args.device is not None:
        config.set("capture.device_id", args.device)

    log_cfg = config.logging
    setup_logging(
        level="DEBUG" if args.debug else log_cfg.get("level", "INFO"),
        console_level="DEBUG" if args.debug else "INFO",
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  TOUCHLESS FORMATION")
    logger.info("  Particles: %d", config.get("particles.count", 4500))
    logger.info("=" * 60)

    app = FormationApplication(config, show_overlay=not args.no_overlay)

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    return 0 if app.start() else 1


if __name__ == "__main__":
    raise SystemExit(main())
