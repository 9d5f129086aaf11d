from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import Any

import cv2
import numpy as np

from hudcam.core.capture.recorders import GifRecorder, PngExporter
from hudcam.core.capture.state_machine import CaptureStateMachine
from hudcam.core.config.settings import HudSettings
from hudcam.core.detections.classify import make_classifier
from hudcam.core.detections.normalize import NormalizerConfig
from hudcam.core.detections.stream import DetectionStreamController
from hudcam.core.detectors.yolo import YoloPoseDetector
from hudcam.core.render.pipeline import RenderPipeline
from hudcam.core.types import Frame, Size
from hudcam.core.video_sources.base import FileSource, VideoSource, WebcamSource

logger = logging.getLogger(__name__)

KEY_ESC = 27


class HudApp:
    """Runs the window tick loop: sample frame, render, show, handle input.

    Threads:
    - the video source drains the camera on its own reader thread
    - the detection controller loads the model and polls it on background threads
    - everything else (rendering, capture, input) happens on the calling thread
    """

    def __init__(
        self,
        settings: HudSettings,
        source_factory: Callable[[], VideoSource] | None = None,
        detector_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.settings = settings
        self._source_factory = source_factory or self._make_source
        self._detector_factory = detector_factory or self._make_detector
        self.frame_size: Size = (settings.frame_width, settings.frame_height)
        self.source: VideoSource | None = None
        self.controller: DetectionStreamController | None = None
        self.capture: CaptureStateMachine | None = None
        self.pipeline: RenderPipeline | None = None
        self.running = False
        self.tick = 0
        self.last_error: str | None = None
        self._clicks: deque[tuple[int, int]] = deque(maxlen=8)
        self._window_open = False

    def _make_source(self) -> VideoSource:
        """Instantiate the configured `VideoSource`."""

        s = self.settings
        if s.video_source == "file":
            if not s.video_path:
                raise RuntimeError("video_source=file requires video_path")
            video_path = Path(s.video_path)
            if not video_path.exists():
                raise RuntimeError(f"Video path not found: {video_path}")
            return FileSource(str(video_path), s.frame_width, s.frame_height)
        return WebcamSource(s.camera_index, s.frame_width, s.frame_height)

    def _make_detector(self) -> YoloPoseDetector:
        return YoloPoseDetector(self.settings.model_name, conf=self.settings.detector_confidence)

    def _make_recorder(self) -> GifRecorder:
        return GifRecorder(self.settings.output_dir, fps=self.settings.gif_fps, width=self.settings.gif_width)

    def start(self) -> bool:
        """Open the source and start detector loading.

        Safe to call multiple times; subsequent calls while running are ignored.
        Returns False when the video source could not be opened.
        """

        if self.running:
            return True
        try:
            self.source = self._source_factory()
        except Exception:
            self.last_error = "Failed to initialize video source"
            logger.exception(self.last_error)
            return False

        s = self.settings
        self.controller = DetectionStreamController(
            self.source,
            frame_size=self.frame_size,
            normalizer_config=NormalizerConfig(
                keypoint_threshold=s.keypoint_threshold,
                min_keypoints=s.min_keypoints,
                padding=s.bbox_padding,
                default_confidence=s.default_confidence,
            ),
            classifier=make_classifier(s.classifier),
        )
        self.capture = CaptureStateMachine(
            self._make_recorder,
            PngExporter(s.output_dir),
            fps=s.gif_fps,
            duration_s=s.gif_duration_s,
        )
        self.pipeline = RenderPipeline(
            self.controller,
            self.capture,
            self.frame_size,
            tint_alpha=s.tint_alpha,
            noise_step=s.noise_step,
            noise_alpha=(s.noise_alpha_min, s.noise_alpha_max),
        )
        self.controller.load(self._detector_factory, interval_ms=s.detection_interval_ms)
        self.running = True
        self.last_error = None
        return True

    def stop(self) -> None:
        """Halt polling, abandon any recording without saving, release the source."""

        self.running = False
        if self.controller is not None:
            self.controller.stop()
        if self.capture is not None:
            self.capture.cancel(save=False)
            if self.capture.pending_saves:
                logger.info("Waiting for %d GIF save(s) to finish", self.capture.pending_saves)
            self.capture.wait_for_saves()
        if self.source is not None:
            self.source.close()
        if self._window_open:
            try:
                cv2.destroyWindow(self.settings.window_name)
            except cv2.error:
                logger.debug("Window already closed")
            self._window_open = False

    def on_mouse(self, event: int, x: int, y: int, flags: int, param: object) -> None:
        if event == cv2.EVENT_LBUTTONDOWN:
            self._clicks.append((int(x), int(y)))

    def step(self, surface_size: Size) -> Frame:
        """Render one tick. Pending clicks are dispatched against this tick's layout."""

        if self.pipeline is None or self.source is None:
            raise RuntimeError("HudApp.step() called before start()")
        while self._clicks:
            x, y = self._clicks.popleft()
            self.pipeline.handle_click(x, y, surface_size)
        frame = self.source.current_frame()
        surface = self.pipeline.render(frame, surface_size, self.tick)
        self.tick += 1
        return surface

    def handle_key(self, key: int) -> bool:
        """Apply a keyboard shortcut. Returns False when the app should quit."""

        if key in (KEY_ESC, ord("q")):
            return False
        if self.pipeline is None or self.capture is None:
            return True
        if key == ord("p") and self.pipeline.last_surface is not None:
            self.capture.request_still_export(self.pipeline.last_surface)
        elif key == ord("g"):
            self.capture.request_recording_start()
        return True

    def _surface_size(self) -> Size:
        try:
            _x, _y, w, h = cv2.getWindowImageRect(self.settings.window_name)
        except (cv2.error, AttributeError):
            w = h = 0
        if w <= 0 or h <= 0:
            return (self.settings.window_width, self.settings.window_height)
        return (int(w), int(h))

    def run(self) -> int:
        """Open the window and block in the tick loop until the user quits."""

        if not self.start():
            return 1
        name = self.settings.window_name
        cv2.namedWindow(name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(name, self.settings.window_width, self.settings.window_height)
        cv2.setMouseCallback(name, self.on_mouse)
        self._window_open = True
        frame_budget_s = 1.0 / self.settings.render_fps
        try:
            while self.running:
                started = time.perf_counter()
                try:
                    surface = self.step(self._surface_size())
                except Exception:
                    logger.exception("Render tick failed")
                    surface = np.zeros((self.settings.window_height, self.settings.window_width, 3), dtype=np.uint8)
                cv2.imshow(name, surface)
                elapsed = time.perf_counter() - started
                delay_ms = max(1, int((frame_budget_s - elapsed) * 1000))
                key = cv2.waitKey(delay_ms) & 0xFF
                if key != 0xFF and not self.handle_key(key):
                    break
                if cv2.getWindowProperty(name, cv2.WND_PROP_VISIBLE) < 1:
                    break
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()
        return 0
