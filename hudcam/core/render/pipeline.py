"""Per-tick render orchestration.

`RenderPipeline.render` composes one surface per display tick, in fixed order:

1. compute the display transform
2. base frame (scaled/centered) on black
3. low-opacity tint over the frame region
4. detection boxes, labels and stacked info panels from the current snapshot
5. cosmetic noise layer
6. HUD text and capture buttons
7. advance the capture state machine (captures the surface drawn so far;
   a zero-area surface is skipped and the recording waits for the next one)
8. loading overlay (or offline banner) on top when the detector is not ready
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

import numpy as np

from hudcam.core.capture.state_machine import CaptureStateMachine
from hudcam.core.detections.stream import DetectionStreamController
from hudcam.core.geometry import compute_display_transform, to_display_bbox
from hudcam.core.overlay import draw
from hudcam.core.overlay.layout import RECORD_BUTTON, STILL_BUTTON, hit_test
from hudcam.core.types import DetectorStatus, DisplayTransform, Frame, Size

logger = logging.getLogger(__name__)


class RenderPipeline:
    """Composes frame, overlays, HUD and capture triggers into one surface."""

    def __init__(
        self,
        detections: DetectionStreamController,
        capture: CaptureStateMachine,
        frame_size: Size,
        tint_alpha: int = 38,
        noise_step: int = 8,
        noise_alpha: tuple[int, int] = (6, 20),
        rng: np.random.Generator | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.detections = detections
        self.capture = capture
        self.frame_size = frame_size
        self.tint_alpha = tint_alpha
        self.noise_step = noise_step
        self.noise_alpha = noise_alpha
        self.rng = rng or np.random.default_rng()
        self.clock = clock
        self.last_transform: DisplayTransform | None = None
        self._last_surface: Frame | None = None

    def render(self, frame: Frame | None, surface_size: Size, tick: int) -> Frame:
        """Compose and return the surface for this tick."""

        surface_w, surface_h = surface_size
        surface = np.zeros((max(0, surface_h), max(0, surface_w), 3), dtype=np.uint8)
        frame_w, frame_h = self.frame_size

        transform = compute_display_transform(frame_w, frame_h, surface_w, surface_h)
        self.last_transform = transform

        if not transform.is_empty:
            if frame is not None:
                draw.draw_base_frame(surface, frame, transform)
            draw.draw_tint(surface, transform, frame_w, frame_h, self.tint_alpha)
            self._draw_detections(surface, transform)
            draw.draw_noise(surface, self.noise_step, self.noise_alpha[0], self.noise_alpha[1], self.rng)
            draw.draw_hud(surface, self.clock(), self.capture.session)
            draw.draw_buttons(surface, self.capture.state)

        if surface.size:
            self.capture.on_tick(surface, tick)

        status = self.detections.status
        # Exports and recordings never include the overlays drawn below.
        self._last_surface = surface if status is DetectorStatus.READY else surface.copy()
        if status is DetectorStatus.LOADING:
            draw.draw_loading_screen(surface, tick)
        elif status is DetectorStatus.UNAVAILABLE and surface.size:
            draw.draw_offline_banner(surface)
        return surface

    @property
    def last_surface(self) -> Frame | None:
        """The most recently composed surface (None before the first tick)."""

        return self._last_surface

    def _draw_detections(self, surface: Frame, transform: DisplayTransform) -> None:
        snapshot = self.detections.current_snapshot()
        for i, det in enumerate(snapshot.persons):
            draw.draw_person(surface, i, det, to_display_bbox(transform, det.bbox))
            draw.draw_info_panel(surface, i, det)

    def handle_click(self, x: float, y: float, surface_size: Size) -> str | None:
        """Dispatch a pointer click against the current button layout."""

        button = hit_test(x, y, surface_size[1])
        if button == STILL_BUTTON:
            if self._last_surface is None:
                logger.debug("Still export requested before first render")
                return button
            self.capture.request_still_export(self._last_surface)
        elif button == RECORD_BUTTON:
            self.capture.request_recording_start()
        return button
