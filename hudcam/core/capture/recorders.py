"""Capture backends: PNG still export (OpenCV) and animated GIF recording (Pillow)."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

from hudcam.core.types import Frame

logger = logging.getLogger(__name__)

STILL_FILENAME = "screenshot.png"


class PngExporter:
    """Write the composited surface to a fixed PNG destination."""

    def __init__(self, output_dir: str | Path, filename: str = STILL_FILENAME) -> None:
        self.path = Path(output_dir) / filename

    def __call__(self, surface: Frame) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not cv2.imwrite(str(self.path), surface):
            raise RuntimeError(f"Failed to write still image: {self.path}")
        logger.info("Saved still image to %s", self.path)
        return self.path


class GifRecorder:
    """Accumulate BGR surfaces in memory and write them out as an animated GIF.

    Instances are single-use: after `save()` the capture state machine creates a
    fresh recorder.
    """

    def __init__(
        self,
        output_dir: str | Path,
        fps: int = 30,
        width: int | None = None,
    ) -> None:
        if fps <= 0:
            raise ValueError("fps must be > 0")
        self.output_dir = Path(output_dir)
        self.fps = int(fps)
        self.width = width
        self._frames: list[Image.Image] = []
        self._recording = False
        self._stopped = False
        self.saved_path: Path | None = None

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("GifRecorder cannot be restarted after stop()")
        self._frames = []
        self._recording = True

    def capture(self, surface: Frame) -> None:
        if not self._recording:
            raise RuntimeError("GifRecorder.capture() called before start()")
        if surface is None or surface.ndim != 3 or surface.shape[2] != 3 or surface.size == 0:
            raise ValueError("surface must be a non-empty HxWx3 BGR image")
        img = surface
        if self.width is not None and img.shape[1] > self.width:
            scale = self.width / float(img.shape[1])
            new_h = max(1, int(round(img.shape[0] * scale)))
            img = cv2.resize(img, (self.width, new_h), interpolation=cv2.INTER_AREA)
        rgb = cv2.cvtColor(np.ascontiguousarray(img), cv2.COLOR_BGR2RGB)
        self._frames.append(Image.fromarray(rgb))

    def stop(self) -> None:
        self._recording = False
        self._stopped = True

    def save(self) -> Path:
        if not self._frames:
            raise RuntimeError("No frames captured")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stamp = time.strftime("%Y%m%d-%H%M%S")
        path = self.output_dir / f"capture-{stamp}.gif"
        duration_ms = int(round(1000.0 / self.fps))
        first, rest = self._frames[0], self._frames[1:]
        first.save(
            path,
            save_all=True,
            append_images=rest,
            duration=duration_ms,
            loop=0,
            optimize=False,
        )
        self.saved_path = path
        logger.info("Saved %d-frame GIF to %s", len(self._frames), path)
        self._frames = []
        return path
