"""Frame providers.

The render loop and the detection poller both sample frames through a small
interface (`VideoSource`): a fixed native `width`/`height` and a non-blocking
`current_frame()` accessor. Concrete sources drain `cv2.VideoCapture` on a
background thread and keep only the newest frame, resized to the native
resolution.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

import cv2

from hudcam.core.types import Frame

logger = logging.getLogger(__name__)


class VideoSource(ABC):
    """Base interface for anything that can provide video frames."""

    width: int
    height: int

    @abstractmethod
    def current_frame(self) -> Frame | None:
        """Return the latest frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class ThreadedCaptureSource(VideoSource):
    """A `VideoSource` backed by `cv2.VideoCapture` and a reader thread."""

    def __init__(self, cap: cv2.VideoCapture, width: int, height: int) -> None:
        self.cap = cap
        self.width = int(width)
        self.height = int(height)
        self.last_error: str | None = None
        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True, name="hudcam-capture")
        self._reader_thread.start()

    def _fit(self, frame: Frame) -> Frame:
        h, w = frame.shape[:2]
        if (w, h) == (self.width, self.height):
            return frame
        return cv2.resize(frame, (self.width, self.height), interpolation=cv2.INTER_LINEAR)

    def _read(self) -> Frame | None:
        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame

    def _reader_loop(self) -> None:
        """Continuously drain the driver buffer and keep only the newest frame."""

        try:
            while self._running and self.cap is not None:
                frame = self._read()
                if frame is None:
                    time.sleep(0.01)
                    continue
                fitted = self._fit(frame)
                with self._lock:
                    self._latest_frame = fitted
        except Exception:
            self.last_error = "Capture reader failed"
            logger.exception(self.last_error)

    def current_frame(self) -> Frame | None:
        """Return the most recent frame captured by the background reader.

        Frames are shared, not copied: callers must treat them as read-only.
        """

        with self._lock:
            return self._latest_frame

    def close(self) -> None:
        """Stop the background reader thread and release the capture."""

        self._running = False
        try:
            if self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            if self.cap is not None:
                self.cap.release()


class WebcamSource(ThreadedCaptureSource):
    """Webcam capture with low-latency buffering."""

    def __init__(self, index: int = 0, width: int = 800, height: int = 600) -> None:
        cap = None
        candidates = [(index, cv2.CAP_ANY), (index + 1, cv2.CAP_ANY)]
        for idx, backend in candidates:
            try:
                candidate = cv2.VideoCapture(idx, backend)
                if candidate.isOpened():
                    ret, _ = candidate.read()
                    if ret:
                        cap = candidate
                        logger.info("Opened camera index=%s backend=%s", idx, backend)
                        break
                    candidate.release()
            except Exception:
                continue

        if cap is None or not cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {index} (and fallback {index + 1})")

        # Supported by some backends/drivers; ignored by others.
        try:
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        super().__init__(cap, width, height)


class FileSource(ThreadedCaptureSource):
    """Video file source played back in real time, looping at EOF."""

    def __init__(self, path: str, width: int = 800, height: int = 600) -> None:
        self._path = path
        cap = cv2.VideoCapture(path)
        if not cap.isOpened():
            raise RuntimeError(f"Failed to open video file: {path}")
        fps = 0.0
        try:
            fps = float(cap.get(cv2.CAP_PROP_FPS))
        except Exception:
            fps = 0.0
        self._frame_interval = 1.0 / fps if fps > 0.0 else 1.0 / 30.0
        self._next_due: float | None = None
        super().__init__(cap, width, height)

    def _read(self) -> Frame | None:
        # Pace output to the file's FPS (play in seconds, not decode-as-fast-as-possible).
        now = time.perf_counter()
        if self._next_due is not None and now < self._next_due:
            time.sleep(self._next_due - now)
        self._next_due = max(now, self._next_due or now) + self._frame_interval

        ok, frame = self.cap.read()
        if ok:
            return frame
        # EOF: rewind and continue.
        rewound = False
        try:
            rewound = bool(self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0))
        except Exception:
            rewound = False
        if not rewound:
            self.cap.release()
            self.cap = cv2.VideoCapture(self._path)
            if not self.cap.isOpened():
                return None
        ok2, frame2 = self.cap.read()
        return frame2 if ok2 else None
