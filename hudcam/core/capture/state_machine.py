"""Still-export and animated-capture state machine.

States::

    UNAVAILABLE            no recording backend could be created
    IDLE --start--> RECORDING --budget reached / capture failure--> IDLE

Reaching the budget hands the recorder to a background thread for `stop()` and
`save()`; the machine is IDLE again on the same tick with a fresh recorder.

The machine is owned by the render thread: `on_tick` must be called once per
tick *after* the surface has been composited.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from hudcam.core.types import Frame

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30
DEFAULT_DURATION_S = 5


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    UNAVAILABLE = "unavailable"


class Recorder(Protocol):
    """Multi-frame recording backend."""

    def start(self) -> None: ...

    def capture(self, surface: Frame) -> None: ...

    def stop(self) -> None: ...

    def save(self) -> object: ...


StillExporter = Callable[[Frame], object]
RecorderFactory = Callable[[], Recorder]


@dataclass
class CaptureSession:
    frames_captured: int
    frame_budget: int

    @property
    def progress(self) -> float:
        if self.frame_budget <= 0:
            return 0.0
        return min(1.0, self.frames_captured / self.frame_budget)


class CaptureStateMachine:
    """Drives screenshot export and fixed-length animated recordings."""

    def __init__(
        self,
        recorder_factory: RecorderFactory | None,
        still_exporter: StillExporter | None = None,
        fps: int = DEFAULT_FPS,
        duration_s: float = DEFAULT_DURATION_S,
    ) -> None:
        if fps <= 0 or duration_s <= 0:
            raise ValueError("fps and duration_s must be > 0")
        self.fps = int(fps)
        self.duration_s = duration_s
        self.frame_budget = int(round(self.fps * duration_s))
        self.still_exporter = still_exporter
        self.last_error: str | None = None
        self.saves = 0
        self._recorder_factory = recorder_factory
        self._recorder: Recorder | None = None
        self._session: CaptureSession | None = None
        self._last_tick: int | None = None
        self._save_lock = threading.Lock()
        self._save_threads: list[threading.Thread] = []
        self._state = CaptureState.UNAVAILABLE
        self._init_recorder()

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def session(self) -> CaptureSession | None:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._state is CaptureState.RECORDING

    def _init_recorder(self) -> None:
        """Probe the recording backend; degrade to UNAVAILABLE when missing."""

        if self._recorder_factory is None:
            logger.warning("No recording backend configured; GIF capture disabled")
            self._recorder = None
            self._state = CaptureState.UNAVAILABLE
            return
        try:
            self._recorder = self._recorder_factory()
        except Exception:
            self.last_error = "Failed to initialize recording backend"
            logger.exception(self.last_error)
            self._recorder = None
            self._state = CaptureState.UNAVAILABLE
            return
        self._state = CaptureState.IDLE

    def request_still_export(self, surface: Frame) -> bool:
        """Export `surface` as a still image. Never changes state."""

        if self.still_exporter is None:
            logger.warning("No still exporter configured")
            return False
        try:
            self.still_exporter(surface)
        except Exception:
            self.last_error = "Still export failed"
            logger.exception(self.last_error)
            return False
        return True

    def request_recording_start(self) -> bool:
        """Start a recording session. No-op unless IDLE."""

        if self._state is not CaptureState.IDLE or self._recorder is None:
            logger.debug("Recording start ignored in state %s", self._state.value)
            return False
        try:
            self._recorder.start()
        except Exception:
            self.last_error = "Recording start failed"
            logger.exception(self.last_error)
            return False
        self._session = CaptureSession(frames_captured=0, frame_budget=self.frame_budget)
        self._last_tick = None
        self._state = CaptureState.RECORDING
        logger.info("Recording started (%d frames)", self.frame_budget)
        return True

    def on_tick(self, surface: Frame, tick: int | None = None) -> None:
        """Capture the just-composited `surface` if recording.

        Repeated calls with the same `tick` id capture only once.
        """

        if self._state is not CaptureState.RECORDING:
            return
        session = self._session
        recorder = self._recorder
        if session is None or recorder is None:
            self._reset_session()
            return
        if tick is not None:
            if tick == self._last_tick:
                return
            self._last_tick = tick

        try:
            recorder.capture(surface)
        except Exception:
            self.last_error = "Frame capture failed; recording aborted"
            logger.exception(self.last_error)
            self._reset_session()
            self._init_recorder()
            return
        session.frames_captured += 1

        if session.frames_captured >= session.frame_budget:
            self._finalize()

    def cancel(self, save: bool = False) -> None:
        """Abandon the active session, saving the partial capture only when asked."""

        if self._state is not CaptureState.RECORDING:
            return
        if save:
            self._finalize()
            return
        recorder = self._recorder
        if recorder is not None:
            try:
                recorder.stop()
            except Exception:
                logger.exception("Recorder stop failed during cancel")
        logger.info("Recording cancelled")
        self._reset_session()
        self._init_recorder()

    def _finalize(self) -> None:
        """Hand the finished recorder to a save worker and re-arm with a fresh one.

        `stop()` and `save()` run on a daemon thread, never on the render thread.
        """

        recorder = self._recorder
        self._recorder = None
        self._reset_session()
        if recorder is not None:
            worker = threading.Thread(
                target=self._save_recording,
                args=(recorder,),
                daemon=True,
                name="hudcam-gif-save",
            )
            with self._save_lock:
                self._save_threads = [t for t in self._save_threads if t.is_alive()]
                self._save_threads.append(worker)
            worker.start()
        logger.info("Recording finished")
        # Some backends cannot be reused after a save; start from a fresh one.
        self._init_recorder()

    def _save_recording(self, recorder: Recorder) -> None:
        try:
            recorder.stop()
            recorder.save()
        except Exception:
            self.last_error = "Recording stop/save failed"
            logger.exception(self.last_error)
            return
        with self._save_lock:
            self.saves += 1

    @property
    def pending_saves(self) -> int:
        with self._save_lock:
            return sum(1 for t in self._save_threads if t.is_alive())

    def wait_for_saves(self, timeout: float | None = None) -> bool:
        """Block until background saves finish. Returns False on timeout."""

        with self._save_lock:
            threads = list(self._save_threads)
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return self.pending_saves == 0

    def _reset_session(self) -> None:
        self._session = None
        self._last_tick = None
        if self._state is CaptureState.RECORDING:
            self._state = CaptureState.IDLE
