"""Detection stream controller.

Bridges an independently-timed pose detector to a render loop that samples
state synchronously:

- a polling thread issues at most one detection request at a time
- every raw batch is normalized in full before the published snapshot
  reference is swapped
- results are tagged with the sequence number of the request that produced
  them, so a late result from an older request never overwrites a newer one
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from hudcam.core.detections.classify import PersonClassifier, UnknownClassifier, label_persons
from hudcam.core.detections.normalize import NormalizerConfig, normalize_batch
from hudcam.core.types import (
    EMPTY_SNAPSHOT,
    DetectionSnapshot,
    DetectorStatus,
    Frame,
    PersonDetection,
    Size,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 250
POSE_EVENT = "pose"


class FrameProvider(Protocol):
    """Anything exposing a fixed native resolution and a latest-frame accessor."""

    width: int
    height: int

    def current_frame(self) -> Frame | None:
        """Return the most recent frame (or None when not available yet)."""


class DetectionStreamController:
    """Owns the polling cadence and the latest published `DetectionSnapshot`."""

    def __init__(
        self,
        frame_provider: FrameProvider,
        frame_size: Size | None = None,
        normalizer_config: NormalizerConfig | None = None,
        classifier: PersonClassifier | None = None,
    ) -> None:
        self.frame_provider = frame_provider
        self.frame_size: Size = frame_size or (
            int(frame_provider.width),
            int(frame_provider.height),
        )
        self.normalizer_config = normalizer_config or NormalizerConfig()
        self.classifier: PersonClassifier = classifier or UnknownClassifier()
        self.interval_ms = DEFAULT_POLL_INTERVAL_MS
        self.last_error: str | None = None

        self._detector: Any | None = None
        self._status = DetectorStatus.UNAVAILABLE
        self._closed = False

        # Guards the published snapshot and sequence bookkeeping.
        self._lock = threading.Lock()
        self._snapshot: DetectionSnapshot = EMPTY_SNAPSHOT
        self._issued_seq = 0
        # Held while a detection request is outstanding.
        self._in_flight = threading.Lock()

        # Guards polling thread replacement.
        self._poll_guard = threading.Lock()
        self._poll_thread: threading.Thread | None = None
        self._poll_stop: threading.Event | None = None
        self._loader_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Detector lifecycle
    # ------------------------------------------------------------------

    @property
    def status(self) -> DetectorStatus:
        return self._status

    @property
    def is_ready(self) -> bool:
        return self._status is DetectorStatus.READY

    @property
    def is_polling(self) -> bool:
        thread = self._poll_thread
        return thread is not None and thread.is_alive()

    def load(
        self,
        factory: Callable[[], Any],
        interval_ms: int | None = None,
    ) -> None:
        """Build the detector in a background thread, then start polling.

        Safe to call multiple times; calls while a load is in progress are ignored.
        """

        if self._status is DetectorStatus.LOADING:
            return
        self._status = DetectorStatus.LOADING
        self.last_error = None

        def _run() -> None:
            try:
                detector = factory()
            except Exception:
                self.last_error = "Failed to load detector"
                logger.exception(self.last_error)
                self._status = DetectorStatus.UNAVAILABLE
                return
            if self._closed:
                logger.info("Detector loaded after stop; discarding it")
                self._status = DetectorStatus.UNAVAILABLE
                return
            try:
                self.attach(detector)
            except TypeError:
                self.last_error = "Detector exposes neither detect() nor on()"
                logger.exception(self.last_error)
                self._status = DetectorStatus.UNAVAILABLE
                return
            logger.info("Detector ready: %s", type(detector).__name__)
            if not self._closed:
                self.start_polling(interval_ms if interval_ms is not None else self.interval_ms)

        self._loader_thread = threading.Thread(target=_run, daemon=True, name="hudcam-detector-load")
        self._loader_thread.start()

    def attach(self, detector: Any) -> None:
        """Attach a built detector.

        Batch detectors expose ``detect(frame)``; event-emitting detectors expose
        ``on(event, handler)`` and are subscribed exactly once here.
        """

        detect = getattr(detector, "detect", None)
        on = getattr(detector, "on", None)
        if not callable(detect) and not callable(on):
            raise TypeError(f"Unsupported detector: {type(detector).__name__}")
        self._detector = detector
        if not callable(detect):
            on(POSE_EVENT, self._on_detector_event)
        self._status = DetectorStatus.READY

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start_polling(self, interval_ms: int | None = None) -> None:
        """Start (or restart) the polling cadence.

        Any existing polling thread is stopped before the new one is installed, so
        repeated calls replace the cycle rather than stacking it.
        """

        if interval_ms is not None:
            if interval_ms <= 0:
                raise ValueError("interval_ms must be > 0")
            self.interval_ms = int(interval_ms)
        with self._poll_guard:
            self._stop_polling_locked()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._poll_loop,
                args=(stop_event, self.interval_ms / 1000.0),
                daemon=True,
                name="hudcam-detect-poll",
            )
            self._poll_stop = stop_event
            self._poll_thread = thread
            thread.start()
        logger.debug("Detection polling every %d ms", self.interval_ms)

    def stop(self) -> None:
        """Halt polling. Results still in flight are discarded by sequence order."""

        self._closed = True
        with self._poll_guard:
            self._stop_polling_locked()

    def _stop_polling_locked(self) -> None:
        if self._poll_stop is not None:
            self._poll_stop.set()
        thread = self._poll_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2)
        self._poll_stop = None
        self._poll_thread = None

    def _poll_loop(self, stop_event: threading.Event, interval_s: float) -> None:
        logger.debug("Poll loop started")
        while not stop_event.wait(interval_s):
            try:
                self.poll_once()
            except Exception:
                self.last_error = "Detection poll failed"
                logger.exception(self.last_error)

    def poll_once(self) -> bool:
        """Issue one detection request unless one is already outstanding.

        Returns True when a request was issued.
        """

        detector = self._detector
        if detector is None:
            return False
        if not self._in_flight.acquire(blocking=False):
            return False
        try:
            frame = self.frame_provider.current_frame()
            if frame is None:
                return False
            detect = getattr(detector, "detect", None)
            if callable(detect):
                seq = self.begin_request()
                try:
                    results = detect(frame)
                except Exception:
                    self.last_error = "Detector call failed"
                    logger.exception(self.last_error)
                    results = None
                self.publish(seq, results)
                return True
            submit = getattr(detector, "submit", None)
            if callable(submit):
                submit(frame)
                return True
            # Self-driven emitter: results arrive through the event handler.
            return False
        finally:
            self._in_flight.release()

    def _on_detector_event(self, results: Any) -> None:
        self.publish(self.begin_request(), results)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def begin_request(self) -> int:
        """Allocate the sequence number for a new detection request."""

        with self._lock:
            self._issued_seq += 1
            return self._issued_seq

    def publish(self, seq: int, results: Any) -> bool:
        """Normalize `results` in full and publish them as request `seq`.

        Malformed or empty results publish an empty snapshot. Returns False when the
        result was discarded because a newer request already completed.
        """

        try:
            persons: tuple[PersonDetection, ...] = normalize_batch(
                results, self.frame_size, self.normalizer_config
            )
            persons = label_persons(persons, self.classifier)
        except Exception:
            logger.exception("Failed to normalize detection batch")
            persons = ()
        snapshot = DetectionSnapshot(seq=seq, persons=persons, timestamp=time.time())
        with self._lock:
            if seq <= self._snapshot.seq:
                logger.debug(
                    "Discarding stale detection result seq=%d (published=%d)",
                    seq,
                    self._snapshot.seq,
                )
                return False
            self._snapshot = snapshot
        return True

    def current_snapshot(self) -> DetectionSnapshot:
        """Return the latest fully normalized snapshot (empty before the first result)."""

        with self._lock:
            return self._snapshot
