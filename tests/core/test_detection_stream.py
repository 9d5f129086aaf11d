from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from hudcam.core.detections.classify import AlternatingClassifier
from hudcam.core.detections.stream import DetectionStreamController
from hudcam.core.types import DetectorStatus


class _Provider:
    width = 800
    height = 600

    def __init__(self, frame=None):
        self.frame = np.zeros((600, 800, 3), dtype=np.uint8) if frame is None else frame

    def current_frame(self):
        return self.frame


def _person(x=100.0, score=0.9):
    return {"keypoints": [{"x": x, "y": 100, "score": score}, {"x": x + 50, "y": 150, "score": score}, {"x": x + 20, "y": 300, "score": score}]}


class _BatchDetector:
    def __init__(self, results):
        self.results = results
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        return self.results


class _EventDetector:
    def __init__(self):
        self.handlers = {}
        self.submitted = 0

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def submit(self, frame):
        self.submitted += 1

    def emit(self, results):
        for handler in self.handlers.get("pose", []):
            handler(results)


def _wait_until(pred, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.01)
    return False


def test_empty_snapshot_before_first_result():
    ctrl = DetectionStreamController(_Provider())
    snap = ctrl.current_snapshot()
    assert snap.seq == 0
    assert len(snap) == 0
    assert ctrl.status is DetectorStatus.UNAVAILABLE
    assert not ctrl.is_ready


def test_published_snapshot_matches_normalized_batch():
    ctrl = DetectionStreamController(_Provider())
    ctrl.attach(_BatchDetector([_person(), _person(400), {"keypoints": []}]))
    assert ctrl.poll_once() is True
    snap = ctrl.current_snapshot()
    assert snap.seq == 1
    assert len(snap.persons) == 2


def test_older_result_arriving_late_is_discarded():
    ctrl = DetectionStreamController(_Provider())
    older = ctrl.begin_request()
    newer = ctrl.begin_request()
    assert ctrl.publish(newer, [_person()]) is True
    assert ctrl.publish(older, [_person(), _person(300), _person(500)]) is False
    snap = ctrl.current_snapshot()
    assert snap.seq == newer
    assert len(snap.persons) == 1


def test_malformed_or_empty_result_publishes_empty_snapshot():
    ctrl = DetectionStreamController(_Provider())
    ctrl.publish(ctrl.begin_request(), [_person()])
    assert len(ctrl.current_snapshot()) == 1
    assert ctrl.publish(ctrl.begin_request(), "garbage") is True
    assert len(ctrl.current_snapshot()) == 0
    ctrl.publish(ctrl.begin_request(), [_person()])
    ctrl.publish(ctrl.begin_request(), None)
    assert len(ctrl.current_snapshot()) == 0


def test_single_record_result_is_wrapped():
    ctrl = DetectionStreamController(_Provider())
    ctrl.attach(_BatchDetector(_person()))
    ctrl.poll_once()
    assert len(ctrl.current_snapshot()) == 1


def test_detector_exception_publishes_empty_snapshot():
    class _Boom:
        def detect(self, frame):
            raise RuntimeError("inference failed")

    ctrl = DetectionStreamController(_Provider())
    ctrl.publish(ctrl.begin_request(), [_person()])
    ctrl.attach(_Boom())
    assert ctrl.poll_once() is True
    assert len(ctrl.current_snapshot()) == 0
    assert ctrl.last_error == "Detector call failed"


def test_no_frame_means_no_request():
    provider = _Provider()
    provider.frame = None
    det = _BatchDetector([_person()])
    ctrl = DetectionStreamController(provider)
    ctrl.attach(det)
    assert ctrl.poll_once() is False
    assert det.calls == 0


def test_request_skipped_while_one_is_outstanding():
    release = threading.Event()
    entered = threading.Event()

    class _Slow:
        calls = 0

        def detect(self, frame):
            type(self).calls += 1
            entered.set()
            release.wait(2)
            return [_person()]

    ctrl = DetectionStreamController(_Provider())
    ctrl.attach(_Slow())
    t = threading.Thread(target=ctrl.poll_once)
    t.start()
    assert entered.wait(2)
    assert ctrl.poll_once() is False
    release.set()
    t.join(2)
    assert _Slow.calls == 1
    assert len(ctrl.current_snapshot()) == 1


def test_event_detector_subscribed_once_and_publishes():
    det = _EventDetector()
    ctrl = DetectionStreamController(_Provider())
    ctrl.attach(det)
    assert len(det.handlers["pose"]) == 1
    assert ctrl.poll_once() is True
    assert det.submitted == 1
    det.emit([_person(), _person(300)])
    assert len(ctrl.current_snapshot()) == 2
    det.emit(None)
    assert len(ctrl.current_snapshot()) == 0


def test_attach_rejects_unsupported_detector():
    ctrl = DetectionStreamController(_Provider())
    with pytest.raises(TypeError):
        ctrl.attach(object())


def test_classifier_labels_are_applied_in_snapshot_order():
    ctrl = DetectionStreamController(_Provider(), classifier=AlternatingClassifier())
    ctrl.publish(ctrl.begin_request(), [_person(), _person(300)])
    labels = [p.label for p in ctrl.current_snapshot().persons]
    assert labels == ["FEMALE", "MALE"]


def test_default_label_is_unknown():
    ctrl = DetectionStreamController(_Provider())
    ctrl.publish(ctrl.begin_request(), [_person()])
    assert ctrl.current_snapshot().persons[0].label == "UNKNOWN"


def test_start_polling_replaces_rather_than_stacks():
    det = _BatchDetector([_person()])
    ctrl = DetectionStreamController(_Provider())
    ctrl.attach(det)
    ctrl.start_polling(10)
    first = ctrl._poll_thread
    ctrl.start_polling(10)
    second = ctrl._poll_thread
    try:
        assert first is not second
        assert first is not None and not first.is_alive()
        assert ctrl.is_polling
        polling = [t for t in threading.enumerate() if t.name == "hudcam-detect-poll" and t.is_alive()]
        assert second in polling
        assert first not in polling
        assert _wait_until(lambda: ctrl.current_snapshot().seq > 0)
    finally:
        ctrl.stop()
    assert not ctrl.is_polling


def test_start_polling_rejects_non_positive_interval():
    ctrl = DetectionStreamController(_Provider())
    with pytest.raises(ValueError):
        ctrl.start_polling(0)


def test_load_success_attaches_and_polls():
    det = _BatchDetector([_person()])
    ctrl = DetectionStreamController(_Provider())
    ctrl.load(lambda: det, interval_ms=10)
    try:
        assert _wait_until(lambda: ctrl.is_ready)
        assert _wait_until(lambda: det.calls > 0)
        assert _wait_until(lambda: len(ctrl.current_snapshot()) == 1)
    finally:
        ctrl.stop()


def test_load_failure_reports_unavailable_not_empty():
    def _factory():
        raise RuntimeError("model missing")

    ctrl = DetectionStreamController(_Provider())
    ctrl.load(_factory)
    assert _wait_until(lambda: ctrl.status is DetectorStatus.UNAVAILABLE)
    assert ctrl.last_error == "Failed to load detector"
    assert not ctrl.is_polling


def test_status_is_loading_while_factory_runs():
    gate = threading.Event()

    def _factory():
        gate.wait(2)
        return _BatchDetector([])

    ctrl = DetectionStreamController(_Provider())
    ctrl.load(_factory, interval_ms=10)
    try:
        assert ctrl.status is DetectorStatus.LOADING
        gate.set()
        assert _wait_until(lambda: ctrl.is_ready)
    finally:
        ctrl.stop()


def test_stop_during_load_does_not_start_polling():
    gate = threading.Event()

    def _factory():
        gate.wait(2)
        return _BatchDetector([])

    ctrl = DetectionStreamController(_Provider())
    ctrl.load(_factory, interval_ms=10)
    ctrl.stop()
    gate.set()
    ctrl._loader_thread.join(2)
    assert not ctrl.is_polling
    assert ctrl.status is DetectorStatus.UNAVAILABLE
    assert not ctrl.is_ready


def test_keypoint_tensor_batch_publishes_one_person_per_row():
    kpts = np.zeros((2, 17, 3), dtype=np.float32)
    kpts[:, :3] = [[100, 100, 0.9], [150, 150, 0.9], [120, 300, 0.9]]
    ctrl = DetectionStreamController(_Provider())
    ctrl.attach(_BatchDetector(kpts))
    ctrl.poll_once()
    assert len(ctrl.current_snapshot()) == 2
