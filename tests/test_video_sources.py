import time
from pathlib import Path

import cv2
import numpy as np
import pytest

from hudcam.core.video_sources.base import FileSource, ThreadedCaptureSource


def _make_dummy_video(path: Path, frames: int = 3, size=(64, 48)):
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 30.0, size)
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video on this platform")
    for i in range(frames):
        writer.write(np.full((size[1], size[0], 3), 40 * (i + 1), dtype=np.uint8))
    writer.release()


def _wait_for_frame(source, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        frame = source.current_frame()
        if frame is not None:
            return frame
        time.sleep(0.01)
    return None


class _FakeCap:
    def __init__(self, frame):
        self.frame = frame
        self.released = False

    def read(self):
        return True, self.frame

    def release(self):
        self.released = True


def test_threaded_source_resizes_to_native_resolution():
    cap = _FakeCap(np.zeros((100, 200, 3), dtype=np.uint8))
    source = ThreadedCaptureSource(cap, 80, 60)
    try:
        frame = _wait_for_frame(source)
        assert frame is not None
        assert frame.shape == (60, 80, 3)
    finally:
        source.close()
    assert cap.released


def test_file_source_plays_and_loops(tmp_path: Path):
    video = tmp_path / "clip.avi"
    _make_dummy_video(video)
    source = FileSource(str(video), 32, 24)
    try:
        frame = _wait_for_frame(source)
        if frame is None:
            pytest.skip("OpenCV backend cannot read generated video on this platform")
        assert frame.shape == (24, 32, 3)
        # Three frames at 30 fps: well past EOF, playback keeps producing frames.
        time.sleep(0.3)
        assert source.current_frame() is not None
        assert source.last_error is None
    finally:
        source.close()


def test_file_source_missing_file_raises(tmp_path: Path):
    with pytest.raises(RuntimeError):
        FileSource(str(tmp_path / "missing.avi"))
