"""Run detection + rendering over a video file without a window.

Writes per-frame normalized detections as JSON and, optionally, an animated GIF
of the rendered composite.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from pathlib import Path

import cv2

from hudcam.core.capture.recorders import GifRecorder
from hudcam.core.capture.state_machine import CaptureStateMachine
from hudcam.core.detections.classify import make_classifier
from hudcam.core.detections.stream import DetectionStreamController
from hudcam.core.detectors.yolo import YoloPoseDetector
from hudcam.core.render.pipeline import RenderPipeline


class _DummyDetector:
    def detect(self, frame):  # pragma: no cover - trivial
        return []


class _LatestFrame:
    """Frame provider fed synchronously by the tool loop."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.frame = None

    def current_frame(self):
        return self.frame


def run(args) -> int:
    cap = cv2.VideoCapture(args.input)
    if not cap.isOpened():
        raise SystemExit(f"Cannot open video {args.input}")
    width, height = args.frame_width, args.frame_height
    detector = _DummyDetector() if args.mock else YoloPoseDetector(args.model, conf=args.conf)

    provider = _LatestFrame(width, height)
    controller = DetectionStreamController(provider, classifier=make_classifier(args.classifier))
    controller.attach(detector)
    capture = CaptureStateMachine(recorder_factory=None)
    pipeline = RenderPipeline(controller, capture, (width, height))
    recorder = GifRecorder(Path(args.gif).parent, fps=args.gif_fps, width=args.gif_width) if args.gif else None
    if recorder is not None:
        recorder.start()

    outputs = []
    tick = 0
    while True:
        ok, frame = cap.read()
        if not ok:
            break
        frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)
        provider.frame = frame
        controller.poll_once()
        snapshot = controller.current_snapshot()
        outputs.append(
            {
                "frame": tick,
                "seq": snapshot.seq,
                "persons": [asdict(p) for p in snapshot.persons],
            }
        )
        if recorder is not None:
            recorder.capture(pipeline.render(frame, (width, height), tick))
        tick += 1
        if args.max_frames and tick >= args.max_frames:
            break
    cap.release()

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2)
    print(f"Wrote {len(outputs)} frame summaries to {out_path}")

    if recorder is not None and recorder.frame_count:
        recorder.stop()
        gif_path = recorder.save()
        final = Path(args.gif)
        gif_path.replace(final)
        print(f"Wrote {tick} rendered frames to {final}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run pose normalization on a video")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--model", default="yolo11n-pose.pt")
    parser.add_argument("--conf", type=float, default=0.25)
    parser.add_argument("--classifier", choices=["unknown", "alternating"], default="unknown")
    parser.add_argument("--frame-width", type=int, default=800)
    parser.add_argument("--frame-height", type=int, default=600)
    parser.add_argument("--max-frames", type=int, default=0, help="Limit frames for quick tests")
    parser.add_argument("--gif", help="Optional path for a rendered GIF")
    parser.add_argument("--gif-fps", type=int, default=30)
    parser.add_argument("--gif-width", type=int, default=None)
    parser.add_argument(
        "--mock", action="store_true", help="Use dummy detector (no model download)"
    )
    return parser


if __name__ == "__main__":
    raise SystemExit(run(build_parser().parse_args()))
