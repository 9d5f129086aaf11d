"""Ultralytics YOLO pose detector integration.

The detector hands back *raw* records (plain dicts with an ``(N, 3)`` keypoint
array); turning those into `PersonDetection` objects is the normalizer's job.
Torch stays an optional runtime dependency: ONNX exports can run without it.
"""

from __future__ import annotations

import importlib
import os
from contextlib import nullcontext
from typing import Any

import numpy as np
from ultralytics import YOLO

YOLO11_POSE_SIZES = ("n", "s", "m", "l")
YOLO11_DEFAULT_POSE_MODEL = "yolo11n-pose.pt"


def resolve_pose_model(model_name: str | None, model_size: str | None) -> str:
    """Resolve the YOLO11 pose model name from an optional size override.

    Args:
        model_name: Explicit model path/name (used when model_size is None).
        model_size: Optional size selector ("n", "s", "m", "l") to build
            yolo11{size}-pose.pt.
    """

    if model_size:
        size = str(model_size).strip().lower()
        if size not in YOLO11_POSE_SIZES:
            raise ValueError("model_size must be one of: n, s, m, l")
        return f"yolo11{size}-pose.pt"
    return model_name or YOLO11_DEFAULT_POSE_MODEL


def _to_numpy(value: Any) -> np.ndarray:
    if hasattr(value, "cpu"):
        value = value.cpu()
    return value.numpy() if hasattr(value, "numpy") else np.asarray(value)


class YoloPoseDetector:
    """Pose detector wrapper around Ultralytics YOLO.

    CPU-only by default; thread counts can be tuned via `HUD_TORCH_THREADS` and
    `HUD_TORCH_INTEROP_THREADS`.
    """

    _torch_threads_configured: bool = False

    def __init__(self, model_name: str = YOLO11_DEFAULT_POSE_MODEL, conf: float = 0.25):
        self._configure_torch_threads_from_env()

        self.model_name = model_name
        self.is_onnx = model_name.lower().endswith(".onnx")
        self.device: str = "cpu"
        self._torch_inference_mode: Any | None = None
        if not self.is_onnx:
            try:
                torch = importlib.import_module("torch")
                self._torch_inference_mode = torch.inference_mode
            except Exception:
                self._torch_inference_mode = None
        self.model = YOLO(model_name, task="pose")
        if not self.is_onnx:
            try:
                self.model.to(self.device)
            except Exception:
                # predict(device='cpu') still enforces CPU.
                pass
        self.conf = conf
        self._predict_kwargs = {
            "conf": self.conf,
            "verbose": False,
            # COCO person class only.
            "classes": [0],
            "device": self.device,
        }

    @classmethod
    def _configure_torch_threads_from_env(cls) -> None:
        """Configure torch thread counts from environment variables (one-time)."""

        if cls._torch_threads_configured:
            return
        cls._torch_threads_configured = True

        threads_s = os.getenv("HUD_TORCH_THREADS")
        interop_s = os.getenv("HUD_TORCH_INTEROP_THREADS")
        if threads_s is None and interop_s is None:
            return

        try:
            torch = importlib.import_module("torch")

            if threads_s is not None and threads_s.strip():
                torch.set_num_threads(max(1, int(threads_s)))
            if interop_s is not None and interop_s.strip():
                torch.set_num_interop_threads(max(1, int(interop_s)))
        except Exception:
            return

    def detect(self, frame: np.ndarray) -> list[dict[str, Any]]:
        """Run inference on a single frame and return raw pose records.

        Each record is ``{"score": float, "bbox": (x1, y1, x2, y2),
        "keypoints": ndarray | None}`` in full-frame pixel coordinates.
        """

        infer_ctx = (
            self._torch_inference_mode()
            if self._torch_inference_mode is not None
            else nullcontext()
        )
        with infer_ctx:
            results = self.model.predict(frame, **self._predict_kwargs)

        if not results:
            return []

        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []

        data = getattr(boxes, "data", None)
        if data is None:
            return []
        data_np = _to_numpy(data)
        # Ultralytics Boxes.data = (x1,y1,x2,y2,conf,cls)
        if data_np.ndim != 2 or data_np.shape[1] < 5:
            return []

        kpts = getattr(result, "keypoints", None)
        kpts_np = None
        if kpts is not None and getattr(kpts, "data", None) is not None:
            kpts_np = _to_numpy(kpts.data)

        out: list[dict[str, Any]] = []
        for i, row in enumerate(data_np):
            kp = kpts_np[i] if kpts_np is not None and i < int(kpts_np.shape[0]) else None
            out.append(
                {
                    "score": float(row[4]),
                    "bbox": (float(row[0]), float(row[1]), float(row[2]), float(row[3])),
                    "keypoints": kp,
                }
            )
        return out
