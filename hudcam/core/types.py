"""Shared type definitions used across hudcam.

This module intentionally centralizes small, stable types (boxes, points,
normalized detections and snapshots) so detector/normalizer/render code can stay
strongly typed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

Frame = np.ndarray

BBox = tuple[float, float, float, float]
Point = tuple[float, float]
Size = tuple[int, int]

UNKNOWN_LABEL = "UNKNOWN"


@dataclass(frozen=True)
class Keypoint:
    """A single resolved keypoint in source-frame pixel space."""

    x: float
    y: float
    score: float


@dataclass(frozen=True)
class PersonDetection:
    """Canonical person record produced by the normalizer.

    `bbox` is (x1, y1, x2, y2) in source-frame pixels, already padded and
    clamped to the frame.
    """

    bbox: BBox
    confidence: float
    valid_keypoints: int
    label: str = UNKNOWN_LABEL


@dataclass(frozen=True)
class DetectionSnapshot:
    """Immutable set of detections published by the stream controller."""

    seq: int = 0
    persons: tuple[PersonDetection, ...] = ()
    timestamp: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.persons)


EMPTY_SNAPSHOT = DetectionSnapshot(seq=0, persons=(), timestamp=0.0)


@dataclass(frozen=True)
class DisplayTransform:
    """Aspect-fit scale and centering offset from source frame to surface."""

    scale: float
    offset_x: float
    offset_y: float

    @property
    def is_empty(self) -> bool:
        return self.scale <= 0.0


class DetectorStatus(str, Enum):
    """Readiness of the detection stream (distinct from "zero detections")."""

    UNAVAILABLE = "unavailable"
    LOADING = "loading"
    READY = "ready"
