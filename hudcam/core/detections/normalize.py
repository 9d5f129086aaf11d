"""Raw detection normalization.

Pose detectors hand back records of inconsistent shape: plain dicts, attribute
objects, or Ultralytics-style records carrying an ``(N, 3)`` keypoint array.
Normalization resolves each field through an ordered list of probe paths
("try field A, else field B, else default") and either produces a canonical
`PersonDetection` or rejects the record.

Rejection is silent (debug log only): not every frame carries a full set of
confident keypoints.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from hudcam.core.types import BBox, Keypoint, PersonDetection, Size

logger = logging.getLogger(__name__)

KEYPOINT_THRESHOLD = 0.3
MIN_VALID_KEYPOINTS = 3
BBOX_PADDING = 40.0
DEFAULT_CONFIDENCE = 0.85

ProbePath = tuple[str, ...]

KEYPOINT_COLLECTION_PROBES: tuple[ProbePath, ...] = (
    ("keypoints",),
    ("pose", "keypoints"),
    ("poses",),
)
DETECTION_SCORE_PROBES: tuple[ProbePath, ...] = (("score",), ("confidence",))
KEYPOINT_SCORE_PROBES: tuple[ProbePath, ...] = (("score",), ("confidence",))
KEYPOINT_X_PROBES: tuple[ProbePath, ...] = (("x",), ("position", "x"))
KEYPOINT_Y_PROBES: tuple[ProbePath, ...] = (("y",), ("position", "y"))


@dataclass(frozen=True)
class NormalizerConfig:
    """Tunables for `normalize_detection`."""

    keypoint_threshold: float = KEYPOINT_THRESHOLD
    min_keypoints: int = MIN_VALID_KEYPOINTS
    padding: float = BBOX_PADDING
    default_confidence: float = DEFAULT_CONFIDENCE


def _get_field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _probe(obj: Any, paths: Iterable[ProbePath]) -> Any:
    """Return the first non-None value found along `paths`."""

    for path in paths:
        value = obj
        for name in path:
            value = _get_field(value, name)
            if value is None:
                break
        if value is not None:
            return value
    return None


def _as_number(value: Any) -> float | None:
    """Return `value` as a finite float, or None when it is not a real number."""

    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, np.ndarray) and value.ndim == 0:
        value = value.item()
    if not isinstance(value, (int, float, np.integer, np.floating)):
        return None
    out = float(value)
    if not math.isfinite(out):
        return None
    return out


def _is_sequence(obj: Any) -> bool:
    if isinstance(obj, np.ndarray):
        return obj.ndim >= 1
    return isinstance(obj, Sequence) and not isinstance(obj, (str, bytes))


def _non_empty_collection(obj: Any) -> bool:
    return _is_sequence(obj) and len(obj) > 0


def find_keypoints(raw: Any) -> Sequence[Any] | None:
    """Locate the keypoint collection of a raw detection (None when absent/empty)."""

    for path in KEYPOINT_COLLECTION_PROBES:
        candidate = _probe(raw, (path,))
        if _non_empty_collection(candidate):
            return candidate
    return None


def resolve_keypoint(kp: Any) -> Keypoint | None:
    """Resolve one raw keypoint.

    Returns None when the position cannot be resolved. An unresolved score
    becomes 0.
    """

    if _is_sequence(kp):
        # Row layout: [x, y] or [x, y, score].
        x = _as_number(kp[0]) if len(kp) > 0 else None
        y = _as_number(kp[1]) if len(kp) > 1 else None
        score = _as_number(kp[2]) if len(kp) > 2 else None
    else:
        x = _as_number(_probe(kp, KEYPOINT_X_PROBES))
        y = _as_number(_probe(kp, KEYPOINT_Y_PROBES))
        score = _as_number(_probe(kp, KEYPOINT_SCORE_PROBES))
    if x is None or y is None:
        return None
    return Keypoint(x=x, y=y, score=score if score is not None else 0.0)


def resolve_confidence(raw: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    value = _as_number(_probe(raw, DETECTION_SCORE_PROBES))
    return default if value is None else value


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def pad_and_clamp(bbox: BBox, padding: float, frame_size: Size) -> BBox:
    """Expand `bbox` by `padding` on every side and clamp it to the frame."""

    frame_w, frame_h = frame_size
    x1, y1, x2, y2 = bbox
    return (
        _clamp(x1 - padding, 0.0, float(frame_w)),
        _clamp(y1 - padding, 0.0, float(frame_h)),
        _clamp(x2 + padding, 0.0, float(frame_w)),
        _clamp(y2 + padding, 0.0, float(frame_h)),
    )


def normalize_detection(
    raw: Any,
    frame_size: Size,
    config: NormalizerConfig | None = None,
) -> PersonDetection | None:
    """Convert one raw detection into a `PersonDetection`, or reject it."""

    cfg = config or NormalizerConfig()
    keypoints = find_keypoints(raw)
    if keypoints is None:
        return None

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    valid = 0
    for item in keypoints:
        kp = resolve_keypoint(item)
        if kp is None or kp.score <= cfg.keypoint_threshold:
            continue
        min_x = min(min_x, kp.x)
        min_y = min(min_y, kp.y)
        max_x = max(max_x, kp.x)
        max_y = max(max_y, kp.y)
        valid += 1

    if valid < cfg.min_keypoints:
        logger.debug("Rejected detection with %d valid keypoints", valid)
        return None

    bbox = pad_and_clamp((min_x, min_y, max_x, max_y), cfg.padding, frame_size)
    return PersonDetection(
        bbox=bbox,
        confidence=resolve_confidence(raw, cfg.default_confidence),
        valid_keypoints=valid,
    )


def coerce_batch(results: Any) -> list[Any]:
    """Turn whatever a detector delivered into a list of raw records.

    A list/tuple is taken as-is, a single record becomes a one-element list, a
    keypoint array is split into one record per person, and
    `None` or an unusable value (strings, scalars) becomes an empty list.
    """

    if results is None:
        return []
    if isinstance(results, (list, tuple)):
        return list(results)
    if isinstance(results, np.ndarray):
        # (K, 3) is one keypoint set; (N, K, 3) is a batch of them.
        if results.ndim == 2:
            return [{"keypoints": results}]
        if results.ndim == 3:
            return [{"keypoints": row} for row in results]
        return []
    if isinstance(results, (str, bytes, int, float, bool)):
        return []
    return [results]


def normalize_batch(
    results: Any,
    frame_size: Size,
    config: NormalizerConfig | None = None,
) -> tuple[PersonDetection, ...]:
    """Normalize a full raw batch; the result is complete or not produced at all."""

    out: list[PersonDetection] = []
    for raw in coerce_batch(results):
        det = normalize_detection(raw, frame_size, config)
        if det is not None:
            out.append(det)
    return tuple(out)
