"""Source-frame to display-surface coordinate mapping.

Every overlay element goes through the same `DisplayTransform` so boxes, panels
and the video itself line up pixel-exactly.
"""

from __future__ import annotations

from hudcam.core.types import BBox, DisplayTransform, Point

EMPTY_TRANSFORM = DisplayTransform(scale=0.0, offset_x=0.0, offset_y=0.0)


def compute_display_transform(
    frame_w: float, frame_h: float, surface_w: float, surface_h: float
) -> DisplayTransform:
    """Fit a frame into a surface preserving aspect ratio, centered.

    Degenerate (non-positive) dimensions return a zero-scale transform.
    """

    if frame_w <= 0 or frame_h <= 0 or surface_w <= 0 or surface_h <= 0:
        return EMPTY_TRANSFORM
    scale = min(surface_w / float(frame_w), surface_h / float(frame_h))
    offset_x = (surface_w - frame_w * scale) / 2.0
    offset_y = (surface_h - frame_h * scale) / 2.0
    return DisplayTransform(scale=scale, offset_x=offset_x, offset_y=offset_y)


def scaled_size(transform: DisplayTransform, frame_w: int, frame_h: int) -> tuple[int, int]:
    """Return the integer (w, h) of the frame once drawn on the surface."""

    return int(round(frame_w * transform.scale)), int(round(frame_h * transform.scale))


def to_display_point(transform: DisplayTransform, point: Point) -> Point:
    x, y = point
    return (
        transform.offset_x + x * transform.scale,
        transform.offset_y + y * transform.scale,
    )


def to_display_bbox(transform: DisplayTransform, bbox: BBox) -> BBox:
    """Map an (x1, y1, x2, y2) source-space box to display space."""

    x1, y1 = to_display_point(transform, (bbox[0], bbox[1]))
    x2, y2 = to_display_point(transform, (bbox[2], bbox[3]))
    return (x1, y1, x2, y2)


def to_source_point(transform: DisplayTransform, point: Point) -> Point:
    """Inverse of `to_display_point`."""

    if transform.is_empty:
        raise ValueError("cannot invert an empty display transform")
    x, y = point
    return (
        (x - transform.offset_x) / transform.scale,
        (y - transform.offset_y) / transform.scale,
    )
