"""Overlay drawing helpers (OpenCV).

Every function draws in place on a BGR surface. Geometry comes from
`hudcam.core.geometry` and `hudcam.core.overlay.layout`; this module only turns it
into pixels.
"""

from __future__ import annotations

from datetime import datetime

import cv2
import numpy as np

from hudcam.core.capture.state_machine import CaptureSession, CaptureState
from hudcam.core.detections.classify import FEMALE_LABEL, MALE_LABEL
from hudcam.core.geometry import scaled_size
from hudcam.core.overlay.layout import RECORD_BUTTON, STILL_BUTTON, Rect, button_rects, panel_rect
from hudcam.core.types import UNKNOWN_LABEL, BBox, DisplayTransform, Frame, PersonDetection

HUD_GREEN = (0, 255, 0)
REC_RED = (0, 0, 255)
BLACK = (0, 0, 0)
LABEL_COLORS: dict[str, tuple[int, int, int]] = {
    FEMALE_LABEL: (53, 107, 255),  # orange
    MALE_LABEL: (226, 144, 74),  # blue
    UNKNOWN_LABEL: HUD_GREEN,
}

FONT = cv2.FONT_HERSHEY_SIMPLEX
SMALL_TEXT = 0.4
LABEL_BOX_W = 140
LABEL_BOX_H = 22
PROGRESS_BAR_W = 100


def color_for(label: str) -> tuple[int, int, int]:
    return LABEL_COLORS.get(label, LABEL_COLORS[UNKNOWN_LABEL])


def person_name(index: int) -> str:
    return f"PERSON_{index + 1:03d}"


def _text(img: Frame, text: str, org: tuple[float, float], color, scale: float = SMALL_TEXT, thickness: int = 1) -> None:
    cv2.putText(img, text, (int(org[0]), int(org[1])), FONT, scale, color, thickness, cv2.LINE_AA)


def blend_rect(img: Frame, x1: float, y1: float, x2: float, y2: float, color, alpha: float) -> None:
    """Alpha-blend a filled rectangle, touching only the covered ROI."""

    h, w = img.shape[:2]
    xa, ya = max(0, int(x1)), max(0, int(y1))
    xb, yb = min(w, int(x2)), min(h, int(y2))
    if xb <= xa or yb <= ya or alpha <= 0:
        return
    roi = img[ya:yb, xa:xb]
    fill = np.full_like(roi, color)
    cv2.addWeighted(fill, float(alpha), roi, float(1.0 - alpha), 0, roi)


def draw_base_frame(surface: Frame, frame: Frame, transform: DisplayTransform) -> None:
    """Draw `frame` scaled and centered onto `surface`."""

    fh, fw = frame.shape[:2]
    sw, sh = scaled_size(transform, fw, fh)
    if sw <= 0 or sh <= 0:
        return
    scaled = frame if (sw, sh) == (fw, fh) else cv2.resize(frame, (sw, sh), interpolation=cv2.INTER_LINEAR)
    ox, oy = int(round(transform.offset_x)), int(round(transform.offset_y))
    h, w = surface.shape[:2]
    x1, y1 = max(0, ox), max(0, oy)
    x2, y2 = min(w, ox + sw), min(h, oy + sh)
    if x2 <= x1 or y2 <= y1:
        return
    surface[y1:y2, x1:x2] = scaled[y1 - oy : y2 - oy, x1 - ox : x2 - ox]


def draw_tint(surface: Frame, transform: DisplayTransform, frame_w: int, frame_h: int, alpha: int) -> None:
    """Low-opacity green wash over the video region."""

    sw, sh = scaled_size(transform, frame_w, frame_h)
    blend_rect(
        surface,
        transform.offset_x,
        transform.offset_y,
        transform.offset_x + sw,
        transform.offset_y + sh,
        HUD_GREEN,
        alpha / 255.0,
    )


def draw_person(surface: Frame, index: int, det: PersonDetection, display_bbox: BBox) -> None:
    """Box outline plus the filled name/confidence tag above it."""

    color = color_for(det.label)
    x1, y1, x2, y2 = (int(round(v)) for v in display_bbox)
    cv2.rectangle(surface, (x1, y1), (x2, y2), color, 3)
    cv2.rectangle(surface, (x1, y1 - 28), (x1 + LABEL_BOX_W, y1 - 28 + LABEL_BOX_H), color, -1)
    _text(surface, f"{person_name(index)} {det.confidence * 100:.0f}%", (x1 + 6, y1 - 12), BLACK)


def draw_info_panel(surface: Frame, index: int, det: PersonDetection) -> Rect:
    h, w = surface.shape[:2]
    rect = panel_rect(index, w, h)
    color = color_for(det.label)
    x, y = rect.x, rect.y
    blend_rect(surface, x, y, x + rect.w, y + rect.h, BLACK, 160 / 255.0)
    cv2.rectangle(surface, (int(x), int(y)), (int(x + rect.w), int(y + rect.h)), color, 2)
    _text(surface, person_name(index), (x + 10, y + 20), color, 0.45, 2)
    _text(surface, f"CLASS: {det.label}", (x + 10, y + 42), color)
    _text(surface, f"CONFIDENCE: {det.confidence * 100:.1f}%", (x + 10, y + 62), color)
    cv2.line(surface, (int(x + 10), int(y + 76)), (int(x + rect.w - 10), int(y + 76)), color, 1)
    _text(surface, "STATUS: TRACKING", (x + 10, y + 92), HUD_GREEN)
    return rect


def draw_noise(
    surface: Frame,
    step: int,
    alpha_min: int,
    alpha_max: int,
    rng: np.random.Generator,
) -> None:
    """Darken each `step`-sized cell by an independent random alpha.

    Vectorized: one (rows, cols) draw per tick, no per-cell Python loop.
    """

    h, w = surface.shape[:2]
    if h == 0 or w == 0:
        return
    rows = -(-h // step)
    cols = -(-w // step)
    alphas = rng.uniform(alpha_min, alpha_max, size=(rows, cols)).astype(np.float32) / 255.0
    keep = 1.0 - np.repeat(np.repeat(alphas, step, axis=0), step, axis=1)[:h, :w]
    surface[:] = (surface.astype(np.float32) * keep[:, :, None]).astype(np.uint8)


def draw_hud(surface: Frame, now: datetime, session: CaptureSession | None = None) -> None:
    _, w = surface.shape[:2]
    _text(surface, now.strftime("%Y-%m-%d"), (20, 30), HUD_GREEN)
    _text(surface, "SURVEILLANCE SYSTEM", (20, 50), (0, 200, 0))
    clock = now.strftime("%H:%M:%S")
    (tw, _th), _ = cv2.getTextSize(clock, FONT, SMALL_TEXT, 1)
    _text(surface, clock, (w - 20 - tw, 50), HUD_GREEN)
    if session is not None:
        label = f"REC {session.frames_captured}/{session.frame_budget}"
        (rw, _rh), _ = cv2.getTextSize(label, FONT, SMALL_TEXT, 1)
        cv2.circle(surface, (w - 20 - rw - 12, 26), 5, REC_RED, -1, cv2.LINE_AA)
        _text(surface, label, (w - 20 - rw, 30), REC_RED)
        bar_x2 = w - 20
        bar_x1 = bar_x2 - PROGRESS_BAR_W
        cv2.rectangle(surface, (bar_x1, 58), (bar_x2, 62), (60, 60, 60), -1)
        filled = int(round(PROGRESS_BAR_W * session.progress))
        if filled > 0:
            cv2.rectangle(surface, (bar_x1, 58), (bar_x1 + filled, 62), REC_RED, -1)


def draw_buttons(surface: Frame, capture_state: CaptureState) -> None:
    h = surface.shape[0]
    rects = button_rects(h)
    labels = {STILL_BUTTON: "PNG", RECORD_BUTTON: "GIF"}
    for name, rect in rects.items():
        color = HUD_GREEN
        if name == RECORD_BUTTON:
            if capture_state is CaptureState.RECORDING:
                color = REC_RED
            elif capture_state is CaptureState.UNAVAILABLE:
                color = (80, 80, 80)
        cv2.rectangle(
            surface,
            (int(rect.x), int(rect.y)),
            (int(rect.x + rect.w), int(rect.y + rect.h)),
            color,
            1,
            cv2.LINE_AA,
        )
        text = labels[name]
        (tw, th), _ = cv2.getTextSize(text, FONT, SMALL_TEXT, 1)
        _text(surface, text, (rect.x + (rect.w - tw) / 2, rect.y + (rect.h + th) / 2), color)


def _centered(surface: Frame, text: str, cy: float, scale: float, thickness: int) -> None:
    w = surface.shape[1]
    (tw, _th), _ = cv2.getTextSize(text, FONT, scale, thickness)
    _text(surface, text, ((w - tw) / 2, cy), HUD_GREEN, scale, thickness)


def draw_loading_screen(surface: Frame, tick: int) -> None:
    """Full-surface dimmed overlay shown until the detector is ready."""

    h, w = surface.shape[:2]
    blend_rect(surface, 0, 0, w, h, BLACK, 220 / 255.0)
    _centered(surface, "INITIALIZING SYSTEM", h / 2 - 20, 0.8, 2)
    dots = "." * int((tick / 30) % 4)
    _centered(surface, f"Loading detection model{dots}", h / 2 + 20, 0.5, 1)


def draw_offline_banner(surface: Frame) -> None:
    """Shown when no detector could be loaded; the feed keeps rendering."""

    h, w = surface.shape[:2]
    blend_rect(surface, 0, h / 2 - 24, w, h / 2 + 16, BLACK, 0.6)
    _centered(surface, "DETECTION OFFLINE", h / 2, 0.6, 2)
