"""Surface layout: capture buttons, info panels and pointer hit-testing.

All positions are recomputed from the current surface size every tick so the
layout tracks window resizes.
"""

from __future__ import annotations

from dataclasses import dataclass

BUTTON_WIDTH = 60
BUTTON_HEIGHT = 30
BUTTON_PADDING = 12
BUTTON_MARGIN = 20

PANEL_WIDTH = 200
PANEL_HEIGHT = 110
PANEL_SPACING = 18
PANEL_MARGIN_FRACTION = 0.05

STILL_BUTTON = "still"
RECORD_BUTTON = "record"


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    def contains(self, px: float, py: float) -> bool:
        """Strict containment: points on the edge do not hit."""

        return self.x < px < self.x + self.w and self.y < py < self.y + self.h


def button_rects(surface_h: int) -> dict[str, Rect]:
    """Return the still-export and record buttons, fixed at the bottom-left."""

    still = Rect(
        x=BUTTON_MARGIN,
        y=surface_h - BUTTON_HEIGHT - BUTTON_MARGIN,
        w=BUTTON_WIDTH,
        h=BUTTON_HEIGHT,
    )
    record = Rect(
        x=still.x + BUTTON_WIDTH + BUTTON_PADDING,
        y=still.y,
        w=BUTTON_WIDTH,
        h=BUTTON_HEIGHT,
    )
    return {STILL_BUTTON: still, RECORD_BUTTON: record}


def hit_test(px: float, py: float, surface_h: int) -> str | None:
    """Return the name of the button under the pointer, if any."""

    for name, rect in button_rects(surface_h).items():
        if rect.contains(px, py):
            return name
    return None


def panel_rect(index: int, surface_w: int, surface_h: int) -> Rect:
    """Info panel for the `index`-th detection, stacked top-left.

    Panels that would run past the bottom margin are pinned to it.
    """

    margin_x = surface_w * PANEL_MARGIN_FRACTION
    margin_y = surface_h * PANEL_MARGIN_FRACTION
    y = margin_y + index * (PANEL_HEIGHT + PANEL_SPACING)
    if y + PANEL_HEIGHT + margin_y > surface_h:
        y = surface_h - PANEL_HEIGHT - margin_y
    return Rect(x=margin_x, y=y, w=PANEL_WIDTH, h=PANEL_HEIGHT)
