from datetime import datetime

import numpy as np

from hudcam.core.capture.state_machine import CaptureSession, CaptureState
from hudcam.core.geometry import compute_display_transform
from hudcam.core.overlay import draw
from hudcam.core.overlay.layout import RECORD_BUTTON, button_rects, panel_rect
from hudcam.core.types import PersonDetection


def _roi_for_record_button(surface):
    rect = button_rects(surface.shape[0])[RECORD_BUTTON]
    return surface[int(rect.y) - 1 : int(rect.y + rect.h) + 2, int(rect.x) - 1 : int(rect.x + rect.w) + 2]


def test_person_name_and_colors():
    assert draw.person_name(0) == "PERSON_001"
    assert draw.person_name(41) == "PERSON_042"
    assert draw.color_for("FEMALE") != draw.color_for("MALE")
    assert draw.color_for("nonsense") == draw.HUD_GREEN


def test_blend_rect_outside_surface_is_noop():
    img = np.zeros((10, 10, 3), dtype=np.uint8)
    draw.blend_rect(img, 20, 20, 30, 30, (255, 255, 255), 0.5)
    draw.blend_rect(img, 0, 0, 5, 5, (255, 255, 255), 0.0)
    assert not img.any()
    draw.blend_rect(img, -5, -5, 5, 5, (200, 200, 200), 0.5)
    assert img[0, 0, 0] == 100
    assert img[9, 9, 0] == 0


def test_base_frame_is_centered_with_bars():
    surface = np.zeros((900, 1600, 3), dtype=np.uint8)
    frame = np.full((600, 800, 3), 255, dtype=np.uint8)
    t = compute_display_transform(800, 600, 1600, 900)
    draw.draw_base_frame(surface, frame, t)
    assert surface[450, 199].sum() == 0
    assert surface[450, 200].sum() == 765
    assert surface[450, 1399].sum() == 765
    assert surface[450, 1400].sum() == 0


def test_noise_darkens_in_constant_cells():
    surface = np.full((20, 20, 3), 255, dtype=np.uint8)
    draw.draw_noise(surface, 8, 6, 20, np.random.default_rng(1))
    assert surface.max() <= 255 - 5
    assert surface.min() >= 255 - 21
    cell = surface[0:8, 0:8]
    assert (cell == cell[0, 0]).all()
    # Partial edge cells are still covered.
    assert surface[19, 19, 0] < 255


def test_info_panel_uses_stacked_layout():
    surface = np.zeros((600, 800, 3), dtype=np.uint8)
    det = PersonDetection(bbox=(0, 0, 10, 10), confidence=0.5, valid_keypoints=3)
    rect = draw.draw_info_panel(surface, 1, det)
    assert rect == panel_rect(1, 800, 600)
    assert surface[int(rect.y), int(rect.x) + 50].any()


def test_record_button_turns_red_while_recording():
    surface = np.zeros((300, 400, 3), dtype=np.uint8)
    draw.draw_buttons(surface, CaptureState.RECORDING)
    roi = _roi_for_record_button(surface)
    assert roi[..., 2].max() > 0
    assert roi[..., 1].max() == 0

    surface = np.zeros((300, 400, 3), dtype=np.uint8)
    draw.draw_buttons(surface, CaptureState.IDLE)
    roi = _roi_for_record_button(surface)
    assert roi[..., 1].max() > 0
    assert roi[..., 2].max() == 0


def test_hud_draws_recording_indicator_only_when_recording():
    now = datetime(2024, 5, 6, 7, 8, 9)
    idle = np.zeros((200, 400, 3), dtype=np.uint8)
    draw.draw_hud(idle, now)
    assert idle[..., 1].max() > 0
    assert idle[..., 2].max() == 0

    recording = np.zeros((200, 400, 3), dtype=np.uint8)
    draw.draw_hud(recording, now, CaptureSession(frames_captured=3, frame_budget=150))
    assert recording[..., 2].max() > 0


def test_loading_screen_and_banner_draw_text():
    surface = np.full((200, 400, 3), 100, dtype=np.uint8)
    draw.draw_loading_screen(surface, 45)
    assert surface[5, 5].max() < 100
    assert surface[..., 1].max() > 100

    banner = np.zeros((200, 400, 3), dtype=np.uint8)
    draw.draw_offline_banner(banner)
    assert banner[80:116, :, 1].max() > 0


def test_hud_progress_bar_tracks_session_progress():
    session = CaptureSession(frames_captured=75, frame_budget=150)
    assert session.progress == 0.5
    surface = np.zeros((200, 400, 3), dtype=np.uint8)
    draw.draw_hud(surface, datetime(2024, 5, 6, 7, 8, 9), session)
    # Bar spans x 280..380 at y 58..62; half of it is filled.
    assert tuple(surface[60, 290]) == draw.REC_RED
    assert tuple(surface[60, 370]) == (60, 60, 60)

    full = np.zeros((200, 400, 3), dtype=np.uint8)
    draw.draw_hud(full, datetime(2024, 5, 6, 7, 8, 9), CaptureSession(frames_captured=150, frame_budget=150))
    assert tuple(full[60, 379]) == draw.REC_RED
