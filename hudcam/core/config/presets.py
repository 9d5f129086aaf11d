from __future__ import annotations

from typing import Any


# CPU-oriented presets. Conservative defaults that trade detection freshness for
# render smoothness on slower machines.
#
# Notes:
# - detection_interval_ms: detector cadence (render loop is unaffected)
# - gif_width downscales recorded frames, which keeps GIF encode time bounded


PRESETS: dict[str, dict[str, Any]] = {
    # Best visual quality; larger pose model.
    "quality": {
        "model_name": "yolo11s-pose.pt",
        "detection_interval_ms": 200,
        "render_fps": 30.0,
        "gif_width": 800,
    },
    # Good compromise for most CPUs.
    "balanced": {
        "model_name": "yolo11n-pose.pt",
        "detection_interval_ms": 250,
        "render_fps": 30.0,
        "gif_width": 640,
    },
    # Keeps the render loop responsive on weak hardware.
    "lightweight": {
        "model_name": "yolo11n-pose.pt",
        "detection_interval_ms": 500,
        "render_fps": 20.0,
        "gif_width": 320,
        "noise_step": 16,
    },
}


PRESET_LABELS: dict[str, str] = {
    "quality": "Quality",
    "balanced": "Balanced",
    "lightweight": "Lightweight",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
