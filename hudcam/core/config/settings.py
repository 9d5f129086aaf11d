"""Application configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `HUD_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HudSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `HUD_` env overrides."""

    video_source: str = Field("webcam", description="webcam|file")
    video_path: str | None = None
    camera_index: int = 0
    # Native capture resolution; frames are resized to this before detection.
    frame_width: int = 800
    frame_height: int = 600
    window_width: int = 1280
    window_height: int = 720
    window_name: str = "HUDCam"

    model_name: str = Field("yolo11n-pose.pt")
    detector_confidence: float = 0.25
    detection_interval_ms: int = 250

    # Detection normalization
    keypoint_threshold: float = 0.3
    min_keypoints: int = 3
    bbox_padding: float = 40.0
    default_confidence: float = 0.85
    classifier: str = Field("unknown", description="unknown|alternating")

    render_fps: float = 30.0

    # Capture
    gif_fps: int = 30
    gif_duration_s: float = 5.0
    # Recorded GIF frames are downscaled to this width (None keeps full size).
    gif_width: int | None = 480
    output_dir: str = "captures"

    # Cosmetic layers
    noise_step: int = 8
    noise_alpha_min: int = 6
    noise_alpha_max: int = 20
    tint_alpha: int = 38

    model_config = SettingsConfigDict(env_prefix="HUD_", validate_assignment=True)

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("classifier")
    @classmethod
    def _validate_classifier(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in {"unknown", "alternating"}:
            raise ValueError("classifier must be unknown|alternating")
        return v2

    @field_validator("frame_width", "frame_height", "window_width", "window_height")
    @classmethod
    def _validate_dimension(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("dimensions must be > 0")
        return v

    @field_validator("detector_confidence")
    @classmethod
    def _validate_detector_confidence(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("detector_confidence must be in (0, 1]")
        return v

    @field_validator("detection_interval_ms")
    @classmethod
    def _validate_detection_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("detection_interval_ms must be > 0")
        return v

    @field_validator("keypoint_threshold", "default_confidence")
    @classmethod
    def _validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("value must be in [0, 1]")
        return float(v)

    @field_validator("min_keypoints")
    @classmethod
    def _validate_min_keypoints(cls, v: int) -> int:
        if v < 1:
            raise ValueError("min_keypoints must be >= 1")
        return v

    @field_validator("bbox_padding")
    @classmethod
    def _validate_bbox_padding(cls, v: float) -> float:
        if v < 0:
            raise ValueError("bbox_padding must be >= 0")
        return float(v)

    @field_validator("render_fps")
    @classmethod
    def _validate_render_fps(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("render_fps must be > 0")
        return float(v)

    @field_validator("gif_fps")
    @classmethod
    def _validate_gif_fps(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("gif_fps must be > 0")
        return v

    @field_validator("gif_duration_s")
    @classmethod
    def _validate_gif_duration(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("gif_duration_s must be > 0")
        return float(v)

    @field_validator("gif_width")
    @classmethod
    def _validate_gif_width(cls, v: int | None) -> int | None:
        if v is None:
            return v
        if v <= 0:
            raise ValueError("gif_width must be > 0")
        return v

    @field_validator("noise_step")
    @classmethod
    def _validate_noise_step(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("noise_step must be > 0")
        return v

    @field_validator("noise_alpha_min", "noise_alpha_max", "tint_alpha")
    @classmethod
    def _validate_alpha(cls, v: int) -> int:
        if not 0 <= v <= 255:
            raise ValueError("alpha values must be in [0, 255]")
        return v


def settings_to_dict(settings: HudSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return cast(dict[str, Any], settings.model_dump())


def _fields_set(obj: object) -> set[str]:
    """Return the set of fields explicitly provided/overridden on a Pydantic model."""

    return set(getattr(obj, "model_fields_set", set()))


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/hudcam.config.yml)."""

    return Path(os.getenv("HUD_CONFIG", "config/hudcam.config.yml"))


def load_settings(patch: dict[str, Any] | None = None) -> HudSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override; `patch` (CLI flags,
    presets) overrides both.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = HudSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in _fields_set(env_settings)
    }

    merged = {**data, **env_overrides, **(patch or {})}
    settings = HudSettings(**merged)
    if settings.noise_alpha_min > settings.noise_alpha_max:
        raise ValueError("noise_alpha_min must be <= noise_alpha_max")
    return settings
