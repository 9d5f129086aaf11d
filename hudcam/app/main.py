"""Command-line entry point for the HUD window."""

from __future__ import annotations

import argparse
import logging
from typing import Any

import yaml

from hudcam.app.engine import HudApp
from hudcam.core.config.presets import PRESETS, list_presets, preset_patch
from hudcam.core.config.settings import load_settings, settings_to_dict
from hudcam.core.detectors.yolo import YOLO11_POSE_SIZES, resolve_pose_model


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live camera HUD with person overlays and capture")
    parser.add_argument("--source", choices=["webcam", "file"], help="Video source")
    parser.add_argument("--video", help="Path to a video file (implies --source file)")
    parser.add_argument("--camera", type=int, help="Webcam index")
    parser.add_argument("--model", help="YOLO pose model path/name")
    parser.add_argument(
        "--model-size",
        choices=YOLO11_POSE_SIZES,
        help="Use the stock yolo11{size}-pose.pt model (overrides --model)",
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), help="Apply a named preset")
    parser.add_argument("--classifier", choices=["unknown", "alternating"])
    parser.add_argument("--output-dir", help="Where screenshots and GIFs are written")
    parser.add_argument("--list-presets", action="store_true", help="Print the available presets and exit")
    parser.add_argument("--show-config", action="store_true", help="Print the effective settings as YAML and exit")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    return parser.parse_args(argv)


def settings_patch(args: argparse.Namespace) -> dict[str, Any]:
    """Turn CLI flags into a settings patch (presets first, explicit flags win)."""

    patch: dict[str, Any] = {}
    if args.preset:
        patch.update(preset_patch(args.preset))
    if args.video:
        patch["video_source"] = "file"
        patch["video_path"] = args.video
    if args.source:
        patch["video_source"] = args.source
    if args.camera is not None:
        patch["camera_index"] = args.camera
    if args.model or args.model_size:
        patch["model_name"] = resolve_pose_model(args.model, args.model_size)
    if args.classifier:
        patch["classifier"] = args.classifier
    if args.output_dir:
        patch["output_dir"] = args.output_dir
    return patch


def format_presets() -> str:
    lines = []
    for preset in list_presets():
        values = ", ".join(f"{k}={v}" for k, v in preset["settings"].items())
        lines.append(f"{preset['id']:<12} {preset['label']:<12} {values}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.list_presets:
        print(format_presets())
        return 0
    settings = load_settings(settings_patch(args))
    if args.show_config:
        print(yaml.safe_dump(settings_to_dict(settings), sort_keys=False), end="")
        return 0
    return HudApp(settings).run()


if __name__ == "__main__":
    raise SystemExit(main())
