"""Entry point: run the gesture log server or the webcam detection loop."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from utils.log_utils import log
from utils.settings_store import get_settings, refresh_settings, resolve_path


def _load_env_files() -> None:
    """Load .env files from the working directory and the project root."""
    module_root = Path(__file__).resolve().parent
    for path in (Path.cwd() / "env/.env", Path.cwd() / ".env", module_root / "env/.env", module_root / ".env"):
        if path.exists():
            load_dotenv(dotenv_path=str(path), override=False)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Face, hand gesture, pose and segmentation demo.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the gesture log HTTP server.")
    serve.add_argument("--host", default=None, help="Bind address (default from settings).")
    serve.add_argument("--port", type=int, default=None, help="Port (default 3000).")

    detect = sub.add_parser("detect", help="Open the webcam and run detection.")
    detect.add_argument(
        "--mode",
        choices=["full", "hand-face", "pose", "segmentation"],
        default="full",
        help="Which modalities start enabled.",
    )
    detect.add_argument("--device", type=int, default=None, help="Camera index.")
    detect.add_argument("--width", type=int, default=None, help="Requested frame width.")
    detect.add_argument("--height", type=int, default=None, help="Requested frame height.")
    detect.add_argument("--endpoint", default=None, help="Gesture log URL.")
    detect.add_argument("--no-report", action="store_true", help="Do not POST gestures.")
    detect.add_argument("--no-window", action="store_true", help="Run without a preview window.")
    return parser


def _run_detection(args: argparse.Namespace) -> int:
    from gesture_module import MODE_PRESETS, CaptureLoop, GestureReporter, gesture_names_for_mode
    from video_module import CameraError, CaptureConstraints, build_detectors
    from video_module.detectors import ModelDownloadError

    settings = get_settings()
    try:
        detectors = build_detectors(settings, resolve_path(settings.get("models_dir", "models")))
    except (FileNotFoundError, ModelDownloadError) as exc:
        log("MAIN", f"Models not loaded: {exc}", "ERROR")
        return 1

    reporter = GestureReporter(
        args.endpoint or str(settings.get("gesture_endpoint")),
        timeout_secs=float(settings.get("report_timeout_secs", 2.0)),
        enabled=bool(settings.get("report_gestures", True)) and not args.no_report,
    )
    gesture_map = resolve_path(settings.get("public_dir", "public")) / "json" / "gesture_map.json"
    loop = CaptureLoop(
        detectors,
        modalities=MODE_PRESETS[args.mode],
        reporter=reporter,
        gesture_names=gesture_names_for_mode(args.mode, gesture_map),
        show_window=not args.no_window,
        mirror=bool(settings.get("mirror", True)),
    )
    constraints = CaptureConstraints(
        device_index=args.device if args.device is not None else int(settings.get("device_index", 0)),
        width=args.width or int(settings.get("frame_width", 1280)),
        height=args.height or int(settings.get("frame_height", 720)),
    )
    try:
        loop.start_blocking(constraints)
    except CameraError as exc:
        log("MAIN", f"Capture did not start: {exc}", "ERROR")
        return 1
    except KeyboardInterrupt:
        log("MAIN", "Received interrupt. Shutting down...")
    finally:
        loop.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    _load_env_files()
    refresh_settings()
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        from api.server import serve

        serve(host=args.host, port=args.port)
        return 0
    return _run_detection(args)


if __name__ == "__main__":
    sys.exit(main())
