"""Video capture, detection and drawing utilities for the project."""

from video_module.landmarks import Category, DetectionResult, Landmark, Modality, Subject
from video_module.overlay import Canvas
from video_module.video_stream import (
    CameraError,
    CaptureConstraints,
    DeviceUnavailable,
    PermissionDenied,
    VideoStream,
)


def __getattr__(name):
    # MediaPipe is only imported when detectors are actually requested.
    if name == "build_detectors":
        from video_module.detectors import build_detectors

        return build_detectors
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "build_detectors",
    "CameraError",
    "Canvas",
    "CaptureConstraints",
    "Category",
    "DetectionResult",
    "DeviceUnavailable",
    "Landmark",
    "Modality",
    "PermissionDenied",
    "Subject",
    "VideoStream",
]
