from gesture_module.capture_loop import (
    CaptureLoop,
    Clock,
    DetectionError,
    MODE_PRESETS,
    SessionState,
    StatusPanel,
    gesture_names_for_mode,
)
from gesture_module.reporting import GestureReporter

__all__ = [
    "CaptureLoop",
    "Clock",
    "DetectionError",
    "GestureReporter",
    "MODE_PRESETS",
    "SessionState",
    "StatusPanel",
    "gesture_names_for_mode",
]
