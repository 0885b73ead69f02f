"""Thin wrapper around OpenCV VideoCapture."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass

import cv2


class CameraError(RuntimeError):
    """The camera could not be acquired; capture does not start."""


class PermissionDenied(CameraError):
    pass


class DeviceUnavailable(CameraError):
    pass


@dataclass(frozen=True)
class CaptureConstraints:
    device_index: int = 0
    width: int = 1280
    height: int = 720


def _classify_open_failure(device_index: int) -> CameraError:
    if sys.platform.startswith("linux"):
        node = f"/dev/video{device_index}"
        if os.path.exists(node) and not os.access(node, os.R_OK | os.W_OK):
            return PermissionDenied(f"No permission to open camera {node}.")
    return DeviceUnavailable(f"Unable to open camera at index {device_index}.")


class VideoStream:
    def __init__(self, constraints: CaptureConstraints | None = None) -> None:
        self.constraints = constraints or CaptureConstraints()
        self._cap = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> None:
        if self._cap is not None:
            return

        index = self.constraints.device_index
        try:
            cap = cv2.VideoCapture(index)
        except cv2.error as exc:
            raise DeviceUnavailable(f"Unable to open camera at index {index}: {exc}") from exc
        if not cap.isOpened():
            cap.release()
            raise _classify_open_failure(index)

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.constraints.height)
        self._cap = cap

    def read(self):
        if self._cap is None:
            raise RuntimeError("VideoStream not opened.")
        return self._cap.read()

    def close(self) -> None:
        """Release the capture. Safe to call repeatedly."""
        cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
