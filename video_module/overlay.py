"""RGBA drawing surface laid over the camera frame.

Landmarks arrive in normalized coordinates and are scaled by the current
surface size, so the surface must be resized to the frame before drawing.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import cv2
import numpy as np

from video_module.connections import Connection
from video_module.landmarks import Landmark

DEFAULT_COLOR = "#FFFFFF"
DEFAULT_LINE_WIDTH = 4
DEFAULT_RADIUS = 6


def parse_color(value: str) -> tuple[int, int, int, int]:
    """``#RRGGBB`` / ``#RRGGBBAA`` to a BGRA tuple for OpenCV."""
    text = value.strip().lstrip("#")
    if len(text) not in (6, 8):
        raise ValueError(f"Unsupported color {value!r}")
    r, g, b = (int(text[i : i + 2], 16) for i in (0, 2, 4))
    a = int(text[6:8], 16) if len(text) == 8 else 255
    return b, g, r, a


class Canvas:
    def __init__(self, width: int = 0, height: int = 0) -> None:
        self.image = np.zeros((max(height, 0), max(width, 0), 4), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    def resize(self, width: int, height: int) -> None:
        if (width, height) != (self.width, self.height):
            self.image = np.zeros((height, width, 4), dtype=np.uint8)

    def resize_to(self, frame: np.ndarray) -> None:
        height, width = frame.shape[:2]
        self.resize(width, height)

    def clear(self) -> None:
        self.image.fill(0)

    def is_blank(self) -> bool:
        return not bool(self.image[..., 3].any())

    def _to_px(self, point: Landmark) -> tuple[int, int]:
        return int(round(point.x * self.width)), int(round(point.y * self.height))

    def draw_line(self, start: Landmark, end: Landmark, color: str, line_width: int) -> None:
        cv2.line(
            self.image,
            self._to_px(start),
            self._to_px(end),
            parse_color(color),
            max(1, int(line_width)),
            cv2.LINE_AA,
        )

    def draw_connectors(
        self,
        landmarks: Sequence[Landmark],
        connections: Iterable[Connection],
        *,
        color: str = DEFAULT_COLOR,
        line_width: int | None = None,
    ) -> None:
        width = DEFAULT_LINE_WIDTH if line_width is None else line_width
        count = len(landmarks)
        for start, end in connections:
            if start < count and end < count:
                self.draw_line(landmarks[start], landmarks[end], color, width)

    def draw_landmarks(
        self,
        landmarks: Iterable[Landmark],
        *,
        color: str = DEFAULT_COLOR,
        radius: int = DEFAULT_RADIUS,
        line_width: int | None = None,
    ) -> None:
        bgra = parse_color(color)
        outline = max(1, DEFAULT_LINE_WIDTH if line_width is None else int(line_width))
        for point in landmarks:
            center = self._to_px(point)
            cv2.circle(self.image, center, radius, bgra, -1, cv2.LINE_AA)
            cv2.circle(self.image, center, radius, bgra, outline, cv2.LINE_AA)

    def composite(self, frame: np.ndarray) -> np.ndarray:
        """Blend the surface over a BGR frame of the same size."""
        if self.image.shape[:2] != frame.shape[:2]:
            raise ValueError("Canvas and frame sizes differ; call resize_to() first.")
        alpha = self.image[..., 3:4].astype(np.float32) / 255.0
        blended = frame.astype(np.float32) * (1.0 - alpha) + self.image[..., :3].astype(np.float32) * alpha
        return blended.astype(np.uint8)

    def draw_mask(self, frame: np.ndarray, mask: np.ndarray) -> None:
        """Copy the frame's pixels where ``mask`` is non-zero; leave the rest transparent.

        A mask of a different size is scaled to the frame with nearest-neighbour
        so category boundaries stay hard.
        """
        mask = np.asarray(mask)
        if mask.ndim == 3:
            mask = mask[..., 0]
        height, width = frame.shape[:2]
        if mask.shape != (height, width):
            mask = cv2.resize(mask.astype(np.uint8), (width, height), interpolation=cv2.INTER_NEAREST)
        keep = mask != 0
        self.image[keep, :3] = frame[keep]
        self.image[keep, 3] = 255
