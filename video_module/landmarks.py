"""Per-frame detection results, decoupled from MediaPipe's result classes.

Results are only valid for the frame they were produced from and are thrown
away after the tick that drew them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence


class Modality(str, Enum):
    FACE = "face"
    POSE = "pose"
    HAND = "hand"
    SEGMENTATION = "segmentation"


# Detection and draw order within one tick; later landmark layers draw on top.
# Segmentation runs last and fills its own masked surface.
TICK_ORDER: tuple[Modality, ...] = (Modality.FACE, Modality.POSE, Modality.HAND, Modality.SEGMENTATION)


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class Category:
    name: str
    score: float


@dataclass
class Subject:
    """One detected face, hand or body."""

    landmarks: list[Landmark]
    gestures: list[Category] = field(default_factory=list)
    handedness: list[Category] = field(default_factory=list)
    blendshapes: list[Category] = field(default_factory=list)

    @property
    def top_gesture(self) -> Category | None:
        return self.gestures[0] if self.gestures else None

    @property
    def top_handedness(self) -> Category | None:
        return self.handedness[0] if self.handedness else None


@dataclass
class DetectionResult:
    modality: Modality
    subjects: list[Subject] = field(default_factory=list)
    timestamp_ms: int | None = None
    # Per-pixel category mask (uint8, 0 = background); segmentation only.
    mask: Any = None

    @classmethod
    def empty(cls, modality: Modality) -> "DetectionResult":
        return cls(modality=modality)

    def __bool__(self) -> bool:
        return bool(self.subjects) or self.mask is not None

    def __len__(self) -> int:
        return len(self.subjects)


def to_landmarks(points: Sequence) -> list[Landmark]:
    """Copy anything with x/y(/z) attributes into :class:`Landmark` values."""
    return [Landmark(float(p.x), float(p.y), float(getattr(p, "z", 0.0) or 0.0)) for p in points]


def to_categories(categories: Sequence | None) -> list[Category]:
    if not categories:
        return []
    return [Category(name=str(c.category_name), score=float(c.score)) for c in categories]
