"""MediaPipe Tasks detectors for face, pose, hand gestures and segmentation.

Each wrapper runs its task in VIDEO mode and converts the task result into a
:class:`DetectionResult`. Models are plain ``.task`` files under the models
directory (the segmenter ships as ``.tflite``); a missing file is fetched once from its published URL.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Mapping
from urllib import request
from urllib.error import URLError

import mediapipe as mp
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision

from utils.log_utils import log
from video_module.landmarks import (
    DetectionResult,
    Modality,
    Subject,
    to_categories,
    to_landmarks,
)

MODEL_FILES = {
    Modality.FACE: "face_landmarker.task",
    Modality.HAND: "gesture_recognizer.task",
    Modality.POSE: "pose_landmarker_lite.task",
    Modality.SEGMENTATION: "selfie_multiclass_256x256.tflite",
}


class ModelDownloadError(RuntimeError):
    pass


def ensure_model(path: Path, url: str | None, *, timeout_secs: float = 60.0) -> Path:
    """Return ``path``, downloading it from ``url`` first if it is missing."""
    if path.exists():
        return path
    if not url:
        raise FileNotFoundError(f"Missing model file: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_suffix(path.suffix + ".part")
    log("MODELS", f"Downloading {url}")
    try:
        with request.urlopen(url, timeout=timeout_secs) as resp, partial.open("wb") as fh:
            shutil.copyfileobj(resp, fh)
    except (URLError, OSError) as exc:
        partial.unlink(missing_ok=True)
        raise ModelDownloadError(f"Could not download {url}: {exc}") from exc
    partial.replace(path)
    return path


def _delegate(name: str):
    if str(name).upper() == "GPU":
        return mp_python.BaseOptions.Delegate.GPU
    return mp_python.BaseOptions.Delegate.CPU


class _VideoTask:
    """Shared timestamp bookkeeping for VIDEO-mode tasks.

    MediaPipe rejects a timestamp that is not larger than the previous one,
    so a repeated or backwards value is bumped to ``last + 1``.
    """

    modality: Modality

    def __init__(self) -> None:
        self._last_ts: int | None = None
        self._task = None

    def _timestamp(self, timestamp_ms: float) -> int:
        ts = int(timestamp_ms)
        if self._last_ts is not None and ts <= self._last_ts:
            ts = self._last_ts + 1
        self._last_ts = ts
        return ts

    @staticmethod
    def _image(frame_rgb):
        return mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)

    def close(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.close()


class FaceDetector(_VideoTask):
    modality = Modality.FACE

    def __init__(self, model_path: Path, *, num_faces: int = 1, delegate: str = "CPU") -> None:
        super().__init__()
        options = vision.FaceLandmarkerOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path), delegate=_delegate(delegate)
            ),
            running_mode=vision.RunningMode.VIDEO,
            output_face_blendshapes=True,
            num_faces=num_faces,
        )
        self._task = vision.FaceLandmarker.create_from_options(options)

    def detect(self, frame_rgb, timestamp_ms: float) -> DetectionResult:
        ts = self._timestamp(timestamp_ms)
        result = self._task.detect_for_video(self._image(frame_rgb), ts)
        blendshapes = result.face_blendshapes or []
        subjects = [
            Subject(
                landmarks=to_landmarks(points),
                blendshapes=to_categories(blendshapes[i] if i < len(blendshapes) else None),
            )
            for i, points in enumerate(result.face_landmarks or [])
        ]
        return DetectionResult(self.modality, subjects, ts)


class PoseDetector(_VideoTask):
    modality = Modality.POSE

    def __init__(self, model_path: Path, *, num_poses: int = 1, delegate: str = "CPU") -> None:
        super().__init__()
        options = vision.PoseLandmarkerOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path), delegate=_delegate(delegate)
            ),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=num_poses,
        )
        self._task = vision.PoseLandmarker.create_from_options(options)

    def detect(self, frame_rgb, timestamp_ms: float) -> DetectionResult:
        ts = self._timestamp(timestamp_ms)
        result = self._task.detect_for_video(self._image(frame_rgb), ts)
        subjects = [Subject(landmarks=to_landmarks(points)) for points in result.pose_landmarks or []]
        return DetectionResult(self.modality, subjects, ts)


class HandGestureDetector(_VideoTask):
    modality = Modality.HAND

    def __init__(self, model_path: Path, *, num_hands: int = 2, delegate: str = "CPU") -> None:
        super().__init__()
        options = vision.GestureRecognizerOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path), delegate=_delegate(delegate)
            ),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=num_hands,
        )
        self._task = vision.GestureRecognizer.create_from_options(options)

    def detect(self, frame_rgb, timestamp_ms: float) -> DetectionResult:
        ts = self._timestamp(timestamp_ms)
        result = self._task.recognize_for_video(self._image(frame_rgb), ts)
        gestures = result.gestures or []
        handedness = result.handedness or []
        subjects = []
        for i, points in enumerate(result.hand_landmarks or []):
            subjects.append(
                Subject(
                    landmarks=to_landmarks(points),
                    gestures=to_categories(gestures[i] if i < len(gestures) else None),
                    handedness=to_categories(handedness[i] if i < len(handedness) else None),
                )
            )
        return DetectionResult(self.modality, subjects, ts)


class SegmentationDetector(_VideoTask):
    """Selfie multiclass segmenter; only the category mask is produced."""

    modality = Modality.SEGMENTATION

    def __init__(self, model_path: Path, *, delegate: str = "CPU") -> None:
        super().__init__()
        options = vision.ImageSegmenterOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path), delegate=_delegate(delegate)
            ),
            running_mode=vision.RunningMode.VIDEO,
            output_category_mask=True,
            output_confidence_masks=False,
        )
        self._task = vision.ImageSegmenter.create_from_options(options)

    def detect(self, frame_rgb, timestamp_ms: float) -> DetectionResult:
        ts = self._timestamp(timestamp_ms)
        result = self._task.segment_for_video(self._image(frame_rgb), ts)
        category_mask = result.category_mask
        mask = category_mask.numpy_view().copy() if category_mask is not None else None
        return DetectionResult(self.modality, timestamp_ms=ts, mask=mask)


_FACTORIES = {
    Modality.FACE: (FaceDetector, "num_faces"),
    Modality.POSE: (PoseDetector, "num_poses"),
    Modality.HAND: (HandGestureDetector, "num_hands"),
    Modality.SEGMENTATION: (SegmentationDetector, None),
}


def build_detectors(settings: Mapping, models_dir: Path) -> dict:
    """Load one detector per modality, fetching missing models first.

    Every model is loaded up front so modalities can be toggled while the
    loop runs without a model load stalling a frame.
    """
    urls = settings.get("model_urls") or {}
    delegate = str(settings.get("delegate", "CPU"))
    detectors = {}
    for modality, (factory, count_key) in _FACTORIES.items():
        path = ensure_model(models_dir / MODEL_FILES[modality], urls.get(modality.value))
        kwargs = {count_key: int(settings.get(count_key, 1))} if count_key else {}
        detectors[modality] = factory(path, delegate=delegate, **kwargs)
        log("MODELS", f"{modality.value} model loaded from {path}")
    return detectors
