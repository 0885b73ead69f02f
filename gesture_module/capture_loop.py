"""Webcam capture loop: detect face, pose and hands, draw, report gestures.

One tick reads a frame, runs each active detector in turn (face, pose, hand,
then segmentation), redraws the overlay in the same order, fills the masked
segmentation surface and updates the status panel. The next tick is only
started after the previous one finished drawing, and only while its session
is live, so a slow detector lowers the frame rate instead of queueing frames.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import cv2
import numpy as np

from gesture_module.reporting import GestureReporter
from utils.file_utils import load_json
from utils.log_utils import log
from utils.settings_store import deep_log
from video_module.connections import (
    CYAN,
    HAND_CONNECTIONS,
    POSE_CONNECTIONS,
    POSE_LANDMARKS_TO_DRAW,
    PURPLE,
    face_connection_groups,
)
from video_module.landmarks import TICK_ORDER, DetectionResult, Modality
from video_module.overlay import Canvas
from video_module.video_stream import CameraError, CaptureConstraints, VideoStream

NOT_DETECTED = "Not Detected"
UNKNOWN_GESTURE = "Unknown Gesture"
FACE_DETECTED = "Face landmarks detected."

MODE_PRESETS: dict[str, frozenset[Modality]] = {
    "full": frozenset({Modality.FACE, Modality.POSE, Modality.HAND}),
    "hand-face": frozenset({Modality.FACE, Modality.HAND}),
    "pose": frozenset({Modality.POSE}),
    "segmentation": frozenset({Modality.SEGMENTATION}),
}

# Modes whose status panel shows display names from the gesture map.
_MAPPED_MODES = frozenset({"hand-face"})

_TOGGLE_KEYS = {
    ord("f"): Modality.FACE,
    ord("p"): Modality.POSE,
    ord("h"): Modality.HAND,
    ord("s"): Modality.SEGMENTATION,
}
_QUIT_KEYS = {ord("q"), ord("Q"), 27}


class Detector(Protocol):
    def detect(self, frame_rgb: np.ndarray, timestamp_ms: float) -> DetectionResult: ...

    def close(self) -> None: ...


class DetectionError(RuntimeError):
    """A single modality failed for one frame; the frame is drawn without it."""

    def __init__(self, modality: Modality, cause: BaseException) -> None:
        super().__init__(f"{modality.value} detection failed: {cause}")
        self.modality = modality
        self.cause = cause


@dataclass
class Clock:
    """Timestamp sources for the detectors.

    Face and pose take the monotonic high-resolution clock, hand gestures take
    wall-clock time; both in milliseconds.
    """

    monotonic: Callable[[], float] = time.perf_counter
    wall: Callable[[], float] = time.time

    def monotonic_ms(self) -> float:
        return self.monotonic() * 1000.0

    def wall_ms(self) -> float:
        return self.wall() * 1000.0


@dataclass
class StatusPanel:
    gesture: str = NOT_DETECTED
    confidence: str = NOT_DETECTED
    handedness: str = NOT_DETECTED
    face: str = NOT_DETECTED
    hand_count: int = 0
    message: str = ""

    def reset(self) -> None:
        self.gesture = NOT_DETECTED
        self.confidence = NOT_DETECTED
        self.handedness = NOT_DETECTED
        self.face = NOT_DETECTED
        self.hand_count = 0

    def lines(self) -> list[str]:
        return [
            f"Gesture: {self.gesture}",
            f"Confidence: {self.confidence}",
            f"Handedness: {self.handedness}",
            f"Hands: {self.hand_count}",
            f"Face: {self.face}",
        ]


@dataclass
class SessionState:
    camera_active: bool = False
    active_modalities: set[Modality] = field(default_factory=set)


def load_gesture_names(path: str | Path) -> Optional[dict[str, str]]:
    """Read the category -> display name map.

    Returns None when the file is missing, unreadable or not an object, so
    the loop falls back to raw category names instead of showing every
    gesture as unknown.
    """
    path = Path(path)
    if not path.exists():
        log("LOOP", f"Gesture name map {path} not found; showing raw names", "WARN")
        return None
    try:
        data = load_json(path)
    except (OSError, ValueError) as exc:
        log("LOOP", f"Error loading gesture name map {path}: {exc}", "ERROR")
        return None
    if not isinstance(data, dict) or not data:
        log("LOOP", f"Gesture name map {path} is empty; showing raw names", "WARN")
        return None
    return {str(k): str(v) for k, v in data.items()}


def gesture_names_for_mode(mode: str, path: str | Path) -> Optional[dict[str, str]]:
    """Display names for ``mode``; None means raw category names are shown."""
    if mode not in _MAPPED_MODES:
        return None
    return load_gesture_names(path)


class CaptureLoop:
    def __init__(
        self,
        detectors: Mapping[Modality, Detector],
        *,
        modalities: Iterable[Modality] = MODE_PRESETS["full"],
        reporter: Optional[GestureReporter] = None,
        clock: Optional[Clock] = None,
        canvas: Optional[Canvas] = None,
        gesture_names: Optional[Mapping[str, str]] = None,
        stream_factory: Callable[[CaptureConstraints], VideoStream] = VideoStream,
        face_groups: Optional[Callable[[], Iterable]] = None,
        show_window: bool = False,
        mirror: bool = True,
        join_timeout_secs: float = 2.0,
    ) -> None:
        self.detectors = dict(detectors)
        self.reporter = reporter
        self.clock = clock or Clock()
        self.canvas = canvas or Canvas()
        self.masked = Canvas()
        self.gesture_names = gesture_names
        self.state = SessionState(active_modalities=set(modalities))
        self.status = StatusPanel()
        self.show_window = show_window
        self.mirror = mirror
        self.join_timeout_secs = join_timeout_secs
        self.last_errors: dict[Modality, DetectionError] = {}
        self._stream_factory = stream_factory
        self._face_groups = face_groups or face_connection_groups
        self._stream: Optional[VideoStream] = None
        self._thread: Optional[threading.Thread] = None
        self._session: Optional[threading.Event] = None
        self._lock = threading.Lock()
        self._window_name = "Landmark Detection"

    # -- lifecycle -----------------------------------------------------

    def _acquire(self, constraints: Optional[CaptureConstraints]) -> Optional[threading.Event]:
        """Open the camera and begin a new session.

        Returns the session's stop event, or None when capture is already
        running or the previous session's thread is still inside a frame.
        """
        if self.state.camera_active:
            log("LOOP", "Capture already running")
            return None
        previous = self._thread
        if previous is not None and previous is not threading.current_thread():
            previous.join(timeout=self.join_timeout_secs)
            if previous.is_alive():
                log("LOOP", "Previous capture is still finishing a frame; not starting", "WARN")
                return None
            self._thread = None
        stream = self._stream_factory(constraints or CaptureConstraints())
        try:
            stream.open()
        except CameraError as exc:
            self.status.message = f"Camera unavailable: {exc}"
            log("LOOP", self.status.message, "ERROR")
            raise
        session = threading.Event()
        with self._lock:
            self._stream = stream
            self._session = session
        self.status.message = ""
        self.state.camera_active = True
        return session

    def start(self, constraints: Optional[CaptureConstraints] = None) -> None:
        """Acquire the camera and run the loop on a background thread.

        Raises :class:`CameraError` (``PermissionDenied`` or
        ``DeviceUnavailable``) when the camera cannot be opened.
        """
        session = self._acquire(constraints)
        if session is None:
            return

        def _runner() -> None:
            try:
                self._run_loop(session)
            except Exception as exc:  # pragma: no cover
                log("LOOP", f"Loop error: {exc}", "ERROR")
                self._end_session(session)

        self._thread = threading.Thread(target=_runner, name="CaptureLoop", daemon=True)
        self._thread.start()

    def start_blocking(self, constraints: Optional[CaptureConstraints] = None) -> None:
        """Like :meth:`start` but runs the loop on the calling thread."""
        session = self._acquire(constraints)
        if session is not None:
            self._run_loop(session)

    def stop(self) -> None:
        """Stop the loop, release the camera and clear the overlay. Idempotent."""
        self._end_session(None)

    def _end_session(self, session: Optional[threading.Event]) -> None:
        # A loop thread passes its own session so it never tears down a newer one.
        with self._lock:
            if session is not None and self._session not in (session, None):
                return
            current, self._session = self._session, None
            stream, self._stream = self._stream, None
        if current is not None:
            current.set()
        was_active = self.state.camera_active
        self.state.camera_active = False
        if stream is not None:
            stream.close()
        self.canvas.clear()
        self.masked.clear()
        self.status.reset()
        if self.show_window and was_active:
            try:
                cv2.destroyWindow(self._window_name)
            except cv2.error:
                pass
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.join_timeout_secs)
            if not thread.is_alive():
                self._thread = None
        if was_active:
            log("LOOP", "Detection stopped")

    def close(self) -> None:
        """Stop capture and release the detector models."""
        self.stop()
        for detector in self.detectors.values():
            detector.close()

    def is_running(self) -> bool:
        return self.state.camera_active

    def toggle_modality(self, modality: Modality) -> bool:
        active = self.state.active_modalities
        if modality in active:
            active.discard(modality)
        else:
            active.add(modality)
        enabled = modality in active
        log("LOOP", f"{modality.value} detection {'enabled' if enabled else 'disabled'}")
        return enabled

    def _run_loop(self, session: threading.Event) -> None:
        modes = ", ".join(m.value for m in TICK_ORDER if m in self.state.active_modalities)
        log("LOOP", f"Detection started ({modes or 'no modalities'})")
        try:
            while not session.is_set():
                with self._lock:
                    if self._session is not session or self._stream is None:
                        break
                    ok, frame = self._stream.read()
                if not ok or frame is None:
                    log("LOOP", "Failed to read from camera.", "ERROR")
                    break
                self.tick(frame)
                if session.is_set():
                    break
                if self.show_window and not self._show(frame):
                    break
        except cv2.error as exc:
            log("LOOP", f"OpenCV error: {exc}", "ERROR")
        finally:
            self._end_session(session)

    # -- per frame -----------------------------------------------------

    def tick(self, frame: np.ndarray, timestamp_ms: Optional[float] = None) -> dict[Modality, DetectionResult]:
        """Detect, redraw and update status for one frame.

        ``timestamp_ms`` replaces the monotonic clock for face and pose; hand
        gestures always use the wall clock.
        """
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        monotonic_ts = self.clock.monotonic_ms() if timestamp_ms is None else timestamp_ms

        results: dict[Modality, DetectionResult] = {}
        for modality in TICK_ORDER:
            if modality not in self.state.active_modalities:
                continue
            ts = self.clock.wall_ms() if modality is Modality.HAND else monotonic_ts
            results[modality] = self._detect(modality, frame_rgb, ts)

        self.canvas.resize_to(frame)
        self.canvas.clear()
        self.masked.resize_to(frame)
        self.masked.clear()
        self._draw_segmentation(frame, results.get(Modality.SEGMENTATION))
        self._draw_face(results.get(Modality.FACE))
        self._draw_pose(results.get(Modality.POSE))
        self._draw_hands(results.get(Modality.HAND))
        self._update_status(results)
        return results

    def _detect(self, modality: Modality, frame_rgb: np.ndarray, timestamp_ms: float) -> DetectionResult:
        detector = self.detectors.get(modality)
        if detector is None:
            return DetectionResult.empty(modality)
        try:
            result = detector.detect(frame_rgb, timestamp_ms)
        except Exception as exc:
            error = DetectionError(modality, exc)
            self.last_errors[modality] = error
            log("LOOP", str(error), "ERROR")
            return DetectionResult.empty(modality)
        self.last_errors.pop(modality, None)
        deep_log("LOOP", f"{modality.value}: {len(result)} @ {timestamp_ms:.0f}ms")
        return result

    def _draw_face(self, result: Optional[DetectionResult]) -> None:
        if not result:
            return
        groups = tuple(self._face_groups())
        for subject in result.subjects:
            for connections, color, width in groups:
                self.canvas.draw_connectors(subject.landmarks, connections, color=color, line_width=width)

    def _draw_pose(self, result: Optional[DetectionResult]) -> None:
        if not result:
            return
        for subject in result.subjects:
            if not subject.landmarks:
                deep_log("LOOP", "Pose result without landmarks")
                continue
            points = [lm for i, lm in enumerate(subject.landmarks) if i in POSE_LANDMARKS_TO_DRAW]
            self.canvas.draw_landmarks(points, color=CYAN, radius=10)
            self.canvas.draw_connectors(subject.landmarks, POSE_CONNECTIONS, color=PURPLE, line_width=3)

    def _draw_hands(self, result: Optional[DetectionResult]) -> None:
        if not result:
            return
        for subject in result.subjects:
            self.canvas.draw_connectors(subject.landmarks, HAND_CONNECTIONS, color=PURPLE, line_width=5)
            self.canvas.draw_landmarks(subject.landmarks, color=CYAN, line_width=2)

    def _draw_segmentation(self, frame: np.ndarray, result: Optional[DetectionResult]) -> None:
        if result is None or result.mask is None:
            return
        self.masked.draw_mask(frame, result.mask)

    def _display_name(self, category_name: str) -> str:
        if self.gesture_names is None:
            return category_name or UNKNOWN_GESTURE
        return self.gesture_names.get(category_name) or UNKNOWN_GESTURE

    def _update_status(self, results: Mapping[Modality, DetectionResult]) -> None:
        self.status.reset()
        if results.get(Modality.FACE):
            self.status.face = FACE_DETECTED

        hands = results.get(Modality.HAND)
        if hands is None:
            return
        self.status.hand_count = len(hands)
        # With two hands the last one processed owns the text fields.
        for subject in hands.subjects:
            gesture = subject.top_gesture
            if gesture is None:
                self.status.gesture = NOT_DETECTED
                self.status.confidence = NOT_DETECTED
                self.status.handedness = NOT_DETECTED
                continue
            handedness = subject.top_handedness
            self.status.gesture = self._display_name(gesture.name)
            self.status.confidence = f"{gesture.score * 100:.2f}%"
            self.status.handedness = handedness.name if handedness else NOT_DETECTED
            if self.reporter is not None:
                self.reporter.report(gesture.name)

    # -- preview window ------------------------------------------------

    def masked_view(self, frame: np.ndarray) -> np.ndarray:
        """The segmented subject on black, mirrored like the main view."""
        view = self.masked.composite(np.zeros_like(frame))
        return cv2.flip(view, 1) if self.mirror else view

    def _show(self, frame: np.ndarray) -> bool:
        view = self.canvas.composite(frame)
        if self.mirror:
            view = cv2.flip(view, 1)
        if Modality.SEGMENTATION in self.state.active_modalities:
            view = np.hstack((view, self.masked_view(frame)))
        for row, text in enumerate(self.status.lines()):
            cv2.putText(view, text, (10, 30 + row * 28), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (229, 222, 34), 2)
        cv2.imshow(self._window_name, view)
        key = cv2.waitKey(1) & 0xFF
        if key in _QUIT_KEYS:
            return False
        if key in _TOGGLE_KEYS:
            self.toggle_modality(_TOGGLE_KEYS[key])
        return True
