"""Fixed landmark connectors and colors for each modality."""

from __future__ import annotations

from functools import lru_cache

Connection = tuple[int, int]

CYAN = "#22dee5"
PURPLE = "#7696eb"
FACE_FEATURE_GREEN = "#83f47e"
FACE_OUTLINE_GREY = "#E0E0E0"
FACE_MESH_GREY = "#C0C0C070"

HAND_CONNECTIONS: tuple[Connection, ...] = (
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (5, 9), (9, 10), (10, 11), (11, 12),
    (9, 13), (13, 14), (14, 15), (15, 16),
    (13, 17), (0, 17), (17, 18), (18, 19), (19, 20),
)

# Shoulders, arms, hips, legs and feet; the face and hand points of the pose
# model are left to the face and hand modalities.
POSE_CONNECTIONS: tuple[Connection, ...] = (
    (11, 12), (11, 13), (12, 14), (13, 15), (14, 16),
    (11, 23), (12, 24), (23, 25), (24, 26), (25, 27),
    (26, 28), (27, 29), (28, 30), (29, 31), (30, 32),
)

POSE_LANDMARKS_TO_DRAW: frozenset[int] = frozenset(
    {11, 12, 13, 14, 15, 16, 23, 24, 25, 26, 27, 28, 29, 30, 31, 32}
)

# (MediaPipe attribute, color, line width); None keeps the canvas default.
_FACE_GROUPS = (
    ("FACE_LANDMARKS_TESSELATION", FACE_MESH_GREY, 1),
    ("FACE_LANDMARKS_RIGHT_EYEBROW", FACE_FEATURE_GREEN, None),
    ("FACE_LANDMARKS_RIGHT_EYE", FACE_FEATURE_GREEN, None),
    ("FACE_LANDMARKS_RIGHT_IRIS", FACE_FEATURE_GREEN, None),
    ("FACE_LANDMARKS_LEFT_EYEBROW", FACE_FEATURE_GREEN, None),
    ("FACE_LANDMARKS_LEFT_EYE", FACE_FEATURE_GREEN, None),
    ("FACE_LANDMARKS_LEFT_IRIS", FACE_FEATURE_GREEN, None),
    ("FACE_LANDMARKS_FACE_OVAL", FACE_OUTLINE_GREY, None),
    ("FACE_LANDMARKS_LIPS", FACE_OUTLINE_GREY, None),
)


def as_pairs(connections) -> tuple[Connection, ...]:
    """Accept MediaPipe ``Connection`` objects or plain index pairs."""
    pairs = []
    for conn in connections:
        if hasattr(conn, "start"):
            pairs.append((int(conn.start), int(conn.end)))
        else:
            start, end = conn
            pairs.append((int(start), int(end)))
    return tuple(pairs)


@lru_cache(maxsize=1)
def face_connection_groups() -> tuple[tuple[tuple[Connection, ...], str, int | None], ...]:
    """Face mesh connector groups in draw order.

    The face topology (several thousand pairs) is only shipped with
    MediaPipe, so it is loaded on first use.
    """
    from mediapipe.tasks.python.vision import FaceLandmarksConnections

    return tuple(
        (as_pairs(getattr(FaceLandmarksConnections, attr)), color, width)
        for attr, color, width in _FACE_GROUPS
    )
