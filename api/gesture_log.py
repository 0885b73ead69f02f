"""Validation and append-only storage for reported gestures."""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from utils.file_utils import append_line

# Same entity set as express-validator's escape().
_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        '"': "&quot;",
        "'": "&#x27;",
        "<": "&lt;",
        ">": "&gt;",
        "/": "&#x2F;",
        "\\": "&#x5C;",
        "`": "&#96;",
    }
)


def escape(text: str) -> str:
    return text.translate(_ESCAPES)


class GestureReport(BaseModel):
    """Body of ``POST /save-gesture``.

    ``gesture`` must be a JSON string. Numbers, booleans and objects are
    rejected with a 400 instead of being coerced to text, so ``{"gesture": 12}``
    never reaches the log as ``"12"``. Express-style validators that
    stringify before trimming would accept it.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    gesture: str = Field(min_length=1, strict=True)


@dataclass(frozen=True)
class ValidatedGesture:
    """A trimmed, non-empty, HTML-escaped gesture name."""

    value: str


class GestureValidationError(ValueError):
    def __init__(self, errors: list[dict]) -> None:
        super().__init__(f"{len(errors)} invalid field(s)")
        self.errors = errors


def _field_errors(exc: ValidationError, payload: dict) -> list[dict]:
    errors = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ())) or "gesture"
        value = payload.get(path, "")
        errors.append(
            {
                "type": "field",
                "value": value.strip() if isinstance(value, str) else value,
                "msg": "Invalid value",
                "path": path,
                "location": "body",
            }
        )
    return errors


def validate_gesture(payload: Any) -> ValidatedGesture:
    """Trim, require at least one character, then escape.

    Only string values pass; a non-string ``gesture`` fails validation like
    a missing one. A body that is not a JSON object counts as empty.

    Raises :class:`GestureValidationError` carrying one error object per
    offending field.
    """
    if not isinstance(payload, dict):
        payload = {}
    try:
        report = GestureReport.model_validate(payload)
    except ValidationError as exc:
        raise GestureValidationError(_field_errors(exc, payload)) from exc
    return ValidatedGesture(escape(report.gesture))


def iso_timestamp(now: _dt.datetime | None = None) -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = now or _dt.datetime.now(_dt.timezone.utc)
    return now.astimezone(_dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class GestureLog:
    """Single append-only text file, one ``<timestamp> - <gesture>`` per line.

    Each entry is written with one append call, so concurrent writers may
    interleave lines but never split one.
    """

    def __init__(self, directory: str | Path, filename: str = "gestures.log") -> None:
        self.directory = Path(directory)
        self.filename = filename

    @property
    def path(self) -> Path:
        return self.directory / self.filename

    def append(self, gesture: ValidatedGesture, *, now: _dt.datetime | None = None) -> str:
        line = f"{iso_timestamp(now)} - {gesture.value}"
        append_line(self.path, line)
        return line
