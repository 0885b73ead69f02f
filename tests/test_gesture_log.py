"""Tests for gesture validation, escaping and the append-only log file."""

import datetime as dt
import threading

import pytest

from api.gesture_log import (
    GestureLog,
    GestureValidationError,
    ValidatedGesture,
    escape,
    iso_timestamp,
    validate_gesture,
)


class TestValidateGesture:
    """Test suite for validate_gesture()."""

    def test_valid_gesture_is_trimmed(self):
        """Test that surrounding whitespace is removed."""
        assert validate_gesture({"gesture": "  Thumb_Up \n"}) == ValidatedGesture("Thumb_Up")

    def test_empty_gesture_rejected(self):
        """Test that an empty string fails with one field error."""
        with pytest.raises(GestureValidationError) as info:
            validate_gesture({"gesture": ""})
        assert len(info.value.errors) == 1
        error = info.value.errors[0]
        assert error["path"] == "gesture"
        assert error["location"] == "body"
        assert error["msg"] == "Invalid value"

    def test_whitespace_only_rejected(self):
        """Test that a gesture made of spaces counts as empty."""
        with pytest.raises(GestureValidationError) as info:
            validate_gesture({"gesture": "   "})
        assert info.value.errors[0]["value"] == ""

    def test_missing_field_rejected(self):
        """Test that a body without the field is rejected."""
        with pytest.raises(GestureValidationError):
            validate_gesture({"name": "Victory"})

    def test_non_string_rejected(self):
        """Test that a number is not accepted as a gesture name."""
        with pytest.raises(GestureValidationError):
            validate_gesture({"gesture": 12})

    def test_non_object_payload_rejected(self):
        """Test that a JSON array or scalar body is rejected."""
        with pytest.raises(GestureValidationError):
            validate_gesture(["Victory"])
        with pytest.raises(GestureValidationError):
            validate_gesture(None)

    def test_markup_is_escaped(self):
        """Test that HTML special characters are escaped."""
        assert validate_gesture({"gesture": "<script>"}).value == "&lt;script&gt;"


class TestEscape:
    """Test suite for escape()."""

    def test_all_entities(self):
        """Test the full entity set."""
        assert escape("&\"'<>/\\`") == "&amp;&quot;&#x27;&lt;&gt;&#x2F;&#x5C;&#96;"

    def test_plain_text_unchanged(self):
        """Test that ordinary gesture names pass through."""
        assert escape("Open_Palm") == "Open_Palm"


class TestGestureLog:
    """Test suite for GestureLog."""

    def test_iso_timestamp_format(self):
        """Test millisecond UTC timestamps with a Z suffix."""
        moment = dt.datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=dt.timezone.utc)
        assert iso_timestamp(moment) == "2024-05-01T12:30:15.123Z"

    def test_append_creates_directory(self, tmp_path):
        """Test that the log directory is created on first use."""
        log = GestureLog(tmp_path / "nested" / "logs")
        moment = dt.datetime(2024, 5, 1, tzinfo=dt.timezone.utc)

        line = log.append(ValidatedGesture("Victory"), now=moment)

        assert line == "2024-05-01T00:00:00.000Z - Victory"
        assert log.path.read_text(encoding="utf-8") == line + "\n"

    def test_append_keeps_arrival_order(self, tmp_path):
        """Test that entries are appended, never rewritten or deduplicated."""
        log = GestureLog(tmp_path)
        for name in ("A", "B", "A"):
            log.append(ValidatedGesture(name))

        lines = log.path.read_text(encoding="utf-8").splitlines()
        assert [line.split(" - ", 1)[1] for line in lines] == ["A", "B", "A"]

    def test_concurrent_appends_stay_intact(self, tmp_path):
        """Test that concurrent writers never split a line."""
        log = GestureLog(tmp_path)
        names = [f"gesture_{i}" for i in range(50)]
        threads = [threading.Thread(target=log.append, args=(ValidatedGesture(n),)) for n in names]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = log.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == len(names)
        assert sorted(line.split(" - ", 1)[1] for line in lines) == sorted(names)
        for line in lines:
            stamp, _ = line.split(" - ", 1)
            assert stamp.endswith("Z")

    def test_append_failure_raises_oserror(self, tmp_path):
        """Test that an unusable log directory surfaces as OSError."""
        blocker = tmp_path / "logs"
        blocker.write_text("not a directory")
        log = GestureLog(blocker)

        with pytest.raises(OSError):
            log.append(ValidatedGesture("Victory"))
