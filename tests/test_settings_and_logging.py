"""Tests for the settings cache and timestamped log formatting."""

import json

import pytest

from utils import settings_store
from utils.log_utils import format_line, log


@pytest.fixture
def isolated_settings(monkeypatch, tmp_path):
    path = tmp_path / "app_settings.json"
    monkeypatch.setenv("DEMO_SETTINGS_PATH", str(path))
    for name in ("DEMO_API_HOST", "DEMO_API_PORT", "DEMO_GESTURE_ENDPOINT", "DEMO_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    yield path
    monkeypatch.undo()
    settings_store.refresh_settings()


class TestSettingsStore:
    """Test suite for settings_store."""

    def test_defaults_without_file(self, isolated_settings):
        """Test that built-in defaults apply when no file exists."""
        settings = settings_store.refresh_settings()
        assert settings["api_port"] == 3000
        assert settings["gesture_log_file"] == "gestures.log"

    def test_file_overrides_defaults(self, isolated_settings):
        """Test that file values replace defaults."""
        isolated_settings.write_text(json.dumps({"api_port": 4000, "num_hands": 1}))
        settings = settings_store.refresh_settings()
        assert settings["api_port"] == 4000
        assert settings["num_hands"] == 1
        assert settings["num_faces"] == 1

    def test_env_overrides_file(self, isolated_settings, monkeypatch):
        """Test environment overrides and their casting."""
        isolated_settings.write_text(json.dumps({"api_port": 4000}))
        monkeypatch.setenv("DEMO_API_PORT", "5050")
        monkeypatch.setenv("DEMO_GESTURE_ENDPOINT", "http://example.test/save-gesture")
        settings = settings_store.refresh_settings()
        assert settings["api_port"] == 5050
        assert settings["gesture_endpoint"] == "http://example.test/save-gesture"

    def test_bad_env_value_ignored(self, isolated_settings, monkeypatch):
        """Test that an uncastable override keeps the configured value."""
        monkeypatch.setenv("DEMO_API_PORT", "not-a-port")
        assert settings_store.refresh_settings()["api_port"] == 3000

    def test_get_settings_returns_copy(self, isolated_settings):
        """Test that callers cannot mutate the cache."""
        settings_store.refresh_settings()
        settings_store.get_settings()["api_port"] = 1
        assert settings_store.get_settings()["api_port"] == 3000

    def test_deep_logging_flag(self, isolated_settings):
        isolated_settings.write_text(json.dumps({"log_level": "deep"}))
        settings_store.refresh_settings()
        assert settings_store.is_deep_logging() is True

    def test_resolve_path(self):
        """Test relative paths resolve against the project root."""
        assert settings_store.resolve_path("logs") == settings_store.PROJECT_ROOT / "logs"


class TestLogFormatting:
    """Test suite for log_utils."""

    def test_system_and_variant_upper_cased(self):
        line = format_line("loop", "slow frame", "warn", now=0)
        assert line.endswith("[LOOP][WARN] slow frame")
        assert line.startswith("[") and line.index("]") == 20

    def test_no_variant(self):
        assert format_line("SERVER", "listening", now=0).endswith("][SERVER] listening")

    def test_warnings_and_errors_go_to_stderr(self, capsys):
        log("SERVER", "disk full", "ERROR")
        log("SETTINGS", "odd value", "WARN")
        log("SERVER", "listening")
        captured = capsys.readouterr()
        assert "[SERVER][ERROR] disk full" in captured.err
        assert "[SETTINGS][WARN] odd value" in captured.err
        assert "[SERVER] listening" in captured.out

    def test_deep_log_silent_by_default(self, isolated_settings, capsys):
        """Test that DEEP traces only print when log_level asks for them."""
        settings_store.refresh_settings()
        settings_store.deep_log("LOOP", "frame traced")
        assert "frame traced" not in capsys.readouterr().out

        isolated_settings.write_text(json.dumps({"log_level": "DEEP"}))
        settings_store.refresh_settings()
        settings_store.deep_log("LOOP", "frame traced")
        assert "[LOOP][DEEP] frame traced" in capsys.readouterr().out
