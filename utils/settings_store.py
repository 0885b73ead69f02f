"""In-memory cache for app settings.

Settings come from ``config/app_settings.json`` (or ``DEMO_SETTINGS_PATH``)
layered over built-in defaults; a handful of keys can be overridden from the
environment so the server and the capture loop agree on host and port.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any

from utils.file_utils import load_json
from utils.log_utils import log

PROJECT_ROOT = Path(__file__).resolve().parent.parent

_DEFAULTS: dict[str, Any] = {
    "log_level": "INFO",
    "http_access_log": False,
    "api_host": "127.0.0.1",
    "api_port": 3000,
    "gesture_log_dir": "logs",
    "gesture_log_file": "gestures.log",
    "templates_dir": "templates",
    "public_dir": "public",
    "gesture_endpoint": "http://localhost:3000/save-gesture",
    "report_gestures": True,
    "report_timeout_secs": 2.0,
    "device_index": 0,
    "frame_width": 1280,
    "frame_height": 720,
    "mirror": True,
    "delegate": "CPU",
    "models_dir": "models",
    "num_faces": 1,
    "num_hands": 2,
    "num_poses": 1,
}

_ENV_OVERRIDES = {
    "DEMO_API_HOST": ("api_host", str),
    "DEMO_API_PORT": ("api_port", int),
    "DEMO_GESTURE_ENDPOINT": ("gesture_endpoint", str),
    "DEMO_LOG_DIR": ("gesture_log_dir", str),
}

_lock = threading.Lock()
_settings_cache: dict[str, Any] = {}


def settings_path() -> Path:
    raw = os.getenv("DEMO_SETTINGS_PATH")
    if raw:
        return Path(raw)
    return PROJECT_ROOT / "config" / "app_settings.json"


def _apply_env(data: dict[str, Any]) -> None:
    for env_name, (key, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            data[key] = cast(raw.strip())
        except ValueError:
            log("SETTINGS", f"Ignoring {env_name}={raw!r}", "WARN")


def refresh_settings() -> dict[str, Any]:
    """Reload settings from disk and replace the cache."""
    loaded = load_json(settings_path())
    if not isinstance(loaded, dict):
        loaded = {}
    data = dict(_DEFAULTS)
    data.update(loaded)
    _apply_env(data)
    with _lock:
        _settings_cache.clear()
        _settings_cache.update(data)
        return dict(_settings_cache)


def get_settings() -> dict[str, Any]:
    """Return a copy of the cached settings."""
    with _lock:
        if _settings_cache:
            return dict(_settings_cache)
    return refresh_settings()


def resolve_path(value: str | Path) -> Path:
    """Resolve a configured path relative to the project root."""
    p = Path(value)
    return p if p.is_absolute() else PROJECT_ROOT / p


def is_deep_logging() -> bool:
    """Return True when log_level requests per-frame tracing."""
    level = str(get_settings().get("log_level", "")).upper()
    return level in {"DEEP"}


def deep_log(system: str, message: str) -> None:
    if is_deep_logging():
        log(system, message, "DEEP")
