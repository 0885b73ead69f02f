"""Fire-and-forget reporting of recognized gestures to the logging service.

``report`` hands the POST to a detached thread and returns at once. There is
no retry, no backoff and no cancellation: a report still in flight when the
loop stops simply finishes (or fails) on its own, and failures are only
logged.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from typing import Any
from urllib import request
from urllib.error import HTTPError

from utils.log_utils import log
from utils.settings_store import deep_log
from utils.threading_utils import run_detached

Sender = Callable[[str, dict, float], tuple[int, Any]]


def post_json(url: str, payload: dict, timeout_secs: float) -> tuple[int, Any]:
    """POST ``payload`` as JSON and return ``(status, decoded body)``."""
    req = request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=timeout_secs) as resp:
            status, raw = resp.status, resp.read()
    except HTTPError as exc:
        status, raw = exc.code, exc.read()
    text = raw.decode("utf-8") if raw else ""
    return status, json.loads(text) if text else None


class GestureReporter:
    def __init__(
        self,
        endpoint: str,
        *,
        timeout_secs: float = 2.0,
        enabled: bool = True,
        sender: Sender | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_secs = timeout_secs
        self.enabled = enabled
        self._sender = sender or post_json

    def report(self, gesture_name: str) -> threading.Thread | None:
        """Send one report without waiting for it; returns the worker thread."""
        if not self.enabled:
            return None
        return run_detached(self._send, gesture_name, name="GestureReport")

    def _send(self, gesture_name: str) -> None:
        try:
            status, body = self._sender(self.endpoint, {"gesture": gesture_name}, self.timeout_secs)
        except Exception as exc:
            log("REPORT", f"Could not report {gesture_name!r}: {exc}", "ERROR")
            return

        if isinstance(body, dict) and body.get("errors"):
            log("REPORT", f"Validation errors: {body['errors']}", "ERROR")
        elif not 200 <= status < 300:
            log("REPORT", f"Server answered {status} for {gesture_name!r}", "ERROR")
        elif isinstance(body, dict) and body.get("message"):
            deep_log("REPORT", body["message"])
