"""Timestamped console logging shared by the loop, reporter and server.

Every line reads ``[YYYY-mm-dd HH:MM:SS][SYSTEM][VARIANT] message``. WARN and
ERROR lines go to stderr so they stay visible when stdout is piped.
"""

from __future__ import annotations

import sys
import time

_STDERR_VARIANTS = frozenset({"WARN", "ERROR"})


def format_line(system: str, message: str, variant: str | None = None, now: float | None = None) -> str:
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(now))
    tags = f"[{system.upper()}]"
    if variant:
        tags += f"[{variant.upper()}]"
    return f"[{stamp}]{tags} {message}"


def log(system: str, message: str, variant: str | None = None) -> None:
    stream = sys.stderr if variant and variant.upper() in _STDERR_VARIANTS else sys.stdout
    print(format_line(system, message, variant), file=stream, flush=True)
