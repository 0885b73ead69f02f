"""Helpers for detached background work."""

import threading
from collections.abc import Callable


def run_detached(target: Callable, *args, name: str | None = None, daemon: bool = True) -> threading.Thread:
    """Start ``target(*args)`` on its own thread and return without joining.

    Nothing tracks the thread afterwards: it is never cancelled and its
    outcome is only visible through whatever ``target`` logs.
    """
    thread = threading.Thread(target=target, args=args, name=name, daemon=daemon)
    thread.start()
    return thread
