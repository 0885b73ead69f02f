"""Safe loading/appending helpers."""

import json
from pathlib import Path


def load_json(path: str | Path) -> dict:
    p = Path(path)
    if not p.exists():
        return {}
    return json.loads(p.read_text(encoding="utf-8"))


def append_line(path: str | Path, line: str) -> Path:
    """Append one newline-terminated line with a single write call.

    The parent directory is created on first use. ``OSError`` propagates.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if not line.endswith("\n"):
        line += "\n"
    with p.open("a", encoding="utf-8") as fh:
        fh.write(line)
    return p
