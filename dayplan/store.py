# dayplan/store.py
"""JSON file persistence for the reference host.

Layout: {"schedules": [...], "tasks": [...], "taskInstances": [...],
"chunkInstances": [...], "taskLinks": [...]} with flat camelCase records.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Union

from .config import DEFAULT_SCHEDULES
from .snapshot import Snapshot, assert_valid_snapshot

JsonPath = Union[str, Path]


def new_store() -> Snapshot:
    return Snapshot(schedules=DEFAULT_SCHEDULES)


def load_snapshot_from_json(path: JsonPath, *, validate: bool = True) -> Snapshot:
    p = Path(path)
    try:
        obj = json.loads(p.read_text(encoding="utf-8", errors="replace"))
    except json.JSONDecodeError as ex:
        raise ValueError(f"{p}: invalid JSON: {ex}") from ex
    if not isinstance(obj, dict):
        raise ValueError(f"{p}: store must be a JSON object; got {type(obj).__name__}")

    try:
        snap = Snapshot.from_dict(obj)
    except ValueError as ex:
        raise ValueError(f"{p}: {ex}") from ex

    if validate:
        assert_valid_snapshot(snap)
    return snap


def save_snapshot_to_json(snapshot: Snapshot, path: JsonPath) -> Path:
    """Write atomically: temp file in the target directory, then replace."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2) + "\n"

    fd, tmp = tempfile.mkstemp(dir=str(p.parent), prefix=f".{p.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp, p)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)
    return p
