# dayplan/util/console.py
from __future__ import annotations

import os
import sys
from typing import Any, Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}


def eprint(*args: Any) -> None:
    print(*args, file=sys.stderr)


def obs_enabled(env: Optional[Mapping[str, str]] = None) -> bool:
    src = os.environ if env is None else env
    v = (src.get("DAYPLAN_OBS_LOG", "") or "").strip().lower()
    return v in _TRUTHY


def obs_log(component: str, level: str, msg: str, *, force: bool = False) -> None:
    """Emit a `[dayplan.<component>] LEVEL: msg` line when observability is on."""
    if not (force or obs_enabled()):
        return
    eprint(f"[dayplan.{component}] {level.upper()}: {msg}")
