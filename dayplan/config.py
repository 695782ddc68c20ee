# dayplan/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .model import DEFAULT_DURATION_MIN, Schedule
from .util.console import obs_enabled

OCCUPANCY_FIXED = "fixed"
OCCUPANCY_DURATION = "duration"

DEFAULT_STORE_PATH = "dayplan.json"


@dataclass(frozen=True)
class EngineConfig:
    """Engine knobs.

    occupancy_mode:
      - "fixed": every existing occupant of a slot is charged
        `occupancy_charge_min`, whatever its real duration.
      - "duration": occupants are charged their template duration.
    """

    default_duration_min: int = DEFAULT_DURATION_MIN
    occupancy_mode: str = OCCUPANCY_FIXED
    occupancy_charge_min: int = 30
    obs_log: bool = False


DEFAULT_CONFIG = EngineConfig()

DEFAULT_SCHEDULES: Tuple[Schedule, ...] = (
    Schedule(id="default-morning", name="Morning", start_time="06:00", end_time="12:00",
             color="#3b82f6", order=0, is_default=True),
    Schedule(id="default-afternoon", name="Afternoon", start_time="12:00", end_time="18:00",
             color="#f97316", order=1, is_default=True),
    Schedule(id="default-evening", name="Evening", start_time="18:00", end_time="22:00",
             color="#8b5cf6", order=2, is_default=True),
)


def _env_positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key, "") or "").strip()
    if not raw:
        return default
    try:
        v = int(raw)
    except ValueError:
        return default
    return v if v > 0 else default


def config_from_env(env: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Build an EngineConfig from DAYPLAN_* environment variables.

    Invalid values fall back to the defaults rather than failing.
    """
    src = os.environ if env is None else env

    mode = (src.get("DAYPLAN_OCCUPANCY_MODE", "") or "").strip().lower()
    if mode not in {OCCUPANCY_FIXED, OCCUPANCY_DURATION}:
        mode = OCCUPANCY_FIXED

    return EngineConfig(
        default_duration_min=_env_positive_int(src, "DAYPLAN_DEFAULT_DURATION", DEFAULT_DURATION_MIN),
        occupancy_mode=mode,
        occupancy_charge_min=_env_positive_int(src, "DAYPLAN_OCCUPANCY_CHARGE", 30),
        obs_log=obs_enabled(src),
    )


def default_store_path(env: Optional[Mapping[str, str]] = None) -> str:
    src = os.environ if env is None else env
    return (src.get("DAYPLAN_STORE", "") or "").strip() or DEFAULT_STORE_PATH


def task_duration(duration: int, cfg: EngineConfig) -> int:
    return duration if duration > 0 else cfg.default_duration_min
