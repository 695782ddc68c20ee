# dayplan/util/timeparse.py
from __future__ import annotations

import datetime as dt
import re
from typing import Tuple

from dateutil import parser as date_parser

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def time_to_minutes(s: str) -> int:
    """Minutes since midnight for a `HH:MM` clock string.

    Malformed input is a caller contract violation; use `parse_hhmm` where the
    string comes from a user.
    """
    hh, mm = s.split(":")[:2]
    return int(hh) * 60 + int(mm)


def minutes_to_time(minutes: int) -> str:
    m = int(minutes) % MINUTES_PER_DAY
    return f"{m // 60:02d}:{m % 60:02d}"


def parse_hhmm(s: str) -> Tuple[int, int]:
    m = _HHMM_RE.match(s.strip())
    if not m:
        raise ValueError(f"Invalid HH:MM: {s!r}")
    hh = int(m.group(1))
    mm = int(m.group(2))
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        raise ValueError(f"Invalid HH:MM: {s!r}")
    return hh, mm


def format_time_display(s: str) -> str:
    """`14:05` -> `2:05 PM`."""
    total = time_to_minutes(s)
    hours, mins = divmod(total, 60)
    period = "PM" if hours >= 12 else "AM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{mins:02d} {period}"


def parse_date_yyyy_mm_dd(s: str) -> dt.date:
    return dt.datetime.strptime(s, "%Y-%m-%d").date()


def parse_timestamp(s: str) -> dt.datetime:
    """Parse an ISO-8601 instant into a naive local wall-clock datetime.

    Aware values are converted to the machine's local zone first; naive values
    are taken as already local.
    """
    d = date_parser.isoparse(s)
    if d.tzinfo is not None:
        d = d.astimezone().replace(tzinfo=None)
    return d


def date_of_timestamp(s: str) -> str:
    """Date component of an ISO timestamp, by plain truncation at `T`."""
    return s.split("T")[0].strip()


def format_timestamp(d: dt.datetime) -> str:
    return d.replace(microsecond=0).isoformat()


def split_instant(d: dt.datetime) -> Tuple[str, int]:
    """(YYYY-MM-DD, minutes since midnight) of a local wall-clock instant."""
    return d.date().isoformat(), d.hour * 60 + d.minute


def current_minutes(now: dt.datetime | None = None) -> int:
    n = now or dt.datetime.now()
    return n.hour * 60 + n.minute
