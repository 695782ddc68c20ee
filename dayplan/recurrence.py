# dayplan/recurrence.py
"""Decide which calendar dates a task template occurs on.

Comparison is date-only on the local wall clock: `createdAt` is truncated to
its date component. A task created for a later day carries that day as
`startDate`, which then anchors the recurrence instead.

Known limitation: monthly recurrence matches the day-of-month exactly, so a task
created on the 31st never occurs in a 30-day month (or February).
"""

from __future__ import annotations

import datetime as dt
from typing import Iterator, Union

from .model import (
    RECURRENCE_DAILY,
    RECURRENCE_MONTHLY,
    RECURRENCE_NONE,
    RECURRENCE_WEEKLY,
    Task,
)
from .util.timeparse import date_of_timestamp, parse_date_yyyy_mm_dd

DateLike = Union[str, dt.date]


def _as_date(d: DateLike) -> dt.date:
    if isinstance(d, dt.datetime):
        return d.date()
    if isinstance(d, dt.date):
        return d
    return parse_date_yyyy_mm_dd(str(d))


def creation_date(task: Task) -> dt.date:
    """Anchor date of the recurrence: `startDate` when set, else the creation date."""
    if task.start_date:
        return parse_date_yyyy_mm_dd(date_of_timestamp(task.start_date))
    return parse_date_yyyy_mm_dd(date_of_timestamp(task.created_at))


def should_appear(task: Task, date: DateLike) -> bool:
    """True when `task` produces an occurrence on `date`.

    Chunks are never evaluated here; they follow their parent's occurrence.
    """
    if task.is_chunk:
        return False

    target = _as_date(date)
    created = creation_date(task)

    if task.recurrence == RECURRENCE_NONE:
        return target == created

    if target < created:
        return False
    if task.recurrence_end:
        if target > _as_date(date_of_timestamp(task.recurrence_end)):
            return False

    if task.recurrence == RECURRENCE_DAILY:
        return True
    if task.recurrence == RECURRENCE_WEEKLY:
        return target.weekday() == created.weekday()
    if task.recurrence == RECURRENCE_MONTHLY:
        return target.day == created.day
    return False


def occurrence_dates(task: Task, start: DateLike, end: DateLike) -> Iterator[dt.date]:
    """Yield every date in [start, end] on which `task` occurs."""
    d = _as_date(start)
    last = _as_date(end)
    while d <= last:
        if should_appear(task, d):
            yield d
        d += dt.timedelta(days=1)
