# dayplan/active.py
"""Which schedule block a task shows in. Read-only; never mutates anything."""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from .model import Schedule, Task, TaskInstance
from .util.timeparse import time_to_minutes

ClockLike = Union[str, int]


def _minutes(t: ClockLike) -> int:
    return int(t) if isinstance(t, int) else time_to_minutes(t)


def assigned_schedules(task: Task, schedules: Iterable[Schedule]) -> List[Schedule]:
    """Schedules the task is assigned to, ascending by start time."""
    wanted = set(task.schedule_ids)
    return sorted(
        (s for s in schedules if s.id in wanted),
        key=lambda s: time_to_minutes(s.start_time),
    )


def active_schedule(task: Task, schedules: Iterable[Schedule], current_time: ClockLike) -> Optional[str]:
    """First assigned schedule that has not ended yet; the last one once all have.

    Overdue tasks pin to their final window instead of disappearing.
    """
    if not task.schedule_ids:
        return None
    mine = assigned_schedules(task, schedules)
    if not mine:
        return None

    now = _minutes(current_time)
    for s in mine:
        if now < time_to_minutes(s.end_time):
            return s.id
    return mine[-1].id


def _containing(schedules: Iterable[Schedule], minutes: int) -> Optional[str]:
    for s in schedules:
        if time_to_minutes(s.start_time) <= minutes < time_to_minutes(s.end_time):
            return s.id
    return None


def display_schedule(
    task: Task,
    instance: Optional[TaskInstance],
    schedules: Iterable[Schedule],
    date: str,
    today: str,
    current_time: ClockLike,
) -> Optional[str]:
    """Resolve the schedule block a task occurrence is displayed in.

    Precedence:
      1) explicit start time, open or completed: the window containing it
         (assigned windows first). A placed occurrence therefore never
         cascades; only untimed ones follow `active_schedule`.
      2) completed without a time: first assigned window
      3) today: cascading `active_schedule`
      4) any other date: first assigned window
    """
    all_schedules = sorted(schedules, key=lambda s: time_to_minutes(s.start_time))
    mine = assigned_schedules(task, all_schedules)

    if instance is not None and instance.start_time:
        m = time_to_minutes(instance.start_time)
        return _containing(mine, m) or _containing(all_schedules, m)

    if not mine:
        return None
    if instance is not None and instance.completed:
        return mine[0].id
    if date == today:
        return active_schedule(task, all_schedules, current_time)
    return mine[0].id


def tasks_for_schedule(tasks: Iterable[Task], schedule_id: str) -> List[Task]:
    """Top-level tasks assigned to `schedule_id`, most urgent first."""
    return sorted(
        (t for t in tasks if not t.is_chunk and schedule_id in t.schedule_ids),
        key=lambda t: t.priority,
    )
