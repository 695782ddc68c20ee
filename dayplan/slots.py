# dayplan/slots.py
"""Slot generation and greedy placement of task durations into schedules.

Design goals:
  - Slots are enumerated chronologically by effective start; that order is the
    search order and the tie-break for every placement.
  - A task only ever lands in a schedule it is assigned to.
  - No slot fits => no placement. Nothing is force-placed over capacity.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .config import DEFAULT_CONFIG, OCCUPANCY_DURATION, EngineConfig, task_duration
from .model import BatchPlan, Placement, Schedule, ScheduledTask, Slot, Task, TaskInstance
from .util.console import obs_log
from .util.timeparse import minutes_to_time, time_to_minutes


def _sorted_schedules(schedules: Iterable[Schedule]) -> List[Schedule]:
    return sorted(schedules, key=lambda s: time_to_minutes(s.start_time))


def available_slots(
    schedules: Iterable[Schedule],
    now_minutes: int,
    allowed_schedule_ids: Optional[Iterable[str]] = None,
) -> List[Slot]:
    """Remaining capacity per schedule from `now_minutes` on, in chronological order.

    `allowed_schedule_ids=None` means no filter; an empty collection allows nothing.
    """
    allowed = None if allowed_schedule_ids is None else set(allowed_schedule_ids)

    out: List[Slot] = []
    for s in _sorted_schedules(schedules):
        if allowed is not None and s.id not in allowed:
            continue
        start = time_to_minutes(s.start_time)
        end = time_to_minutes(s.end_time)
        if end <= now_minutes:
            continue
        effective_start = max(start, int(now_minutes))
        if end - effective_start > 0:
            out.append(Slot(schedule_id=s.id, start_minutes=effective_start, end_minutes=end))
    return out


def _occupancy(
    slots: Sequence[Slot],
    instances: Iterable[TaskInstance],
    date: str,
    *,
    cfg: EngineConfig,
    durations: Dict[str, int],
    exclude_instance_id: Optional[str] = None,
) -> Dict[str, int]:
    occupied: Dict[str, int] = {}
    for inst in instances:
        if inst.date != date or inst.completed or not inst.start_time:
            continue
        if exclude_instance_id is not None and inst.id == exclude_instance_id:
            continue
        m = time_to_minutes(inst.start_time)
        if cfg.occupancy_mode == OCCUPANCY_DURATION and inst.task_id in durations:
            charge = durations[inst.task_id]
        else:
            charge = cfg.occupancy_charge_min
        for slot in slots:
            if slot.start_minutes <= m < slot.end_minutes:
                occupied[slot.schedule_id] = occupied.get(slot.schedule_id, 0) + charge
                break
    return occupied


def place_one(
    task: Task,
    schedules: Iterable[Schedule],
    existing_instances: Iterable[TaskInstance],
    date: str,
    now_minutes: int,
    *,
    cfg: Optional[EngineConfig] = None,
    tasks: Iterable[Task] = (),
    exclude_instance_id: Optional[str] = None,
) -> Optional[Placement]:
    """Place one task into the earliest assigned slot with room for its duration.

    Existing incomplete occupants of a slot on `date` are stacked first; the
    task starts right after them. `tasks` supplies template durations for
    occupants when `cfg.occupancy_mode == "duration"`.
    """
    cfg = cfg or DEFAULT_CONFIG
    slots = available_slots(schedules, now_minutes, task.schedule_ids)
    if not slots:
        obs_log("slots", "info", f"no open slot for task={task.id} date={date} at {minutes_to_time(now_minutes)}", force=cfg.obs_log)
        return None

    durations = {t.id: task_duration(t.duration, cfg) for t in tasks}
    occupied = _occupancy(
        slots,
        existing_instances,
        date,
        cfg=cfg,
        durations=durations,
        exclude_instance_id=exclude_instance_id,
    )

    need = task_duration(task.duration, cfg)
    for slot in slots:
        used = occupied.get(slot.schedule_id, 0)
        if slot.capacity - used >= need:
            return Placement(schedule_id=slot.schedule_id, start_time=minutes_to_time(slot.start_minutes + used))

    obs_log("slots", "info", f"task={task.id} ({need}min) does not fit any assigned slot on {date}", force=cfg.obs_log)
    return None


def plan_batch(
    tasks: Sequence[Task],
    schedules: Iterable[Schedule],
    now_minutes: int,
    *,
    cfg: Optional[EngineConfig] = None,
    respect_assignments: bool = False,
) -> BatchPlan:
    """Bin-pack tasks by priority (1 first) into chronological slots.

    Each slot keeps a running cursor; the first slot with enough remaining
    capacity takes the task, whatever schedules the task is assigned to;
    `respect_assignments=True` restricts each task to its own `schedule_ids`.
    Tasks that fit nowhere are returned in `dropped`.
    """
    cfg = cfg or DEFAULT_CONFIG
    slots = available_slots(schedules, now_minutes)
    cursors = [[s.schedule_id, s.start_minutes, s.end_minutes] for s in slots]

    scheduled: List[ScheduledTask] = []
    dropped: List[str] = []

    for task in sorted(tasks, key=lambda t: t.priority):
        need = task_duration(task.duration, cfg)
        placed = False
        for cur in cursors:
            sid, start, end = cur
            if respect_assignments and sid not in task.schedule_ids:
                continue
            if end - start >= need:
                scheduled.append(
                    ScheduledTask(
                        task_id=task.id,
                        schedule_id=sid,
                        start_time=minutes_to_time(start),
                        end_time=minutes_to_time(start + need),
                    )
                )
                cur[1] = start + need
                placed = True
                break
        if not placed:
            dropped.append(task.id)

    if dropped:
        obs_log("slots", "warn", f"batch dropped {len(dropped)} task(s) with no room: {', '.join(dropped)}", force=cfg.obs_log)

    return BatchPlan(scheduled=tuple(scheduled), dropped=tuple(dropped))


def batch_schedule(
    tasks: Sequence[Task],
    schedules: Iterable[Schedule],
    now_minutes: int,
    *,
    cfg: Optional[EngineConfig] = None,
    respect_assignments: bool = False,
) -> List[ScheduledTask]:
    """Placed tasks only; use `plan_batch` to see what was dropped."""
    plan = plan_batch(tasks, schedules, now_minutes, cfg=cfg, respect_assignments=respect_assignments)
    return list(plan.scheduled)
