# dayplan/engine.py
"""Host-facing flows: snapshot in, Mutations out.

Calls must be serialized by the host: each result is computed against one
snapshot and has to be applied before the next call observes state.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from .cascade import cascade_completion, validate_new_link
from .config import DEFAULT_CONFIG, EngineConfig
from .materialize import new_chunk_instances
from .model import (
    PRIORITIES,
    RECURRENCE_NONE,
    RECURRENCES,
    DEFAULT_DURATION_MIN,
    Task,
    TaskInstance,
    TaskLink,
)
from .slots import place_one, plan_batch
from .snapshot import IdFactory, Mutations, RecordPatch, Snapshot, new_uuid
from .util.timeparse import current_minutes, format_timestamp, parse_date_yyyy_mm_dd


@dataclass(frozen=True)
class TaskDraft:
    """User input for a new top-level task."""

    title: str
    schedule_ids: Tuple[str, ...]
    priority: int = 4
    recurrence: str = RECURRENCE_NONE
    duration: int = DEFAULT_DURATION_MIN
    recurrence_end: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class RescheduleResult:
    mutations: Mutations
    dropped: Tuple[str, ...]  # instance ids left without a time


def _cursor_for(date: str, now: dt.datetime) -> Optional[int]:
    """Placement cursor: current minute today, midnight for future dates, None for the past."""
    today = now.date().isoformat()
    if date == today:
        return current_minutes(now)
    if date > today:
        return 0
    return None


def toggle_task_instance(
    snapshot: Snapshot,
    instance_id: str,
    now: dt.datetime,
    *,
    cfg: Optional[EngineConfig] = None,
    new_id: IdFactory = new_uuid,
) -> Mutations:
    """Flip completion of one occurrence.

    Only the incomplete -> complete transition runs the link cascade; undoing a
    completion does not retract instances it already spawned.
    """
    inst = snapshot.instance_by_id(instance_id)
    if inst is None:
        raise KeyError(f"unknown task instance: {instance_id}")

    if inst.completed:
        return Mutations(instance_patches=(RecordPatch(inst.id, {"completed": False, "completed_at": None}),))

    done = Mutations(
        instance_patches=(RecordPatch(inst.id, {"completed": True, "completed_at": format_timestamp(now)}),)
    )
    return done.merge(cascade_completion(snapshot, inst, now, cfg=cfg, new_id=new_id))


def toggle_chunk_instance(snapshot: Snapshot, chunk_instance_id: str, now: dt.datetime) -> Mutations:
    ci = snapshot.chunk_instance_by_id(chunk_instance_id)
    if ci is None:
        raise KeyError(f"unknown chunk instance: {chunk_instance_id}")
    if ci.completed:
        changes = {"completed": False, "completed_at": None}
    else:
        changes = {"completed": True, "completed_at": format_timestamp(now)}
    return Mutations(chunk_patches=(RecordPatch(ci.id, changes),))


def _check_draft(snapshot: Snapshot, draft: TaskDraft) -> None:
    if not draft.title.strip():
        raise ValueError("task title must be non-empty")
    if not draft.schedule_ids:
        raise ValueError("task must be assigned to at least one schedule")
    for sid in draft.schedule_ids:
        if snapshot.schedule_by_id(sid) is None:
            raise ValueError(f"unknown schedule: {sid}")
    if draft.priority not in PRIORITIES:
        raise ValueError("priority must be 1..4")
    if draft.recurrence not in RECURRENCES:
        raise ValueError(f"recurrence must be one of {', '.join(RECURRENCES)}")
    if draft.duration <= 0:
        raise ValueError("duration must be positive")
    if draft.recurrence_end:
        try:
            parse_date_yyyy_mm_dd(draft.recurrence_end)
        except ValueError:
            raise ValueError(f"recurrence_end must be YYYY-MM-DD, got {draft.recurrence_end!r}") from None


def create_task(
    snapshot: Snapshot,
    draft: TaskDraft,
    date: str,
    now: dt.datetime,
    *,
    chunk_titles: Sequence[str] = (),
    link: Optional[Tuple[str, int]] = None,
    cfg: Optional[EngineConfig] = None,
    new_id: IdFactory = new_uuid,
) -> Mutations:
    """Create a task template, its chunks and its first occurrence on `date`.

    The occurrence is placed with `place_one`. `link=(trigger_task_id, delay)`
    also makes the new task a dependent of the trigger.
    """
    cfg = cfg or DEFAULT_CONFIG
    _check_draft(snapshot, draft)

    stamp = format_timestamp(now)
    today = now.date().isoformat()
    task = Task(
        id=new_id(),
        title=draft.title.strip(),
        priority=int(draft.priority),
        schedule_ids=tuple(draft.schedule_ids),
        recurrence=draft.recurrence,
        created_at=stamp,
        recurrence_end=draft.recurrence_end,
        start_date=date if date != today else None,
        duration=int(draft.duration),
        description=draft.description,
    )
    chunks = tuple(
        Task(
            id=new_id(),
            title=title.strip(),
            priority=4,
            schedule_ids=(),
            recurrence=RECURRENCE_NONE,
            created_at=stamp,
            parent_id=task.id,
        )
        for title in chunk_titles
        if title.strip()
    )

    links: Tuple[TaskLink, ...] = ()
    if link is not None:
        trigger_id, delay = link
        staged = dataclasses.replace(snapshot, tasks=snapshot.tasks + (task,))
        validate_new_link(staged, trigger_id, task.id, int(delay))
        links = (TaskLink(id=new_id(), trigger_task_id=trigger_id, linked_task_id=task.id, delay_minutes=int(delay)),)

    start_time = None
    cursor = _cursor_for(date, now)
    if cursor is not None:
        placement = place_one(task, snapshot.schedules, snapshot.instances, date, cursor, cfg=cfg, tasks=snapshot.tasks)
        if placement is not None:
            start_time = placement.start_time

    inst = TaskInstance(id=new_id(), task_id=task.id, date=date, start_time=start_time)
    return Mutations(
        add_tasks=(task,) + chunks,
        add_links=links,
        add_instances=(inst,),
        add_chunk_instances=new_chunk_instances(inst.id, chunks, new_id=new_id),
    )


def reschedule_now(
    snapshot: Snapshot,
    date: str,
    now: dt.datetime,
    *,
    cfg: Optional[EngineConfig] = None,
) -> RescheduleResult:
    """Batch-pack the open, untimed occurrences on `date` and assign start times."""
    cursor = _cursor_for(date, now)
    if cursor is None:
        return RescheduleResult(mutations=Mutations(), dropped=())

    pending: Dict[str, Deque[TaskInstance]] = defaultdict(deque)
    tasks: List[Task] = []
    for inst in snapshot.instances_on(date):
        if inst.completed or inst.start_time:
            continue
        task = snapshot.task_by_id(inst.task_id)
        if task is None or task.is_chunk:
            continue
        pending[task.id].append(inst)
        tasks.append(task)

    # Occurrences stay inside the schedules their task is assigned to.
    plan = plan_batch(tasks, snapshot.schedules, cursor, cfg=cfg, respect_assignments=True)

    patches: List[RecordPatch] = []
    for st in plan.scheduled:
        inst = pending[st.task_id].popleft()
        patches.append(RecordPatch(inst.id, {"start_time": st.start_time}))

    dropped = tuple(pending[tid].popleft().id for tid in plan.dropped)
    return RescheduleResult(mutations=Mutations(instance_patches=tuple(patches)), dropped=dropped)
