# dayplan/cascade.py
"""Spawn dependent occurrences when a trigger task is completed.

One completion event spawns one generation: every spawned instance starts
incomplete, so even a cyclic link graph cannot loop inside a single call.
Cycles are rejected when links are created (`validate_new_link`).
"""

from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Iterable, List, Optional

from .config import DEFAULT_CONFIG, EngineConfig
from .linkgraph import find_link_cycle
from .materialize import InstanceIndex, chunks_for_task, new_chunk_instances
from .model import ChunkInstance, TaskInstance, TaskLink
from .slots import place_one
from .snapshot import IdFactory, Mutations, RecordPatch, Snapshot, new_uuid
from .util.console import obs_log
from .util.timeparse import minutes_to_time, split_instant


class LinkCycleError(ValueError):
    """Raised when a new link would close a trigger cycle."""


def links_triggered_by(links: Iterable[TaskLink], task_id: str) -> List[TaskLink]:
    return [l for l in links if l.trigger_task_id == task_id]


def validate_new_link(snapshot: Snapshot, trigger_task_id: str, linked_task_id: str, delay_minutes: int) -> None:
    """Raise ValueError (LinkCycleError for cycles) if the link may not be created."""
    trigger = snapshot.task_by_id(trigger_task_id)
    linked = snapshot.task_by_id(linked_task_id)
    if trigger is None:
        raise ValueError(f"unknown trigger task: {trigger_task_id}")
    if linked is None:
        raise ValueError(f"unknown linked task: {linked_task_id}")
    if trigger.is_chunk or linked.is_chunk:
        raise ValueError("chunks cannot be linked")
    if int(delay_minutes) < 0:
        raise ValueError("delay_minutes must be >= 0")

    candidate = TaskLink(id="__new__", trigger_task_id=trigger_task_id, linked_task_id=linked_task_id)
    cycle = find_link_cycle(tuple(snapshot.links) + (candidate,))
    if cycle:
        raise LinkCycleError("link would create a cycle: " + " -> ".join(cycle))


def cascade_completion(
    snapshot: Snapshot,
    completed: TaskInstance,
    completed_at: dt.datetime,
    *,
    cfg: Optional[EngineConfig] = None,
    new_id: IdFactory = new_uuid,
) -> Mutations:
    """Create or refresh the occurrences scheduled by links rooted at `completed.task_id`.

    Per link the target instant is `completed_at + delay`; the linked task is
    placed from that clock point on the target date within its own schedules,
    falling back to the raw delayed time. The key `(linked task, date, link)`
    is honoured exactly once: an open instance gets its start time refreshed,
    a completed one is left alone.
    """
    cfg = cfg or DEFAULT_CONFIG

    # The trigger is completed by this very event, so it no longer occupies a slot.
    pool: List[TaskInstance] = [
        dataclasses.replace(i, completed=True) if i.id == completed.id else i for i in snapshot.instances
    ]
    index = InstanceIndex(pool)
    add_instances: List[TaskInstance] = []
    add_chunks: List[ChunkInstance] = []
    patches: List[RecordPatch] = []

    for link in links_triggered_by(snapshot.links, completed.task_id):
        linked = snapshot.task_by_id(link.linked_task_id)
        if linked is None or linked.is_chunk:
            obs_log("cascade", "warn", f"link={link.id} targets missing or chunk task {link.linked_task_id}; skipped", force=cfg.obs_log)
            continue

        target = completed_at + dt.timedelta(minutes=int(link.delay_minutes))
        date, target_minutes = split_instant(target)

        existing = index.triggered(linked.id, date, link.id)
        if existing is not None and existing.completed:
            obs_log("cascade", "info", f"link={link.id} instance {existing.id} already completed; untouched", force=cfg.obs_log)
            continue

        placement = place_one(
            linked,
            snapshot.schedules,
            pool,
            date,
            target_minutes,
            cfg=cfg,
            tasks=snapshot.tasks,
            exclude_instance_id=existing.id if existing is not None else None,
        )
        if placement is not None:
            start_time = placement.start_time
        else:
            start_time = minutes_to_time(target_minutes)
            obs_log("cascade", "info", f"link={link.id} task={linked.id} unplaceable; using raw time {start_time}", force=cfg.obs_log)

        if existing is not None:
            if existing.start_time != start_time:
                patches.append(RecordPatch(existing.id, {"start_time": start_time}))
                refreshed = dataclasses.replace(existing, start_time=start_time)
                pool = [refreshed if i.id == existing.id else i for i in pool]
            continue

        inst = TaskInstance(
            id=new_id(),
            task_id=linked.id,
            date=date,
            start_time=start_time,
            triggered_by_link_id=link.id,
        )
        pool.append(inst)
        index.add(inst)
        add_instances.append(inst)
        add_chunks.extend(new_chunk_instances(inst.id, chunks_for_task(snapshot.tasks, linked.id), new_id=new_id))

    return Mutations(
        add_instances=tuple(add_instances),
        add_chunk_instances=tuple(add_chunks),
        instance_patches=tuple(patches),
    )
