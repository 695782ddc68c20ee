# dayplan/snapshot.py
"""Immutable in-memory snapshot the engine reads, and the mutation batches it emits.

Engine operations never touch host storage. They return a `Mutations` batch;
the host applies it (see `apply_mutations`) before the next engine call.
"""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .linkgraph import find_link_cycle
from .model import (
    PRIORITIES,
    RECURRENCES,
    ChunkInstance,
    JsonDict,
    Schedule,
    Task,
    TaskInstance,
    TaskLink,
)
from .util.timeparse import date_of_timestamp, parse_date_yyyy_mm_dd, parse_hhmm, time_to_minutes

IdFactory = Callable[[], str]

R = TypeVar("R")


def new_uuid() -> str:
    return str(uuid.uuid4())


class SnapshotValidationError(ValueError):
    """Raised when a snapshot breaks the record invariants."""


@dataclass(frozen=True)
class Snapshot:
    schedules: Tuple[Schedule, ...] = ()
    tasks: Tuple[Task, ...] = ()
    instances: Tuple[TaskInstance, ...] = ()
    chunk_instances: Tuple[ChunkInstance, ...] = ()
    links: Tuple[TaskLink, ...] = ()

    # Linear scans: collections are small (tens of records).

    def task_by_id(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def schedule_by_id(self, schedule_id: str) -> Optional[Schedule]:
        return next((s for s in self.schedules if s.id == schedule_id), None)

    def instance_by_id(self, instance_id: str) -> Optional[TaskInstance]:
        return next((i for i in self.instances if i.id == instance_id), None)

    def chunk_instance_by_id(self, chunk_instance_id: str) -> Optional[ChunkInstance]:
        return next((c for c in self.chunk_instances if c.id == chunk_instance_id), None)

    def chunks_of(self, task_id: str) -> List[Task]:
        return [t for t in self.tasks if t.parent_id == task_id]

    def instances_on(self, date: str) -> List[TaskInstance]:
        return [i for i in self.instances if i.date == date]

    def chunk_instances_of(self, instance_id: str) -> List[ChunkInstance]:
        return [c for c in self.chunk_instances if c.task_instance_id == instance_id]

    @classmethod
    def from_dict(cls, d: JsonDict) -> "Snapshot":
        def _records(key: str, factory: Callable[[JsonDict], R]) -> Tuple[R, ...]:
            raw = d.get(key)
            if raw is None:
                return ()
            if not isinstance(raw, list):
                raise ValueError(f"{key} must be a list")
            out = []
            for i, item in enumerate(raw):
                if not isinstance(item, dict):
                    raise ValueError(f"{key}[{i}] must be an object")
                try:
                    out.append(factory(item))
                except KeyError as ex:
                    raise ValueError(f"{key}[{i}] missing field {ex.args[0]!r}") from ex
            return tuple(out)

        return cls(
            schedules=_records("schedules", Schedule.from_dict),
            tasks=_records("tasks", Task.from_dict),
            instances=_records("taskInstances", TaskInstance.from_dict),
            chunk_instances=_records("chunkInstances", ChunkInstance.from_dict),
            links=_records("taskLinks", TaskLink.from_dict),
        )

    def to_dict(self) -> JsonDict:
        return {
            "schedules": [s.to_dict() for s in self.schedules],
            "tasks": [t.to_dict() for t in self.tasks],
            "taskInstances": [i.to_dict() for i in self.instances],
            "chunkInstances": [c.to_dict() for c in self.chunk_instances],
            "taskLinks": [l.to_dict() for l in self.links],
        }


@dataclass(frozen=True)
class RecordPatch:
    """Field changes for one existing record, keyed by attribute name."""

    record_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Mutations:
    add_tasks: Tuple[Task, ...] = ()
    add_links: Tuple[TaskLink, ...] = ()
    add_instances: Tuple[TaskInstance, ...] = ()
    add_chunk_instances: Tuple[ChunkInstance, ...] = ()
    instance_patches: Tuple[RecordPatch, ...] = ()
    chunk_patches: Tuple[RecordPatch, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not any(
            (
                self.add_tasks,
                self.add_links,
                self.add_instances,
                self.add_chunk_instances,
                self.instance_patches,
                self.chunk_patches,
            )
        )

    def merge(self, other: "Mutations") -> "Mutations":
        return Mutations(
            add_tasks=self.add_tasks + other.add_tasks,
            add_links=self.add_links + other.add_links,
            add_instances=self.add_instances + other.add_instances,
            add_chunk_instances=self.add_chunk_instances + other.add_chunk_instances,
            instance_patches=self.instance_patches + other.instance_patches,
            chunk_patches=self.chunk_patches + other.chunk_patches,
        )


def _patch_records(records: Iterable[R], patches: Tuple[RecordPatch, ...], *, label: str) -> Tuple[R, ...]:
    out = list(records)
    pos = {getattr(r, "id"): i for i, r in enumerate(out)}
    for p in patches:
        i = pos.get(p.record_id)
        if i is None:
            raise ValueError(f"{label} patch refers to unknown id: {p.record_id}")
        out[i] = dataclasses.replace(out[i], **p.changes)
    return tuple(out)


def apply_mutations(snapshot: Snapshot, mutations: Mutations) -> Snapshot:
    """Reference host apply step: append new records, then patch by id."""
    instances = _patch_records(
        snapshot.instances + mutations.add_instances, mutations.instance_patches, label="instance"
    )
    chunk_instances = _patch_records(
        snapshot.chunk_instances + mutations.add_chunk_instances, mutations.chunk_patches, label="chunk instance"
    )
    return Snapshot(
        schedules=snapshot.schedules,
        tasks=snapshot.tasks + mutations.add_tasks,
        instances=instances,
        chunk_instances=chunk_instances,
        links=snapshot.links + mutations.add_links,
    )


def _require(cond: bool, msg: str, errs: List[str]) -> None:
    if not cond:
        errs.append(msg)


def _dupes(ids: Iterable[str], label: str, errs: List[str]) -> None:
    seen = set()
    for i in ids:
        if i in seen:
            errs.append(f"duplicate {label} id: {i}")
        seen.add(i)


def _is_hhmm(s: str) -> bool:
    try:
        parse_hhmm(s)
    except ValueError:
        return False
    return True


def _is_date(s: str) -> bool:
    try:
        parse_date_yyyy_mm_dd(s)
    except ValueError:
        return False
    return True


def validate_snapshot(snapshot: Snapshot) -> List[str]:
    """Check foreign keys, value domains and the instance uniqueness invariants."""
    errs: List[str] = []

    _dupes((s.id for s in snapshot.schedules), "schedule", errs)
    _dupes((t.id for t in snapshot.tasks), "task", errs)
    _dupes((i.id for i in snapshot.instances), "instance", errs)
    _dupes((c.id for c in snapshot.chunk_instances), "chunk instance", errs)
    _dupes((l.id for l in snapshot.links), "link", errs)

    for s in snapshot.schedules:
        if not (_is_hhmm(s.start_time) and _is_hhmm(s.end_time)):
            errs.append(f"schedule {s.id}: malformed startTime/endTime")
            continue
        ok = time_to_minutes(s.start_time) < time_to_minutes(s.end_time)
        _require(ok, f"schedule {s.id}: startTime must be before endTime", errs)

    schedule_ids = {s.id for s in snapshot.schedules}
    tasks = {t.id: t for t in snapshot.tasks}
    top_level = {t.id for t in snapshot.tasks if not t.is_chunk}

    for t in snapshot.tasks:
        _require(t.priority in PRIORITIES, f"task {t.id}: priority must be 1..4", errs)
        _require(t.recurrence in RECURRENCES, f"task {t.id}: unknown recurrence {t.recurrence!r}", errs)
        if t.is_chunk:
            _require(t.parent_id in top_level, f"chunk {t.id}: parentId must reference a top-level task", errs)
            _require(not t.schedule_ids, f"chunk {t.id}: chunks carry no scheduleIds", errs)
        for sid in t.schedule_ids:
            _require(sid in schedule_ids, f"task {t.id}: unknown schedule {sid}", errs)
        _require(_is_date(date_of_timestamp(t.created_at)), f"task {t.id}: malformed createdAt {t.created_at!r}", errs)
        if t.start_date:
            _require(_is_date(date_of_timestamp(t.start_date)), f"task {t.id}: malformed startDate {t.start_date!r}", errs)
        if t.recurrence_end:
            _require(
                _is_date(date_of_timestamp(t.recurrence_end)),
                f"task {t.id}: recurrenceEnd must be YYYY-MM-DD, got {t.recurrence_end!r}",
                errs,
            )

    instances = {i.id: i for i in snapshot.instances}
    plain_keys = set()
    triggered_keys = set()
    for i in snapshot.instances:
        _require(i.task_id in top_level, f"instance {i.id}: taskId must reference a top-level task", errs)
        _require(_is_date(i.date), f"instance {i.id}: date must be YYYY-MM-DD, got {i.date!r}", errs)
        if i.start_time:
            _require(_is_hhmm(i.start_time), f"instance {i.id}: malformed startTime {i.start_time!r}", errs)
        if i.is_triggered:
            key = (i.task_id, i.date, i.triggered_by_link_id)
            _require(key not in triggered_keys, f"instance {i.id}: duplicate triggered occurrence {key}", errs)
            triggered_keys.add(key)
        else:
            key2 = (i.task_id, i.date)
            _require(key2 not in plain_keys, f"instance {i.id}: duplicate occurrence {key2}", errs)
            plain_keys.add(key2)

    for c in snapshot.chunk_instances:
        owner = instances.get(c.task_instance_id)
        chunk = tasks.get(c.chunk_id)
        if owner is None or chunk is None:
            # Orphans are harmless; only mismatched ownership is an error.
            continue
        _require(
            chunk.parent_id == owner.task_id,
            f"chunk instance {c.id}: chunk {c.chunk_id} does not belong to task {owner.task_id}",
            errs,
        )

    for l in snapshot.links:
        _require(l.trigger_task_id in top_level, f"link {l.id}: triggerTaskId must reference a top-level task", errs)
        _require(l.linked_task_id in top_level, f"link {l.id}: linkedTaskId must reference a top-level task", errs)
        _require(l.delay_minutes >= 0, f"link {l.id}: delayMinutes must be >= 0", errs)

    cycle = find_link_cycle(snapshot.links)
    if cycle:
        errs.append("link cycle: " + " -> ".join(cycle))

    return errs


def assert_valid_snapshot(snapshot: Snapshot) -> None:
    errs = validate_snapshot(snapshot)
    if errs:
        raise SnapshotValidationError("Invalid snapshot:\n" + "\n".join(f"  - {e}" for e in errs))
