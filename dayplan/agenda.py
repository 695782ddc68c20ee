# dayplan/agenda.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .active import ClockLike, display_schedule
from .model import ChunkInstance, Schedule, Task, TaskInstance
from .snapshot import Snapshot
from .util.timeparse import time_to_minutes


@dataclass(frozen=True)
class AgendaEntry:
    task: Task
    instance: TaskInstance
    chunks: Tuple[Tuple[Task, Optional[ChunkInstance]], ...]

    @property
    def start_time(self) -> Optional[str]:
        return self.instance.start_time


@dataclass(frozen=True)
class AgendaBlock:
    schedule: Schedule
    entries: Tuple[AgendaEntry, ...]


@dataclass(frozen=True)
class DayAgenda:
    date: str
    blocks: Tuple[AgendaBlock, ...]
    unscheduled: Tuple[AgendaEntry, ...]

    @property
    def entry_count(self) -> int:
        return sum(len(b.entries) for b in self.blocks) + len(self.unscheduled)


def _entry_key(e: AgendaEntry) -> tuple:
    st = e.instance.start_time
    return (0 if st else 1, time_to_minutes(st) if st else 0, e.task.priority, e.task.title)


def build_day_agenda(snapshot: Snapshot, date: str, today: str, current_time: ClockLike) -> DayAgenda:
    """Group the occurrences on `date` by the schedule block they display in."""
    schedules = sorted(snapshot.schedules, key=lambda s: time_to_minutes(s.start_time))
    by_block: Dict[str, List[AgendaEntry]] = {s.id: [] for s in schedules}
    unscheduled: List[AgendaEntry] = []

    for inst in snapshot.instances_on(date):
        task = snapshot.task_by_id(inst.task_id)
        if task is None or task.is_chunk:
            continue

        owned = {c.chunk_id: c for c in snapshot.chunk_instances_of(inst.id)}
        chunks = tuple((c, owned.get(c.id)) for c in snapshot.chunks_of(task.id))
        entry = AgendaEntry(task=task, instance=inst, chunks=chunks)

        sid = display_schedule(task, inst, schedules, date, today, current_time)
        if sid is None or sid not in by_block:
            unscheduled.append(entry)
        else:
            by_block[sid].append(entry)

    blocks = tuple(
        AgendaBlock(schedule=s, entries=tuple(sorted(by_block[s.id], key=_entry_key))) for s in schedules
    )
    return DayAgenda(date=date, blocks=blocks, unscheduled=tuple(sorted(unscheduled, key=_entry_key)))
