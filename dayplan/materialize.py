# dayplan/materialize.py
"""Ensure every template occurring on a date has its TaskInstance (and chunk instances)."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .model import ChunkInstance, Task, TaskInstance
from .recurrence import should_appear
from .snapshot import IdFactory, Mutations, new_uuid


class InstanceIndex:
    """Composite-key lookup over instances.

    Keys:
      - (task_id, date) for every instance, first one wins
      - (task_id, date, link_id) for triggered instances
    """

    def __init__(self, instances: Iterable[TaskInstance] = ()) -> None:
        self._by_day: Dict[Tuple[str, str], TaskInstance] = {}
        self._by_link: Dict[Tuple[str, str, str], TaskInstance] = {}
        for i in instances:
            self.add(i)

    def add(self, inst: TaskInstance) -> None:
        self._by_day.setdefault((inst.task_id, inst.date), inst)
        if inst.triggered_by_link_id is not None:
            self._by_link.setdefault((inst.task_id, inst.date, inst.triggered_by_link_id), inst)

    def on_day(self, task_id: str, date: str) -> Optional[TaskInstance]:
        return self._by_day.get((task_id, date))

    def triggered(self, task_id: str, date: str, link_id: str) -> Optional[TaskInstance]:
        return self._by_link.get((task_id, date, link_id))


def find_instance(
    instances: Iterable[TaskInstance],
    task_id: str,
    date: str,
    link_id: Optional[str] = None,
) -> Optional[TaskInstance]:
    """First instance of `task_id` on `date`; with `link_id`, the one that link triggered."""
    for i in instances:
        if i.task_id != task_id or i.date != date:
            continue
        if link_id is None or i.triggered_by_link_id == link_id:
            return i
    return None


def chunks_for_task(tasks: Iterable[Task], task_id: str) -> List[Task]:
    return [t for t in tasks if t.parent_id == task_id]


def new_chunk_instances(
    instance_id: str,
    chunks: Sequence[Task],
    *,
    new_id: IdFactory = new_uuid,
) -> Tuple[ChunkInstance, ...]:
    return tuple(
        ChunkInstance(id=new_id(), task_instance_id=instance_id, chunk_id=c.id)
        for c in chunks
    )


def materialize(
    date: str,
    tasks: Sequence[Task],
    existing_instances: Iterable[TaskInstance],
    *,
    new_id: IdFactory = new_uuid,
) -> Mutations:
    """Return the instances (and chunk instances) missing for `date`.

    Idempotent: feeding the result back in as existing instances yields an
    empty batch. Created instances carry no start time.
    """
    index = InstanceIndex(existing_instances)
    add_instances: List[TaskInstance] = []
    add_chunks: List[ChunkInstance] = []

    for task in tasks:
        if task.is_chunk:
            continue
        if index.on_day(task.id, date) is not None:
            continue
        if not should_appear(task, date):
            continue

        inst = TaskInstance(id=new_id(), task_id=task.id, date=date)
        index.add(inst)
        add_instances.append(inst)
        add_chunks.extend(new_chunk_instances(inst.id, chunks_for_task(tasks, task.id), new_id=new_id))

    return Mutations(add_instances=tuple(add_instances), add_chunk_instances=tuple(add_chunks))
