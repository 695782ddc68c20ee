# dayplan/model.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

JsonDict = Dict[str, Any]

RECURRENCE_NONE = "none"
RECURRENCE_DAILY = "daily"
RECURRENCE_WEEKLY = "weekly"
RECURRENCE_MONTHLY = "monthly"
RECURRENCES = (RECURRENCE_NONE, RECURRENCE_DAILY, RECURRENCE_WEEKLY, RECURRENCE_MONTHLY)

PRIORITIES = (1, 2, 3, 4)
DEFAULT_DURATION_MIN = 30


def _opt_str(v: Any) -> Optional[str]:
    if isinstance(v, str) and v.strip():
        return v
    return None


def _as_int(v: Any, default: int) -> int:
    if v is None or isinstance(v, bool):
        return default
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return default


@dataclass(frozen=True)
class Schedule:
    id: str
    name: str
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    color: str = "#64748b"
    order: int = 0
    is_default: bool = False

    @classmethod
    def from_dict(cls, d: JsonDict) -> "Schedule":
        return cls(
            id=str(d["id"]),
            name=str(d.get("name") or ""),
            start_time=str(d["startTime"]),
            end_time=str(d["endTime"]),
            color=str(d.get("color") or "#64748b"),
            order=_as_int(d.get("order"), 0),
            is_default=bool(d.get("isDefault", False)),
        )

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "color": self.color,
            "order": self.order,
            "isDefault": self.is_default,
        }


@dataclass(frozen=True)
class Task:
    """Template for recurring work. `parent_id` set means it is a chunk."""

    id: str
    title: str
    priority: int
    schedule_ids: Tuple[str, ...]
    recurrence: str
    created_at: str  # ISO timestamp
    recurrence_end: Optional[str] = None  # YYYY-MM-DD
    parent_id: Optional[str] = None
    start_date: Optional[str] = None
    duration: int = DEFAULT_DURATION_MIN
    description: Optional[str] = None

    @property
    def is_chunk(self) -> bool:
        return self.parent_id is not None

    @classmethod
    def from_dict(cls, d: JsonDict) -> "Task":
        sids = d.get("scheduleIds") or []
        return cls(
            id=str(d["id"]),
            title=str(d.get("title") or ""),
            priority=_as_int(d.get("priority"), 4),
            schedule_ids=tuple(str(x) for x in sids if isinstance(x, str)),
            recurrence=str(d.get("recurrence") or RECURRENCE_NONE),
            created_at=str(d["createdAt"]),
            recurrence_end=_opt_str(d.get("recurrenceEnd")),
            parent_id=_opt_str(d.get("parentId")),
            start_date=_opt_str(d.get("startDate")),
            duration=_as_int(d.get("duration"), DEFAULT_DURATION_MIN),
            description=_opt_str(d.get("description")),
        )

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "scheduleIds": list(self.schedule_ids),
            "recurrence": self.recurrence,
            "recurrenceEnd": self.recurrence_end,
            "parentId": self.parent_id,
            "startDate": self.start_date,
            "duration": self.duration,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class TaskInstance:
    id: str
    task_id: str
    date: str  # YYYY-MM-DD
    completed: bool = False
    completed_at: Optional[str] = None
    start_time: Optional[str] = None  # HH:MM
    triggered_by_link_id: Optional[str] = None

    @property
    def is_triggered(self) -> bool:
        return self.triggered_by_link_id is not None

    @classmethod
    def from_dict(cls, d: JsonDict) -> "TaskInstance":
        return cls(
            id=str(d["id"]),
            task_id=str(d["taskId"]),
            date=str(d["date"]),
            completed=bool(d.get("completed", False)),
            completed_at=_opt_str(d.get("completedAt")),
            start_time=_opt_str(d.get("startTime")),
            triggered_by_link_id=_opt_str(d.get("triggeredByLinkId")),
        )

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "date": self.date,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "startTime": self.start_time,
            "triggeredByLinkId": self.triggered_by_link_id,
        }


@dataclass(frozen=True)
class ChunkInstance:
    id: str
    task_instance_id: str
    chunk_id: str
    completed: bool = False
    completed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, d: JsonDict) -> "ChunkInstance":
        return cls(
            id=str(d["id"]),
            task_instance_id=str(d["taskInstanceId"]),
            chunk_id=str(d["chunkId"]),
            completed=bool(d.get("completed", False)),
            completed_at=_opt_str(d.get("completedAt")),
        )

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "taskInstanceId": self.task_instance_id,
            "chunkId": self.chunk_id,
            "completed": self.completed,
            "completedAt": self.completed_at,
        }


@dataclass(frozen=True)
class TaskLink:
    id: str
    trigger_task_id: str
    linked_task_id: str
    delay_minutes: int = 0

    @classmethod
    def from_dict(cls, d: JsonDict) -> "TaskLink":
        return cls(
            id=str(d["id"]),
            trigger_task_id=str(d["triggerTaskId"]),
            linked_task_id=str(d["linkedTaskId"]),
            delay_minutes=_as_int(d.get("delayMinutes"), 0),
        )

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "triggerTaskId": self.trigger_task_id,
            "linkedTaskId": self.linked_task_id,
            "delayMinutes": self.delay_minutes,
        }


# Allocator-facing types


@dataclass(frozen=True)
class Slot:
    """Remaining capacity of one schedule from `start_minutes` to its end."""

    schedule_id: str
    start_minutes: int  # effective start: max(schedule start, cursor)
    end_minutes: int

    @property
    def capacity(self) -> int:
        return self.end_minutes - self.start_minutes


@dataclass(frozen=True)
class Placement:
    schedule_id: str
    start_time: str


@dataclass(frozen=True)
class ScheduledTask:
    task_id: str
    schedule_id: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class BatchPlan:
    scheduled: Tuple[ScheduledTask, ...]
    dropped: Tuple[str, ...]  # task ids that fit nowhere, in priority order


__all__ = [
    "JsonDict",
    "RECURRENCE_NONE",
    "RECURRENCE_DAILY",
    "RECURRENCE_WEEKLY",
    "RECURRENCE_MONTHLY",
    "RECURRENCES",
    "PRIORITIES",
    "DEFAULT_DURATION_MIN",
    "Schedule",
    "Task",
    "TaskInstance",
    "ChunkInstance",
    "TaskLink",
    "Slot",
    "Placement",
    "ScheduledTask",
    "BatchPlan",
]
