"""dayplan.api

Stable *library* entrypoint for dayplan.

Policy:
  - Only names listed in __all__ are considered public API.
  - Everything else is internal and may change without notice.
"""

from __future__ import annotations

from dayplan.active import active_schedule, display_schedule, tasks_for_schedule
from dayplan.agenda import AgendaBlock, AgendaEntry, DayAgenda, build_day_agenda
from dayplan.cascade import LinkCycleError, cascade_completion, validate_new_link
from dayplan.linkgraph import find_link_cycle
from dayplan.config import DEFAULT_SCHEDULES, EngineConfig, config_from_env
from dayplan.engine import (
    RescheduleResult,
    TaskDraft,
    create_task,
    reschedule_now,
    toggle_chunk_instance,
    toggle_task_instance,
)
from dayplan.materialize import InstanceIndex, chunks_for_task, find_instance, materialize
from dayplan.model import (
    BatchPlan,
    ChunkInstance,
    Placement,
    Schedule,
    ScheduledTask,
    Slot,
    Task,
    TaskInstance,
    TaskLink,
)
from dayplan.recurrence import occurrence_dates, should_appear
from dayplan.slots import available_slots, batch_schedule, place_one, plan_batch
from dayplan.snapshot import (
    Mutations,
    RecordPatch,
    Snapshot,
    SnapshotValidationError,
    apply_mutations,
    assert_valid_snapshot,
    validate_snapshot,
)
from dayplan.store import load_snapshot_from_json, save_snapshot_to_json
from dayplan.util.timeparse import minutes_to_time, time_to_minutes

__all__ = [
    # records
    "Schedule",
    "Task",
    "TaskInstance",
    "ChunkInstance",
    "TaskLink",
    "Slot",
    "Placement",
    "ScheduledTask",
    "BatchPlan",
    # snapshot / mutations
    "Snapshot",
    "Mutations",
    "RecordPatch",
    "SnapshotValidationError",
    "apply_mutations",
    "validate_snapshot",
    "assert_valid_snapshot",
    "load_snapshot_from_json",
    "save_snapshot_to_json",
    # config
    "EngineConfig",
    "DEFAULT_SCHEDULES",
    "config_from_env",
    # time arithmetic
    "time_to_minutes",
    "minutes_to_time",
    # recurrence / materialization
    "should_appear",
    "occurrence_dates",
    "materialize",
    "find_instance",
    "chunks_for_task",
    "InstanceIndex",
    # slot allocation
    "available_slots",
    "place_one",
    "batch_schedule",
    "plan_batch",
    # display
    "active_schedule",
    "display_schedule",
    "tasks_for_schedule",
    "build_day_agenda",
    "DayAgenda",
    "AgendaBlock",
    "AgendaEntry",
    # links
    "cascade_completion",
    "find_link_cycle",
    "validate_new_link",
    "LinkCycleError",
    # flows
    "TaskDraft",
    "RescheduleResult",
    "create_task",
    "toggle_task_instance",
    "toggle_chunk_instance",
    "reschedule_now",
]
