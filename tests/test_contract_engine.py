from __future__ import annotations

import datetime as dt
import itertools
import unittest

from dayplan.engine import TaskDraft, create_task, reschedule_now, toggle_chunk_instance, toggle_task_instance
from dayplan.model import ChunkInstance, Schedule, Task, TaskInstance, TaskLink
from dayplan.snapshot import Snapshot, apply_mutations, validate_snapshot

SCHEDULES = (
    Schedule(id="morning", name="Morning", start_time="06:00", end_time="12:00"),
    Schedule(id="afternoon", name="Afternoon", start_time="12:00", end_time="18:00"),
    Schedule(id="evening", name="Evening", start_time="18:00", end_time="22:00"),
)

DAY = "2024-01-15"
NOW = dt.datetime(2024, 1, 15, 10, 0)


def _ids(prefix: str = "new"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def _task(tid: str, schedule_ids, *, duration: int = 30, priority: int = 2, parent_id=None) -> Task:
    return Task(
        id=tid,
        title=tid,
        priority=priority,
        schedule_ids=tuple(schedule_ids),
        recurrence="daily" if parent_id is None else "none",
        created_at="2024-01-01T08:00:00",
        duration=duration,
        parent_id=parent_id,
    )


def _linked_snapshot() -> Snapshot:
    return Snapshot(
        schedules=SCHEDULES,
        tasks=(_task("trigger", ["morning"]), _task("x", ["afternoon"], duration=15)),
        instances=(TaskInstance(id="ti", task_id="trigger", date=DAY),),
        links=(TaskLink(id="L1", trigger_task_id="trigger", linked_task_id="x", delay_minutes=30),),
    )


class TestToggleTaskInstanceContract(unittest.TestCase):
    def test_complete_runs_cascade(self) -> None:
        snap = _linked_snapshot()
        muts = toggle_task_instance(snap, "ti", NOW, new_id=_ids())

        self.assertEqual(muts.instance_patches[0].record_id, "ti")
        self.assertEqual(
            muts.instance_patches[0].changes, {"completed": True, "completed_at": "2024-01-15T10:00:00"}
        )
        self.assertEqual([(i.task_id, i.start_time) for i in muts.add_instances], [("x", "12:00")])

    def test_uncomplete_does_not_cascade_or_retract(self) -> None:
        snap = apply_mutations(_linked_snapshot(), toggle_task_instance(_linked_snapshot(), "ti", NOW, new_id=_ids()))
        muts = toggle_task_instance(snap, "ti", NOW + dt.timedelta(minutes=5), new_id=_ids("b"))

        self.assertEqual(muts.add_instances, ())
        self.assertEqual(len(muts.instance_patches), 1)
        self.assertEqual(muts.instance_patches[0].changes, {"completed": False, "completed_at": None})

        after = apply_mutations(snap, muts)
        self.assertEqual(len([i for i in after.instances if i.task_id == "x"]), 1)

    def test_recomplete_keeps_one_dependent_per_key(self) -> None:
        snap = _linked_snapshot()
        ids = _ids()
        for minutes in (0, 5, 20):
            snap = apply_mutations(snap, toggle_task_instance(snap, "ti", NOW + dt.timedelta(minutes=minutes), new_id=ids))

        self.assertTrue(snap.instance_by_id("ti").completed)
        dependents = [i for i in snap.instances if i.task_id == "x"]
        self.assertEqual(len(dependents), 1)
        self.assertEqual(dependents[0].triggered_by_link_id, "L1")
        self.assertEqual(validate_snapshot(snap), [])

    def test_unknown_instance(self) -> None:
        with self.assertRaises(KeyError):
            toggle_task_instance(_linked_snapshot(), "nope", NOW)


class TestToggleChunkInstanceContract(unittest.TestCase):
    def test_flip_both_ways(self) -> None:
        snap = Snapshot(
            schedules=SCHEDULES,
            tasks=(_task("gym", ["morning"]), _task("warmup", [], parent_id="gym")),
            instances=(TaskInstance(id="gi", task_id="gym", date=DAY),),
            chunk_instances=(ChunkInstance(id="ci", task_instance_id="gi", chunk_id="warmup"),),
        )
        done = apply_mutations(snap, toggle_chunk_instance(snap, "ci", NOW))
        self.assertTrue(done.chunk_instance_by_id("ci").completed)
        self.assertEqual(done.chunk_instance_by_id("ci").completed_at, "2024-01-15T10:00:00")
        self.assertFalse(done.instance_by_id("gi").completed)

        undone = apply_mutations(done, toggle_chunk_instance(done, "ci", NOW))
        self.assertFalse(undone.chunk_instance_by_id("ci").completed)
        self.assertIsNone(undone.chunk_instance_by_id("ci").completed_at)

        with self.assertRaises(KeyError):
            toggle_chunk_instance(snap, "missing", NOW)


class TestCreateTaskContract(unittest.TestCase):
    def test_today_places_from_current_minute(self) -> None:
        snap = Snapshot(schedules=SCHEDULES)
        draft = TaskDraft(title="  Read  ", schedule_ids=("morning", "evening"), priority=2)
        muts = create_task(snap, draft, DAY, NOW, chunk_titles=("Ch. 1", " ", "Ch. 2"), new_id=_ids())

        task = muts.add_tasks[0]
        chunks = muts.add_tasks[1:]
        self.assertEqual(task.title, "Read")
        self.assertEqual(task.created_at, "2024-01-15T10:00:00")
        self.assertIsNone(task.start_date)
        self.assertEqual([c.title for c in chunks], ["Ch. 1", "Ch. 2"])
        for c in chunks:
            self.assertEqual(c.parent_id, task.id)
            self.assertEqual(c.priority, 4)
            self.assertEqual(c.schedule_ids, ())

        inst = muts.add_instances[0]
        self.assertEqual((inst.task_id, inst.date, inst.start_time), (task.id, DAY, "10:00"))
        self.assertEqual(sorted(c.chunk_id for c in muts.add_chunk_instances), sorted(c.id for c in chunks))

        after = apply_mutations(snap, muts)
        self.assertEqual(validate_snapshot(after), [])

    def test_future_date_anchors_start_date(self) -> None:
        snap = Snapshot(schedules=SCHEDULES)
        draft = TaskDraft(title="Dentist", schedule_ids=("afternoon",), recurrence="weekly")
        muts = create_task(snap, draft, "2024-01-20", NOW, new_id=_ids())
        self.assertEqual(muts.add_tasks[0].start_date, "2024-01-20")
        self.assertEqual(muts.add_instances[0].start_time, "12:00")

    def test_past_date_is_left_untimed(self) -> None:
        snap = Snapshot(schedules=SCHEDULES)
        muts = create_task(snap, TaskDraft(title="Old", schedule_ids=("morning",)), "2024-01-10", NOW, new_id=_ids())
        self.assertIsNone(muts.add_instances[0].start_time)

    def test_invalid_drafts(self) -> None:
        snap = Snapshot(schedules=SCHEDULES)
        bad = [
            TaskDraft(title="  ", schedule_ids=("morning",)),
            TaskDraft(title="x", schedule_ids=()),
            TaskDraft(title="x", schedule_ids=("nowhere",)),
            TaskDraft(title="x", schedule_ids=("morning",), priority=5),
            TaskDraft(title="x", schedule_ids=("morning",), recurrence="yearly"),
            TaskDraft(title="x", schedule_ids=("morning",), duration=0),
            TaskDraft(title="x", schedule_ids=("morning",), recurrence="daily", recurrence_end="2024/02/01"),
        ]
        for draft in bad:
            with self.assertRaises(ValueError):
                create_task(snap, draft, DAY, NOW)

    def test_link_to_existing_trigger(self) -> None:
        snap = _linked_snapshot()
        draft = TaskDraft(title="Stretch", schedule_ids=("afternoon",))
        muts = create_task(snap, draft, DAY, NOW, link=("trigger", 15), new_id=_ids())

        self.assertEqual(len(muts.add_links), 1)
        link = muts.add_links[0]
        self.assertEqual((link.trigger_task_id, link.linked_task_id, link.delay_minutes), ("trigger", muts.add_tasks[0].id, 15))

        with self.assertRaises(ValueError):
            create_task(snap, draft, DAY, NOW, link=("trigger", -1))
        with self.assertRaises(ValueError):
            create_task(snap, draft, DAY, NOW, link=("missing", 0))


class TestRescheduleNowContract(unittest.TestCase):
    def test_packs_untimed_open_occurrences(self) -> None:
        snap = Snapshot(
            schedules=SCHEDULES,
            tasks=(
                _task("a", ["morning"], duration=120, priority=1),
                _task("b", ["evening"], duration=400, priority=2),
                _task("c", ["morning"], priority=3),
                _task("d", ["morning"], priority=1),
            ),
            instances=(
                TaskInstance(id="ia", task_id="a", date=DAY),
                TaskInstance(id="ib", task_id="b", date=DAY),
                TaskInstance(id="ic", task_id="c", date=DAY, start_time="11:00"),
                TaskInstance(id="id", task_id="d", date=DAY, completed=True),
            ),
        )
        result = reschedule_now(snap, DAY, dt.datetime(2024, 1, 15, 7, 0))

        patches = {p.record_id: p.changes for p in result.mutations.instance_patches}
        self.assertEqual(patches, {"ia": {"start_time": "07:00"}})
        self.assertEqual(result.dropped, ("ib",))

    def test_occurrences_stay_in_assigned_schedules(self) -> None:
        snap = Snapshot(
            schedules=SCHEDULES,
            tasks=(_task("e", ["evening"]),),
            instances=(TaskInstance(id="ie", task_id="e", date=DAY),),
        )
        result = reschedule_now(snap, DAY, dt.datetime(2024, 1, 15, 7, 0))
        self.assertEqual(result.mutations.instance_patches[0].changes, {"start_time": "18:00"})

    def test_future_day_starts_at_midnight(self) -> None:
        snap = Snapshot(
            schedules=SCHEDULES,
            tasks=(_task("a", ["morning"]),),
            instances=(TaskInstance(id="ia", task_id="a", date="2024-01-16"),),
        )
        result = reschedule_now(snap, "2024-01-16", NOW)
        self.assertEqual(result.mutations.instance_patches[0].changes, {"start_time": "06:00"})

    def test_past_day_is_a_noop(self) -> None:
        snap = Snapshot(
            schedules=SCHEDULES,
            tasks=(_task("a", ["morning"]),),
            instances=(TaskInstance(id="ia", task_id="a", date="2024-01-14"),),
        )
        result = reschedule_now(snap, "2024-01-14", NOW)
        self.assertTrue(result.mutations.is_empty)
        self.assertEqual(result.dropped, ())


if __name__ == "__main__":
    unittest.main(verbosity=2)
