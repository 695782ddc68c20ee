from __future__ import annotations

import unittest

from dayplan.config import EngineConfig
from dayplan.model import Placement, Schedule, Task, TaskInstance
from dayplan.slots import available_slots, batch_schedule, place_one, plan_batch

SCHEDULES = (
    Schedule(id="morning", name="Morning", start_time="06:00", end_time="12:00"),
    Schedule(id="afternoon", name="Afternoon", start_time="12:00", end_time="18:00"),
    Schedule(id="evening", name="Evening", start_time="18:00", end_time="22:00"),
)

DAY = "2024-01-15"


def _task(tid: str, schedule_ids, *, duration: int = 30, priority: int = 2) -> Task:
    return Task(
        id=tid,
        title=tid,
        priority=priority,
        schedule_ids=tuple(schedule_ids),
        recurrence="daily",
        created_at="2024-01-01T08:00:00",
        duration=duration,
    )


class TestAvailableSlotsContract(unittest.TestCase):
    def test_chronological_and_clamped_to_now(self) -> None:
        slots = available_slots(tuple(reversed(SCHEDULES)), 420)
        self.assertEqual([s.schedule_id for s in slots], ["morning", "afternoon", "evening"])
        self.assertEqual(slots[0].start_minutes, 420)
        self.assertEqual(slots[0].capacity, 300)
        self.assertEqual(slots[1].start_minutes, 720)

    def test_filter_by_allowed_ids(self) -> None:
        slots = available_slots(SCHEDULES, 420, ["morning", "afternoon"])
        self.assertEqual([s.schedule_id for s in slots], ["morning", "afternoon"])

    def test_elapsed_allowed_schedule_yields_nothing(self) -> None:
        self.assertEqual(available_slots(SCHEDULES, 840, ["morning"]), [])

    def test_schedule_ending_exactly_now_is_dropped(self) -> None:
        slots = available_slots(SCHEDULES, 720)
        self.assertEqual([s.schedule_id for s in slots], ["afternoon", "evening"])

    def test_empty_allowed_set_allows_nothing(self) -> None:
        self.assertEqual(available_slots(SCHEDULES, 0, []), [])


class TestPlaceOneContract(unittest.TestCase):
    def test_skips_slot_with_too_little_time_left(self) -> None:
        task = _task("x", ["morning", "evening"])
        got = place_one(task, SCHEDULES, [], DAY, 710)
        self.assertEqual(got, Placement(schedule_id="evening", start_time="18:00"))

    def test_never_places_into_unassigned_schedule(self) -> None:
        task = _task("x", ["evening"])
        for now in (0, 360, 700, 1000, 1100):
            got = place_one(task, SCHEDULES, [], DAY, now)
            self.assertIsNotNone(got)
            self.assertIn(got.schedule_id, task.schedule_ids)

    def test_equal_capacity_prefers_earlier_slot(self) -> None:
        schedules = (
            Schedule(id="late", name="Late", start_time="10:00", end_time="11:00"),
            Schedule(id="early", name="Early", start_time="08:00", end_time="09:00"),
        )
        task = _task("x", ["late", "early"])
        self.assertEqual(place_one(task, schedules, [], DAY, 0), Placement("early", "08:00"))

    def test_occupants_are_stacked_with_fixed_charge(self) -> None:
        task = _task("x", ["morning"], duration=15)
        existing = [
            TaskInstance(id="a", task_id="other", date=DAY, start_time="09:00"),
            TaskInstance(id="b", task_id="other", date=DAY, start_time="10:00"),
            TaskInstance(id="done", task_id="other", date=DAY, start_time="06:30", completed=True),
            TaskInstance(id="elsewhere", task_id="other", date="2024-01-16", start_time="06:30"),
            TaskInstance(id="untimed", task_id="other", date=DAY),
        ]
        self.assertEqual(place_one(task, SCHEDULES, existing, DAY, 360), Placement("morning", "07:00"))

    def test_occupants_before_cursor_are_not_charged(self) -> None:
        task = _task("x", ["morning"])
        existing = [TaskInstance(id="a", task_id="other", date=DAY, start_time="07:00")]
        self.assertEqual(place_one(task, SCHEDULES, existing, DAY, 480), Placement("morning", "08:00"))

    def test_full_slot_overflows_to_next_assigned(self) -> None:
        task = _task("x", ["morning", "afternoon"])
        existing = [
            TaskInstance(id=f"o{i}", task_id="other", date=DAY, start_time="06:00") for i in range(12)
        ]
        self.assertEqual(place_one(task, SCHEDULES, existing, DAY, 360), Placement("afternoon", "12:00"))

    def test_no_fit_returns_none(self) -> None:
        task = _task("x", ["evening"], duration=300)
        self.assertIsNone(place_one(task, SCHEDULES, [], DAY, 0))

    def test_unassigned_task_returns_none(self) -> None:
        self.assertIsNone(place_one(_task("x", []), SCHEDULES, [], DAY, 0))

    def test_duration_occupancy_mode_charges_template_duration(self) -> None:
        long_task = _task("long", ["morning"], duration=90)
        task = _task("x", ["morning"])
        existing = [TaskInstance(id="a", task_id="long", date=DAY, start_time="06:00")]
        cfg = EngineConfig(occupancy_mode="duration")

        self.assertEqual(
            place_one(task, SCHEDULES, existing, DAY, 360, cfg=cfg, tasks=[long_task, task]),
            Placement("morning", "07:30"),
        )
        self.assertEqual(
            place_one(task, SCHEDULES, existing, DAY, 360, tasks=[long_task, task]),
            Placement("morning", "06:30"),
        )

    def test_excluded_instance_is_not_an_occupant(self) -> None:
        task = _task("x", ["morning"])
        existing = [TaskInstance(id="me", task_id="x", date=DAY, start_time="06:00")]
        self.assertEqual(
            place_one(task, SCHEDULES, existing, DAY, 360, exclude_instance_id="me"),
            Placement("morning", "06:00"),
        )


class TestBatchScheduleContract(unittest.TestCase):
    def test_priority_order_and_running_cursor(self) -> None:
        both = ["morning", "afternoon"]
        tasks = [
            _task("p3", both, duration=60, priority=3),
            _task("p1", both, duration=120, priority=1),
            _task("p2", both, duration=300, priority=2),
        ]
        out = batch_schedule(tasks, SCHEDULES, 360)
        got = {s.task_id: (s.schedule_id, s.start_time, s.end_time) for s in out}
        self.assertEqual([s.task_id for s in out], ["p1", "p2", "p3"])
        self.assertEqual(got["p1"], ("morning", "06:00", "08:00"))
        self.assertEqual(got["p2"], ("afternoon", "12:00", "17:00"))
        self.assertEqual(got["p3"], ("morning", "08:00", "09:00"))

    def test_overflow_is_dropped_but_reported(self) -> None:
        tasks = [_task("ok", ["evening"], duration=60, priority=1), _task("huge", ["evening"], duration=400)]
        self.assertEqual([s.task_id for s in batch_schedule(tasks, SCHEDULES, 0)], ["ok"])

        plan = plan_batch(tasks, SCHEDULES, 0)
        self.assertEqual(plan.dropped, ("huge",))
        self.assertEqual(len(plan.scheduled), 1)

    def test_first_chronological_slot_wins_by_default(self) -> None:
        out = batch_schedule([_task("x", ["evening"])], SCHEDULES, 0)
        self.assertEqual((out[0].schedule_id, out[0].start_time), ("morning", "06:00"))

    def test_assignments_are_opt_in(self) -> None:
        strict = batch_schedule([_task("x", ["evening"])], SCHEDULES, 0, respect_assignments=True)
        self.assertEqual((strict[0].schedule_id, strict[0].start_time), ("evening", "18:00"))

        plan = plan_batch([_task("x", [])], SCHEDULES, 0, respect_assignments=True)
        self.assertEqual(plan.dropped, ("x",))

    def test_nothing_left_today(self) -> None:
        self.assertEqual(batch_schedule([_task("x", ["evening"])], SCHEDULES, 1330), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
