from __future__ import annotations

import datetime
import sys
import unittest
from pathlib import Path
from typing import Tuple

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from generator.assignment import AssignmentState, SupportAssignmentEngine  # noqa: E402
from roster import UNSCHEDULED, DaySnapshot, RoomPreference, Support, Teacher  # noqa: E402
from tasks import NO_ROOM, Task, TaskKind  # noqa: E402

DAY = datetime.date(2025, 10, 13)


def _at(hour: int, minute: int = 0) -> datetime.datetime:
    return datetime.datetime.combine(DAY, datetime.time(hour, minute))


def _support(name: str, start: Tuple[int, int], end: Tuple[int, int]) -> Support:
    return Support(name=name, start=datetime.time(*start), end=datetime.time(*end))


def _teacher(name: str, room: str, start: Tuple[int, int] = (7, 0), end: Tuple[int, int] = (15, 0)) -> Teacher:
    return Teacher(name=name, room=room, start=datetime.time(*start), end=datetime.time(*end))


def _break(teacher: Teacher, hour: int, minute: int = 0) -> Task:
    start = _at(hour, minute)
    return Task(teacher.room, teacher.name, None, TaskKind.COVERAGE, start, start + datetime.timedelta(minutes=10), 5)


def _lunch(teacher: Teacher, hour: int, minute: int = 0) -> Task:
    start = _at(hour, minute)
    return Task(teacher.room, teacher.name, None, TaskKind.COVERAGE, start, start + datetime.timedelta(minutes=30), 0)


def _coverage(mapping, name):
    return [task for task in mapping.get(name, []) if task.kind is TaskKind.COVERAGE]


class SupportAssignmentTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = SupportAssignmentEngine()
        self.avery = _teacher("Avery", "101")
        self.blake = _teacher("Blake", "102")

    def test_room_preference_beats_name_order(self) -> None:
        day = DaySnapshot.build(
            DAY,
            teachers=[self.avery],
            supports=[_support("Alex", (7, 0), (15, 0)), _support("Blair", (7, 0), (15, 0))],
            preferences=[RoomPreference("101", "Blair")],
        )
        mapping = self.engine.assign(day, [_break(self.avery, 9)])
        self.assertEqual(len(_coverage(mapping, "Blair")), 1)
        self.assertEqual(_coverage(mapping, "Alex"), [])

    def test_ties_go_to_alphabetical_support(self) -> None:
        day = DaySnapshot.build(
            DAY,
            teachers=[self.avery],
            supports=[_support("Blair", (7, 0), (15, 0)), _support("Alex", (7, 0), (15, 0))],
        )
        mapping = self.engine.assign(day, [_break(self.avery, 9)])
        self.assertEqual([task.support_name for task in _coverage(mapping, "Alex")], ["Alex"])

    def test_room_continuity_keeps_same_support(self) -> None:
        day = DaySnapshot.build(
            DAY,
            teachers=[self.blake],
            supports=[_support("Alex", (9, 30), (15, 0)), _support("Blair", (7, 0), (15, 0))],
        )
        mapping = self.engine.assign(day, [_break(self.blake, 9), _break(self.blake, 10)])
        # Only Blair can take 09:00; the 10:00 task then follows the room.
        self.assertEqual([task.start for task in _coverage(mapping, "Blair")], [_at(9), _at(10)])
        self.assertEqual(_coverage(mapping, "Alex"), [])

    def test_flex_picks_smallest_shift_around_lunch_hold(self) -> None:
        day = DaySnapshot.build(DAY, teachers=[self.avery], supports=[_support("Alex", (7, 0), (15, 0))])
        mapping = self.engine.assign(day, [_break(self.avery, 11)])
        placed = _coverage(mapping, "Alex")
        self.assertEqual([(task.start, task.end) for task in placed], [(_at(10, 45), _at(10, 55))])
        self.assertEqual(placed[0].buffer_after_minutes, 5)

    def test_flex_respects_support_shift_start(self) -> None:
        day = DaySnapshot.build(DAY, teachers=[self.avery], supports=[_support("Riley", (9, 30), (15, 0))])
        mapping = self.engine.assign(day, [_break(self.avery, 9)])
        self.assertEqual([task.start for task in _coverage(mapping, "Riley")], [_at(9, 30)])

    def test_morning_break_pushed_into_afternoon(self) -> None:
        day = DaySnapshot.build(DAY, teachers=[self.avery], supports=[_support("Sam", (12, 0), (15, 0))])
        mapping = self.engine.assign(day, [_break(self.avery, 9)])
        placed = _coverage(mapping, "Sam")
        self.assertEqual([(task.start, task.end) for task in placed], [(_at(12), _at(12, 10))])
        self.assertEqual(mapping[UNSCHEDULED], [])

    def test_lunch_coverage_is_never_pushed(self) -> None:
        day = DaySnapshot.build(DAY, teachers=[self.avery], supports=[_support("Sam", (12, 0), (15, 0))])
        mapping = self.engine.assign(day, [_lunch(self.avery, 11)])
        self.assertEqual(_coverage(mapping, "Sam"), [])
        self.assertEqual([task.start for task in mapping[UNSCHEDULED]], [_at(11)])

    def test_unplaceable_task_lands_in_unscheduled(self) -> None:
        day = DaySnapshot.build(DAY, teachers=[self.avery])
        task = _break(self.avery, 9)
        mapping = self.engine.assign(day, [task])
        self.assertEqual(list(mapping), [UNSCHEDULED])
        unscheduled = mapping[UNSCHEDULED]
        self.assertEqual(len(unscheduled), 1)
        self.assertEqual(unscheduled[0].support_name, UNSCHEDULED)
        self.assertEqual((unscheduled[0].start, unscheduled[0].end), (task.start, task.end))
        self.assertIsNone(task.support_name)

    def test_lunch_holds_placed_before_coverage(self) -> None:
        day = DaySnapshot.build(
            DAY,
            supports=[
                _support("Morgan", (7, 0), (15, 0)),
                _support("Riley", (9, 30), (15, 0)),
                _support("Sam", (11, 0), (15, 0)),
            ],
        )
        mapping = self.engine.assign(day, [])
        morgan = mapping["Morgan"]
        self.assertEqual([(task.kind, task.start, task.end) for task in morgan], [(TaskKind.LUNCH, _at(11), _at(11, 30))])
        self.assertEqual(morgan[0].room, NO_ROOM)
        self.assertEqual(morgan[0].teacher_name, "Morgan")
        self.assertEqual([task.start for task in mapping["Riley"]], [_at(12, 15)])
        self.assertEqual(mapping["Sam"], [])

    def test_lunch_length_tasks_claim_support_first(self) -> None:
        day = DaySnapshot.build(
            DAY,
            teachers=[self.avery, self.blake],
            supports=[_support("Alex", (7, 0), (11, 0))],
        )
        mapping = self.engine.assign(day, [_break(self.avery, 10), _lunch(self.blake, 10)])
        placed = {task.teacher_name: task for task in _coverage(mapping, "Alex")}
        self.assertEqual(placed["Blake"].start, _at(10))
        self.assertEqual(placed["Avery"].start, _at(9, 45))

    def test_reservations_never_overlap(self) -> None:
        teachers = [_teacher(f"T{index}", str(100 + index)) for index in range(5)]
        day = DaySnapshot.build(
            DAY,
            teachers=teachers,
            supports=[_support("Alex", (7, 0), (15, 0)), _support("Blair", (8, 0), (14, 0))],
        )
        tasks = [_break(teacher, 9) for teacher in teachers] + [_lunch(teacher, 12) for teacher in teachers]
        mapping = self.engine.assign(day, tasks)
        for name in ("Alex", "Blair"):
            ordered = sorted(mapping[name], key=lambda item: item.start)
            for previous, current in zip(ordered, ordered[1:]):
                self.assertLessEqual(previous.effective_end, current.start)
        placed = sum(len(_coverage(mapping, name)) for name in mapping)
        self.assertEqual(placed, len(tasks))

    def test_untouched_support_counts_as_idle(self) -> None:
        first = _teacher("T1", "101", (7, 0), (11, 0))
        second = _teacher("T2", "102", (7, 30), (11, 30))
        day = DaySnapshot.build(
            DAY,
            teachers=[first, second],
            supports=[_support("Amy", (9, 15), (11, 0)), _support("Bob", (7, 0), (11, 0))],
        )
        mapping = self.engine.assign(day, [_break(first, 9), _break(second, 9, 30)])
        # Bob is busy until 09:15, so the 09:30 task stays with him rather than waking Amy.
        self.assertEqual(
            [(task.teacher_name, task.start) for task in _coverage(mapping, "Bob")],
            [("T1", _at(9)), ("T2", _at(9, 30))],
        )
        self.assertEqual(_coverage(mapping, "Amy"), [])

    def test_long_gap_since_last_task_is_penalized(self) -> None:
        teachers = [_teacher(f"T{index}", str(100 + index), (7, 0), (11, 0)) for index in range(3)]
        day = DaySnapshot.build(
            DAY,
            teachers=teachers,
            supports=[_support("Amy", (7, 0), (11, 0)), _support("Bob", (7, 0), (11, 0))],
        )
        tasks = [_break(teachers[0], 7, 0), _break(teachers[1], 7, 10), _break(teachers[2], 8, 10)]
        mapping = self.engine.assign(day, tasks)
        by_teacher = {
            task.teacher_name: task.support_name for name in ("Amy", "Bob") for task in _coverage(mapping, name)
        }
        # T1 overlaps Amy, so Bob takes it. At 08:10 Amy has been free 55 min, Bob exactly 45 min.
        self.assertEqual(by_teacher, {"T0": "Amy", "T1": "Bob", "T2": "Bob"})

    def test_missing_inputs_raise(self) -> None:
        day = DaySnapshot.build(DAY)
        with self.assertRaises(ValueError):
            self.engine.assign(None, [])
        with self.assertRaises(ValueError):
            self.engine.assign(day, None)


class AssignmentStateTests(unittest.TestCase):
    def test_double_reservation_rejected(self) -> None:
        state = AssignmentState.for_supports([_support("Alex", (7, 0), (15, 0))])
        state.reserve("Alex", _at(9), _at(9, 15))
        self.assertTrue(state.is_free("Alex", _at(9, 15), _at(9, 30)))
        with self.assertRaises(RuntimeError):
            state.reserve("Alex", _at(9, 10), _at(9, 20))
        self.assertEqual(state.last_effective_end("Alex"), _at(9, 15))

    def test_unscheduled_bucket_is_last(self) -> None:
        state = AssignmentState.for_supports([_support("Alex", (7, 0), (15, 0))])
        self.assertEqual(list(state.by_support), ["Alex", UNSCHEDULED])


if __name__ == "__main__":
    unittest.main()
