from __future__ import annotations

import datetime
import sys
from pathlib import Path
from typing import Tuple

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from generator.api import assign_support_to_teacher_tasks, schedule_support_self_care  # noqa: E402
from roster import UNSCHEDULED, DaySnapshot, Support  # noqa: E402
from tasks import NO_ROOM, Task, TaskKind  # noqa: E402
from validation import validate_day_schedule  # noqa: E402

DAY = datetime.date(2025, 10, 13)


def _at(hour: int, minute: int = 0) -> datetime.datetime:
    return datetime.datetime.combine(DAY, datetime.time(hour, minute))


def _support(name: str, start: Tuple[int, int], end: Tuple[int, int]) -> Support:
    return Support(name=name, start=datetime.time(*start), end=datetime.time(*end))


def _booked(support: Support, start: datetime.datetime, end: datetime.datetime) -> Task:
    return Task("101", "Avery", support.name, TaskKind.COVERAGE, start, end, 5)


@pytest.fixture
def morgan_day():
    support = _support("Morgan", (7, 0), (15, 0))
    return DaySnapshot.build(DAY, supports=[support])


def test_breaks_and_free_time_fill_the_day(morgan_day) -> None:
    mapping = assign_support_to_teacher_tasks(morgan_day, [])
    schedule_support_self_care(morgan_day, mapping)
    timeline = [(task.kind, task.start, task.effective_end) for task in mapping["Morgan"]]

    assert timeline == [
        (TaskKind.IDLE, _at(7), _at(10)),
        (TaskKind.BREAK, _at(10), _at(10, 15)),
        (TaskKind.IDLE, _at(10, 15), _at(11)),
        (TaskKind.LUNCH, _at(11), _at(11, 30)),
        (TaskKind.IDLE, _at(11, 30), _at(13)),
        (TaskKind.BREAK, _at(13), _at(13, 15)),
        (TaskKind.IDLE, _at(13, 15), _at(15)),
    ]
    assert all(task.room == NO_ROOM and task.teacher_name == "Morgan" for task in mapping["Morgan"])
    assert mapping[UNSCHEDULED] == []

    report = validate_day_schedule(morgan_day, [], mapping)
    assert report["issues"] == []


def test_lunch_placed_when_no_hold_exists(morgan_day) -> None:
    mapping = schedule_support_self_care(morgan_day, {})
    lunches = [task for task in mapping["Morgan"] if task.kind is TaskKind.LUNCH]
    assert [(task.start, task.end) for task in lunches] == [(_at(11), _at(11, 30))]


def test_short_shift_only_gets_free_time() -> None:
    support = _support("Sam", (9, 0), (11, 0))
    day = DaySnapshot.build(DAY, supports=[support])
    mapping = schedule_support_self_care(day, {})
    assert [(task.kind, task.start, task.end) for task in mapping["Sam"]] == [(TaskKind.IDLE, _at(9), _at(11))]
    assert mapping["Sam"][0].task_name == "Free"


def test_fully_booked_support_gets_unscheduled_break() -> None:
    support = _support("Alex", (7, 0), (10, 0))
    day = DaySnapshot.build(DAY, supports=[support])
    mapping = {"Alex": [_booked(support, _at(7), _at(9, 55))], UNSCHEDULED: []}
    schedule_support_self_care(day, mapping)

    assert [task.kind for task in mapping["Alex"]] == [TaskKind.COVERAGE]
    unscheduled = mapping[UNSCHEDULED]
    assert [(task.kind, task.start, task.end) for task in unscheduled] == [(TaskKind.BREAK, _at(9, 45), _at(9, 55))]
    assert unscheduled[0].support_name == UNSCHEDULED
    assert unscheduled[0].teacher_name == "Alex"
    assert unscheduled[0].room == NO_ROOM


def test_fully_booked_long_shift_gets_unscheduled_lunch() -> None:
    support = _support("Alex", (7, 0), (13, 0))
    day = DaySnapshot.build(DAY, supports=[support])
    mapping = {"Alex": [_booked(support, _at(7), _at(12, 55))]}
    schedule_support_self_care(day, mapping)

    unscheduled = mapping[UNSCHEDULED]
    lunches = [task for task in unscheduled if task.kind is TaskKind.LUNCH]
    breaks = [task for task in unscheduled if task.kind is TaskKind.BREAK]
    assert [(task.start, task.end) for task in lunches] == [(_at(11), _at(11, 30))]
    assert [task.start for task in breaks] == [_at(10), _at(12, 45)]
    assert all(task.teacher_name == "Alex" for task in unscheduled)


def test_self_care_breaks_include_buffer_inside_free_window() -> None:
    support = _support("Riley", (9, 30), (15, 0))
    day = DaySnapshot.build(DAY, supports=[support])
    mapping = {
        "Riley": [
            _booked(support, _at(9, 30), _at(9, 40)),
            Task("101", "Avery", "Riley", TaskKind.COVERAGE, _at(11), _at(11, 30), 0),
            Task(NO_ROOM, "Riley", "Riley", TaskKind.LUNCH, _at(12, 15), _at(12, 45), 0),
            _booked(support, _at(13, 30), _at(13, 40)),
        ]
    }
    schedule_support_self_care(day, mapping)
    breaks = [task for task in mapping["Riley"] if task.kind is TaskKind.BREAK]
    assert [(task.start, task.effective_end) for task in breaks] == [(_at(12), _at(12, 15))]
    report = validate_day_schedule(day, [], mapping)
    # No teacher tasks were passed in, so only the conservation count disagrees.
    assert {issue["type"] for issue in report["issues"]} == {"conservation"}


def test_missing_mapping_raises(morgan_day) -> None:
    with pytest.raises(ValueError):
        schedule_support_self_care(morgan_day, None)
