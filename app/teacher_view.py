from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional

from roster import DaySnapshot
from tasks import Task, TaskKind
from timeutil import format_time

LUNCH_THRESHOLD_MINUTES = 25


@dataclass(frozen=True)
class TeacherScheduleRow:
    teacher_name: str
    support_staff: str
    activity: str
    duration: str
    start: str
    sort_key: datetime.datetime


def teacher_schedule_rows(
    day: DaySnapshot,
    by_support: Dict[str, List[Task]],
    *,
    lunch_threshold_minutes: int = LUNCH_THRESHOLD_MINUTES,
) -> Dict[str, List[TeacherScheduleRow]]:
    """Per-teacher day view: start of day, each covered break/lunch with its support, end of day."""
    if day is None:
        raise ValueError("day snapshot is required.")
    coverage = [
        task
        for tasks in (by_support or {}).values()
        for task in tasks
        if task.kind is TaskKind.COVERAGE
    ]
    rows_by_teacher: Dict[str, List[TeacherScheduleRow]] = {}
    for teacher in day.teachers:
        shift_start, shift_end = day.shift_bounds(teacher)
        rows = [_marker_row(teacher.name, "Start of Day", shift_start)]
        mine = sorted(
            (task for task in coverage if (task.teacher_name or "").lower() == (teacher.name or "").lower()),
            key=lambda item: item.start,
        )
        for task in mine:
            rows.append(
                TeacherScheduleRow(
                    teacher_name=teacher.name,
                    support_staff=task.support_name or "",
                    activity="Lunch" if task.minutes >= lunch_threshold_minutes else "Break",
                    duration=task.duration_text,
                    start=format_time(task.start),
                    sort_key=task.start,
                )
            )
        rows.append(_marker_row(teacher.name, "End of Day", shift_end))
        rows_by_teacher[teacher.name] = sorted(rows, key=lambda row: row.sort_key)
    return rows_by_teacher


def rows_for_teachers(
    rows_by_teacher: Dict[str, List[TeacherScheduleRow]],
    names: Optional[List[str]] = None,
) -> List[TeacherScheduleRow]:
    """Flatten selected teachers' rows ordered by teacher then time."""
    selected = names if names is not None else list(rows_by_teacher)
    rows = [row for name in selected for row in rows_by_teacher.get(name, [])]
    return sorted(rows, key=lambda row: (row.teacher_name, row.sort_key))


def _marker_row(teacher_name: str, activity: str, when: datetime.datetime) -> TeacherScheduleRow:
    return TeacherScheduleRow(
        teacher_name=teacher_name,
        support_staff="",
        activity=activity,
        duration="",
        start=format_time(when),
        sort_key=when,
    )
