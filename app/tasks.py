from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from timeutil import format_time, minutes_between

NO_ROOM = "---"


class TaskKind(str, Enum):
    COVERAGE = "Coverage"
    BREAK = "Break"
    LUNCH = "Lunch"
    IDLE = "Idle"


TASK_NAMES = {
    TaskKind.COVERAGE: "Coverage",
    TaskKind.BREAK: "Break",
    TaskKind.LUNCH: "Lunch",
    TaskKind.IDLE: "Free",
}


@dataclass
class Task:
    """A timed activity on the day's schedule.

    Coverage tasks name the teacher whose room is covered. Break, Lunch and
    Idle tasks belong to a support and carry that support's own name in
    ``teacher_name``.
    """

    room: str
    teacher_name: str
    support_name: Optional[str]
    kind: TaskKind
    start: datetime.datetime
    end: datetime.datetime
    buffer_after_minutes: int = 0

    @property
    def effective_end(self) -> datetime.datetime:
        return self.end + datetime.timedelta(minutes=self.buffer_after_minutes)

    @property
    def minutes(self) -> int:
        return minutes_between(self.start, self.end)

    @property
    def task_name(self) -> str:
        return TASK_NAMES[self.kind]

    @property
    def duration_text(self) -> str:
        return f"{self.minutes}min"

    @property
    def teacher_display(self) -> str:
        return self.teacher_name if (self.teacher_name or "").strip() else "Self"

    @property
    def room_display(self) -> str:
        if self.kind is TaskKind.COVERAGE and (self.room or "").strip():
            return self.room
        return NO_ROOM

    @property
    def display_title(self) -> str:
        if self.kind is TaskKind.COVERAGE:
            room = f" ({self.room})" if self.room else ""
            return f"Coverage | {self.teacher_name}{room}"
        if self.kind is TaskKind.IDLE:
            return f"Free ({self.minutes}m)"
        return f"{self.task_name} ({self.minutes}m)"

    def details_line(self, lunch_threshold_minutes: int = 25) -> str:
        if self.kind is TaskKind.COVERAGE:
            label = "Lunch" if self.minutes >= lunch_threshold_minutes else "Break"
            kind_part = f"Coverage: {label} {self.minutes}min"
        else:
            kind_part = f"{self.task_name}: {self.minutes}min"
        return (
            f"Support: {self.support_name or ''} | {kind_part} | "
            f"Teacher: {self.teacher_display} | Room: {self.room_display} | Start: {format_time(self.start)}"
        )

    def moved(self, start: datetime.datetime, end: datetime.datetime, support_name: Optional[str] = None) -> "Task":
        return replace(
            self,
            start=start,
            end=end,
            support_name=support_name if support_name is not None else self.support_name,
        )
