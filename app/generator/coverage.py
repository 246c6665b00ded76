from __future__ import annotations

import datetime
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from policy import break_settings, load_policy, lunch_settings, time_setting
from roster import DaySnapshot, Teacher
from tasks import Task, TaskKind
from timeutil import (
    clamp_to_quarter_within,
    hours_between,
    midpoint,
    round_down_to_quarter,
    round_up_to_quarter,
)

logger = logging.getLogger(__name__)

Segment = Tuple[datetime.datetime, datetime.datetime]


class TeacherCoverageGenerator:
    """Derive the lunch and break intervals every teacher must have covered."""

    def __init__(self, policy: Optional[Dict[str, Any]] = None) -> None:
        self.policy = load_policy(policy)
        lunch_cfg = lunch_settings(self.policy)
        break_cfg = break_settings(self.policy)
        self.lunch_length = datetime.timedelta(minutes=lunch_cfg["minutes"])
        self.lunch_window_start = time_setting(lunch_cfg, "window_start", "11:00")
        self.lunch_window_end = time_setting(lunch_cfg, "window_end", "14:00")
        self.lunch_over_hours: float = lunch_cfg["required_over_hours"]
        self.break_length = datetime.timedelta(minutes=break_cfg["minutes"])
        self.break_buffer_minutes: int = break_cfg["buffer_minutes"]
        self.max_continuous = datetime.timedelta(hours=break_cfg["max_continuous_hours"])
        self.break_target_after = datetime.timedelta(hours=break_cfg["target_after_hours"])
        self.hours_per_required_break: float = break_cfg["hours_per_required_break"]
        self.top_up_min_room = datetime.timedelta(minutes=break_cfg["top_up_min_room_minutes"])

    def generate(self, day: DaySnapshot) -> List[Task]:
        if day is None:
            raise ValueError("day snapshot is required.")
        tasks: List[Task] = []
        for teacher in day.teachers:
            shift_start, shift_end = day.shift_bounds(teacher)
            if shift_start >= shift_end:
                logger.debug("Skipping teacher %s: shift start is not before shift end.", teacher.name)
                continue
            tasks.extend(self._teacher_tasks(day, teacher, shift_start, shift_end))

        tasks.sort(key=lambda task: (task.teacher_name, task.start))
        tasks = self._resolve_overlaps_per_teacher(tasks)
        tasks.sort(key=lambda task: task.start)
        logger.info("Generated %d coverage tasks for %d teachers.", len(tasks), len(day.teachers))
        return tasks

    # ------------------------------------------------------------------
    # Per-teacher placement

    def _teacher_tasks(
        self,
        day: DaySnapshot,
        teacher: Teacher,
        shift_start: datetime.datetime,
        shift_end: datetime.datetime,
    ) -> List[Task]:
        tasks: List[Task] = []
        lunch = self._place_lunch(day, teacher, shift_start, shift_end)
        if lunch is not None:
            tasks.append(lunch)
            segments = [
                segment
                for segment in ((shift_start, lunch.start), (lunch.end, shift_end))
                if segment[1] > segment[0]
            ]
        else:
            segments = [(shift_start, shift_end)]

        # Counted against the whole shift, which also covers the work-hours minimum.
        min_breaks = int(math.floor(hours_between(shift_start, shift_end) / self.hours_per_required_break))

        breaks: List[Task] = []
        last_rest_by_segment: List[datetime.datetime] = []
        for seg_start, seg_end in segments:
            last_rest = seg_start
            while seg_end - last_rest > self.max_continuous:
                placed = self._break_near(teacher, last_rest, seg_end, last_rest + self.break_target_after)
                if placed is None:
                    placed = self._forced_break(teacher, last_rest, seg_end)
                if placed is None:
                    break
                breaks.append(placed)
                last_rest = placed.end
            last_rest_by_segment.append(last_rest)

        # Top up to the per-hours minimum where a segment still has room.
        for index, (seg_start, seg_end) in enumerate(segments):
            while len(breaks) < min_breaks and seg_end - last_rest_by_segment[index] >= self.top_up_min_room:
                last_rest = last_rest_by_segment[index]
                placed = self._break_near(teacher, last_rest, seg_end, last_rest + self.break_target_after)
                if placed is None:
                    break
                breaks.append(placed)
                last_rest_by_segment[index] = placed.end
        if len(breaks) < min_breaks:
            logger.debug(
                "Teacher %s has %d breaks, below the minimum of %d; no segment had room.",
                teacher.name,
                len(breaks),
                min_breaks,
            )

        tasks.extend(breaks)
        return tasks

    def _place_lunch(
        self,
        day: DaySnapshot,
        teacher: Teacher,
        shift_start: datetime.datetime,
        shift_end: datetime.datetime,
    ) -> Optional[Task]:
        if hours_between(shift_start, shift_end) <= self.lunch_over_hours:
            return None
        lower = max(day.at(self.lunch_window_start), shift_start)
        upper = min(day.at(self.lunch_window_end), shift_end - self.lunch_length)
        start = clamp_to_quarter_within(midpoint(shift_start, shift_end), lower, upper)
        if start is None:
            logger.debug("No lunch window fits teacher %s; lunch omitted.", teacher.name)
            return None
        return self._coverage(teacher, start, start + self.lunch_length, 0)

    def _break_near(
        self,
        teacher: Teacher,
        last_rest: datetime.datetime,
        seg_end: datetime.datetime,
        target: datetime.datetime,
    ) -> Optional[Task]:
        # Latest start keeps the stretch since last rest under the ceiling.
        latest = last_rest + self.max_continuous - self.break_length
        upper = min(latest, seg_end - self.break_length)
        start = clamp_to_quarter_within(target, last_rest, upper)
        if start is None:
            return None
        end = start + self.break_length
        if end > seg_end or end <= last_rest:
            return None
        return self._coverage(teacher, start, end, self.break_buffer_minutes)

    def _forced_break(
        self,
        teacher: Teacher,
        last_rest: datetime.datetime,
        seg_end: datetime.datetime,
    ) -> Optional[Task]:
        start = round_down_to_quarter(last_rest + self.max_continuous - self.break_length)
        if start <= last_rest or start + self.break_length > seg_end:
            return None
        return self._coverage(teacher, start, start + self.break_length, self.break_buffer_minutes)

    @staticmethod
    def _coverage(teacher: Teacher, start: datetime.datetime, end: datetime.datetime, buffer_minutes: int) -> Task:
        return Task(
            room=teacher.room,
            teacher_name=teacher.name,
            support_name=None,
            kind=TaskKind.COVERAGE,
            start=start,
            end=end,
            buffer_after_minutes=buffer_minutes,
        )

    @staticmethod
    def _resolve_overlaps_per_teacher(tasks: List[Task]) -> List[Task]:
        """Push any task that starts before its predecessor ends; input sorted by teacher then start."""
        resolved: List[Task] = []
        current_teacher: Optional[str] = None
        last_end: Optional[datetime.datetime] = None
        for task in tasks:
            if task.teacher_name != current_teacher:
                current_teacher = task.teacher_name
                last_end = None
            if last_end is not None and task.start < last_end:
                duration = task.end - task.start
                new_start = round_up_to_quarter(last_end)
                logger.debug("Shifting %s task at %s to %s to clear an overlap.", task.teacher_name, task.start, new_start)
                task = task.moved(new_start, new_start + duration)
            resolved.append(task)
            last_end = task.end
        return resolved
