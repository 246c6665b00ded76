from __future__ import annotations

import datetime
import logging
import math
from typing import Any, Dict, List, Optional

from policy import load_policy, lunch_settings, self_care_settings, time_setting
from roster import UNSCHEDULED, DaySnapshot, Support
from tasks import NO_ROOM, Task, TaskKind
from timeutil import (
    Window,
    build_free_windows,
    clamp_to_quarter_within,
    hours_between,
    midpoint,
    round_down_to_quarter,
    round_to_nearest_quarter,
    round_up_to_quarter,
    subtract_window,
)

logger = logging.getLogger(__name__)


class SupportSelfCareScheduler:
    """Give every support their own lunch and breaks, then mark what is left as free time."""

    def __init__(self, policy: Optional[Dict[str, Any]] = None) -> None:
        self.policy = load_policy(policy)
        lunch_cfg = lunch_settings(self.policy)
        care_cfg = self_care_settings(self.policy)
        self.lunch_length = datetime.timedelta(minutes=lunch_cfg["minutes"])
        self.lunch_window_start = time_setting(lunch_cfg, "window_start", "11:00")
        self.lunch_window_end = time_setting(lunch_cfg, "window_end", "14:00")
        self.lunch_over_hours: float = lunch_cfg["required_over_hours"]
        self.break_every_hours: float = care_cfg["break_every_hours"]
        self.break_length = datetime.timedelta(minutes=care_cfg["break_minutes"])
        self.break_buffer_minutes: int = care_cfg["break_buffer_minutes"]

    def schedule(self, day: DaySnapshot, by_support: Dict[str, List[Task]]) -> Dict[str, List[Task]]:
        """Fill each support's day in place and return the same mapping."""
        if day is None:
            raise ValueError("day snapshot is required.")
        if by_support is None:
            raise ValueError("by_support mapping is required.")
        unscheduled = by_support.setdefault(UNSCHEDULED, [])
        for support in day.supports:
            tasks = by_support.setdefault(support.name, [])
            self._schedule_support(day, support, tasks, unscheduled)
            tasks.sort(key=lambda item: item.start)
        unscheduled.sort(key=lambda item: item.start)
        logger.info(
            "Scheduled self-care for %d supports; %d items unscheduled.",
            len(day.supports),
            sum(1 for task in unscheduled if task.kind is not TaskKind.COVERAGE),
        )
        return by_support

    def _schedule_support(
        self,
        day: DaySnapshot,
        support: Support,
        tasks: List[Task],
        unscheduled: List[Task],
    ) -> None:
        shift_start, shift_end = day.shift_bounds(support)
        free = build_free_windows(shift_start, shift_end, [(task.start, task.effective_end) for task in tasks])
        shift_hours = hours_between(shift_start, shift_end)
        breaks_needed = int(math.floor(shift_hours / self.break_every_hours)) if self.break_every_hours > 0 else 0
        needs_lunch = shift_hours > self.lunch_over_hours and not any(task.kind is TaskKind.LUNCH for task in tasks)

        if needs_lunch:
            target = midpoint(shift_start, shift_end)
            lunch = self._place_in_windows(day, support, free, TaskKind.LUNCH, target, self.lunch_length, 0)
            if lunch is None:
                logger.debug("No free window fits lunch for %s.", support.name)
                unscheduled.append(self._unscheduled_lunch(day, support, shift_start, shift_end, target))
            else:
                tasks.append(lunch)
                free = subtract_window(free, lunch.start, lunch.effective_end)

        for index in range(breaks_needed):
            target = shift_start + datetime.timedelta(hours=self.break_every_hours * (index + 1))
            placed = self._place_in_windows(
                day, support, free, TaskKind.BREAK, target, self.break_length, self.break_buffer_minutes
            )
            if placed is None:
                logger.debug("No free window fits break %d for %s.", index + 1, support.name)
                fallback = self._unscheduled_break(support, shift_start, shift_end, target)
                if fallback is not None:
                    unscheduled.append(fallback)
                continue
            tasks.append(placed)
            free = subtract_window(free, placed.start, placed.effective_end)

        for window_start, window_end in free:
            if window_end <= window_start:
                continue
            tasks.append(self._self_task(support, TaskKind.IDLE, window_start, window_end, 0))

    def _place_in_windows(
        self,
        day: DaySnapshot,
        support: Support,
        free: List[Window],
        kind: TaskKind,
        target: datetime.datetime,
        length: datetime.timedelta,
        buffer_minutes: int,
    ) -> Optional[Task]:
        """Place ``kind`` in the first free window that fits, trying windows nearest ``target`` first.

        Nearness is the gap from ``target`` to the closest edge of the window,
        zero when ``target`` falls inside it; equal gaps go to the earlier
        window. The task plus its buffer must fit inside the window.
        """
        buffer = datetime.timedelta(minutes=buffer_minutes)
        for window_start, window_end in sorted(free, key=lambda window: (_distance(window, target), window[0])):
            lower = window_start
            upper = window_end - length - buffer
            if kind is TaskKind.LUNCH:
                lower = max(lower, day.at(self.lunch_window_start))
                upper = min(upper, day.at(self.lunch_window_end))
            start = clamp_to_quarter_within(target, lower, upper)
            if start is None:
                continue
            return self._self_task(support, kind, start, start + length, buffer_minutes)
        return None

    def _unscheduled_lunch(
        self,
        day: DaySnapshot,
        support: Support,
        shift_start: datetime.datetime,
        shift_end: datetime.datetime,
        target: datetime.datetime,
    ) -> Task:
        start = clamp_to_quarter_within(target, day.at(self.lunch_window_start), day.at(self.lunch_window_end))
        if start is None:
            start = round_to_nearest_quarter(target)
        if start < shift_start:
            start = round_up_to_quarter(shift_start)
        if start + self.lunch_length > shift_end:
            start = round_down_to_quarter(shift_end - self.lunch_length)
        task = self._self_task(support, TaskKind.LUNCH, start, start + self.lunch_length, 0)
        task.support_name = UNSCHEDULED
        return task

    def _unscheduled_break(
        self,
        support: Support,
        shift_start: datetime.datetime,
        shift_end: datetime.datetime,
        target: datetime.datetime,
    ) -> Optional[Task]:
        start = round_to_nearest_quarter(target)
        if start < shift_start:
            start = round_up_to_quarter(shift_start)
        if start + self.break_length > shift_end:
            start = round_down_to_quarter(shift_end - self.break_length)
        if start < shift_start:
            return None
        task = self._self_task(support, TaskKind.BREAK, start, start + self.break_length, self.break_buffer_minutes)
        task.support_name = UNSCHEDULED
        return task

    @staticmethod
    def _self_task(
        support: Support,
        kind: TaskKind,
        start: datetime.datetime,
        end: datetime.datetime,
        buffer_minutes: int,
    ) -> Task:
        return Task(
            room=NO_ROOM,
            teacher_name=support.name,
            support_name=support.name,
            kind=kind,
            start=start,
            end=end,
            buffer_after_minutes=buffer_minutes,
        )


def _distance(window: Window, target: datetime.datetime) -> datetime.timedelta:
    start, end = window
    if target < start:
        return start - target
    if target > end:
        return target - end
    return datetime.timedelta(0)
