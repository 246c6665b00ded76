from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from policy import assignment_settings, load_policy, lunch_settings, time_setting
from roster import UNSCHEDULED, DaySnapshot, Support
from tasks import NO_ROOM, Task, TaskKind
from timeutil import Window, clamp_to_quarter_within, hours_between, midpoint, overlaps, round_up_to_quarter

logger = logging.getLogger(__name__)

WindowCheck = Callable[[datetime.datetime, datetime.datetime, datetime.datetime], bool]


@dataclass
class AssignmentState:
    """Per-run bookkeeping for the assignment phase; discarded when the run ends."""

    by_support: Dict[str, List[Task]]
    reserved: Dict[str, List[Window]] = field(default_factory=dict)
    last_room: Dict[str, Optional[str]] = field(default_factory=dict)

    @classmethod
    def for_supports(cls, supports: Iterable[Support]) -> "AssignmentState":
        names = [support.name for support in supports]
        by_support: Dict[str, List[Task]] = {name: [] for name in names}
        by_support[UNSCHEDULED] = []
        return cls(
            by_support=by_support,
            reserved={name: [] for name in names},
            last_room={name: None for name in names},
        )

    def is_free(self, name: str, start: datetime.datetime, end: datetime.datetime) -> bool:
        return not any(overlaps(start, end, res_start, res_end) for res_start, res_end in self.reserved[name])

    def last_effective_end(self, name: str) -> Optional[datetime.datetime]:
        windows = self.reserved[name]
        if not windows:
            return None
        return max(res_end for _, res_end in windows)

    def reserve(self, name: str, start: datetime.datetime, end: datetime.datetime) -> None:
        if not self.is_free(name, start, end):
            raise RuntimeError(f"Reservation {start:%H:%M}-{end:%H:%M} overlaps an existing one for {name}.")
        self.reserved[name].append((start, end))
        self.reserved[name].sort()

    def add_task(self, name: str, task: Task) -> None:
        tasks = self.by_support.setdefault(name, [])
        tasks.append(task)
        tasks.sort(key=lambda item: item.start)


@dataclass(frozen=True)
class Placement:
    support: Support
    start: datetime.datetime
    score: int
    delta: datetime.timedelta

    @property
    def rank(self) -> Tuple[int, datetime.timedelta, str]:
        return (self.score, self.delta, self.support.name)


class SupportAssignmentEngine:
    """Greedy assignment of teacher coverage tasks to support staff.

    Tasks are taken AM before PM, lunch-length before break-length, then by
    start. Each task goes to the best-scoring free support at its own time;
    failing that a small time flex is tried, then (for morning breaks) a push
    into the afternoon. Anything left lands in the Unscheduled bucket.
    """

    def __init__(self, policy: Optional[Dict[str, Any]] = None) -> None:
        self.policy = load_policy(policy)
        lunch_cfg = lunch_settings(self.policy)
        assign_cfg = assignment_settings(self.policy)
        self.lunch_length = datetime.timedelta(minutes=lunch_cfg["minutes"])
        self.lunch_window_start = time_setting(lunch_cfg, "window_start", "11:00")
        self.lunch_window_end = time_setting(lunch_cfg, "window_end", "14:00")
        self.lunch_over_hours: float = lunch_cfg["required_over_hours"]
        self.lunch_threshold_minutes: int = lunch_cfg["length_threshold_minutes"]
        self.noon = time_setting(assign_cfg, "noon", "12:00")
        self.flex_minutes: int = assign_cfg["flex_minutes"]
        self.step = datetime.timedelta(minutes=max(1, assign_cfg["step_minutes"]))
        self.idle_threshold = datetime.timedelta(minutes=assign_cfg["idle_threshold_minutes"])
        weights = assign_cfg["weights"]
        self.lunch_weight: int = weights["lunch"]
        self.preference_weight: int = weights["preference"]
        self.continuity_weight: int = weights["continuity"]
        self.idle_weight: int = weights["idle"]

    def assign(self, day: DaySnapshot, teacher_tasks: Sequence[Task]) -> Dict[str, List[Task]]:
        if day is None:
            raise ValueError("day snapshot is required.")
        if teacher_tasks is None:
            raise ValueError("teacher_tasks is required.")
        state = AssignmentState.for_supports(day.supports)
        preferences = day.preference_map()
        self._place_lunch_holds(day, state)

        cutoff = day.at(self.noon)
        ordered = sorted(
            teacher_tasks,
            key=lambda task: (
                0 if task.start < cutoff else 1,
                0 if self._is_lunch_length(task) else 1,
                task.start,
            ),
        )
        assigned = 0
        for task in ordered:
            placement = self._direct(day, state, preferences, task)
            if placement is None:
                placement = self._flex(day, state, preferences, task)
                if placement is not None:
                    logger.debug("Flexed %s coverage for %s to %s.", task.duration_text, task.teacher_name, placement.start)
            if placement is None and not self._is_lunch_length(task) and task.start < cutoff:
                placement = self._push_right(day, state, preferences, task, cutoff)
                if placement is not None:
                    logger.debug("Pushed %s break for %s to %s.", task.teacher_name, task.start, placement.start)
            if placement is None:
                logger.debug("No support free for %s at %s; marking unscheduled.", task.teacher_name, task.start)
                state.add_task(UNSCHEDULED, task.moved(task.start, task.end, support_name=UNSCHEDULED))
                continue
            self._commit(state, task, placement)
            assigned += 1

        for name in state.by_support:
            state.by_support[name].sort(key=lambda item: item.start)
        logger.info(
            "Assigned %d of %d coverage tasks; %d unscheduled.",
            assigned,
            len(ordered),
            len(ordered) - assigned,
        )
        return state.by_support

    # ------------------------------------------------------------------
    # Setup

    def _place_lunch_holds(self, day: DaySnapshot, state: AssignmentState) -> None:
        for support in day.supports:
            shift_start, shift_end = day.shift_bounds(support)
            if hours_between(shift_start, shift_end) <= self.lunch_over_hours:
                continue
            lower = max(day.at(self.lunch_window_start), shift_start)
            upper = min(day.at(self.lunch_window_end), shift_end - self.lunch_length)
            start = clamp_to_quarter_within(midpoint(shift_start, shift_end), lower, upper)
            if start is None:
                logger.debug("No lunch hold fits support %s; self-care will retry.", support.name)
                continue
            lunch = Task(
                room=NO_ROOM,
                teacher_name=support.name,
                support_name=support.name,
                kind=TaskKind.LUNCH,
                start=start,
                end=start + self.lunch_length,
            )
            state.add_task(support.name, lunch)
            state.reserve(support.name, lunch.start, lunch.effective_end)

    # ------------------------------------------------------------------
    # Candidate searches

    def _direct(self, day, state, preferences, task: Task) -> Optional[Placement]:
        return self._best_placement(day, state, preferences, task, [datetime.timedelta(0)], lambda *_: True)

    def _flex(self, day, state, preferences, task: Task) -> Optional[Placement]:
        offsets = [datetime.timedelta(0)]
        step_minutes = int(self.step.total_seconds() // 60)
        for minutes in range(step_minutes, self.flex_minutes + 1, step_minutes):
            offsets.append(datetime.timedelta(minutes=minutes))
            offsets.append(datetime.timedelta(minutes=-minutes))
        teacher_start, teacher_end = self._teacher_bounds(day, task)
        is_lunch = self._is_lunch_length(task)
        lunch_earliest = day.at(self.lunch_window_start)
        lunch_latest = day.at(self.lunch_window_end)

        def within(start: datetime.datetime, end: datetime.datetime, _effective_end: datetime.datetime) -> bool:
            if start < teacher_start or end > teacher_end:
                return False
            if is_lunch and (start < lunch_earliest or start > lunch_latest):
                return False
            return True

        return self._best_placement(day, state, preferences, task, offsets, within)

    def _push_right(self, day, state, preferences, task: Task, cutoff: datetime.datetime) -> Optional[Placement]:
        teacher_start, teacher_end = self._teacher_bounds(day, task)
        duration = task.end - task.start
        offsets = []
        candidate = round_up_to_quarter(max(cutoff, task.start))
        while candidate + duration <= teacher_end:
            offsets.append(candidate - task.start)
            candidate += self.step

        def within(start: datetime.datetime, _end: datetime.datetime, effective_end: datetime.datetime) -> bool:
            return start >= teacher_start and effective_end <= teacher_end

        return self._best_placement(day, state, preferences, task, offsets, within)

    def _best_placement(
        self,
        day: DaySnapshot,
        state: AssignmentState,
        preferences: Dict[str, List[str]],
        task: Task,
        offsets: Sequence[datetime.timedelta],
        window_ok: WindowCheck,
    ) -> Optional[Placement]:
        """Score every (support, offset) that fits and return the lowest (score, |delta|, name)."""
        duration = task.end - task.start
        buffer = task.effective_end - task.end
        best: Optional[Placement] = None
        for support in day.supports:
            shift_start, shift_end = day.shift_bounds(support)
            for offset in offsets:
                start = task.start + offset
                end = start + duration
                effective_end = end + buffer
                if not window_ok(start, end, effective_end):
                    continue
                if start < shift_start or effective_end > shift_end:
                    continue
                if not state.is_free(support.name, start, effective_end):
                    continue
                placement = Placement(
                    support=support,
                    start=start,
                    score=self._score(state, preferences, support, task, start),
                    delta=abs(offset),
                )
                if best is None or placement.rank < best.rank:
                    best = placement
        return best

    def _score(
        self,
        state: AssignmentState,
        preferences: Dict[str, List[str]],
        support: Support,
        task: Task,
        start: datetime.datetime,
    ) -> int:
        score = 0
        if self._is_lunch_length(task):
            score += self.lunch_weight
        room_key = (task.room or "").strip().lower()
        preferred = preferences.get(room_key, [])
        if any(name.lower() == support.name.lower() for name in preferred):
            score += self.preference_weight
        last_room = state.last_room.get(support.name)
        if last_room and last_room.lower() == (task.room or "").lower():
            score += self.continuity_weight
        last_end = state.last_effective_end(support.name)
        # A support with nothing reserved yet always counts as idle.
        if last_end is None or start - last_end > self.idle_threshold:
            score += self.idle_weight
        return score

    # ------------------------------------------------------------------
    # Helpers

    def _commit(self, state: AssignmentState, task: Task, placement: Placement) -> None:
        duration = task.end - task.start
        assigned = task.moved(placement.start, placement.start + duration, support_name=placement.support.name)
        state.add_task(placement.support.name, assigned)
        state.reserve(placement.support.name, assigned.start, assigned.effective_end)
        state.last_room[placement.support.name] = task.room

    def _teacher_bounds(self, day: DaySnapshot, task: Task) -> Tuple[datetime.datetime, datetime.datetime]:
        teacher = day.find_teacher(task.teacher_name)
        if teacher is None:
            return task.start, task.end
        return day.shift_bounds(teacher)

    def _is_lunch_length(self, task: Task) -> bool:
        return task.minutes >= self.lunch_threshold_minutes
