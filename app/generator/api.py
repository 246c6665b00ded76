from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Sequence

from .assignment import SupportAssignmentEngine
from .coverage import TeacherCoverageGenerator
from .self_care import SupportSelfCareScheduler
from policy import load_policy
from roster import UNSCHEDULED, DaySnapshot
from tasks import Task, TaskKind
from timeutil import format_time
from validation import validate_day_schedule


class ScheduleInProgressError(RuntimeError):
    """Raised when a run is requested while another is still in flight."""


def generate_teacher_coverage_tasks(day: DaySnapshot, policy: Optional[Dict] = None) -> List[Task]:
    return TeacherCoverageGenerator(policy).generate(day)


def assign_support_to_teacher_tasks(
    day: DaySnapshot,
    teacher_tasks: Sequence[Task],
    policy: Optional[Dict] = None,
) -> Dict[str, List[Task]]:
    return SupportAssignmentEngine(policy).assign(day, teacher_tasks)


def schedule_support_self_care(
    day: DaySnapshot,
    by_support: Dict[str, List[Task]],
    policy: Optional[Dict] = None,
) -> Dict[str, List[Task]]:
    return SupportSelfCareScheduler(policy).schedule(day, by_support)


def generate_day_schedule(day: DaySnapshot, policy: Optional[Dict] = None) -> Dict[str, Any]:
    """Run generate -> assign -> self-care for one day and summarize the outcome."""
    if day is None:
        raise ValueError("day snapshot is required.")
    policy_payload = load_policy(policy)
    teacher_tasks = generate_teacher_coverage_tasks(day, policy_payload)
    by_support = assign_support_to_teacher_tasks(day, teacher_tasks, policy_payload)
    schedule_support_self_care(day, by_support, policy_payload)

    unscheduled = by_support.get(UNSCHEDULED, [])
    unscheduled_coverage = [task for task in unscheduled if task.kind is TaskKind.COVERAGE]
    unscheduled_self_care = [task for task in unscheduled if task.kind is not TaskKind.COVERAGE]
    warnings: List[str] = []
    for task in unscheduled_coverage:
        warnings.append(
            f"No support available to cover {task.teacher_name} ({task.room}) "
            f"{task.duration_text} at {format_time(task.start)}."
        )
    for task in unscheduled_self_care:
        warnings.append(
            f"Could not fit {task.task_name.lower()} for {task.teacher_name} at {format_time(task.start)}."
        )
    return {
        "date": day.date,
        "teacher_tasks": teacher_tasks,
        "schedule": by_support,
        "tasks_generated": len(teacher_tasks),
        "tasks_assigned": len(teacher_tasks) - len(unscheduled_coverage),
        "unscheduled_coverage": len(unscheduled_coverage),
        "unscheduled_self_care": len(unscheduled_self_care),
        "warnings": warnings,
        "validation": validate_day_schedule(day, teacher_tasks, by_support, policy_payload),
    }


class ScheduleRunner:
    """Serializes schedule runs; a request arriving mid-run is rejected rather than queued."""

    def __init__(self, policy: Optional[Dict] = None) -> None:
        self.policy = load_policy(policy)
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def run(self, day: DaySnapshot, policy: Optional[Dict] = None) -> Dict[str, Any]:
        if not self._lock.acquire(blocking=False):
            raise ScheduleInProgressError("A schedule run is already in progress.")
        try:
            return generate_day_schedule(day, policy if policy is not None else self.policy)
        finally:
            self._lock.release()
