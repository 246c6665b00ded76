from __future__ import annotations

import datetime
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from policy import break_settings, load_policy
from roster import UNSCHEDULED, DaySnapshot
from tasks import Task, TaskKind
from timeutil import format_time

CHECK_LABELS = {
    "teacher_overlap": "Teacher tasks never overlap?",
    "continuous_work": "No teacher works past the continuous-work ceiling?",
    "reservation_overlap": "Support reservations never overlap?",
    "outside_shift": "Support tasks stay inside the support's shift?",
    "tiling": "Every support's day is fully tiled?",
    "conservation": "Every coverage task is assigned or unscheduled?",
}


def validate_day_schedule(
    day: DaySnapshot,
    teacher_tasks: Sequence[Task],
    by_support: Dict[str, List[Task]],
    policy: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Return validation findings for one day's schedule."""
    if day is None:
        raise ValueError("day snapshot is required.")
    policy_payload = load_policy(policy)
    ceiling = datetime.timedelta(hours=break_settings(policy_payload)["max_continuous_hours"])
    teacher_tasks = list(teacher_tasks or [])
    by_support = by_support or {}

    issues: List[Dict[str, Any]] = []
    issues.extend(_teacher_overlap_issues(teacher_tasks))
    issues.extend(_continuous_work_issues(day, teacher_tasks, ceiling))
    issues.extend(_reservation_overlap_issues(day, by_support))
    issues.extend(_outside_shift_issues(day, by_support))
    issues.extend(_tiling_issues(day, by_support))
    issues.extend(_conservation_issues(teacher_tasks, by_support))
    warnings = _unscheduled_warnings(by_support)
    return {
        "date": day.date.isoformat(),
        "checks": _build_checklist(issues),
        "issues": issues,
        "warnings": warnings,
    }


def _teacher_overlap_issues(teacher_tasks: List[Task]) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    by_teacher: Dict[str, List[Task]] = defaultdict(list)
    for task in teacher_tasks:
        by_teacher[task.teacher_name].append(task)
    for teacher, tasks in by_teacher.items():
        tasks.sort(key=lambda item: item.start)
        for previous, current in zip(tasks, tasks[1:]):
            if current.start < previous.end:
                issues.append(
                    {
                        "type": "teacher_overlap",
                        "severity": "error",
                        "teacher": teacher,
                        "message": f"{teacher} has overlapping tasks at "
                        f"{format_time(previous.start)} and {format_time(current.start)}.",
                    }
                )
    return issues


def _continuous_work_issues(
    day: DaySnapshot,
    teacher_tasks: List[Task],
    ceiling: datetime.timedelta,
) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    for teacher in day.teachers:
        shift_start, shift_end = day.shift_bounds(teacher)
        if shift_start >= shift_end:
            continue
        rests = sorted(
            (task for task in teacher_tasks if task.teacher_name == teacher.name),
            key=lambda item: item.start,
        )
        cursor = shift_start
        for rest in rests + [None]:
            stretch_end = rest.start if rest is not None else shift_end
            if stretch_end - cursor > ceiling:
                issues.append(
                    {
                        "type": "continuous_work",
                        "severity": "error",
                        "teacher": teacher.name,
                        "message": f"{teacher.name} works {format_time(cursor)}-{format_time(stretch_end)} "
                        "without a break.",
                    }
                )
            if rest is not None:
                cursor = max(cursor, rest.end)
    return issues


def _reservation_overlap_issues(day: DaySnapshot, by_support: Dict[str, List[Task]]) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    for support in day.supports:
        tasks = sorted(
            (task for task in by_support.get(support.name, []) if task.kind is not TaskKind.IDLE),
            key=lambda item: item.start,
        )
        for previous, current in zip(tasks, tasks[1:]):
            if current.start < previous.effective_end:
                issues.append(
                    {
                        "type": "reservation_overlap",
                        "severity": "error",
                        "support": support.name,
                        "message": f"{support.name} is double-booked at {format_time(current.start)} "
                        f"({previous.task_name} runs to {format_time(previous.effective_end)}).",
                    }
                )
    return issues


def _outside_shift_issues(day: DaySnapshot, by_support: Dict[str, List[Task]]) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    for support in day.supports:
        shift_start, shift_end = day.shift_bounds(support)
        for task in by_support.get(support.name, []):
            if task.start < shift_start or task.effective_end > shift_end:
                issues.append(
                    {
                        "type": "outside_shift",
                        "severity": "error",
                        "support": support.name,
                        "message": f"{support.name} has {task.task_name.lower()} at {format_time(task.start)} "
                        "outside their shift.",
                    }
                )
    return issues


def _tiling_issues(day: DaySnapshot, by_support: Dict[str, List[Task]]) -> List[Dict[str, Any]]:
    """Effective intervals of each support's tasks must cover the shift edge to edge."""
    issues: List[Dict[str, Any]] = []
    for support in day.supports:
        shift_start, shift_end = day.shift_bounds(support)
        if shift_start >= shift_end:
            continue
        tasks = sorted(by_support.get(support.name, []), key=lambda item: item.start)
        cursor = shift_start
        for task in tasks:
            if task.start != cursor:
                gap_or_overlap = "gap" if task.start > cursor else "overlap"
                issues.append(
                    {
                        "type": "tiling",
                        "severity": "error",
                        "support": support.name,
                        "message": f"{support.name} has a {gap_or_overlap} at {format_time(min(cursor, task.start))}.",
                    }
                )
            cursor = max(cursor, task.effective_end)
        if cursor != shift_end:
            issues.append(
                {
                    "type": "tiling",
                    "severity": "error",
                    "support": support.name,
                    "message": f"{support.name}'s timeline ends at {format_time(cursor)} "
                    f"instead of {format_time(shift_end)}.",
                }
            )
    return issues


def _conservation_issues(teacher_tasks: List[Task], by_support: Dict[str, List[Task]]) -> List[Dict[str, Any]]:
    placed = sum(
        1 for tasks in by_support.values() for task in tasks if task.kind is TaskKind.COVERAGE
    )
    if placed == len(teacher_tasks):
        return []
    return [
        {
            "type": "conservation",
            "severity": "error",
            "message": f"{len(teacher_tasks)} coverage tasks were generated but {placed} "
            "appear in the schedule.",
        }
    ]


def _unscheduled_warnings(by_support: Dict[str, List[Task]]) -> List[Dict[str, Any]]:
    warnings: List[Dict[str, Any]] = []
    for task in by_support.get(UNSCHEDULED, []):
        if task.kind is TaskKind.COVERAGE:
            message = (
                f"{task.teacher_name} ({task.room}) needs {task.duration_text} coverage at "
                f"{format_time(task.start)} but no support is free."
            )
        else:
            message = f"{task.teacher_name}'s {task.task_name.lower()} at {format_time(task.start)} could not be placed."
        warnings.append(
            {
                "type": "unscheduled",
                "severity": "warning",
                "kind": task.kind.value,
                "owner": task.teacher_name,
                "message": message,
            }
        )
    return warnings


def _build_checklist(issues: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    failing = defaultdict(list)
    for issue in issues:
        failing[issue["type"]].append(issue["message"])
    checks: List[Dict[str, str]] = []
    for key, label in CHECK_LABELS.items():
        messages = failing.get(key, [])
        checks.append(
            {
                "label": label,
                "status": "fail" if messages else "pass",
                "details": "; ".join(messages[:3]) if messages else "",
            }
        )
    return checks
