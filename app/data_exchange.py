from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from roster import DaySnapshot, RoomPreference, Support, Teacher
from tasks import Task
from timeutil import format_time, parse_time_label


# ---------------------------------------------------------------------------
# Day snapshot intake


def snapshot_from_payload(payload: Dict[str, Any]) -> DaySnapshot:
    """Build a DaySnapshot from the JSON shape used by the API and smoke CLI."""
    if not isinstance(payload, dict):
        raise ValueError("Snapshot payload must be an object.")
    date_raw = payload.get("date")
    if not date_raw:
        raise ValueError("date is required (YYYY-MM-DD).")
    try:
        date_value = datetime.date.fromisoformat(str(date_raw))
    except ValueError as exc:
        raise ValueError(f"date must be YYYY-MM-DD, got {date_raw!r}.") from exc

    teachers: List[Teacher] = []
    for index, entry in enumerate(_entries(payload, "teachers")):
        teachers.append(
            Teacher(
                name=_name(entry, "name", f"teachers[{index}]"),
                room=str(entry.get("room") or "").strip(),
                start=_time(entry, "start", f"teachers[{index}]"),
                end=_time(entry, "end", f"teachers[{index}]"),
            )
        )
    supports: List[Support] = []
    for index, entry in enumerate(_entries(payload, "supports")):
        supports.append(
            Support(
                name=_name(entry, "name", f"supports[{index}]"),
                start=_time(entry, "start", f"supports[{index}]"),
                end=_time(entry, "end", f"supports[{index}]"),
            )
        )
    preferences: List[RoomPreference] = []
    for entry in _entries(payload, "preferences"):
        room = str(entry.get("room") or "").strip()
        preferred = str(entry.get("preferred_support") or "").strip()
        if not room or not preferred:
            continue
        preferences.append(RoomPreference(room=room, preferred_support=preferred))
    return DaySnapshot.build(date_value, teachers, supports, preferences)


def snapshot_to_payload(day: DaySnapshot) -> Dict[str, Any]:
    return {
        "date": day.date.isoformat(),
        "teachers": [
            {"name": t.name, "room": t.room, "start": format_time(t.start), "end": format_time(t.end)}
            for t in day.teachers
        ],
        "supports": [
            {"name": s.name, "start": format_time(s.start), "end": format_time(s.end)}
            for s in day.supports
        ],
        "preferences": [
            {"room": p.room, "preferred_support": p.preferred_support}
            for p in day.preferences
        ],
    }


def load_day_snapshot(file_path: Path) -> DaySnapshot:
    path = Path(file_path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Unable to read snapshot file {path}: {exc}") from exc
    return snapshot_from_payload(data)


def _entries(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = payload.get(key) or []
    if not isinstance(entries, list):
        raise ValueError(f"{key} must be a list.")
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"Every entry in {key} must be an object.")
    return entries


def _name(entry: Dict[str, Any], key: str, where: str) -> str:
    value = str(entry.get(key) or "").strip()
    if not value:
        raise ValueError(f"{where}.{key} is required.")
    return value


def _time(entry: Dict[str, Any], key: str, where: str) -> datetime.time:
    parsed = parse_time_label(entry.get(key))
    if parsed is None:
        raise ValueError(f"{where}.{key} must be HH:MM, got {entry.get(key)!r}.")
    return parsed


# ---------------------------------------------------------------------------
# Schedule output


def task_payload(task: Task) -> Dict[str, Any]:
    return {
        "room": task.room,
        "teacher": task.teacher_name,
        "support": task.support_name,
        "kind": task.kind.value,
        "task_name": task.task_name,
        "start": task.start.isoformat(timespec="minutes"),
        "end": task.end.isoformat(timespec="minutes"),
        "buffer_after_minutes": task.buffer_after_minutes,
        "minutes": task.minutes,
    }


def schedule_to_payload(date_value: datetime.date, by_support: Dict[str, List[Task]]) -> Dict[str, Any]:
    return {
        "date": date_value.isoformat(),
        "schedule": {
            name: [task_payload(task) for task in tasks]
            for name, tasks in (by_support or {}).items()
        },
    }


def summary_to_payload(summary: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-friendly copy of a generate_day_schedule summary."""
    date_value: Optional[datetime.date] = summary.get("date")
    payload = schedule_to_payload(date_value, summary.get("schedule") or {})
    payload["teacher_tasks"] = [task_payload(task) for task in summary.get("teacher_tasks") or []]
    for key in ("tasks_generated", "tasks_assigned", "unscheduled_coverage", "unscheduled_self_care"):
        payload[key] = summary.get(key, 0)
    payload["warnings"] = list(summary.get("warnings") or [])
    payload["validation"] = summary.get("validation") or {}
    return payload
