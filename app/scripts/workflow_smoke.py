from __future__ import annotations

import argparse
import datetime
import logging
import sys
from pathlib import Path
from typing import Dict, List

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from data_exchange import load_day_snapshot, snapshot_from_payload  # noqa: E402
from exporter import export_schedule  # noqa: E402
from generator.api import generate_day_schedule  # noqa: E402
from policy import load_policy, lunch_settings  # noqa: E402
from roster import UNSCHEDULED, DaySnapshot  # noqa: E402
from tasks import Task  # noqa: E402
from teacher_view import rows_for_teachers, teacher_schedule_rows  # noqa: E402
from timeutil import format_time  # noqa: E402


def _demo_payload(date_value: datetime.date) -> Dict[str, object]:
    return {
        "date": date_value.isoformat(),
        "teachers": [
            {"name": "Avery", "room": "101", "start": "07:00", "end": "15:00"},
            {"name": "Blake", "room": "102", "start": "07:30", "end": "15:30"},
            {"name": "Casey", "room": "103", "start": "08:00", "end": "12:00"},
            {"name": "Devon", "room": "104", "start": "11:00", "end": "17:00"},
        ],
        "supports": [
            {"name": "Morgan", "start": "07:00", "end": "15:00"},
            {"name": "Riley", "start": "09:30", "end": "15:00"},
            {"name": "Sam", "start": "12:00", "end": "17:00"},
        ],
        "preferences": [
            {"room": "101", "preferred_support": "Morgan"},
            {"room": "104", "preferred_support": "Sam"},
        ],
    }


def _format_task(task: Task, lunch_threshold_minutes: int) -> str:
    window = f"{format_time(task.start)}-{format_time(task.end)}"
    return f"{window}  {task.details_line(lunch_threshold_minutes)}"


def _print_schedule(schedule: Dict[str, List[Task]], lunch_threshold_minutes: int) -> None:
    for name, tasks in schedule.items():
        if name == UNSCHEDULED and not tasks:
            continue
        print(f"[workflow] {name}:")
        for task in tasks:
            print(f"[workflow]   {_format_task(task, lunch_threshold_minutes)}")


def _print_teacher_rows(
    day: DaySnapshot,
    schedule: Dict[str, List[Task]],
    names: List[str],
    lunch_threshold_minutes: int,
) -> None:
    rows = teacher_schedule_rows(day, schedule, lunch_threshold_minutes=lunch_threshold_minutes)
    for row in rows_for_teachers(rows, names or None):
        staff = f" with {row.support_staff}" if row.support_staff else ""
        duration = f" ({row.duration})" if row.duration else ""
        print(f"[workflow][teacher] {row.teacher_name} {row.start} {row.activity}{duration}{staff}")


def run_workflow(
    day: DaySnapshot,
    *,
    policy_path: Path | None = None,
    export_formats: List[str] | None = None,
    teacher_names: List[str] | None = None,
) -> int:
    policy = load_policy(policy_path) if policy_path else load_policy()
    lunch_threshold = lunch_settings(policy)["length_threshold_minutes"]
    result = generate_day_schedule(day, policy)
    print(
        f"[workflow] Generated {result['tasks_generated']} coverage tasks for {day.date.isoformat()}; "
        f"{result['tasks_assigned']} assigned, {result['unscheduled_coverage']} unscheduled."
    )
    _print_schedule(result["schedule"], lunch_threshold)
    if teacher_names is not None:
        _print_teacher_rows(day, result["schedule"], teacher_names, lunch_threshold)
    for warning in result["warnings"]:
        print(f"[workflow][warning] {warning}")

    for fmt in export_formats or []:
        path = export_schedule(day.date, result["schedule"], fmt)
        print(f"[workflow] Exported schedule -> {path}")

    issues = result["validation"]["issues"]
    if issues:
        for issue in issues:
            print(f"[workflow][validation-error] {issue['message']}")
        return 1
    print("[workflow] Validation passed.")
    return 0


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Run the day coverage pipeline on a snapshot file (or a built-in demo day), "
            "print each support's timeline, validate it, and optionally export it."
        )
    )
    parser.add_argument("--snapshot", type=Path, help="JSON day snapshot. Defaults to a built-in demo day.")
    parser.add_argument("--date", help="ISO date (YYYY-MM-DD) for the demo day. Defaults to today.")
    parser.add_argument("--policy", type=Path, help="Optional JSON policy override.")
    parser.add_argument(
        "--export",
        action="append",
        choices=["json", "csv"],
        default=[],
        help="Export format; repeat for several.",
    )
    parser.add_argument(
        "--teacher",
        action="append",
        dest="teachers",
        help="Print the day view for this teacher; repeat for several, or pass \"all\".",
    )
    parser.add_argument("--verbose", action="store_true", help="Log engine decisions to stderr.")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        if args.snapshot:
            day = load_day_snapshot(args.snapshot)
        else:
            date_value = datetime.date.fromisoformat(args.date) if args.date else datetime.date.today()
            day = snapshot_from_payload(_demo_payload(date_value))
    except ValueError as exc:
        raise SystemExit(f"Invalid input: {exc}") from exc
    teacher_names = None
    if args.teachers:
        teacher_names = [] if "all" in args.teachers else args.teachers
    raise SystemExit(
        run_workflow(day, policy_path=args.policy, export_formats=args.export, teacher_names=teacher_names)
    )


if __name__ == "__main__":
    main()
