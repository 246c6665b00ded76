from __future__ import annotations

import csv
import datetime
import json
import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from data_exchange import (  # noqa: E402
    load_day_snapshot,
    schedule_to_payload,
    snapshot_from_payload,
    snapshot_to_payload,
    summary_to_payload,
    task_payload,
)
from exporter import export_schedule  # noqa: E402
from generator.api import generate_day_schedule  # noqa: E402

PAYLOAD = {
    "date": "2025-10-13",
    "teachers": [{"name": "Avery", "room": "101", "start": "07:00", "end": "15:00"}],
    "supports": [{"name": "Morgan", "start": "09:30", "end": "15:00"}],
    "preferences": [{"room": "101", "preferred_support": "Morgan"}],
}


@pytest.fixture
def summary():
    return generate_day_schedule(snapshot_from_payload(PAYLOAD))


def test_snapshot_payload_parses_and_serializes_back() -> None:
    day = snapshot_from_payload(PAYLOAD)
    assert day.date == datetime.date(2025, 10, 13)
    assert day.teachers[0].start == datetime.time(7, 0)
    assert day.supports[0].name == "Morgan"
    assert snapshot_to_payload(day) == PAYLOAD


@pytest.mark.parametrize(
    "mutate,message",
    [
        (lambda data: data.pop("date"), "date is required"),
        (lambda data: data.update(date="13/10/2025"), "YYYY-MM-DD"),
        (lambda data: data["teachers"][0].update(start="7am"), "teachers[0].start"),
        (lambda data: data["supports"][0].update(name=" "), "supports[0].name"),
        (lambda data: data.update(teachers="Avery"), "teachers must be a list"),
        (lambda data: data["supports"][0].update(name="Unscheduled"), "reserved"),
    ],
)
def test_malformed_payloads_raise(mutate, message) -> None:
    data = json.loads(json.dumps(PAYLOAD))
    mutate(data)
    with pytest.raises(ValueError) as excinfo:
        snapshot_from_payload(data)
    assert message in str(excinfo.value)


def test_blank_preferences_are_skipped() -> None:
    data = json.loads(json.dumps(PAYLOAD))
    data["preferences"].append({"room": "", "preferred_support": "Morgan"})
    day = snapshot_from_payload(data)
    assert len(day.preferences) == 1


def test_load_day_snapshot_from_file(tmp_path: Path) -> None:
    path = tmp_path / "day.json"
    path.write_text(json.dumps(PAYLOAD), encoding="utf-8")
    day = load_day_snapshot(path)
    assert [teacher.name for teacher in day.teachers] == ["Avery"]

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_day_snapshot(broken)
    with pytest.raises(ValueError):
        load_day_snapshot(tmp_path / "missing.json")


def test_task_payload_shape(summary) -> None:
    task = summary["schedule"]["Morgan"][0]
    assert task_payload(task) == {
        "room": "101",
        "teacher": "Avery",
        "support": "Morgan",
        "kind": "Coverage",
        "task_name": "Coverage",
        "start": "2025-10-13T09:30",
        "end": "2025-10-13T09:40",
        "buffer_after_minutes": 5,
        "minutes": 10,
    }


def test_summary_payload_is_json_ready(summary) -> None:
    payload = summary_to_payload(summary)
    encoded = json.loads(json.dumps(payload))
    assert encoded["date"] == "2025-10-13"
    assert encoded["tasks_generated"] == 3
    assert set(encoded["schedule"]) == {"Morgan", "Unscheduled"}
    assert len(encoded["teacher_tasks"]) == 3
    assert encoded["validation"]["issues"] == []


def test_export_json_and_csv(tmp_path: Path, summary) -> None:
    json_path = export_schedule(summary["date"], summary["schedule"], "json", directory=tmp_path)
    assert json_path.name == "schedule_2025-10-13.json"
    data = json.loads(json_path.read_text(encoding="utf-8"))
    assert data == schedule_to_payload(summary["date"], summary["schedule"])

    csv_path = export_schedule(summary["date"], summary["schedule"], "CSV", directory=tmp_path)
    assert csv_path.suffix == ".csv"
    with csv_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == len(summary["schedule"]["Morgan"])
    assert rows[0]["support"] == "Morgan"
    assert rows[0]["kind"] == "Coverage"
    assert rows[0]["start"] == "2025-10-13T09:30"


def test_export_rejects_unknown_format(tmp_path: Path, summary) -> None:
    with pytest.raises(ValueError):
        export_schedule(summary["date"], summary["schedule"], "xlsx", directory=tmp_path)
    assert list(tmp_path.iterdir()) == []
