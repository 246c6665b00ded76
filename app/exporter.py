from __future__ import annotations

import csv
import datetime
import json
from pathlib import Path
from typing import Dict, List, Optional

from data_exchange import schedule_to_payload, task_payload
from tasks import Task

DATA_DIR = Path(__file__).resolve().parent / "data" / "exports"
CSV_COLUMNS = [
    "support",
    "kind",
    "task_name",
    "teacher",
    "room",
    "start",
    "end",
    "minutes",
    "buffer_after_minutes",
]


def export_schedule(
    date_value: datetime.date,
    by_support: Dict[str, List[Task]],
    format: str = "json",
    *,
    directory: Optional[Path] = None,
) -> Path:
    """Write the schedule mapping as json or csv and return the file path."""
    format = (format or "").lower()
    if format not in {"json", "csv"}:
        raise ValueError("format must be 'json' or 'csv'")
    target_dir = Path(directory) if directory is not None else DATA_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = target_dir / f"schedule_{date_value.isoformat()}.{format}"
    if format == "json":
        filename.write_text(json.dumps(schedule_to_payload(date_value, by_support), indent=2), encoding="utf-8")
        return filename
    with filename.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for name, tasks in by_support.items():
            for task in tasks:
                row = task_payload(task)
                row["support"] = name
                writer.writerow(row)
    return filename
