"""Lightweight FastAPI wrapper around the day coverage scheduler.

Each request carries a full day snapshot; nothing is stored between calls.
Runs are serialized through one ScheduleRunner, so a request that arrives
while another run is in flight gets a 409 instead of waiting.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Ensure flat absolute imports (e.g., "import policy") resolve when served from the repo root.
APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from data_exchange import snapshot_from_payload, summary_to_payload, task_payload  # noqa: E402
from generator.api import (  # noqa: E402
    ScheduleInProgressError,
    ScheduleRunner,
    generate_teacher_coverage_tasks,
)
from policy import build_default_policy, load_policy  # noqa: E402
from roster import DaySnapshot  # noqa: E402
from teacher_view import teacher_schedule_rows  # noqa: E402

app = FastAPI(title="Coverage Assistant API", version="0.1")

_runner = ScheduleRunner()


def get_runner() -> ScheduleRunner:
    return _runner


def _parse_request(payload: Dict[str, Any]) -> Tuple[DaySnapshot, Optional[Dict[str, Any]]]:
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    try:
        day = snapshot_from_payload(payload)
        policy = load_policy(payload["policy"]) if payload.get("policy") is not None else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return day, policy


def _run(runner: ScheduleRunner, day: DaySnapshot, policy: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return runner.run(day, policy)
    except ScheduleInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/policy/default")
def default_policy() -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(build_default_policy()))


@app.post("/api/v1/schedules/generate")
def generate_schedule(payload: Dict[str, Any], runner: ScheduleRunner = Depends(get_runner)) -> JSONResponse:
    day, policy = _parse_request(payload)
    summary = _run(runner, day, policy)
    return JSONResponse(content=jsonable_encoder(summary_to_payload(summary)))


@app.post("/api/v1/schedules/teacher-tasks")
def teacher_tasks(payload: Dict[str, Any]) -> JSONResponse:
    day, policy = _parse_request(payload)
    tasks = generate_teacher_coverage_tasks(day, policy)
    return JSONResponse(
        content=jsonable_encoder({"date": day.date.isoformat(), "tasks": [task_payload(task) for task in tasks]})
    )


@app.post("/api/v1/schedules/validate")
def validate_schedule(payload: Dict[str, Any], runner: ScheduleRunner = Depends(get_runner)) -> JSONResponse:
    day, policy = _parse_request(payload)
    summary = _run(runner, day, policy)
    return JSONResponse(content=jsonable_encoder(summary["validation"]))


@app.post("/api/v1/schedules/teachers")
def teacher_rows(payload: Dict[str, Any], runner: ScheduleRunner = Depends(get_runner)) -> JSONResponse:
    day, policy = _parse_request(payload)
    summary = _run(runner, day, policy)
    rows = teacher_schedule_rows(day, summary["schedule"])
    return JSONResponse(
        content=jsonable_encoder(
            {
                "date": day.date.isoformat(),
                "teachers": {
                    name: [
                        {
                            "teacher": row.teacher_name,
                            "support_staff": row.support_staff,
                            "activity": row.activity,
                            "duration": row.duration,
                            "start": row.start,
                        }
                        for row in entries
                    ]
                    for name, entries in rows.items()
                },
            }
        )
    )
