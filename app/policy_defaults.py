from __future__ import annotations

import copy
from typing import Any, Dict


def _window(start: str, end: str) -> Dict[str, str]:
    return {"window_start": start, "window_end": end}


def _weights(*, lunch: int, preference: int, continuity: int, idle: int) -> Dict[str, int]:
    return {
        "lunch": lunch,
        "preference": preference,
        "continuity": continuity,
        "idle": idle,
    }


LUNCH_DEFAULTS: Dict[str, Any] = {
    "minutes": 30,
    **_window("11:00", "14:00"),
    "required_over_hours": 5.0,
    # Coverage tasks at least this long are treated as lunch coverage.
    "length_threshold_minutes": 25,
}

BREAK_DEFAULTS: Dict[str, Any] = {
    "minutes": 10,
    "buffer_minutes": 5,
    "max_continuous_hours": 3.0,
    "target_after_hours": 2.0,
    "hours_per_required_break": 4.0,
    "top_up_min_room_minutes": 130,
}

ASSIGNMENT_DEFAULTS: Dict[str, Any] = {
    "noon": "12:00",
    "flex_minutes": 30,
    "step_minutes": 15,
    "idle_threshold_minutes": 45,
    "weights": _weights(lunch=-5, preference=-3, continuity=-2, idle=1),
}

SELF_CARE_DEFAULTS: Dict[str, Any] = {
    "break_every_hours": 3.0,
    "break_minutes": 10,
    "break_buffer_minutes": 5,
}

BASELINE_POLICY: Dict[str, Any] = {
    "name": "Default Coverage Policy",
    "lunch": LUNCH_DEFAULTS,
    "breaks": BREAK_DEFAULTS,
    "assignment": ASSIGNMENT_DEFAULTS,
    "self_care": SELF_CARE_DEFAULTS,
}


def baseline_policy() -> Dict[str, Any]:
    return copy.deepcopy(BASELINE_POLICY)
