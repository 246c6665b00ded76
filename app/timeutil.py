from __future__ import annotations

import datetime
from typing import List, Optional, Sequence, Tuple

# Snapping is fixed at 15-minute increments.
QUARTER = datetime.timedelta(minutes=15)
_QUARTER_SECONDS = 15 * 60

Window = Tuple[datetime.datetime, datetime.datetime]


def _seconds_into_day(value: datetime.datetime) -> float:
    midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
    return (value - midnight).total_seconds()


def round_down_to_quarter(value: datetime.datetime) -> datetime.datetime:
    remainder = _seconds_into_day(value) % _QUARTER_SECONDS
    return value - datetime.timedelta(seconds=remainder)


def round_up_to_quarter(value: datetime.datetime) -> datetime.datetime:
    remainder = _seconds_into_day(value) % _QUARTER_SECONDS
    if remainder == 0:
        return value
    return value + datetime.timedelta(seconds=_QUARTER_SECONDS - remainder)


def round_to_nearest_quarter(value: datetime.datetime) -> datetime.datetime:
    """Half-way points (7.5 minutes past a quarter) round up."""
    down = round_down_to_quarter(value)
    if (value - down).total_seconds() >= _QUARTER_SECONDS / 2:
        return down + QUARTER
    return down


def clamp_to_quarter_within(
    target: datetime.datetime,
    lower: datetime.datetime,
    upper: datetime.datetime,
) -> Optional[datetime.datetime]:
    """Nearest quarter to ``target`` inside [lower, upper], or None when no quarter fits."""
    low = round_up_to_quarter(lower)
    high = round_down_to_quarter(upper)
    if low > high:
        return None
    return min(max(round_to_nearest_quarter(target), low), high)


def midpoint(start: datetime.datetime, end: datetime.datetime) -> datetime.datetime:
    return start + (end - start) / 2


def hours_between(start: datetime.datetime, end: datetime.datetime) -> float:
    return max(0.0, (end - start).total_seconds() / 3600)


def minutes_between(start: datetime.datetime, end: datetime.datetime) -> int:
    return int(round((end - start).total_seconds() / 60))


def at_time(date_: datetime.date, value: datetime.time) -> datetime.datetime:
    return datetime.datetime.combine(date_, value)


def parse_time_label(value: Optional[str]) -> Optional[datetime.time]:
    """Parse an "HH:MM" label; anything unparseable returns None."""
    if value is None:
        return None
    label = str(value).strip()
    if ":" not in label:
        return None
    hour_str, minute_str = label.split(":", 1)
    try:
        hours = int(hour_str)
        minutes = int(minute_str[:2])
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return datetime.time(hours, minutes)


def format_time(value: datetime.datetime | datetime.time) -> str:
    return value.strftime("%H:%M")


def overlaps(
    start: datetime.datetime,
    end: datetime.datetime,
    other_start: datetime.datetime,
    other_end: datetime.datetime,
) -> bool:
    return start < other_end and end > other_start


def build_free_windows(
    start: datetime.datetime,
    end: datetime.datetime,
    reservations: Sequence[Window],
) -> List[Window]:
    """Return the gaps of [start, end) left uncovered by ``reservations``."""
    windows: List[Window] = []
    cursor = start
    for res_start, res_end in sorted(reservations):
        if cursor >= end:
            break
        if res_start > cursor:
            windows.append((cursor, min(res_start, end)))
        if res_end > cursor:
            cursor = res_end
    if cursor < end:
        windows.append((cursor, end))
    return windows


def subtract_window(windows: Sequence[Window], start: datetime.datetime, end: datetime.datetime) -> List[Window]:
    remaining: List[Window] = []
    for win_start, win_end in windows:
        if end <= win_start or start >= win_end:
            remaining.append((win_start, win_end))
            continue
        if start > win_start:
            remaining.append((win_start, start))
        if end < win_end:
            remaining.append((end, win_end))
    return sorted(remaining)
