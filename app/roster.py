from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from timeutil import at_time, hours_between

UNSCHEDULED = "Unscheduled"
LUNCH_REQUIRED_OVER_HOURS = 5.0


@dataclass(frozen=True)
class Teacher:
    name: str
    room: str
    start: datetime.time
    end: datetime.time

    @property
    def shift_hours(self) -> float:
        return _shift_hours(self.start, self.end)

    @property
    def lunch_required(self) -> bool:
        return self.shift_hours > LUNCH_REQUIRED_OVER_HOURS


@dataclass(frozen=True)
class Support:
    name: str
    start: datetime.time
    end: datetime.time

    @property
    def shift_hours(self) -> float:
        return _shift_hours(self.start, self.end)

    @property
    def lunch_required(self) -> bool:
        return self.shift_hours > LUNCH_REQUIRED_OVER_HOURS


@dataclass(frozen=True)
class RoomPreference:
    room: str
    preferred_support: str


def _shift_hours(start: datetime.time, end: datetime.time) -> float:
    anchor = datetime.date(2000, 1, 1)
    return hours_between(at_time(anchor, start), at_time(anchor, end))


@dataclass(frozen=True)
class DaySnapshot:
    """Inputs for one scheduling run.

    Built fresh from the current editing state every time a schedule is
    requested; the engines never mutate it.
    """

    date: datetime.date
    teachers: Tuple[Teacher, ...] = field(default_factory=tuple)
    supports: Tuple[Support, ...] = field(default_factory=tuple)
    preferences: Tuple[RoomPreference, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.date is None:
            raise ValueError("date is required.")
        object.__setattr__(self, "teachers", tuple(self.teachers or ()))
        object.__setattr__(self, "supports", tuple(self.supports or ()))
        object.__setattr__(self, "preferences", tuple(self.preferences or ()))
        for support in self.supports:
            if (support.name or "").strip().lower() == UNSCHEDULED.lower():
                raise ValueError(f"'{UNSCHEDULED}' is reserved and cannot be used as a support name.")

    @classmethod
    def build(
        cls,
        date: datetime.date,
        teachers: Optional[Iterable[Teacher]] = None,
        supports: Optional[Iterable[Support]] = None,
        preferences: Optional[Iterable[RoomPreference]] = None,
    ) -> "DaySnapshot":
        return cls(
            date=date,
            teachers=tuple(teachers or ()),
            supports=tuple(supports or ()),
            preferences=tuple(preferences or ()),
        )

    def shift_bounds(self, person: Teacher | Support) -> Tuple[datetime.datetime, datetime.datetime]:
        return at_time(self.date, person.start), at_time(self.date, person.end)

    def at(self, value: datetime.time) -> datetime.datetime:
        return at_time(self.date, value)

    def find_teacher(self, name: str) -> Optional[Teacher]:
        key = (name or "").lower()
        for teacher in self.teachers:
            if (teacher.name or "").lower() == key:
                return teacher
        return None

    def preference_map(self) -> Dict[str, List[str]]:
        """Room (lower-cased) -> distinct preferred support names, first occurrence wins."""
        mapping: Dict[str, List[str]] = {}
        for pref in self.preferences:
            room = (pref.room or "").strip()
            name = (pref.preferred_support or "").strip()
            if not room or not name:
                continue
            names = mapping.setdefault(room.lower(), [])
            if name.lower() not in {existing.lower() for existing in names}:
                names.append(name)
        return mapping
