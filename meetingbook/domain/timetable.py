"""
Weekly working-hours timetable of a professional.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .exceptions import ValidationError
from .interval import Interval, make_interval

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_WINDOW_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")


@dataclass(frozen=True)
class TimeTable:
    """
    Open windows for each of the seven weekdays (0=Monday, 6=Sunday).

    Invariant: windows of a day are sorted and pairwise disjoint.
    """
    days: Tuple[Tuple[Interval, ...], ...]

    def __post_init__(self):
        if len(self.days) != 7:
            raise ValidationError(f"A timetable needs 7 weekdays, got {len(self.days)}")
        for weekday, windows in enumerate(self.days):
            for previous, current in zip(windows, windows[1:]):
                if current.start < previous.end:
                    raise ValidationError(
                        f"Overlapping windows on {WEEKDAY_NAMES[weekday]}: {previous} and {current}"
                    )

    @classmethod
    def empty(cls) -> "TimeTable":
        return cls(days=((),) * 7)

    def windows(self, weekday: int) -> Tuple[Interval, ...]:
        """Return the open windows for a weekday."""
        return self.days[weekday]

    def __getitem__(self, weekday: int) -> Tuple[Interval, ...]:
        return self.windows(weekday)

    def contains(self, weekday: int, interval: Interval) -> bool:
        """Check if the interval fits entirely into one open window of the weekday."""
        return any(window.contains(interval) for window in self.days[weekday])

    def is_closed(self, weekday: int) -> bool:
        return not self.days[weekday]

    def to_document(self) -> Dict[str, List[str]]:
        """Render the timetable in its persisted textual form."""
        return {
            name: [str(window) for window in self.days[weekday]]
            for weekday, name in enumerate(WEEKDAY_NAMES)
        }


def parse_window(raw: Any) -> Interval:
    """
    Parse one window given as ``"HH:MM-HH:MM"`` or as a ``[start, end]`` minute pair.
    """
    if isinstance(raw, str):
        match = _WINDOW_PATTERN.match(raw)
        if not match:
            raise ValidationError(f"Malformed window {raw!r}, expected HH:MM-HH:MM")
        start_h, start_m, end_h, end_m = (int(part) for part in match.groups())
        if start_m >= 60 or end_m >= 60:
            raise ValidationError(f"Malformed window {raw!r}, minutes must be below 60")
        return make_interval(start_h * 60 + start_m, end_h * 60 + end_m)

    if isinstance(raw, Sequence) and len(raw) == 2:
        return make_interval(*raw)

    raise ValidationError(f"Malformed window {raw!r}")


def parse_weekday(raw: Any) -> int:
    """Resolve a weekday given as index 0-6, full name or three-letter abbreviation."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        if 0 <= raw <= 6:
            return raw
        raise ValidationError(f"Weekday index must be between 0 and 6, got {raw}")

    if isinstance(raw, str):
        key = raw.strip().lower()
        if key.isdigit():
            return parse_weekday(int(key))
        for index, name in enumerate(WEEKDAY_NAMES):
            if key == name or key == name[:3]:
                return index

    raise ValidationError(f"Unknown weekday {raw!r}")


def _parse_day(raw: Any) -> List[Interval]:
    if raw is None:
        return []
    if isinstance(raw, str):
        # "08:00-12:00, 13:00-17:00"; an empty string is a day off
        return [parse_window(part) for part in raw.split(",") if part.strip()]
    if isinstance(raw, Sequence):
        return [parse_window(item) for item in raw]
    raise ValidationError(f"Malformed window list {raw!r}")


def _normalize(windows: Iterable[Interval], weekday: int) -> Tuple[Interval, ...]:
    """Sort the windows of a day, merge touching ones and reject overlaps."""
    merged: List[Interval] = []

    for window in sorted(windows):
        if merged and window.start < merged[-1].end:
            raise ValidationError(
                f"Overlapping windows on {WEEKDAY_NAMES[weekday]}: {merged[-1]} and {window}"
            )
        if merged and window.start == merged[-1].end:
            merged[-1] = make_interval(merged[-1].start, window.end)
        else:
            merged.append(window)

    return tuple(merged)


def parse_timetable(raw: Any) -> TimeTable:
    """
    Convert the generic representation of a weekly timetable into a TimeTable.

    Accepted shapes:
    - a mapping of weekday (name, abbreviation or index) to windows
    - a sequence of exactly seven per-weekday entries, Monday first

    Each weekday entry is a list of windows or a comma separated string.
    Weekdays that are not mentioned are closed.

    Raises:
        ValidationError: On any malformed entry
    """
    per_day: Dict[int, List[Interval]] = {weekday: [] for weekday in range(7)}

    if isinstance(raw, Mapping):
        for key, value in raw.items():
            per_day[parse_weekday(key)].extend(_parse_day(value))
    elif isinstance(raw, Sequence) and not isinstance(raw, str):
        if len(raw) != 7:
            raise ValidationError(f"A weekly window list needs 7 entries, got {len(raw)}")
        for weekday, value in enumerate(raw):
            per_day[weekday].extend(_parse_day(value))
    else:
        raise ValidationError(f"Malformed timetable {raw!r}")

    return TimeTable(days=tuple(_normalize(per_day[weekday], weekday) for weekday in range(7)))

