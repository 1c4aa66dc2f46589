"""
Minute-of-day intervals and conversions from absolute timestamps.

All conversions use local calendar semantics: a timestamp is mapped to the
calendar day, weekday and minute of day it falls on in the given timezone.
"""

from __future__ import annotations

from dataclasses import dataclass

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

DAY_KEY_FORMAT = "YYYY.MM.DD"


@dataclass(frozen=True, order=True)
class Interval:
    """
    Represents an immutable minute-of-day range ``[start, end)``.

    Invariant: 0 <= start < end <= 1440.
    """
    start: int
    end: int

    def __post_init__(self):
        if isinstance(self.start, bool) or not isinstance(self.start, int):
            raise ValidationError(f"Interval start must be an integer, got {self.start!r}")
        if isinstance(self.end, bool) or not isinstance(self.end, int):
            raise ValidationError(f"Interval end must be an integer, got {self.end!r}")
        if not 0 <= self.start <= MINUTES_PER_DAY or not 0 <= self.end <= MINUTES_PER_DAY:
            raise ValidationError(
                f"Interval bounds must lie within 0 and {MINUTES_PER_DAY}, got {self.start}-{self.end}"
            )
        if self.start >= self.end:
            raise ValidationError(f"Interval start {self.start} must be before end {self.end}")

    def duration_minutes(self) -> int:
        """Return the length of the interval in minutes."""
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        """Check if this interval shares any minute with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "Interval") -> bool:
        """Check if another interval lies entirely within this one."""
        return self.start <= other.start and other.end <= self.end

    def distance_to(self, other: "Interval") -> int:
        """Absolute distance in minutes between the two start points."""
        return abs(self.start - other.start)

    def __str__(self) -> str:
        return f"{format_minute(self.start)}-{format_minute(self.end)}"


def make_interval(start: int, end: int) -> Interval:
    """Build an interval, raising ValidationError when the bounds are invalid."""
    return Interval(start=start, end=end)


def format_minute(minute: int) -> str:
    """Format a minute of day as ``HH:MM`` (1440 renders as ``24:00``)."""
    return f"{minute // 60:02d}:{minute % 60:02d}"


def to_datetime(timestamp: int, tz: str | None = None) -> DateTime:
    """Convert a unix timestamp to a DateTime in ``tz`` (local timezone when omitted)."""
    return pendulum.from_timestamp(timestamp, tz=tz or pendulum.local_timezone())


def timestamp_to_minute_of_day(timestamp: int, tz: str | None = None) -> int:
    dt = to_datetime(timestamp, tz)
    return dt.hour * 60 + dt.minute


def timestamp_to_weekday(timestamp: int, tz: str | None = None) -> int:
    """Weekday of a timestamp, 0=Monday, 6=Sunday."""
    return to_datetime(timestamp, tz).weekday()


def timestamp_to_day_key(timestamp: int, tz: str | None = None) -> str:
    """Calendar-date key used to group bookings by day, e.g. ``2024.11.25``."""
    return to_datetime(timestamp, tz).format(DAY_KEY_FORMAT)


def parse_interval(from_ts: int, to_ts: int, tz: str | None = None) -> Interval:
    """
    Build the minute-of-day interval spanned by two timestamps.

    The span must stay on the calendar day of ``from_ts``; an end landing
    exactly on the following midnight is mapped to minute 1440.

    Raises:
        ValidationError: If the span is degenerate or crosses into another day
    """
    if to_ts <= from_ts:
        raise ValidationError(f"Span end {to_ts} must be after start {from_ts}")

    start_dt = to_datetime(from_ts, tz)
    end_dt = to_datetime(to_ts, tz)
    start = start_dt.hour * 60 + start_dt.minute

    days_apart = end_dt.date().toordinal() - start_dt.date().toordinal()
    if days_apart == 0:
        end = end_dt.hour * 60 + end_dt.minute
    elif days_apart == 1 and (end_dt.hour, end_dt.minute, end_dt.second) == (0, 0, 0):
        end = MINUTES_PER_DAY
    else:
        raise ValidationError(
            f"Span {start_dt.to_datetime_string()} - {end_dt.to_datetime_string()} crosses a day boundary"
        )

    return make_interval(start, end)
