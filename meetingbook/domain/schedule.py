"""
Bookings already taken on one calendar day.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Tuple

from .interval import Interval, parse_interval


@dataclass(frozen=True)
class DaySchedule:
    """
    The intervals already booked for one professional on one date.

    Overlapping entries are kept as they are; nothing is merged or deduplicated.
    """
    intervals: Tuple[Interval, ...] = ()

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Mapping[str, Any]],
        tz: str | None = None,
    ) -> "DaySchedule":
        """
        Project booking documents into minute-of-day intervals.

        Args:
            documents: Booking documents with ``from`` and ``to`` timestamps,
                already filtered to a single professional and day
            tz: Timezone used to map timestamps onto the day

        Raises:
            ValidationError: If a document spans a degenerate interval
        """
        return cls(
            intervals=tuple(
                parse_interval(int(doc["from"]), int(doc["to"]), tz)
                for doc in documents
            )
        )

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    def __len__(self) -> int:
        return len(self.intervals)
