"""
Core business logic for suggesting free slots on a day.

This is the heart of the application - pure domain logic without any
external dependencies (no store, no request context, no I/O).
"""

from typing import Iterable, List, Sequence

from .exceptions import ValidationError
from .interval import Interval, make_interval


class Advisor:
    """
    Suggests free slots of a requested length within the open windows of a day.

    Algorithm:
    1. Subtract the taken intervals from every open window
    2. Drop free segments shorter than the requested length
    3. Anchor one candidate at the start of each remaining segment
    4. Rank candidates by distance from the requested start, earliest first on ties
    5. Return the first ``amount`` candidates

    Instances hold no mutable state and may be shared between threads.
    """

    def __init__(self, open_windows: Iterable[Interval], taken: Iterable[Interval]):
        self.open_windows: Sequence[Interval] = tuple(open_windows)
        self.taken: Sequence[Interval] = tuple(taken)

    def advise(self, requested: Interval, amount: int = 1) -> List[Interval]:
        """
        Find the free slots closest to the requested interval.

        Args:
            requested: Its length is the slot size, its start the proximity anchor
            amount: Maximum number of candidates to return

        Returns:
            Up to ``amount`` intervals of exactly the requested length
        """
        if amount < 0:
            raise ValidationError(f"Amount must not be negative, got {amount}")
        if amount == 0:
            return []

        length = requested.duration_minutes()

        candidates = [
            make_interval(segment.start, segment.start + length)
            for segment in self.free_segments()
            if segment.duration_minutes() >= length
        ]

        candidates.sort(key=lambda c: (c.distance_to(requested), c.start))

        return candidates[:amount]

    def free_segments(self) -> List[Interval]:
        """
        Convert taken times to free times within the open windows.

        - Start with the open windows (the "universe" of bookable time)
        - Subtract all taken intervals
        - What remains is free time, as maximal disjoint segments
        """
        free: List[Interval] = []

        sorted_taken = sorted(self.taken)

        for window in sorted(self.open_windows):
            overlapping = [t for t in sorted_taken if window.overlaps(t)]

            if not overlapping:
                free.append(window)
                continue

            free.extend(self._subtract_taken_from_window(window, overlapping))

        return free

    @staticmethod
    def _subtract_taken_from_window(
        window: Interval,
        taken: Sequence[Interval],
    ) -> List[Interval]:
        """
        Subtract taken intervals (sorted by start) from a window.

        Example:
        Window: 08:00 - 17:00
        Taken: [10:00-11:00, 14:00-15:00]
        Result: [08:00-10:00, 11:00-14:00, 15:00-17:00]
        """
        free: List[Interval] = []
        current_start = window.start

        for interval in taken:
            clipped_start = max(interval.start, window.start)
            clipped_end = min(interval.end, window.end)

            if current_start < clipped_start:
                free.append(make_interval(current_start, clipped_start))

            current_start = max(current_start, clipped_end)

        if current_start < window.end:
            free.append(make_interval(current_start, window.end))

        return free


def advise(
    open_windows: Iterable[Interval],
    taken: Iterable[Interval],
    requested: Interval,
    amount: int = 1,
) -> List[Interval]:
    """Convenience wrapper around ``Advisor(...).advise(...)``."""
    return Advisor(open_windows, taken).advise(requested, amount)
