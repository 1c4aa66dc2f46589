"""
Application service that validates and commits bookings.

The service coordinates the store (through the protocols in ``store``) and
delegates the slot search to the domain-level ``Advisor``. It keeps no state
between calls besides its collaborators.
"""

from __future__ import annotations

import logging
from typing import List

from ..domain.advisor import Advisor
from ..domain.exceptions import FullyBookedError, OutsideTimeTableError, SlotTakenError
from ..domain.interval import (
    Interval,
    make_interval,
    parse_interval,
    timestamp_to_day_key,
    timestamp_to_minute_of_day,
    timestamp_to_weekday,
)
from ..domain.models import Booking, BookingRequest
from ..domain.schedule import DaySchedule
from .context import RequestContext
from .lengths import LengthCatalog
from .locks import KeyedLocks, default_locks
from .store import Filter
from .timetables import TimeTableService

logger = logging.getLogger(__name__)


class BookingService:
    """
    Orchestrates length validation, timetable containment, conflict checks and persistence.

    Conflict check and insert for one professional run under that
    professional's lock and the store's exclusive section, so concurrent
    writers cannot both pass the check for overlapping times.
    """

    def __init__(
        self,
        context: RequestContext,
        *,
        timetables: TimeTableService | None = None,
        lengths: LengthCatalog | None = None,
        locks: KeyedLocks | None = None,
        tz: str | None = None,
    ) -> None:
        self._context = context
        self._locks = locks or default_locks
        self._timetables = timetables or TimeTableService(context, locks=self._locks)
        self._lengths = lengths or LengthCatalog(context, locks=self._locks)
        self._tz = tz

    def visibility_filter(self, flt: Filter) -> None:
        """
        Professionals only see bookings made with them, clients only the ones they made.

        A professional acting as a client does not see their own client bookings.
        """
        caller = self._context.caller
        if caller.professional:
            flt.add_query({"professional": caller.id})
        else:
            flt.add_query({"createdBy": caller.id})

    def visible_bookings(self) -> List[Booking]:
        """Bookings visible to the caller, earliest first."""
        flt = self._context.store.new_filter(self._context.booking_collection)
        self.visibility_filter(flt)
        bookings = [Booking.from_document(doc) for doc in flt.find()]
        return sorted(bookings, key=lambda b: b.start)

    def suggest_closest(self, professional: str, start: int, length: int) -> Interval:
        """
        Find the free slot on the same day closest to the requested time.

        Raises:
            LengthNotDefinedError: If the length is not configured for the professional
            MultiplicityError: If the professional does not have exactly one timetable
            FullyBookedError: If no free slot of that length is left on the day
        """
        request = BookingRequest.parse({"professional": professional, "from": start, "length": length})

        self._lengths.require(request.professional, request.length)
        timetable = self._timetables.load(request.professional)

        weekday = timestamp_to_weekday(request.start, self._tz)
        taken = self._day_schedule(request.professional, request.start)
        # Slot size is the requested length, even where a DST change skews wall-clock minutes
        minute = timestamp_to_minute_of_day(request.start, self._tz)
        requested = make_interval(minute, minute + request.length)

        candidates = Advisor(timetable.windows(weekday), taken).advise(requested, amount=1)
        if not candidates:
            logger.debug("No %s minute slot left for %s", request.length, request.professional)
            raise FullyBookedError("Can't advise you, all day is taken.")

        logger.info(
            "Suggested %s to %s for professional %s (asked for %s)",
            candidates[0],
            self._context.caller.id,
            request.professional,
            requested,
        )
        return candidates[0]

    def insert(self, professional: str, start: int, length: int) -> Booking:
        """
        Book ``length`` minutes with a professional starting at ``start``.

        Back-to-back bookings are allowed; any overlap with another booking of
        the same professional is rejected.

        Raises:
            LengthNotDefinedError: If the length is not configured for the professional
            OutsideTimeTableError: If the interval does not fit into the timetable
            SlotTakenError: If the interval overlaps an existing booking
        """
        request = BookingRequest.parse({"professional": professional, "from": start, "length": length})

        self._lengths.require(request.professional, request.length)

        interval = parse_interval(request.start, request.end, self._tz)
        weekday = timestamp_to_weekday(request.start, self._tz)
        timetable = self._timetables.load(request.professional)
        if not timetable.contains(weekday, interval):
            logger.debug("Interval %s outside timetable of %s", interval, request.professional)
            raise OutsideTimeTableError("Interval does not fit into timetable.")

        booking = Booking(
            created_by=self._context.caller.id,
            professional=request.professional,
            start=request.start,
            end=request.end,
            length=request.length,
            day=timestamp_to_day_key(request.start, self._tz),
        )

        with self._locks.hold(("bookings", request.professional)), self._context.store.exclusive():
            flt = self._for_professional(request.professional)
            self._ensure_free(flt, request.start, request.end)
            flt.insert(booking.to_document())

        logger.info(
            "Booked %s on %s with %s for %s",
            interval,
            booking.day,
            booking.professional,
            booking.created_by,
        )
        return booking

    def delete(self, flt: Filter | None = None) -> None:
        """Removing bookings is not supported; the call is acknowledged and ignored."""
        logger.info("Ignoring delete request from %s: bookings cannot be removed", self._context.caller.id)

    def _for_professional(self, professional: str) -> Filter:
        return self._context.store.new_filter(
            self._context.booking_collection,
            {"professional": professional},
        )

    def _day_schedule(self, professional: str, start: int) -> DaySchedule:
        flt = self._for_professional(professional)
        flt.add_query({"day": timestamp_to_day_key(start, self._tz)})
        return DaySchedule.from_documents(flt.find(), self._tz)

    @staticmethod
    def _ensure_free(flt: Filter, start: int, end: int) -> None:
        overlapping = flt.clone()
        overlapping.add_query({"from": {"$lt": end}, "to": {"$gt": start}})
        if overlapping.count() > 0:
            raise SlotTakenError("That time is already taken.")
