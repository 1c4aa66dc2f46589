"""
Maintenance of the single timetable document each professional owns.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..domain.exceptions import BookingPermissionError, MultiplicityError, ValidationError
from ..domain.timetable import TimeTable, parse_timetable
from .context import RequestContext
from .locks import KeyedLocks, default_locks
from .store import Filter

logger = logging.getLogger(__name__)

# Never stored on any document, so a filter carrying it matches nothing.
_UNREACHABLE = {"clientsShouldNotViewTimeTables": True}


class TimeTableService:
    """
    Saves, loads and scopes timetable documents.

    Writes for one professional are serialized through ``locks`` so the
    count-then-write sequence in ``save`` keeps exactly one document.
    """

    def __init__(self, context: RequestContext, locks: KeyedLocks | None = None) -> None:
        self._context = context
        self._locks = locks or default_locks

    def _owned_by(self, professional: str) -> Filter:
        return self._context.store.new_filter(
            self._context.timetable_collection,
            {"createdBy": professional},
        )

    def visibility_filter(self, flt: Filter) -> None:
        """A professional sees only their own timetable; clients see none."""
        caller = self._context.caller
        if caller.professional:
            flt.add_query({"createdBy": caller.id})
        else:
            flt.add_query(_UNREACHABLE)

    def visible(self) -> List[Dict[str, Any]]:
        """Timetable documents visible to the caller."""
        flt = self._context.store.new_filter(self._context.timetable_collection)
        self.visibility_filter(flt)
        return flt.find()

    def save(self, windows: Any) -> TimeTable:
        """
        Store the calling professional's weekly windows.

        Args:
            windows: Generic weekly window representation, see ``parse_timetable``

        Returns:
            The parsed timetable that was stored

        Raises:
            BookingPermissionError: If the caller is not a professional
            ValidationError: If the windows are malformed
        """
        caller = self._context.caller
        if not caller.professional:
            raise BookingPermissionError("Only professionals can save timetables.")

        timetable = parse_timetable(windows)
        document = {"createdBy": caller.id, "timeTable": timetable.to_document()}

        with self._locks.hold(("timetable", caller.id)), self._context.store.exclusive():
            flt = self._owned_by(caller.id)
            count = flt.count()

            if count == 0:
                flt.insert(document)
                logger.info("Created timetable for professional %s", caller.id)
            elif count == 1:
                flt.select_one().update(document)
                logger.info("Updated timetable for professional %s", caller.id)
            else:
                logger.warning(
                    "Professional %s had %d timetables, replacing them with one",
                    caller.id,
                    count,
                )
                flt.remove_all()
                flt.insert(document)

        return timetable

    def load(self, professional: str) -> TimeTable:
        """
        Load the timetable of a professional.

        Raises:
            MultiplicityError: If the professional has no timetable or more than one
            ValidationError: If the stored timetable is malformed
        """
        flt = self._owned_by(professional)
        count = flt.count()
        if count != 1:
            raise MultiplicityError(
                f"Number of timetables for professional {professional} is {count}, expected one."
            )

        document = flt.find()[0]
        if "timeTable" not in document:
            raise ValidationError(f"Timetable of professional {professional} has no windows")
        return parse_timetable(document["timeTable"])
