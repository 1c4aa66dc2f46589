"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .bookings import BookingService
from .context import Caller, RequestContext
from .lengths import LengthCatalog
from .locks import KeyedLocks
from .store import Document, DocumentStore, Filter
from .timetables import TimeTableService

__all__ = [
    "BookingService",
    "Caller",
    "Document",
    "DocumentStore",
    "Filter",
    "KeyedLocks",
    "LengthCatalog",
    "RequestContext",
    "TimeTableService",
]
