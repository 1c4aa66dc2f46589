"""
Domain-specific exception hierarchy for the booking engine.
"""


class MeetingBookError(Exception):
    """Base class for all application-level errors."""


class ValidationError(MeetingBookError, ValueError):
    """Raised when an interval, timetable or request is malformed."""


class LengthNotDefinedError(ValidationError):
    """Raised when a meeting length is not configured for the professional."""

    def __init__(self, length: int):
        super().__init__(f"Interval {length} is not defined.")
        self.length = length


class OutsideTimeTableError(ValidationError):
    """Raised when a requested interval does not fit into the timetable."""


class MultiplicityError(MeetingBookError):
    """Raised when a professional does not own exactly one timetable."""


class ConflictError(MeetingBookError):
    """Raised when a booking cannot be placed because of other bookings."""


class SlotTakenError(ConflictError):
    """Raised when the requested time overlaps an existing booking."""


class FullyBookedError(ConflictError):
    """Raised when no free slot of the requested length is left on a day."""


class BookingPermissionError(MeetingBookError, PermissionError):
    """Raised when the caller's role does not allow the operation."""


class PersistenceError(MeetingBookError):
    """Raised when the document store cannot be read or written."""
