"""
Domain layer - Pure business logic without external dependencies.
"""

from .advisor import Advisor, advise
from .interval import Interval, make_interval, parse_interval
from .models import Booking, BookingRequest
from .schedule import DaySchedule
from .timetable import TimeTable, parse_timetable

__all__ = [
    "Advisor",
    "Booking",
    "BookingRequest",
    "DaySchedule",
    "Interval",
    "TimeTable",
    "advise",
    "make_interval",
    "parse_interval",
    "parse_timetable",
]
