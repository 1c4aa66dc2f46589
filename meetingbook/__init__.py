"""
meetingbook - Book meetings with professionals without double-booking.
"""

__version__ = "0.1.0"
