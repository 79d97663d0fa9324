"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService, ReservationSource, ScheduleSource
from .booking_guard import BookingGuard
from .presentation import SlotListing, SlotPresenter, SlotRequest, SlotView

__all__ = [
    "AvailabilityService",
    "ReservationSource",
    "ScheduleSource",
    "BookingGuard",
    "SlotListing",
    "SlotPresenter",
    "SlotRequest",
    "SlotView",
]
