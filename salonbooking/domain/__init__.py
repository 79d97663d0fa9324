"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    AvailabilityResult,
    OccupiedInterval,
    ReasonCode,
    Reservation,
    ReservationStatus,
    Service,
    TimeOfDay,
    WorkingWindow,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "AvailabilityResult",
    "OccupiedInterval",
    "ReasonCode",
    "Reservation",
    "ReservationStatus",
    "Service",
    "TimeOfDay",
    "WorkingWindow",
    "SlotCalculator",
]
