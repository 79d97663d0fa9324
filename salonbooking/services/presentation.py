"""
Request and response shapes exchanged with the UI layer.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..domain.days import parse_calendar_date
from ..domain.exceptions import (
    ConflictError,
    RepositoryError,
    ServiceNotFoundError,
    SlotUnavailableError,
)
from ..domain.models import ReasonCode
from .availability import AvailabilityService, ServiceLookup, resolve_service_duration

# User-facing messages are in the salon's language
REASON_MESSAGES: Dict[ReasonCode, str] = {
    ReasonCode.CLOSED: "No trabajamos este día.",
    ReasonCode.NO_SCHEDULE: "El empleado no tiene horario asignado.",
    ReasonCode.DAY_OFF: "El empleado no trabaja este día.",
    ReasonCode.FULLY_BOOKED: "No hay horarios disponibles.",
    ReasonCode.PAST_DATE: "No se puede reservar en una fecha pasada.",
    ReasonCode.OUTSIDE_HOURS: "Ese horario no está disponible para este servicio.",
    ReasonCode.SLOT_TAKEN: "Ese horario acaba de ser reservado. Elige otro.",
}

SERVICE_NOT_FOUND_MESSAGE = "El servicio seleccionado no existe."


class SlotRequest(BaseModel):
    """What the UI sends when it needs the hour picker."""
    employee_id: str = Field(min_length=1)
    service_id: str = Field(min_length=1)
    date: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        """Ensure the date is a valid YYYY-MM-DD calendar date."""
        return parse_calendar_date(value).isoformat()


class SlotView(BaseModel):
    """One selectable slot."""
    start_time: str
    label: str


class SlotListing(BaseModel):
    """What the UI renders; an empty listing always carries a reason and message."""
    employee_id: str
    date: str
    duration_minutes: int
    slots: List[SlotView] = Field(default_factory=list)
    reason: Optional[str] = None
    message: Optional[str] = None


class SlotPresenter:
    """Translates UI requests into availability queries and back."""

    def __init__(self, availability: AvailabilityService, reservations: ServiceLookup):
        self._availability = availability
        self._reservations = reservations

    def list_slots(self, request: SlotRequest) -> SlotListing:
        """
        Build the listing the hour picker renders.

        Raises:
            ServiceNotFoundError: If the requested service does not exist
        """
        duration = resolve_service_duration(self._reservations, request.service_id)
        result = self._availability.get_slots(request.employee_id, request.date, duration)

        slots = [
            SlotView(
                start_time=str(slot),
                label=f"{slot} - {slot.add_minutes(duration)}",
            )
            for slot in result.slots
        ]

        return SlotListing(
            employee_id=request.employee_id,
            date=request.date,
            duration_minutes=duration,
            slots=slots,
            reason=result.reason.value if result.reason else None,
            message=REASON_MESSAGES[result.reason] if result.reason else None,
        )


def booking_error_message(error: Exception) -> str:
    """
    Message shown when a booking fails.

    Losing a race ("just taken") is kept distinct from a failure of the
    system itself.
    """
    if isinstance(error, ConflictError):
        return REASON_MESSAGES[ReasonCode.SLOT_TAKEN]
    if isinstance(error, SlotUnavailableError):
        return REASON_MESSAGES.get(ReasonCode(error.reason), str(error))
    if isinstance(error, ServiceNotFoundError):
        return SERVICE_NOT_FOUND_MESSAGE
    if isinstance(error, RepositoryError):
        return "No se pudo completar la reserva. Inténtalo de nuevo en unos minutos."
    return "Ocurrió un error inesperado al reservar."
