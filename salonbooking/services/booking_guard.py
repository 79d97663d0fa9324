"""
Booking transaction guard.

``BookingGuard.book`` never trusts the slot list a caller saw earlier: it
re-reads the employee's windows and occupied intervals at commit time and
rejects the booking if the requested range is no longer free. The insert
itself relies on the store's unique index on (employee, date, start time) as
a second line of defense.

Residual race: two bookings whose start times differ but whose ranges
overlap (e.g. a 2 hour service at 10:00 and a 1 hour service at 11:00) can
both pass the read-then-write check when they run concurrently, because the
unique index only covers identical start times.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Union

from ..domain.days import parse_calendar_date, today_in
from ..domain.exceptions import (
    ConflictError,
    InvalidTransitionError,
    ReservationNotFoundError,
    SlotUnavailableError,
)
from ..domain.models import (
    OccupiedInterval,
    ReasonCode,
    Reservation,
    ReservationStatus,
    Service,
    TimeOfDay,
)
from ..domain.slot_calculator import SlotCalculator
from .availability import ScheduleSource, resolve_service_duration

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

_UNAVAILABLE_MESSAGES: Dict[ReasonCode, str] = {
    ReasonCode.CLOSED: "The salon is closed on that day.",
    ReasonCode.NO_SCHEDULE: "The employee has no schedule assigned.",
    ReasonCode.DAY_OFF: "The employee does not work on that day.",
    ReasonCode.OUTSIDE_HOURS: "That start time is not offered for this service.",
    ReasonCode.PAST_DATE: "Reservations cannot be made in the past.",
}


class ReservationWriter(Protocol):
    """Protocol describing the reservation store operations used by the guard."""

    def get_occupied_intervals(self, employee_id: str, day: date) -> List[OccupiedInterval]:
        """Return the occupied intervals of the employee on ``day``."""

    def get_service(self, service_id: str) -> Optional[Service]:
        """Return the service, or None if it does not exist."""

    def create_reservation(
        self,
        *,
        client_id: str,
        employee_id: str,
        service_id: str,
        day: date,
        start_time: TimeOfDay,
        status: ReservationStatus = ReservationStatus.PENDING,
    ) -> Reservation:
        """Insert a reservation, raising SlotTakenError on a duplicate slot."""

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        """Return the reservation or None."""

    def update_status(self, reservation_id: str, status: ReservationStatus) -> Reservation:
        """Persist a new status."""


class BookingGuard:
    """Validates and commits bookings, and applies reservation status changes."""

    def __init__(
        self,
        schedules: ScheduleSource,
        reservations: ReservationWriter,
        slot_calculator: SlotCalculator,
        *,
        initial_status: ReservationStatus = ReservationStatus.PENDING,
        timezone: str = "UTC",
        allow_past_dates: bool = False,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        if initial_status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise ValueError(f"initial_status must be pending or confirmed, got {initial_status.value}")
        self._schedules = schedules
        self._reservations = reservations
        self._slot_calculator = slot_calculator
        self.initial_status = initial_status
        self._allow_past_dates = allow_past_dates
        self._clock = clock or (lambda: today_in(timezone))

    def book(
        self,
        *,
        employee_id: str,
        service_id: str,
        client_id: str,
        day: Union[str, date],
        start: Union[str, TimeOfDay],
    ) -> Reservation:
        """
        Re-validate the requested slot and insert the reservation.

        Args:
            employee_id: Employee being booked
            service_id: Service being booked (determines the duration)
            client_id: Client making the booking
            day: Calendar day of the appointment
            start: Requested start time, as previously offered by the slot list

        Returns:
            The created Reservation

        Raises:
            ConflictError: If the range now overlaps another reservation
            SlotTakenError: If another booking claimed the same start concurrently
            SlotUnavailableError: If the start is not bookable for any other reason
            ServiceNotFoundError: If the service does not exist
            RepositoryError: If the store cannot be queried or written
        """
        target = parse_calendar_date(day)
        start_time = start if isinstance(start, TimeOfDay) else TimeOfDay.parse(start)

        if not self._allow_past_dates and target < self._clock():
            self._reject(ReasonCode.PAST_DATE)

        duration = resolve_service_duration(self._reservations, service_id)
        windows = self._schedules.get_working_windows(employee_id)
        occupied = self._reservations.get_occupied_intervals(employee_id, target)

        reason = self._slot_calculator.check_slot(
            windows=windows,
            occupied=occupied,
            start=start_time,
            duration_minutes=duration,
            day=target,
        )
        if reason is ReasonCode.SLOT_TAKEN:
            logger.info(
                "Rejected booking for employee %s on %s at %s: overlaps an existing reservation",
                employee_id, target.isoformat(), start_time,
            )
            raise ConflictError()
        if reason is not None:
            self._reject(reason)

        reservation = self._reservations.create_reservation(
            client_id=client_id,
            employee_id=employee_id,
            service_id=service_id,
            day=target,
            start_time=start_time,
            status=self.initial_status,
        )
        logger.info(
            "Booked reservation %s: employee %s, service %s, %s %s (%d min)",
            reservation.id, employee_id, service_id, target.isoformat(), start_time, duration,
        )
        return reservation

    @staticmethod
    def _reject(reason: ReasonCode) -> None:
        raise SlotUnavailableError(_UNAVAILABLE_MESSAGES[reason], reason=reason.value)

    def cancel(self, reservation_id: str) -> Reservation:
        """Cancel a reservation, freeing its time range."""
        return self._transition(reservation_id, ReservationStatus.CANCELLED)

    def confirm(self, reservation_id: str) -> Reservation:
        return self._transition(reservation_id, ReservationStatus.CONFIRMED)

    def complete(self, reservation_id: str) -> Reservation:
        return self._transition(reservation_id, ReservationStatus.COMPLETED)

    def _transition(self, reservation_id: str, target: ReservationStatus) -> Reservation:
        reservation = self._reservations.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

        if target not in ALLOWED_TRANSITIONS[reservation.status]:
            raise InvalidTransitionError(
                f"Cannot change reservation {reservation_id} "
                f"from {reservation.status.value} to {target.value}"
            )

        updated = self._reservations.update_status(reservation_id, target)
        logger.info(
            "Reservation %s: %s -> %s", reservation_id, reservation.status.value, target.value
        )
        return updated
