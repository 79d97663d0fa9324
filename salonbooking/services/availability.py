"""
Application service for computing appointment availability.

The service pulls working windows and occupied intervals from the repository
adapters and delegates the actual slot calculation to the domain-level
``SlotCalculator``. Repositories are injected through small protocols so
tests can pass stubs.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Callable, List, Optional, Protocol, Union

from ..domain.days import applies_on_day, parse_calendar_date, today_in
from ..domain.exceptions import ServiceNotFoundError
from ..domain.models import (
    AvailabilityResult,
    OccupiedInterval,
    ReasonCode,
    Reservation,
    Service,
    WorkingWindow,
)
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)


class ScheduleSource(Protocol):
    """Protocol describing the schedule lookups needed by the services."""

    def get_working_windows(self, employee_id: str) -> List[WorkingWindow]:
        """Return every working window configured for the employee."""


class ReservationSource(Protocol):
    """Protocol describing the reservation lookups needed by the services."""

    def get_occupied_intervals(self, employee_id: str, day: date) -> List[OccupiedInterval]:
        """Return the occupied intervals of the employee on ``day``."""

    def get_service(self, service_id: str) -> Optional[Service]:
        """Return the service, or None if it does not exist."""

    def list_reservations(
        self,
        employee_id: str,
        *,
        day: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        include_cancelled: bool = False,
    ) -> List[Reservation]:
        """Return the employee's reservations ordered by date and time."""


class ServiceLookup(Protocol):
    """Protocol for anything that can look up a service by id."""

    def get_service(self, service_id: str) -> Optional[Service]:
        """Return the service, or None if it does not exist."""


def resolve_service_duration(reservations: ServiceLookup, service_id: str) -> int:
    """
    Duration in minutes of a service that must exist.

    Raises:
        ServiceNotFoundError: If the store has no such service
    """
    service = reservations.get_service(service_id)
    if service is None:
        raise ServiceNotFoundError(f"Service {service_id} not found")
    return service.duration_minutes


class AvailabilityService:
    """
    Orchestrates schedule and reservation retrieval and slot calculation.

    Holds no state between calls; every query reads fresh data.
    """

    def __init__(
        self,
        schedules: ScheduleSource,
        reservations: ReservationSource,
        slot_calculator: SlotCalculator,
        *,
        timezone: str = "UTC",
        allow_past_dates: bool = False,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self._schedules = schedules
        self._reservations = reservations
        self._slot_calculator = slot_calculator
        self._allow_past_dates = allow_past_dates
        self._clock = clock or (lambda: today_in(timezone))

    def today(self) -> date:
        return self._clock()

    def get_slots(
        self,
        employee_id: str,
        day: Union[str, date],
        duration_minutes: int,
    ) -> AvailabilityResult:
        """
        Compute bookable start times for an employee on one day.

        Raises:
            ValueError: If the date or duration is invalid
            RepositoryError: If the store cannot be queried
        """
        target = parse_calendar_date(day)

        if not self._allow_past_dates and target < self.today():
            return AvailabilityResult(day=target, reason=ReasonCode.PAST_DATE)

        # The closed day needs no store access at all
        if self._slot_calculator.is_closed(target):
            return AvailabilityResult(day=target, reason=ReasonCode.CLOSED)

        windows = self._schedules.get_working_windows(employee_id)
        occupied = self._reservations.get_occupied_intervals(employee_id, target)

        return self._slot_calculator.compute_slots(
            windows=windows,
            occupied=occupied,
            duration_minutes=duration_minutes,
            day=target,
        )

    def get_slots_for_service(
        self,
        employee_id: str,
        service_id: str,
        day: Union[str, date],
    ) -> AvailabilityResult:
        """
        Compute slots using the duration configured for a service.

        Raises:
            ServiceNotFoundError: If the service does not exist
        """
        duration = resolve_service_duration(self._reservations, service_id)
        return self.get_slots(employee_id, day, duration)

    def available_days(
        self,
        employee_id: str,
        year: int,
        month: int,
        duration_minutes: int,
    ) -> List[date]:
        """
        List the days of a month that still have at least one free slot.

        Past days are skipped unless past dates are allowed. Working windows
        are read once; reservations are only read for days the employee works.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")

        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        if not self._allow_past_dates:
            first = max(first, self.today())

        windows = self._schedules.get_working_windows(employee_id)
        if not windows:
            return []

        days: List[date] = []
        current = first
        while current <= last:
            works = not self._slot_calculator.is_closed(current) and any(
                applies_on_day(w.applies_on, current) for w in windows
            )
            if works:
                occupied = self._reservations.get_occupied_intervals(employee_id, current)
                result = self._slot_calculator.compute_slots(
                    windows=windows,
                    occupied=occupied,
                    duration_minutes=duration_minutes,
                    day=current,
                )
                if result.is_available:
                    days.append(current)
            current += timedelta(days=1)

        return days

    def agenda(
        self,
        employee_id: str,
        date_from: Optional[Union[str, date]] = None,
    ) -> List[Reservation]:
        """An employee's upcoming non-cancelled reservations, oldest first."""
        start = parse_calendar_date(date_from) if date_from is not None else self.today()
        return self._reservations.list_reservations(employee_id, date_from=start)
