"""
Core business logic for calculating bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Every entry point
that needs slots goes through ``SlotCalculator`` so the policy lives in one
place.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Set

from .days import applies_on_day
from .models import (
    AvailabilityResult,
    OccupiedInterval,
    ReasonCode,
    TimeOfDay,
    WorkingWindow,
)

logger = logging.getLogger(__name__)

DEFAULT_CLOSED_WEEKDAYS = (0,)  # Monday
DEFAULT_STEP_MINUTES = 60


class SlotCalculator:
    """
    Calculates bookable start times for one employee on one day.

    Algorithm:
    1. Return "closed" if the business is closed on the day's weekday
    2. Keep only working windows that apply on that weekday
    3. Step through each window at a fixed granularity, keeping starts
       whose service fits before the window ends
    4. Drop candidates that overlap any occupied interval
    5. Union across windows, dedupe and sort
    """

    def __init__(
        self,
        closed_weekdays: Iterable[int] = DEFAULT_CLOSED_WEEKDAYS,
        step_minutes: int = DEFAULT_STEP_MINUTES,
    ):
        """
        Initialize the calculator.

        Args:
            closed_weekdays: Weekdays the whole salon is closed (0=Monday, 6=Sunday)
            step_minutes: Distance between consecutive candidate start times
        """
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be greater than zero, got {step_minutes}")
        self.closed_weekdays = frozenset(closed_weekdays)
        self.step_minutes = step_minutes

    def is_closed(self, day: date) -> bool:
        """Check if the salon is closed on the given day."""
        return day.weekday() in self.closed_weekdays

    def compute_slots(
        self,
        windows: Sequence[WorkingWindow],
        occupied: Sequence[OccupiedInterval],
        duration_minutes: int,
        day: date,
    ) -> AvailabilityResult:
        """
        Compute the ordered list of bookable start times.

        Args:
            windows: Every working window configured for the employee
            occupied: Occupied intervals for the employee (other days are ignored)
            duration_minutes: Length of the requested service
            day: Calendar day being booked

        Returns:
            AvailabilityResult whose reason is set exactly when no slot remains

        Raises:
            ValueError: If duration_minutes is not positive
        """
        self._validate_duration(duration_minutes)

        reason = self._day_level_reason(windows, day)
        if reason is not None:
            return AvailabilityResult(day=day, reason=reason)

        matching = self._windows_for_day(windows, day)
        busy = self._intervals_for_day(occupied, day)

        starts: Set[int] = set()
        for window in matching:
            for start in self._candidate_starts(window, duration_minutes):
                if not self._overlaps_any(start, duration_minutes, busy):
                    starts.add(start)

        slots = [TimeOfDay(minutes) for minutes in sorted(starts)]
        logger.debug(
            "Computed %d slot(s) for %s from %d window(s) and %d occupied interval(s)",
            len(slots), day.isoformat(), len(matching), len(busy),
        )

        if not slots:
            return AvailabilityResult(day=day, reason=ReasonCode.FULLY_BOOKED)
        return AvailabilityResult(day=day, slots=slots)

    def check_slot(
        self,
        windows: Sequence[WorkingWindow],
        occupied: Sequence[OccupiedInterval],
        start: TimeOfDay,
        duration_minutes: int,
        day: date,
    ) -> Optional[ReasonCode]:
        """
        Apply the same policy as ``compute_slots`` to a single requested start.

        Returns:
            None if the start is bookable, otherwise the reason it is not
        """
        self._validate_duration(duration_minutes)

        reason = self._day_level_reason(windows, day)
        if reason is not None:
            return reason

        offered = any(
            start.minutes in self._candidate_starts(window, duration_minutes)
            for window in self._windows_for_day(windows, day)
        )
        if not offered:
            return ReasonCode.OUTSIDE_HOURS

        if self._overlaps_any(start.minutes, duration_minutes, self._intervals_for_day(occupied, day)):
            return ReasonCode.SLOT_TAKEN
        return None

    def _day_level_reason(
        self,
        windows: Sequence[WorkingWindow],
        day: date,
    ) -> Optional[ReasonCode]:
        """Reasons that empty the whole day before any slot is generated."""
        if self.is_closed(day):
            return ReasonCode.CLOSED
        if not windows:
            return ReasonCode.NO_SCHEDULE
        if not self._windows_for_day(windows, day):
            return ReasonCode.DAY_OFF
        return None

    @staticmethod
    def _validate_duration(duration_minutes: int) -> None:
        if duration_minutes <= 0:
            raise ValueError(
                f"duration_minutes must be greater than zero, got {duration_minutes}"
            )

    @staticmethod
    def _windows_for_day(
        windows: Sequence[WorkingWindow],
        day: date,
    ) -> List[WorkingWindow]:
        return [w for w in windows if applies_on_day(w.applies_on, day)]

    @staticmethod
    def _intervals_for_day(
        occupied: Sequence[OccupiedInterval],
        day: date,
    ) -> List[OccupiedInterval]:
        return [interval for interval in occupied if interval.day == day]

    def _candidate_starts(self, window: WorkingWindow, duration_minutes: int) -> range:
        """
        Start times from the window opening, stepped at the configured granularity.

        Example (60 min step, 120 min service):
        Window: 09:00 - 12:00
        Result: [09:00, 10:00]
        """
        last_start = window.end_time.minutes - duration_minutes
        return range(window.start_time.minutes, last_start + 1, self.step_minutes)

    @staticmethod
    def _overlaps_any(
        start: int,
        duration_minutes: int,
        busy: Sequence[OccupiedInterval],
    ) -> bool:
        end = start + duration_minutes
        return any(interval.overlaps(start, end) for interval in busy)
