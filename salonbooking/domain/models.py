"""
Domain models for working windows, reservations and computed availability.

All time-of-day arithmetic is done on integer minutes since midnight. Calendar
days are plain ``date`` objects, so no value here carries a timezone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import FrozenSet, List, Optional

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """
    A wall-clock time expressed as minutes since midnight.

    Values at or beyond midnight are allowed so that a reservation running
    past the end of the day still has a well-defined end.
    """
    minutes: int

    def __post_init__(self):
        if self.minutes < 0:
            raise ValueError(f"Time of day cannot be negative, got {self.minutes}")

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """
        Parse ``HH:MM`` or ``HH:MM:SS`` (seconds are ignored).

        Raises:
            ValueError: If the value is not a valid clock time
        """
        parts = str(value).strip().split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"Invalid time of day: {value!r}")
        try:
            hour, minute = int(parts[0]), int(parts[1])
        except ValueError:
            raise ValueError(f"Invalid time of day: {value!r}") from None
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid time of day: {value!r}")
        return cls(hour * 60 + minute)

    @classmethod
    def of(cls, hour: int, minute: int = 0) -> "TimeOfDay":
        return cls(hour * 60 + minute)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def add_minutes(self, minutes: int) -> "TimeOfDay":
        return TimeOfDay(self.minutes + minutes)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class WorkingWindow:
    """
    One contiguous range of the day in which an employee takes bookings.

    ``applies_on`` is ``None`` when the window applies to every day, otherwise
    it holds normalized day labels (see ``salonbooking.domain.days``).

    Invariant: start_time must be before end_time.
    """
    employee_id: str
    start_time: TimeOfDay
    end_time: TimeOfDay
    applies_on: Optional[FrozenSet[str]] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Window start {self.start_time} must be before end {self.end_time}"
            )

    @property
    def applies_every_day(self) -> bool:
        return not self.applies_on

    def contains(self, start: int, duration_minutes: int) -> bool:
        """Check if ``[start, start + duration)`` fits inside the window."""
        return (
            self.start_time.minutes <= start
            and start + duration_minutes <= self.end_time.minutes
        )


@dataclass(frozen=True)
class OccupiedInterval:
    """
    A committed range of one day that cannot be booked again.

    Derived from a reservation's start time and its service duration, never
    persisted.
    """
    day: date
    start_minute: int
    end_minute: int

    def __post_init__(self):
        if self.start_minute >= self.end_minute:
            raise ValueError(
                f"Interval start {self.start_minute} must be before end {self.end_minute}"
            )

    def overlaps(self, start: int, end: int) -> bool:
        """Half-open overlap test against ``[start, end)`` on the same day."""
        return start < self.end_minute and end > self.start_minute

    def __str__(self) -> str:
        return (
            f"{self.day.isoformat()} {TimeOfDay(self.start_minute)}"
            f"-{TimeOfDay(self.end_minute)}"
        )


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def blocks_slot(self) -> bool:
        """Whether a reservation in this status occupies its time range."""
        return self is not ReservationStatus.CANCELLED


@dataclass(frozen=True)
class Reservation:
    """A booking record in canonical form."""
    id: str
    client_id: str
    employee_id: str
    service_id: str
    day: date
    start_time: TimeOfDay
    status: ReservationStatus = ReservationStatus.PENDING


@dataclass(frozen=True)
class Service:
    """A bookable service; only the duration matters to availability."""
    id: str
    name: str
    duration_minutes: int


class ReasonCode(str, Enum):
    """Machine-readable explanation for an empty or rejected result."""
    CLOSED = "closed"
    NO_SCHEDULE = "no-schedule"
    DAY_OFF = "day-off"
    FULLY_BOOKED = "fully-booked"
    PAST_DATE = "past-date"
    OUTSIDE_HOURS = "outside-hours"
    SLOT_TAKEN = "slot-taken"


@dataclass
class AvailabilityResult:
    """Bookable start times for one employee and day."""
    day: date
    slots: List[TimeOfDay] = field(default_factory=list)
    reason: Optional[ReasonCode] = None

    @property
    def is_available(self) -> bool:
        return bool(self.slots)

    def labels(self) -> List[str]:
        return [str(slot) for slot in self.slots]
