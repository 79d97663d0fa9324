"""
Domain-specific exception hierarchy for the salon booking engine.
"""

from __future__ import annotations


class SalonBookingError(Exception):
    """Base class for all application-level errors."""


class ConfigError(SalonBookingError):
    """Raised when the configuration file cannot be parsed."""


class RepositoryError(SalonBookingError):
    """Raised when the record store is unreachable or a query fails."""

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class DuplicateRecordError(RepositoryError):
    """Raised by a store when a write violates a unique constraint."""


class BookingError(SalonBookingError):
    """Base class for errors raised while booking or updating reservations."""


class ConflictError(BookingError):
    """Raised when the requested slot overlaps an existing reservation."""

    def __init__(self, message: str = "The selected time is no longer available.", *, reason: str = "slot-taken"):
        super().__init__(message)
        self.reason = reason


class SlotTakenError(ConflictError):
    """Raised when another booking claimed the exact slot between check and write."""

    def __init__(self, message: str = "That time was just taken by another booking."):
        super().__init__(message, reason="slot-taken")


class SlotUnavailableError(BookingError):
    """Raised when the requested start is not bookable for a non-conflict reason."""

    def __init__(self, message: str, *, reason: str):
        super().__init__(message)
        self.reason = reason


class InvalidTransitionError(BookingError):
    """Raised when a reservation status change is not allowed."""


class ReservationNotFoundError(BookingError):
    """Raised when a reservation id does not exist in the store."""


class ServiceNotFoundError(BookingError):
    """Raised when a booking or slot query names a service that does not exist."""
