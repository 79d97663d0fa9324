"""
Adapters layer - Record store access and row normalization.
"""

from .record_store import InMemoryRecordStore, RecordStore, UniqueConstraint
from .reservation_repository import ReservationRepository, reservation_slot_constraint
from .rest_store import RestRecordStore
from .schedule_repository import ScheduleRepository

__all__ = [
    "InMemoryRecordStore",
    "RecordStore",
    "UniqueConstraint",
    "ReservationRepository",
    "reservation_slot_constraint",
    "RestRecordStore",
    "ScheduleRepository",
]
