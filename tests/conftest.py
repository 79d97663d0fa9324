"""Shared test fixtures and helpers."""

from dataclasses import dataclass
from datetime import date
from typing import Optional

import pytest

from salonbooking.adapters.record_store import InMemoryRecordStore
from salonbooking.adapters.reservation_repository import (
    RESERVATION_TABLE,
    ReservationRepository,
    reservation_slot_constraint,
)
from salonbooking.adapters.schedule_repository import ScheduleRepository
from salonbooking.domain.slot_calculator import SlotCalculator
from salonbooking.services.availability import AvailabilityService
from salonbooking.services.booking_guard import BookingGuard

# June 2025: the 1st is a Sunday
TODAY = date(2025, 6, 1)
MONDAY = date(2025, 6, 9)
TUESDAY = date(2025, 6, 10)
WEDNESDAY = date(2025, 6, 11)
THURSDAY = date(2025, 6, 12)
SUNDAY = date(2025, 6, 15)


def make_store(tables: Optional[dict] = None) -> InMemoryRecordStore:
    """In-memory store with the reservation slot constraint installed."""
    return InMemoryRecordStore(
        tables=tables or {},
        unique_constraints={RESERVATION_TABLE: [reservation_slot_constraint()]},
        id_columns={RESERVATION_TABLE: "idreserva"},
    )


def reservation_row(
    hora: str,
    fecha: str = "2025-06-10",
    idservicio: int = 1,
    estado: str = "pendiente",
    idempleado: str = "emp-1",
    **extra,
) -> dict:
    row = {
        "idusuariocliente": "client-1",
        "idempleado": idempleado,
        "idservicio": idservicio,
        "fecha": fecha,
        "hora": hora,
        "estado": estado,
    }
    row.update(extra)
    return row


@pytest.fixture
def salon_tables() -> dict:
    """Employee emp-1 works 09:00-17:00 on Tuesdays and Wednesdays."""
    return {
        "horario": [
            {
                "idhorario": 1,
                "nombre": "Turno completo",
                "horainicio": "09:00:00",
                "horafin": "17:00:00",
                "diasemana": "Martes;Miércoles",
            }
        ],
        "empleado_horario": [
            {"idusuarioempleado": "emp-1", "idhorario": 1, "activo": True},
        ],
        "servicio": [
            {"idservicio": 1, "nombre": "Corte", "duracion": 60},
            {"idservicio": 2, "nombre": "Tinte", "duracion": 120},
            {"idservicio": 3, "nombre": "Manicure", "duracion": 30},
        ],
        "reserva": [],
    }


@pytest.fixture
def store(salon_tables) -> InMemoryRecordStore:
    return make_store(salon_tables)


@dataclass
class Engine:
    store: InMemoryRecordStore
    schedules: ScheduleRepository
    reservations: ReservationRepository
    calculator: SlotCalculator
    availability: AvailabilityService
    guard: BookingGuard


def build_engine(store: InMemoryRecordStore, **guard_kwargs) -> Engine:
    schedules = ScheduleRepository(store)
    reservations = ReservationRepository(store)
    calculator = SlotCalculator()
    availability = AvailabilityService(schedules, reservations, calculator, clock=lambda: TODAY)
    guard = BookingGuard(schedules, reservations, calculator, clock=lambda: TODAY, **guard_kwargs)
    return Engine(store, schedules, reservations, calculator, availability, guard)


@pytest.fixture
def engine(store) -> Engine:
    return build_engine(store)
