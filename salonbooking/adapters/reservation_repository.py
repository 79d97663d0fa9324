"""
Reservation repository: reservations, service durations and occupied intervals.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from ..domain.days import parse_calendar_date
from ..domain.exceptions import DuplicateRecordError, ReservationNotFoundError, SlotTakenError
from ..domain.models import (
    OccupiedInterval,
    Reservation,
    ReservationStatus,
    Service,
    TimeOfDay,
)
from .record_store import Record, RecordStore, UniqueConstraint
from .schedule_repository import first_present, unwrap_nested

logger = logging.getLogger(__name__)

RESERVATION_TABLE = "reserva"
SERVICE_TABLE = "servicio"

DEFAULT_DURATION_MINUTES = 60

# Labels written to the store for each canonical status
STATUS_LABELS: Dict[ReservationStatus, str] = {
    ReservationStatus.PENDING: "pendiente",
    ReservationStatus.CONFIRMED: "activa",
    ReservationStatus.COMPLETED: "realizada",
    ReservationStatus.CANCELLED: "cancelada",
}

_STATUS_ALIASES: Dict[str, ReservationStatus] = {
    "pendiente": ReservationStatus.PENDING,
    "pending": ReservationStatus.PENDING,
    "activa": ReservationStatus.CONFIRMED,
    "active": ReservationStatus.CONFIRMED,
    "confirmada": ReservationStatus.CONFIRMED,
    "confirmed": ReservationStatus.CONFIRMED,
    "realizada": ReservationStatus.COMPLETED,
    "completada": ReservationStatus.COMPLETED,
    "completed": ReservationStatus.COMPLETED,
    "cancelada": ReservationStatus.CANCELLED,
    "cancelled": ReservationStatus.CANCELLED,
    "canceled": ReservationStatus.CANCELLED,
}


def parse_status(value: Any) -> ReservationStatus:
    """
    Map a store status label to the canonical status.

    Unknown labels are treated as pending so the reservation keeps blocking
    its time range.
    """
    label = str(value or "").strip().lower()
    status = _STATUS_ALIASES.get(label)
    if status is None:
        logger.warning("Unknown reservation status %r, treating as pending", value)
        return ReservationStatus.PENDING
    return status


def _canonical_time(value: Any) -> str:
    try:
        return str(TimeOfDay.parse(value))
    except ValueError:
        return str(value)


def reservation_slot_constraint() -> UniqueConstraint:
    """
    Unique index on (employee, date, start time) over non-cancelled reservations.

    This is the store-level guard against two bookings of the same slot.
    """
    return UniqueConstraint(
        columns=("idempleado", "fecha", "hora"),
        where=lambda row: parse_status(row.get("estado")).blocks_slot,
        canonical={"hora": _canonical_time},
    )


class ReservationRepository:
    """Reads and writes reservation records and service durations."""

    def __init__(self, store: RecordStore, duration_unit: str = "minutes"):
        """
        Initialize the repository.

        Args:
            store: Backing record store
            duration_unit: Unit of ``servicio.duracion`` in the store ("minutes" or "hours")
        """
        if duration_unit not in ("minutes", "hours"):
            raise ValueError(f"duration_unit must be 'minutes' or 'hours', got {duration_unit!r}")
        self._store = store
        self.duration_unit = duration_unit

    def get_occupied_intervals(self, employee_id: str, day: date) -> List[OccupiedInterval]:
        """
        Compute the occupied intervals of an employee on one day.

        Cancelled reservations are excluded. Each interval ends at the start
        time plus the reservation's duration, falling back to the service
        duration and then to 60 minutes.

        Raises:
            RepositoryError: If the store cannot be queried
        """
        rows = self._store.select(
            RESERVATION_TABLE, {"idempleado": employee_id, "fecha": day.isoformat()}
        )

        durations: Dict[str, Optional[int]] = {}
        intervals: List[OccupiedInterval] = []
        skipped = 0

        for row in rows:
            if not parse_status(row.get("estado")).blocks_slot:
                continue
            try:
                start = TimeOfDay.parse(first_present(row, "hora"))
            except ValueError as e:
                logger.warning("Skipping reservation with malformed start time: %s (%s)", row, e)
                skipped += 1
                continue

            duration = self._row_duration(row, durations)
            intervals.append(
                OccupiedInterval(
                    day=day,
                    start_minute=start.minutes,
                    end_minute=start.minutes + duration,
                )
            )

        if skipped:
            logger.warning(
                "Skipped %d malformed reservation row(s) for employee %s on %s",
                skipped, employee_id, day.isoformat(),
            )
        return intervals

    def _row_duration(self, row: Record, cache: Dict[str, Optional[int]]) -> int:
        own = self._to_minutes(row.get("duracion"), unit="minutes")
        if own is not None:
            return own

        nested = unwrap_nested(first_present(row, "Servicio", "servicio"))
        if nested is not None:
            joined = self._to_minutes(nested.get("duracion"), unit=self.duration_unit)
            if joined is not None:
                return joined

        service_id = first_present(row, "idservicio", "idServicio", "id_servicio")
        if service_id is None:
            return DEFAULT_DURATION_MINUTES

        key = str(service_id)
        if key not in cache:
            service = self.get_service(key)
            cache[key] = service.duration_minutes if service else None
        return cache[key] or DEFAULT_DURATION_MINUTES

    def get_service(self, service_id: str) -> Optional[Service]:
        """Look up a service; returns None if it does not exist."""
        rows = self._store.select(SERVICE_TABLE, {"idservicio": service_id})
        if not rows:
            return None

        row = rows[0]
        duration = self._to_minutes(row.get("duracion"), unit=self.duration_unit)
        if duration is None:
            logger.warning(
                "Service %s has no usable duration (%r), using %d minutes",
                service_id, row.get("duracion"), DEFAULT_DURATION_MINUTES,
            )
            duration = DEFAULT_DURATION_MINUTES

        return Service(
            id=str(service_id),
            name=str(first_present(row, "nombre", "nombreservicio", "nombreServicio") or ""),
            duration_minutes=duration,
        )

    def get_service_duration(self, service_id: str) -> int:
        """Duration of a service in minutes, 60 if it cannot be resolved."""
        service = self.get_service(service_id)
        return service.duration_minutes if service else DEFAULT_DURATION_MINUTES

    @staticmethod
    def _to_minutes(value: Any, unit: str) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            amount = float(value)
        except (TypeError, ValueError):
            return None
        minutes = round(amount * 60) if unit == "hours" else round(amount)
        return minutes if minutes > 0 else None

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
        """
        Insert a reservation.

        Raises:
            SlotTakenError: If the store already holds an active reservation
                for the same employee, date and start time
            RepositoryError: If the store cannot be written
        """
        record = {
            "idusuariocliente": client_id,
            "idempleado": employee_id,
            "idservicio": service_id,
            "fecha": day.isoformat(),
            "hora": str(start_time),
            "estado": STATUS_LABELS[status],
        }
        try:
            row = self._store.insert(RESERVATION_TABLE, record)
        except DuplicateRecordError as e:
            logger.info(
                "Slot %s %s for employee %s was taken concurrently: %s",
                day.isoformat(), start_time, employee_id, e,
            )
            raise SlotTakenError() from e

        return self._to_reservation({**record, **row})

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        rows = self._store.select(RESERVATION_TABLE, {"idreserva": reservation_id})
        return self._to_reservation(rows[0]) if rows else None

    def update_status(self, reservation_id: str, status: ReservationStatus) -> Reservation:
        """
        Change a reservation's status.

        Raises:
            ReservationNotFoundError: If no reservation has this id
        """
        rows = self._store.update(
            RESERVATION_TABLE, {"idreserva": reservation_id}, {"estado": STATUS_LABELS[status]}
        )
        if not rows:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return self._to_reservation(rows[0])

    def list_reservations(
        self,
        employee_id: str,
        *,
        day: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        include_cancelled: bool = False,
    ) -> List[Reservation]:
        """
        List an employee's reservations ordered by date and start time.

        Args:
            employee_id: Employee identifier
            day: Restrict to a single day
            date_from: Inclusive lower bound
            date_to: Inclusive upper bound
            include_cancelled: Whether cancelled reservations are returned
        """
        filters: Dict[str, Any] = {"idempleado": employee_id}
        if day is not None:
            filters["fecha"] = day.isoformat()

        reservations: List[Reservation] = []
        for row in self._store.select(RESERVATION_TABLE, filters):
            try:
                reservation = self._to_reservation(row)
            except ValueError as e:
                logger.warning("Skipping malformed reservation row %s: %s", row, e)
                continue

            if not include_cancelled and not reservation.status.blocks_slot:
                continue
            if date_from is not None and reservation.day < date_from:
                continue
            if date_to is not None and reservation.day > date_to:
                continue
            reservations.append(reservation)

        return sorted(reservations, key=lambda r: (r.day, r.start_time))

    @staticmethod
    def _to_reservation(row: Mapping[str, Any]) -> Reservation:
        """
        Map a raw reservation row to the canonical model.

        Raises:
            ValueError: If the date or start time cannot be parsed
        """
        def text(*keys: str) -> str:
            value = first_present(row, *keys)
            return "" if value is None else str(value)

        return Reservation(
            id=text("idreserva", "idReserva", "id"),
            client_id=text("idusuariocliente", "idUsuarioCliente"),
            employee_id=text("idempleado", "idEmpleado"),
            service_id=text("idservicio", "idServicio"),
            day=parse_calendar_date(text("fecha")),
            start_time=TimeOfDay.parse(text("hora")),
            status=parse_status(row.get("estado")),
        )
