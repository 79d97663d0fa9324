"""
Tests for the reservation repository.
"""

import logging

import pytest

from salonbooking.adapters.reservation_repository import (
    ReservationRepository,
    parse_status,
)
from salonbooking.domain.exceptions import ReservationNotFoundError, SlotTakenError
from salonbooking.domain.models import ReservationStatus, TimeOfDay
from tests.conftest import TUESDAY, WEDNESDAY, make_store, reservation_row


def spans(intervals):
    return [(str(TimeOfDay(i.start_minute)), str(TimeOfDay(i.end_minute))) for i in intervals]


class TestOccupiedIntervals:
    """Tests for ReservationRepository.get_occupied_intervals."""

    def test_duration_from_service(self, salon_tables):
        salon_tables["reserva"] = [
            reservation_row("10:00:00", idservicio=2),
            reservation_row("14:00", idservicio=3),
        ]
        repo = ReservationRepository(make_store(salon_tables))

        intervals = repo.get_occupied_intervals("emp-1", TUESDAY)

        assert spans(intervals) == [("10:00", "12:00"), ("14:00", "14:30")]
        assert all(i.day == TUESDAY for i in intervals)

    def test_cancelled_reservations_do_not_block(self, salon_tables):
        salon_tables["reserva"] = [
            reservation_row("10:00", estado="cancelada"),
            reservation_row("11:00", estado="realizada"),
            reservation_row("12:00", estado="activa"),
        ]
        repo = ReservationRepository(make_store(salon_tables))

        assert spans(repo.get_occupied_intervals("emp-1", TUESDAY)) == [
            ("11:00", "12:00"), ("12:00", "13:00"),
        ]

    def test_only_requested_employee_and_day(self, salon_tables):
        salon_tables["reserva"] = [
            reservation_row("10:00"),
            reservation_row("11:00", fecha=WEDNESDAY.isoformat()),
            reservation_row("12:00", idempleado="emp-2"),
        ]
        repo = ReservationRepository(make_store(salon_tables))

        assert spans(repo.get_occupied_intervals("emp-1", TUESDAY)) == [("10:00", "11:00")]

    def test_duration_fallbacks(self, salon_tables):
        """Test row duration, then joined service, then service lookup, then 60 minutes."""
        salon_tables["reserva"] = [
            reservation_row("09:00", duracion=45),
            reservation_row("10:00", Servicio=[{"duracion": 90}]),
            reservation_row("12:00", idservicio=99),
            reservation_row("13:00", idservicio=None),
        ]
        repo = ReservationRepository(make_store(salon_tables))

        assert spans(repo.get_occupied_intervals("emp-1", TUESDAY)) == [
            ("09:00", "09:45"), ("10:00", "11:30"), ("12:00", "13:00"), ("13:00", "14:00"),
        ]

    def test_durations_in_hours(self, salon_tables):
        salon_tables["servicio"] = [{"idservicio": 1, "duracion": 1.5}]
        salon_tables["reserva"] = [reservation_row("10:00")]
        repo = ReservationRepository(make_store(salon_tables), duration_unit="hours")

        assert spans(repo.get_occupied_intervals("emp-1", TUESDAY)) == [("10:00", "11:30")]
        assert repo.get_service_duration("1") == 90

    def test_malformed_start_time_skipped(self, salon_tables, caplog):
        salon_tables["reserva"] = [reservation_row("10:00"), reservation_row("mañana")]
        repo = ReservationRepository(make_store(salon_tables))

        with caplog.at_level(logging.WARNING):
            intervals = repo.get_occupied_intervals("emp-1", TUESDAY)

        assert spans(intervals) == [("10:00", "11:00")]
        assert "malformed" in caplog.text


class TestServices:
    """Tests for service lookups."""

    def test_get_service(self, store):
        service = ReservationRepository(store).get_service("2")

        assert service.name == "Tinte"
        assert service.duration_minutes == 120

    def test_missing_service_defaults_to_an_hour(self, store):
        repo = ReservationRepository(store)

        assert repo.get_service("404") is None
        assert repo.get_service_duration("404") == 60

    @pytest.mark.parametrize("value", [None, "", 0, -15, "abc"])
    def test_unusable_duration_defaults_to_an_hour(self, salon_tables, value):
        salon_tables["servicio"] = [{"idservicio": 1, "nombre": "Corte", "duracion": value}]

        assert ReservationRepository(make_store(salon_tables)).get_service_duration("1") == 60

    def test_invalid_duration_unit(self, store):
        with pytest.raises(ValueError):
            ReservationRepository(store, duration_unit="days")


class TestWrites:
    """Tests for creating and updating reservations."""

    def test_create_reservation(self, store):
        repo = ReservationRepository(store)

        reservation = repo.create_reservation(
            client_id="client-9",
            employee_id="emp-1",
            service_id="1",
            day=TUESDAY,
            start_time=TimeOfDay.of(14),
        )

        assert reservation.id == "1"
        assert reservation.status == ReservationStatus.PENDING
        row = store.select("reserva")[0]
        assert row["hora"] == "14:00"
        assert row["fecha"] == "2025-06-10"
        assert row["estado"] == "pendiente"

    def test_duplicate_slot_raises_slot_taken(self, salon_tables):
        salon_tables["reserva"] = [reservation_row("14:00:00", idreserva=1)]
        repo = ReservationRepository(make_store(salon_tables))

        with pytest.raises(SlotTakenError) as exc_info:
            repo.create_reservation(
                client_id="client-2",
                employee_id="emp-1",
                service_id="1",
                day=TUESDAY,
                start_time=TimeOfDay.of(14),
            )

        assert exc_info.value.reason == "slot-taken"

    def test_cancelled_slot_can_be_rebooked(self, salon_tables):
        salon_tables["reserva"] = [reservation_row("14:00", estado="cancelada", idreserva=1)]
        repo = ReservationRepository(make_store(salon_tables))

        reservation = repo.create_reservation(
            client_id="client-2",
            employee_id="emp-1",
            service_id="1",
            day=TUESDAY,
            start_time=TimeOfDay.of(14),
            status=ReservationStatus.CONFIRMED,
        )

        assert reservation.id == "2"
        assert reservation.status == ReservationStatus.CONFIRMED

    def test_update_status(self, salon_tables):
        salon_tables["reserva"] = [reservation_row("14:00", idreserva=1)]
        store = make_store(salon_tables)
        repo = ReservationRepository(store)

        updated = repo.update_status("1", ReservationStatus.CANCELLED)

        assert updated.status == ReservationStatus.CANCELLED
        assert store.select("reserva")[0]["estado"] == "cancelada"

    def test_update_missing_reservation(self, store):
        with pytest.raises(ReservationNotFoundError):
            ReservationRepository(store).update_status("42", ReservationStatus.CANCELLED)

    def test_get_reservation(self, salon_tables):
        salon_tables["reserva"] = [reservation_row("09:30:00", idreserva=3)]
        repo = ReservationRepository(make_store(salon_tables))

        reservation = repo.get_reservation("3")

        assert reservation.start_time == TimeOfDay.parse("09:30")
        assert reservation.day == TUESDAY
        assert repo.get_reservation("4") is None


class TestListReservations:
    """Tests for listing an employee's reservations."""

    def test_sorted_and_filtered(self, salon_tables):
        salon_tables["reserva"] = [
            reservation_row("15:00", fecha="2025-06-11", idreserva=1),
            reservation_row("10:00", fecha="2025-06-11", idreserva=2),
            reservation_row("09:00", fecha="2025-06-03", idreserva=3),
            reservation_row("11:00", fecha="2025-06-11", estado="cancelada", idreserva=4),
        ]
        repo = ReservationRepository(make_store(salon_tables))

        upcoming = repo.list_reservations("emp-1", date_from=TUESDAY)
        everything = repo.list_reservations("emp-1", include_cancelled=True)

        assert [r.id for r in upcoming] == ["2", "1"]
        assert [r.id for r in everything] == ["3", "2", "4", "1"]
        assert [r.id for r in repo.list_reservations("emp-1", day=WEDNESDAY)] == ["2", "1"]
        assert repo.list_reservations("emp-1", date_to=TUESDAY)[0].id == "3"


@pytest.mark.parametrize(
    "label, expected",
    [
        ("pendiente", ReservationStatus.PENDING),
        ("Activa", ReservationStatus.CONFIRMED),
        ("confirmed", ReservationStatus.CONFIRMED),
        ("realizada", ReservationStatus.COMPLETED),
        (" CANCELADA ", ReservationStatus.CANCELLED),
        ("en espera", ReservationStatus.PENDING),
        (None, ReservationStatus.PENDING),
    ],
)
def test_parse_status(label, expected):
    assert parse_status(label) == expected
