"""
Tests for the booking guard: commit-time validation, concurrency and status changes.
"""

import threading
from itertools import combinations

import pytest

from salonbooking.domain.exceptions import (
    ConflictError,
    InvalidTransitionError,
    ReservationNotFoundError,
    ServiceNotFoundError,
    SlotTakenError,
    SlotUnavailableError,
)
from salonbooking.domain.models import ReservationStatus, TimeOfDay
from tests.conftest import MONDAY, THURSDAY, TUESDAY, build_engine, make_store


def book(engine, start, *, service_id="1", client_id="client-1", day=TUESDAY):
    return engine.guard.book(
        employee_id="emp-1",
        service_id=service_id,
        client_id=client_id,
        day=day,
        start=start,
    )


class TestBook:
    """Tests for BookingGuard.book."""

    def test_book_free_slot(self, engine):
        reservation = book(engine, "14:00")

        assert reservation.status == ReservationStatus.PENDING
        assert reservation.start_time == TimeOfDay.of(14)
        assert reservation.day == TUESDAY
        assert "14:00" not in engine.availability.get_slots("emp-1", TUESDAY, 60).labels()

    def test_same_slot_twice_is_a_conflict(self, engine):
        book(engine, "14:00")

        with pytest.raises(ConflictError) as exc_info:
            book(engine, "14:00", client_id="client-2")

        assert exc_info.value.reason == "slot-taken"
        assert len(engine.store.select("reserva")) == 1

    def test_overlapping_range_is_a_conflict(self, engine):
        """A 2 hour booking at 10:00 blocks a 1 hour booking at 11:00."""
        book(engine, "10:00", service_id="2")

        with pytest.raises(ConflictError):
            book(engine, "11:00", client_id="client-2")

    def test_stale_slot_list_is_rechecked(self, engine):
        """Test that a slot offered earlier is rejected once someone else books it."""
        offered = engine.availability.get_slots("emp-1", TUESDAY, 60).slots
        assert TimeOfDay.of(9) in offered

        book(engine, TimeOfDay.of(9), client_id="client-2")

        with pytest.raises(ConflictError):
            book(engine, offered[0])

    def test_confirmed_initial_status(self, store):
        engine = build_engine(store, initial_status=ReservationStatus.CONFIRMED)

        reservation = book(engine, "09:00")

        assert reservation.status == ReservationStatus.CONFIRMED
        assert store.select("reserva")[0]["estado"] == "activa"

    def test_invalid_initial_status(self, store):
        with pytest.raises(ValueError):
            build_engine(store, initial_status=ReservationStatus.COMPLETED)

    @pytest.mark.parametrize(
        "day, start, reason",
        [
            (MONDAY, "10:00", "closed"),
            (THURSDAY, "10:00", "day-off"),
            (TUESDAY, "08:00", "outside-hours"),
            (TUESDAY, "16:30", "outside-hours"),
            ("2025-05-27", "10:00", "past-date"),
        ],
    )
    def test_unbookable_starts(self, engine, day, start, reason):
        with pytest.raises(SlotUnavailableError) as exc_info:
            book(engine, start, day=day)

        assert exc_info.value.reason == reason
        assert engine.store.select("reserva") == []

    def test_unknown_employee_has_no_schedule(self, engine):
        with pytest.raises(SlotUnavailableError) as exc_info:
            engine.guard.book(
                employee_id="emp-9", service_id="1", client_id="c", day=TUESDAY, start="10:00"
            )

        assert exc_info.value.reason == "no-schedule"

    def test_unknown_service_is_rejected_before_writing(self, engine):
        """Test that a booking never falls back to a default duration for a missing service."""
        with pytest.raises(ServiceNotFoundError):
            book(engine, "14:00", service_id="999")

        assert engine.store.select("reserva") == []

    def test_cancel_frees_the_slot(self, engine):
        first = book(engine, "14:00")
        engine.guard.cancel(first.id)

        second = book(engine, "14:00", client_id="client-2")

        assert second.id != first.id
        assert [r.id for r in engine.reservations.list_reservations("emp-1", day=TUESDAY)] == [second.id]


class TestNoOverlapInvariant:
    """Active reservations never overlap after any sequence of bookings and cancellations."""

    def test_sequence_of_bookings_and_cancellations(self, engine):
        attempts = [
            ("09:00", "2"), ("10:00", "1"), ("11:00", "1"), ("11:00", "3"),
            ("13:00", "2"), ("14:00", "1"), ("15:00", "2"), ("16:00", "1"),
        ]
        booked = []
        for start, service in attempts:
            try:
                booked.append(book(engine, start, service_id=service))
            except ConflictError:
                continue

        engine.guard.cancel(booked[1].id)
        for start, service in attempts:
            try:
                book(engine, start, service_id=service, client_id="client-2")
            except ConflictError:
                continue

        intervals = engine.reservations.get_occupied_intervals("emp-1", TUESDAY)
        assert intervals
        for a, b in combinations(intervals, 2):
            assert not a.overlaps(b.start_minute, b.end_minute)


class TestConcurrentBooking:
    """Two clients booking the same slot at the same time."""

    def test_exactly_one_wins(self, engine):
        barrier = threading.Barrier(2, timeout=5)
        read_intervals = engine.reservations.get_occupied_intervals

        def read_then_wait(employee_id, day):
            intervals = read_intervals(employee_id, day)
            # Both callers see the slot free before either one writes
            barrier.wait()
            return intervals

        engine.reservations.get_occupied_intervals = read_then_wait

        results = []
        errors = []

        def attempt(client_id):
            try:
                results.append(book(engine, "14:00", client_id=client_id))
            except ConflictError as e:
                errors.append(e)

        threads = [threading.Thread(target=attempt, args=(f"client-{n}",)) for n in (1, 2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], SlotTakenError)
        assert errors[0].reason == "slot-taken"
        assert len(engine.store.select("reserva")) == 1


class TestStatusTransitions:
    """Tests for confirm, complete and cancel."""

    @pytest.fixture
    def reservation(self, engine):
        return book(engine, "10:00")

    def test_pending_to_confirmed_to_completed(self, engine, reservation):
        assert engine.guard.confirm(reservation.id).status == ReservationStatus.CONFIRMED
        assert engine.guard.complete(reservation.id).status == ReservationStatus.COMPLETED
        assert engine.store.select("reserva")[0]["estado"] == "realizada"

    def test_completed_still_blocks_the_slot(self, engine, reservation):
        engine.guard.complete(reservation.id)

        with pytest.raises(ConflictError):
            book(engine, "10:00", client_id="client-2")

    @pytest.mark.parametrize("final", ["cancel", "complete"])
    def test_terminal_states(self, engine, reservation, final):
        getattr(engine.guard, final)(reservation.id)

        with pytest.raises(InvalidTransitionError):
            engine.guard.confirm(reservation.id)
        with pytest.raises(InvalidTransitionError):
            engine.guard.cancel(reservation.id)

    def test_confirmed_cannot_be_confirmed_again(self, engine, reservation):
        engine.guard.confirm(reservation.id)

        with pytest.raises(InvalidTransitionError):
            engine.guard.confirm(reservation.id)

    def test_unknown_reservation(self, engine):
        with pytest.raises(ReservationNotFoundError):
            engine.guard.cancel("999")


def test_store_constraint_catches_a_duplicate_the_check_missed(salon_tables):
    """The unique index still rejects a duplicate when the read misses a row."""
    store = make_store(salon_tables)
    engine = build_engine(store)
    engine.reservations.get_occupied_intervals = lambda employee_id, day: []

    book(engine, "14:00")

    with pytest.raises(SlotTakenError):
        book(engine, "14:00", client_id="client-2")
