"""
Main CLI application using Typer.

The CLI stands in for the salon's UI layer: it lists slots, books, changes
reservation status and shows an employee's agenda.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.record_store import InMemoryRecordStore, RecordStore
from ..adapters.reservation_repository import (
    RESERVATION_TABLE,
    ReservationRepository,
    reservation_slot_constraint,
)
from ..adapters.rest_store import RestRecordStore
from ..adapters.schedule_repository import ScheduleRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError, ConfigError, RepositoryError, ServiceNotFoundError
from ..domain.models import Reservation
from ..domain.slot_calculator import SlotCalculator
from ..services.availability import AvailabilityService, resolve_service_duration
from ..services.booking_guard import BookingGuard
from ..services.presentation import SlotPresenter, SlotRequest, booking_error_message

app = typer.Typer(
    name="salonbooking",
    help="Appointment availability and booking for the salon",
    add_completion=False
)

console = Console()

logger = logging.getLogger(__name__)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@dataclass
class Engine:
    """Everything a command needs, wired from one configuration."""
    config: AppConfig
    store: RecordStore
    reservations: ReservationRepository
    availability: AvailabilityService
    guard: BookingGuard
    presenter: SlotPresenter

    def persist(self) -> None:
        """Write the JSON-backed store back to disk after a change."""
        if isinstance(self.store, InMemoryRecordStore) and self.config.store.data_file:
            self.store.save_json_file(self.config.store.data_file)


def build_engine(config: AppConfig) -> Engine:
    """
    Wire the store, repositories and services from the configuration.

    Raises:
        RepositoryError: If the memory store's data file cannot be loaded
    """
    store_config = config.store
    if store_config.backend == "rest":
        store: RecordStore = RestRecordStore(
            base_url=store_config.url,
            api_key=store_config.api_key,
            timeout_seconds=store_config.timeout_seconds,
        )
    else:
        constraints = {RESERVATION_TABLE: [reservation_slot_constraint()]}
        id_columns = {RESERVATION_TABLE: "idreserva"}
        if store_config.data_file is not None:
            store = InMemoryRecordStore.from_json_file(
                store_config.data_file, unique_constraints=constraints, id_columns=id_columns
            )
        else:
            store = InMemoryRecordStore(unique_constraints=constraints, id_columns=id_columns)

    schedules = ScheduleRepository(store)
    reservations = ReservationRepository(store, duration_unit=config.services.duration_unit)
    calculator = SlotCalculator(
        closed_weekdays=config.schedule.closed_weekdays,
        step_minutes=config.schedule.slot_step_minutes,
    )
    availability = AvailabilityService(
        schedules,
        reservations,
        calculator,
        timezone=config.timezone,
        allow_past_dates=config.booking.allow_past_dates,
    )
    guard = BookingGuard(
        schedules,
        reservations,
        calculator,
        initial_status=config.booking.get_initial_status(),
        timezone=config.timezone,
        allow_past_dates=config.booking.allow_past_dates,
    )
    presenter = SlotPresenter(availability, reservations)

    return Engine(
        config=config,
        store=store,
        reservations=reservations,
        availability=availability,
        guard=guard,
        presenter=presenter,
    )


def _load_engine(config_file: Optional[Path]) -> Engine:
    """Load configuration, set up logging and build the engine, exiting on failure."""
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ConfigError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    logging.basicConfig(
        level=config.log_level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )

    try:
        return build_engine(config)
    except RepositoryError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _print_reservations(title: str, reservations: list[Reservation]) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Fecha")
    table.add_column("Hora", style="bold yellow")
    table.add_column("Servicio")
    table.add_column("Cliente")
    table.add_column("Estado")

    for reservation in reservations:
        table.add_row(
            reservation.id,
            reservation.day.isoformat(),
            str(reservation.start_time),
            reservation.service_id,
            reservation.client_id,
            reservation.status.value,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    employee: Annotated[str, typer.Argument(help="Employee id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service id (sets the duration)")],
    config_file: ConfigOption = None,
):
    """
    List bookable start times for an employee, service and date.

    Examples:

        salonbooking slots emp-1 2025-06-10 --service 3
    """
    engine = _load_engine(config_file)

    try:
        request = SlotRequest(employee_id=employee, service_id=service, date=date)
        listing = engine.presenter.list_slots(request)
    except (ValueError, RepositoryError, ServiceNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not listing.slots:
        console.print(f"[yellow]⚠ {listing.message}[/yellow] ({listing.reason})")
        return

    console.print(
        f"[bold green]✓ {len(listing.slots)} horario(s) disponible(s) "
        f"el {listing.date} ({listing.duration_minutes} min):[/bold green]\n"
    )
    for slot in listing.slots:
        console.print(f"  {slot.label}")


@app.command()
def days(
    employee: Annotated[str, typer.Argument(help="Employee id")],
    month: Annotated[str, typer.Option("--month", "-m", help="Month (YYYY-MM)")],
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Service id (sets the duration)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    config_file: ConfigOption = None,
):
    """
    List the days of a month with at least one free slot.
    """
    engine = _load_engine(config_file)

    try:
        parsed = pendulum.from_format(month, "YYYY-MM")
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] Invalid month {month!r}: {e}")
        raise typer.Exit(1)

    try:
        if service is not None:
            minutes = resolve_service_duration(engine.reservations, service)
        else:
            minutes = duration or engine.config.schedule.default_duration_minutes
        available = engine.availability.available_days(
            employee, parsed.year, parsed.month, minutes
        )
    except (ValueError, RepositoryError, ServiceNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not available:
        console.print("[yellow]⚠ No hay días disponibles en este mes.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(available)} día(s) con horarios libres:[/bold green]\n")
    for day in available:
        console.print(f"  {day.isoformat()}")


@app.command()
def book(
    employee: Annotated[str, typer.Argument(help="Employee id")],
    service: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    client: Annotated[str, typer.Option("--client", help="Client id")],
    config_file: ConfigOption = None,
):
    """
    Book a slot. The slot is re-checked before it is written.
    """
    engine = _load_engine(config_file)

    try:
        reservation = engine.guard.book(
            employee_id=employee,
            service_id=service,
            client_id=client,
            day=date,
            start=time,
        )
        engine.persist()
    except (BookingError, RepositoryError) as e:
        logger.debug("Booking failed: %s", e)
        console.print(f"[bold red]✗[/bold red] {booking_error_message(e)}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[bold green]✓ Reserva {reservation.id} creada[/bold green]: "
        f"{reservation.day.isoformat()} {reservation.start_time} ({reservation.status.value})"
    )


def _change_status(config_file: Optional[Path], reservation_id: str, action: str) -> None:
    engine = _load_engine(config_file)
    try:
        reservation = getattr(engine.guard, action)(reservation_id)
        engine.persist()
    except (BookingError, RepositoryError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[green]✓ Reserva {reservation.id}: {reservation.status.value}[/green]"
    )


@app.command()
def cancel(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    config_file: ConfigOption = None,
):
    """
    Cancel a reservation and free its time.
    """
    _change_status(config_file, reservation_id, "cancel")


@app.command()
def confirm(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    config_file: ConfigOption = None,
):
    """
    Confirm a pending reservation.
    """
    _change_status(config_file, reservation_id, "confirm")


@app.command()
def complete(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    config_file: ConfigOption = None,
):
    """
    Mark a reservation as completed.
    """
    _change_status(config_file, reservation_id, "complete")


@app.command()
def agenda(
    employee: Annotated[str, typer.Argument(help="Employee id")],
    date_from: Annotated[Optional[str], typer.Option("--from", help="First date (YYYY-MM-DD), defaults to today")] = None,
    config_file: ConfigOption = None,
):
    """
    Show an employee's upcoming reservations.
    """
    engine = _load_engine(config_file)

    try:
        reservations = engine.availability.agenda(employee, date_from=date_from)
    except (ValueError, RepositoryError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not reservations:
        console.print("[yellow]No hay reservas próximas.[/yellow]")
        return

    _print_reservations(f"Agenda de {employee}", reservations)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
