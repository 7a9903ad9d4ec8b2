"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.cache import TTLCache
from ..adapters.geocoding import GeocodingClient
from ..adapters.json_store import JsonFileStore
from ..adapters.senders import LoggingEmailSender, LoggingNotificationSender
from ..config import AppConfig, get_default_config_path
from ..domain.due_for_service import DueForServiceResult, DueStatus
from ..domain.exceptions import ConfigError, EquislotError
from ..domain.models import DayAvailability, Location
from ..domain.slot_calculator import SlotCalculator
from ..domain.travel_time import TravelTimeService, TravelTimeSlotFilter
from ..services.availability import AvailabilityService
from ..services.booking_events import create_booking_event_dispatcher
from ..services.booking_lifecycle import BookingLifecycleService, CreateBookingInput
from ..services.due_for_service import DueForServiceService
from ..services.group_booking import GroupBookingService, MatchRequestInput

app = typer.Typer(
    name="equislot",
    help="Plan bookings for horse-service providers: free slots, due reminders and group visits",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    DueStatus.OVERDUE: "bold red",
    DueStatus.UPCOMING: "yellow",
    DueStatus.OK: "green",
}

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def configure_logging(level: str = "INFO") -> None:
    """Route log records through Rich at ``level``."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> Tuple[AppConfig, JsonFileStore]:
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    configure_logging(config.log_level)

    data_file = config.resolve_data_file(config_path)
    if data_file is None:
        raise ConfigError("data_file is not set in the configuration")
    return config, JsonFileStore(data_file)


def _parse_date(value: Optional[str], tz: str) -> date:
    if not value:
        return pendulum.today(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        raise typer.BadParameter(f"Expected a date as YYYY-MM-DD, got {value!r}") from e


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _exit_on_failure(result) -> None:
    if result.is_failure:
        _fail(f"{result.error.message} ({result.error.code.value})")


def _render_day(day: DayAvailability) -> None:
    title = day.date.strftime("%a %Y-%m-%d")
    if not day.slots:
        reason = f" ({day.closed_reason})" if day.closed_reason else ""
        console.print(f"[dim]{title}: closed{reason}[/dim]")
        return

    table = Table(title=f"{title}  {day.opening_time}-{day.closing_time}", show_header=True, header_style="bold cyan")
    table.add_column("Slot", style="bold")
    table.add_column("Status")
    for slot in day.slots:
        if slot.is_available:
            table.add_row(f"{slot.start_time}-{slot.end_time}", "[green]available[/green]")
        else:
            table.add_row(f"{slot.start_time}-{slot.end_time}", f"[red]{slot.unavailable_reason.value}[/red]")
    console.print(table)


def _render_due(results: List[DueForServiceResult], title: str) -> None:
    if not results:
        console.print("[green]Nothing is due.[/green]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Entity", style="bold yellow")
    table.add_column("Service")
    table.add_column("Last visit")
    table.add_column("Every")
    table.add_column("Due in", justify="right")
    table.add_column("Status")
    for result in results:
        style = STATUS_STYLES[result.status]
        table.add_row(
            result.entity_name,
            result.service_name,
            result.last_service_date.isoformat(),
            f"{result.interval_weeks} w",
            f"{result.days_until_due} d",
            f"[{style}]{result.status.value}[/{style}]",
        )
    console.print(table)


@app.command()
def slots(
    provider_id: Annotated[str, typer.Argument(help="Provider to show availability for")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD), defaults to today")] = None,
    days: Annotated[int, typer.Option("--days", help="Number of days to show", min=1, max=31)] = 7,
    service_id: Annotated[Optional[str], typer.Option("--service", "-s", help="Use this service's duration")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
    address: Annotated[Optional[str], typer.Option("--address", help="Customer address, geocoded for travel time")] = None,
    lat: Annotated[Optional[float], typer.Option("--lat", help="Customer latitude")] = None,
    lon: Annotated[Optional[float], typer.Option("--lon", help="Customer longitude")] = None,
):
    """
    Show bookable slots for a provider.

    Examples:

        equislot slots prov-1 --service svc-1

        equislot slots prov-1 --duration 45 --start 2026-11-02 --days 3

        equislot slots prov-1 --service svc-1 --address "Storgatan 1, Alingsås"
    """
    try:
        config, store = _load(config_file)

        customer_location = None
        if lat is not None and lon is not None:
            customer_location = Location(latitude=lat, longitude=lon)

        geocoder = None
        if address and config.geocoding.api_key:
            geocoder = GeocodingClient(
                config.geocoding.api_key,
                region=config.geocoding.region,
                max_retries=config.geocoding.max_retries,
                retry_delay_seconds=config.geocoding.retry_delay_seconds,
                timeout_seconds=config.geocoding.timeout_seconds,
                cache=TTLCache(),
                cache_ttl_seconds=config.geocoding.cache_ttl_seconds,
            )

        if duration is None and service_id is None:
            duration = config.slots.default_service_duration_minutes

        service = AvailabilityService(
            providers=store.providers,
            bookings=store.bookings,
            calculator=SlotCalculator(interval_minutes=config.slots.interval_minutes),
            slot_filter=TravelTimeSlotFilter(TravelTimeService(config.travel.to_domain())),
            geocoder=geocoder,
            timezone=config.timezone,
        )
        result = asyncio.run(
            service.get_week_availability(
                provider_id,
                _parse_date(start, config.timezone),
                days=days,
                service_duration_minutes=duration,
                service_id=service_id,
                customer_location=customer_location,
                customer_address=address,
            )
        )
        _exit_on_failure(result)

        console.print()
        for day in result.value:
            _render_day(day)
        console.print()

    except (FileNotFoundError, ValueError, EquislotError) as e:
        _fail(str(e))


@app.command()
def due(
    customer_id: Annotated[Optional[str], typer.Argument(help="Customer whose entities are checked")] = None,
    config_file: ConfigOption = None,
    entity_id: Annotated[Optional[str], typer.Option("--entity", "-e", help="Limit to one entity of the customer")] = None,
    provider_id: Annotated[Optional[str], typer.Option("--provider", "-p", help="Show all entities a provider has served")] = None,
    status: Annotated[Optional[DueStatus], typer.Option("--status", help="Filter provider results by status")] = None,
):
    """
    Show which recurring services are overdue or coming up.
    """
    if not customer_id and not provider_id:
        _fail("Give a customer id or --provider")

    try:
        config, store = _load(config_file)
        service = DueForServiceService(
            bookings=store.bookings,
            providers=store.providers,
            intervals=store.intervals,
            upcoming_threshold_days=config.due_for_service.upcoming_threshold_days,
            clock=lambda: pendulum.now(config.timezone),
        )

        if provider_id:
            result = asyncio.run(service.get_for_provider(provider_id, status))
            title = f"Due for service - provider {provider_id}"
        elif entity_id:
            result = asyncio.run(service.get_for_entity(entity_id, customer_id))
            title = f"Due for service - entity {entity_id}"
        else:
            result = asyncio.run(service.get_for_customer(customer_id))
            title = f"Due for service - customer {customer_id}"
        _exit_on_failure(result)

        console.print()
        _render_due(result.value, title)
        console.print()

    except (FileNotFoundError, ValueError, EquislotError) as e:
        _fail(str(e))


@app.command("match-group")
def match_group(
    group_id: Annotated[str, typer.Argument(help="Group booking request to match")],
    provider_id: Annotated[str, typer.Option("--provider", "-p", help="Provider taking the visit")],
    service_id: Annotated[str, typer.Option("--service", "-s", help="Service performed for every participant")],
    booking_date: Annotated[str, typer.Option("--date", help="Visit date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Option("--start", help="First participant's start time (HH:MM)")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Minutes per participant, defaults to the service duration")] = None,
):
    """
    Book every joined participant of a group back to back.
    """
    try:
        config, store = _load(config_file)
        service = GroupBookingService(
            groups=store.groups,
            bookings=store.bookings,
            providers=store.providers,
            notification_sender=LoggingNotificationSender(),
        )
        result = asyncio.run(
            service.match_request(
                MatchRequestInput(
                    group_booking_request_id=group_id,
                    provider_id=provider_id,
                    service_id=service_id,
                    booking_date=_parse_date(booking_date, config.timezone),
                    start_time=start_time,
                    service_duration_minutes=duration,
                )
            )
        )
        _exit_on_failure(result)

        match = result.value
        lines = [f"[bold green]✓ {match.bookings_created} booking(s) created[/bold green]"]
        lines.extend(f"[yellow]⚠ {error}[/yellow]" for error in match.errors)
        console.print(Panel.fit("\n".join(lines), title=f"Group {group_id}"))

    except (FileNotFoundError, ValueError, EquislotError) as e:
        _fail(str(e))


@app.command()
def book(
    provider_id: Annotated[str, typer.Argument(help="Provider to book")],
    customer_id: Annotated[str, typer.Option("--customer", help="Customer making the booking")],
    service_id: Annotated[str, typer.Option("--service", "-s", help="Service to book")],
    booking_date: Annotated[str, typer.Option("--date", help="Booking date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Option("--start", help="Start time (HH:MM)")],
    config_file: ConfigOption = None,
    entity_id: Annotated[Optional[str], typer.Option("--entity", "-e", help="Entity the service is for")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Note for the provider")] = None,
):
    """
    Create a pending booking; the end time follows the service duration.
    """
    try:
        config, store = _load(config_file)
        dispatcher = create_booking_event_dispatcher(
            email_sender=LoggingEmailSender(),
            notification_sender=LoggingNotificationSender(),
        )
        service = BookingLifecycleService(
            bookings=store.bookings,
            providers=store.providers,
            dispatcher=dispatcher,
            rules=config.booking_rules.to_domain(),
            travel_time_service=TravelTimeService(config.travel.to_domain()),
        )

        async def create():
            entity = await store.providers.get_entity(entity_id) if entity_id else None
            result = await service.create_booking(
                CreateBookingInput(
                    customer_id=customer_id,
                    provider_id=provider_id,
                    service_id=service_id,
                    booking_date=_parse_date(booking_date, config.timezone),
                    start_time=start_time,
                    entity_id=entity_id,
                    entity_name=entity.name if entity else None,
                    customer_notes=notes,
                )
            )
            await dispatcher.drain()
            return result

        result = asyncio.run(create())
        _exit_on_failure(result)

        booking = result.value
        console.print(
            f"[bold green]✓ Booking {booking.id}[/bold green] "
            f"{booking.booking_date.isoformat()} {booking.start_time}-{booking.end_time} "
            f"({booking.status.value})"
        )

    except (FileNotFoundError, ValueError, EquislotError) as e:
        _fail(str(e))


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]equislot[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
