"""
Main CLI application using Typer.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Annotated, Optional, Tuple, Union

import pendulum
import typer
from rich.console import Console
from rich.table import Table

from ..adapters.booking_api_client import BookingApiClient
from ..adapters.json_store import JsonBookingStore
from ..config import AppConfig, configure_logging, get_default_config_path
from ..domain.availability import AvailabilityEngine
from ..domain.eligibility import DayEligibility, DayEligibilityPolicy, today_in
from ..domain.exceptions import (
    BookingRejectedError,
    InvalidConfigurationError,
    SlotbookError,
    SlotUnavailableError,
)
from ..domain.models import Business, Weekday, format_wall_clock
from ..services.booking_service import BookingService

app = typer.Typer(
    name="slotbook",
    help="Find and book appointment slots for a business",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
BusinessOption = Annotated[Optional[str], typer.Option("--business", "-b", help="Business id or slug")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="JSON data file with businesses, hours and appointments")]
ApiOption = Annotated[Optional[str], typer.Option("--api", help="Base URL of the booking API (read-only)")]
TodayOption = Annotated[Optional[str], typer.Option("--today", help="Override today's date (YYYY-MM-DD)")]

_STATUS_STYLES = {
    DayEligibility.BOOKABLE: "[green]bookable[/green]",
    DayEligibility.PAST: "[dim]past[/dim]",
    DayEligibility.BEYOND_HORIZON: "[dim]beyond booking horizon[/dim]",
    DayEligibility.CLOSED: "[yellow]closed[/yellow]",
}


@dataclass
class _Context:
    config: AppConfig
    business: Business
    service: BookingService
    store: Union[JsonBookingStore, BookingApiClient]
    today: date


def _load_config(config_file: Optional[Path]) -> AppConfig:
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    config_path = get_default_config_path()
    if config_path.exists():
        return AppConfig.load_from_yaml(config_path)
    return AppConfig()


def _parse_date(value: str, label: str) -> date:
    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD")
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}': {e}[/red]")
        raise typer.Exit(1)
    return date(parsed.year, parsed.month, parsed.day)


def _build_context(
    *,
    config_file: Optional[Path],
    business: Optional[str],
    data: Optional[Path],
    api: Optional[str],
    today: Optional[str],
) -> _Context:
    """
    Load configuration, open the data source and resolve the business.
    """
    config = _load_config(config_file)
    configure_logging(config.log_level)

    identifier = business or config.business
    if not identifier:
        console.print("[red]No business given. Use --business or set 'business' in the config.[/red]")
        raise typer.Exit(1)

    store: Union[JsonBookingStore, BookingApiClient]
    if api:
        store = BookingApiClient(
            base_url=api,
            timeout_seconds=config.api.timeout_seconds,
            fallback_duration_minutes=config.defaults.fallback_appointment_duration_minutes,
        )
        resolved = store.get_business(identifier)
    else:
        data_file = data or config.data_file
        if data_file is None:
            console.print("[red]No data source. Use --data, --api or set 'data_file' in the config.[/red]")
            raise typer.Exit(1)
        store = JsonBookingStore.from_file(
            data_file,
            fallback_duration_minutes=config.defaults.fallback_appointment_duration_minutes,
        )
        resolved = store.find_business(identifier)

    service = BookingService(
        hours_store=store,
        appointment_store=store,
        engine=AvailabilityEngine(
            slot_interval_minutes=config.defaults.slot_interval_minutes,
            ignore_cancelled=config.booking.ignore_cancelled_appointments,
        ),
        eligibility_policy=DayEligibilityPolicy(horizon_months=config.booking.horizon_months),
    )

    return _Context(
        config=config,
        business=resolved,
        service=service,
        store=store,
        today=_parse_date(today, "--today") if today else today_in(config.timezone),
    )


def _resolve_duration(ctx: _Context, identifier: Optional[str]) -> Tuple[int, str]:
    """Resolve a service name or minutes, preferring the business's own services."""
    if identifier and not identifier.strip().isdigit():
        duration = ctx.business.service_duration(identifier)
        if duration is not None:
            return duration, identifier

    duration = ctx.config.resolve_service_duration(identifier)
    service = ctx.config.find_service(identifier) if identifier else None
    return duration, service.name if service else ""


@app.command()
def slots(
    day: Annotated[str, typer.Argument(help="Date to check (YYYY-MM-DD)")],
    service_name: Annotated[Optional[str], typer.Option("--service", "-s", help="Service name or duration in minutes")] = None,
    business: BusinessOption = None,
    data: DataOption = None,
    api: ApiOption = None,
    today: TodayOption = None,
    config_file: ConfigOption = None,
):
    """
    Show the bookable start times of a business on one date.

    Examples:

        slotbook slots 2024-06-10 --business studio-bella --service Haircut --data data.json

        slotbook slots 2024-06-10 -b 1 -s 45 --api https://agenda.example.com
    """
    try:
        target = _parse_date(day, "date")
        ctx = _build_context(config_file=config_file, business=business, data=data, api=api, today=today)
        duration, _ = _resolve_duration(ctx, service_name)

        available = asyncio.run(
            ctx.service.available_slots(
                business_id=ctx.business.business_id,
                day=target,
                service_duration_minutes=duration,
                today=ctx.today,
            )
        )

        console.print(
            f"\n[bold cyan]{ctx.business.name or ctx.business.slug}[/bold cyan] - "
            f"{Weekday.from_date(target).display_name}, {target.isoformat()} ({duration} min)\n"
        )

        if not available:
            console.print("[yellow]No available times on this date.[/yellow]\n")
            return

        console.print(f"[bold green]{len(available)} time(s) available:[/bold green]\n")
        for slot in available:
            console.print(f"  {slot.format_display()}")
        console.print()

    except InvalidConfigurationError as e:
        console.print(f"[bold red]Configuration problem:[/bold red] {e}")
        raise typer.Exit(1)

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def days(
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD). Defaults to today")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last date (YYYY-MM-DD). Defaults to 14 days later")] = None,
    business: BusinessOption = None,
    data: DataOption = None,
    api: ApiOption = None,
    today: TodayOption = None,
    config_file: ConfigOption = None,
):
    """
    Show which dates a customer may pick in the booking calendar.
    """
    try:
        ctx = _build_context(config_file=config_file, business=business, data=data, api=api, today=today)
        first = _parse_date(start, "--start") if start else ctx.today
        last = _parse_date(end, "--end") if end else date.fromordinal(first.toordinal() + 14)

        if last < first:
            console.print("[red]--end must not be before --start.[/red]")
            raise typer.Exit(1)

        report = asyncio.run(
            ctx.service.day_report(
                business_id=ctx.business.business_id,
                start=first,
                end=last,
                today=ctx.today,
            )
        )

        table = Table(
            title=f"Booking calendar - {ctx.business.name or ctx.business.slug}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Date", style="bold")
        table.add_column("Weekday")
        table.add_column("Status")

        for current, eligibility in report.items():
            table.add_row(
                current.isoformat(),
                Weekday.from_date(current).display_name,
                _STATUS_STYLES[eligibility],
            )

        console.print()
        console.print(table)
        console.print(
            f"[dim]Bookable until {ctx.service.eligibility_policy.horizon_end(ctx.today).isoformat()}[/dim]\n"
        )

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    day: Annotated[str, typer.Argument(help="Date to book (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    client: Annotated[str, typer.Option("--client", help="Client name")],
    service_name: Annotated[Optional[str], typer.Option("--service", "-s", help="Service name or duration in minutes")] = None,
    business: BusinessOption = None,
    data: DataOption = None,
    today: TodayOption = None,
    config_file: ConfigOption = None,
):
    """
    Book an appointment in the JSON data file.

    The slot is checked again against the data file on disk while it is
    locked, and the booking is written before the lock is released.
    """
    try:
        target = _parse_date(day, "date")
        ctx = _build_context(config_file=config_file, business=business, data=data, api=None, today=today)
        duration, label = _resolve_duration(ctx, service_name)

        appointment = asyncio.run(
            ctx.service.book(
                business_id=ctx.business.business_id,
                day=target,
                start_time=start_time,
                service_duration_minutes=duration,
                today=ctx.today,
                client_name=client,
                service_name=label,
            )
        )

        console.print(
            f"\n[bold green]✓ Booked[/bold green] {target.isoformat()} "
            f"{format_wall_clock(appointment.start_time)} ({duration} min) for {client} "
            f"[dim](appointment {appointment.appointment_id})[/dim]\n"
        )

    except SlotUnavailableError as e:
        console.print(f"[bold red]Not available:[/bold red] {e}")
        for conflict in e.conflicts:
            console.print(f"  [dim]overlaps {conflict}[/dim]")
        raise typer.Exit(1)

    except BookingRejectedError as e:
        console.print(f"[bold red]Rejected:[/bold red] {e}")
        raise typer.Exit(1)

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_services(
    business: BusinessOption = None,
    data: DataOption = None,
    api: ApiOption = None,
    config_file: ConfigOption = None,
):
    """
    List the services of a business and the configured defaults.
    """
    try:
        ctx = _build_context(config_file=config_file, business=business, data=data, api=api, today=None)

        services = dict(ctx.business.services)
        for service in ctx.config.services:
            services.setdefault(service.name, service.duration_minutes)

        if not services:
            console.print("[yellow]No services configured.[/yellow]")
            return

        table = Table(
            title="Services",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name", style="bold yellow")
        table.add_column("Duration", style="dim")

        for name, duration in services.items():
            table.add_row(name, f"{duration} min")

        console.print()
        console.print(table)
        console.print()

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
