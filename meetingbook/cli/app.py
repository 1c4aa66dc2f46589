"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Dict, List, NoReturn, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.json_store import JsonFileStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import MeetingBookError
from ..domain.interval import Interval
from ..domain.timetable import WEEKDAY_NAMES
from ..services import BookingService, Caller, LengthCatalog, RequestContext, TimeTableService

app = typer.Typer(
    name="meetingbook",
    help="Book meetings with professionals and find the closest free slot",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
CallerOption = Annotated[str, typer.Option("--as", help="Id of the calling user")]
ProfessionalFlag = Annotated[bool, typer.Option("--professional", help="The caller acts as a professional")]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)

    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    return config


def _build_context(config: AppConfig, caller_id: str, professional: bool) -> RequestContext:
    return RequestContext(
        caller=Caller(id=caller_id, professional=professional),
        store=JsonFileStore(config.store_file),
        options=config.options_document(),
        resource=config.collections.bookings,
    )


def _parse_moment(text: str, tz: str) -> int:
    """Parse a local date-time such as ``2024-11-25 09:30`` into a unix timestamp."""
    try:
        moment = pendulum.parse(text, tz=tz)
    except Exception as e:
        raise ValueError(f"Could not parse date-time '{text}': {e}") from e
    if not isinstance(moment, pendulum.DateTime):
        raise ValueError(f"'{text}' is not a date-time")
    return moment.int_timestamp


def _parse_window_args(windows: List[str]) -> Dict[str, str]:
    """Turn ``mon=08:00-12:00,13:00-17:00`` arguments into a weekday mapping."""
    parsed: Dict[str, str] = {}
    for item in windows:
        day, sep, spans = item.partition("=")
        if not sep:
            raise ValueError(f"Expected WEEKDAY=HH:MM-HH:MM[,...], got '{item}'")
        parsed[day.strip()] = spans
    return parsed


def _format_slot(start: int, interval: Interval, tz: str) -> str:
    day = pendulum.from_timestamp(start, tz=tz).start_of("day")
    slot_start = day.add(minutes=interval.start)
    return f"{slot_start.format('DD.MM.YYYY')} | {interval} ({interval.duration_minutes()} min)"


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.command()
def save_timetable(
    windows: Annotated[List[str], typer.Argument(help="Windows per weekday, e.g. 'mon=08:00-12:00,13:00-17:00'")],
    caller: CallerOption,
    config_file: ConfigOption = None,
):
    """
    Save the weekly working hours of the calling professional.

    Weekdays that are not given are days off.
    """
    try:
        config = _load_config(config_file)
        context = _build_context(config, caller, professional=True)
        timetable = TimeTableService(context).save(_parse_window_args(windows))
    except (MeetingBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Timetable saved for {caller}[/green]")
    for weekday, name in enumerate(WEEKDAY_NAMES):
        spans = ", ".join(str(w) for w in timetable.windows(weekday)) or "-"
        console.print(f"  {name.capitalize():<10} {spans}")


@app.command()
def show_timetable(
    caller: CallerOption,
    professional: ProfessionalFlag = False,
    config_file: ConfigOption = None,
):
    """
    Show the timetables visible to the caller.
    """
    try:
        config = _load_config(config_file)
        context = _build_context(config, caller, professional)
        documents = TimeTableService(context).visible()
    except (MeetingBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not documents:
        console.print("[yellow]No timetable visible.[/yellow]")
        return

    for document in documents:
        table = Table(
            title=f"Timetable of {document.get('createdBy')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Weekday", style="bold yellow")
        table.add_column("Open windows", style="dim")

        windows = document.get("timeTable", {})
        for name in WEEKDAY_NAMES:
            table.add_row(name.capitalize(), ", ".join(windows.get(name, [])) or "-")

        console.print()
        console.print(table)
    console.print()


@app.command()
def add_length(
    length: Annotated[int, typer.Argument(help="Meeting length in minutes")],
    caller: CallerOption,
    config_file: ConfigOption = None,
):
    """
    Accept meetings of the given length for the calling professional.
    """
    try:
        config = _load_config(config_file)
        context = _build_context(config, caller, professional=True)
        catalog = LengthCatalog(context)
        added = catalog.define(length)
        lengths = catalog.lengths(caller)
    except (MeetingBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if added:
        console.print(f"[green]✓ {length} minute meetings accepted[/green]")
    else:
        console.print(f"[yellow]{length} minute meetings were already accepted[/yellow]")
    console.print(f"  Lengths: {', '.join(str(v) for v in lengths)}")


@app.command()
def suggest(
    professional_id: Annotated[str, typer.Argument(help="Id of the professional")],
    at: Annotated[str, typer.Option("--at", help="Wished start, e.g. '2024-11-25 09:30'")],
    caller: CallerOption,
    length: Annotated[Optional[int], typer.Option("--length", "-l", help="Meeting length in minutes")] = None,
    professional: ProfessionalFlag = False,
    config_file: ConfigOption = None,
):
    """
    Suggest the free slot closest to the wished start on the same day.
    """
    try:
        config = _load_config(config_file)
        context = _build_context(config, caller, professional)
        start = _parse_moment(at, config.timezone)
        minutes = length if length is not None else config.defaults.length_minutes
        service = BookingService(context, tz=config.timezone)
        interval = service.suggest_closest(professional_id, start, minutes)
    except (MeetingBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[bold green]✓ Closest free slot:[/bold green] {_format_slot(start, interval, config.timezone)}")


@app.command()
def book(
    professional_id: Annotated[str, typer.Argument(help="Id of the professional")],
    at: Annotated[str, typer.Option("--at", help="Start of the meeting, e.g. '2024-11-25 09:30'")],
    caller: CallerOption,
    length: Annotated[Optional[int], typer.Option("--length", "-l", help="Meeting length in minutes")] = None,
    professional: ProfessionalFlag = False,
    config_file: ConfigOption = None,
):
    """
    Book a meeting with a professional.
    """
    try:
        config = _load_config(config_file)
        context = _build_context(config, caller, professional)
        start = _parse_moment(at, config.timezone)
        minutes = length if length is not None else config.defaults.length_minutes
        booking = BookingService(context, tz=config.timezone).insert(professional_id, start, minutes)
    except (MeetingBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    begins = pendulum.from_timestamp(booking.start, tz=config.timezone)
    ends = pendulum.from_timestamp(booking.end, tz=config.timezone)
    console.print(
        f"[bold green]✓ Booked[/bold green] {begins.format('DD.MM.YYYY HH:mm')} - {ends.format('HH:mm')} "
        f"with {booking.professional}"
    )


@app.command()
def list_bookings(
    caller: CallerOption,
    professional: ProfessionalFlag = False,
    config_file: ConfigOption = None,
):
    """
    List the bookings visible to the caller.
    """
    try:
        config = _load_config(config_file)
        context = _build_context(config, caller, professional)
        bookings = BookingService(context, tz=config.timezone).visible_bookings()
    except (MeetingBookError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not bookings:
        console.print("[yellow]No bookings.[/yellow]")
        return

    table = Table(title="Bookings", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Time")
    table.add_column("Length")
    table.add_column("Professional")
    table.add_column("Booked by", style="dim")

    for booking in bookings:
        begins = pendulum.from_timestamp(booking.start, tz=config.timezone)
        ends = pendulum.from_timestamp(booking.end, tz=config.timezone)
        table.add_row(
            booking.day,
            f"{begins.format('HH:mm')} - {ends.format('HH:mm')}",
            f"{booking.length} min",
            booking.professional,
            booking.created_by,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]meetingbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
