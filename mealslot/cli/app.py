"""
Main CLI application using Typer.
"""

import asyncio
import logging
import random
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .. import __version__
from ..adapters.edamam_client import EdamamClient, load_recipe_file
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_calendar import GraphCalendarClient
from ..adapters.ics_export import IcsEventWriter
from ..adapters.json_event_store import JsonEventStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import MealSlotError
from ..domain.models import ScheduledSlot
from ..domain.slot_finder import SlotFinder
from ..services.scheduler import (
    EventStoreReader,
    EventStoreWriter,
    RecipeSchedulerService,
)

app = typer.Typer(
    name="mealslot",
    help="Schedule recipes into free calendar slots at sensible meal times",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """mealslot - find a time to cook."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _parse_day(value: Optional[str], tz: str) -> DateTime:
    """Parse a YYYY-MM-DD option, defaulting to today."""
    if not value:
        return pendulum.now(tz).start_of("day")
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).start_of("day")
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _build_calendar(config: AppConfig, use_graph: bool) -> Tuple[EventStoreReader, EventStoreWriter]:
    """Pick the calendar backend: Microsoft Graph or the local JSON file."""
    if not use_graph:
        store = JsonEventStore(config.events_file, timezone=config.timezone)
        return store, store

    if config.graph is None:
        raise MealSlotError("The 'graph' section is missing from the config file.")

    authenticator = GraphAuthenticator(
        client_id=config.graph.client_id,
        tenant_id=config.graph.tenant_id,
        authority_url=config.graph.get_authority_url()
    )
    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]⚠ {authenticator.insecure_storage_warning}[/yellow]")

    client = GraphCalendarClient(
        access_token=authenticator.get_access_token(),
        calendar_name=config.scheduling.calendar_name,
        timezone=config.timezone,
    )
    return client, client


def _build_slot_finder(config: AppConfig, seed: Optional[int]) -> SlotFinder:
    return SlotFinder(
        rng=random.Random(seed),
        meal_windows=config.meal_window_table(),
    )


@app.command()
def schedule(
    recipe_file: Annotated[Path, typer.Argument(help="Recipe JSON (Edamam format).")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Target date (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Only show the chosen slot, do not save it.")] = False,
    seed: Annotated[Optional[int], typer.Option("--seed", help="Seed for the random slot choice.")] = None,
    ics_dir: Annotated[Optional[Path], typer.Option("--ics-dir", help="Write the event as an .ics file into this directory.")] = None,
    graph: Annotated[bool, typer.Option("--graph", help="Use the Microsoft Graph calendar instead of the events file.")] = False,
):
    """
    Schedule a recipe into a free slot on the given day.

    Examples:

        mealslot schedule pasta.json --date 2024-11-25

        mealslot schedule pasta.json --date 2024-11-25 --dry-run --seed 7

        mealslot schedule pasta.json --graph
    """
    try:
        config = _load_config(config_file)
        tz = config.timezone
        day = _parse_day(date, tz)
        recipe = load_recipe_file(recipe_file)

        reader, writer = _build_calendar(config, graph)
        if ics_dir is not None:
            writer = IcsEventWriter(ics_dir)

        slot_finder = _build_slot_finder(config, seed)
        service = RecipeSchedulerService(
            event_reader=reader,
            slot_finder=slot_finder,
            event_writer=None if dry_run else writer,
            calendar_name=config.scheduling.calendar_name,
        )

        window = slot_finder.resolve_window(recipe)
        console.print(f"\n[bold cyan]🍴 {recipe.label}[/bold cyan]")
        console.print(f"   Date: {day.format('dddd, DD.MM.YYYY')}")
        console.print(f"   Meal: {window.category} ({window})")
        console.print(f"   Duration: {slot_finder.resolve_duration(recipe)} min\n")

        if dry_run:
            outcome = asyncio.run(service.plan(recipe=recipe, day=day, timezone=tz))
        else:
            outcome = asyncio.run(service.schedule(recipe=recipe, day=day, timezone=tz))

        if isinstance(outcome, ScheduledSlot):
            verb = "Would schedule" if dry_run else "Scheduled"
            console.print(f"[bold green]✓ {verb}:[/bold green] {outcome.format_display()}")
        else:
            console.print(f"[yellow]⚠ No available time.[/yellow] {outcome.message}")
        console.print()

    except (MealSlotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def events(
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to show (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    graph: Annotated[bool, typer.Option("--graph", help="Use the Microsoft Graph calendar.")] = False,
):
    """
    List the timed events overlapping a day.
    """
    try:
        config = _load_config(config_file)
        tz = config.timezone
        day = _parse_day(date, tz)
        reader, _ = _build_calendar(config, graph)

        all_events = asyncio.run(reader.get_events(day, day.add(days=1), tz))
        day_events = [event for event in all_events if not event.all_day]

        if not day_events:
            console.print("[dim]No events for this day[/dim]")
            return

        table = Table(
            title=day.format("dddd, DD.MM.YYYY"),
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Time", style="bold yellow")
        table.add_column("Title")
        table.add_column("Calendar", style="dim")

        for event in day_events:
            table.add_row(
                f"{event.start.format('HH:mm')} - {event.end.format('HH:mm')}",
                event.title or "No Title",
                event.calendar_name,
            )

        console.print()
        console.print(table)
        console.print()

    except (MealSlotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def planned(
    days: Annotated[int, typer.Option("--days", min=1, help="Number of days to look ahead.")] = 14,
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    graph: Annotated[bool, typer.Option("--graph", help="Use the Microsoft Graph calendar.")] = False,
):
    """
    Show which days already have a recipe in the cooking calendar.
    """
    try:
        config = _load_config(config_file)
        tz = config.timezone
        first_day = _parse_day(start, tz)
        reader, _ = _build_calendar(config, graph)

        service = RecipeSchedulerService(
            event_reader=reader,
            slot_finder=_build_slot_finder(config, None),
            calendar_name=config.scheduling.calendar_name,
        )
        cooking = asyncio.run(
            service.cooking_days(
                start_date=first_day,
                end_date=first_day.add(days=days),
                timezone=tz,
            )
        )

    except (MealSlotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    for offset in range(days):
        current = first_day.add(days=offset)
        marker = "🍴" if current.date() in cooking else "  "
        console.print(f"  {marker} {current.format('ddd DD.MM.YYYY')}")
    console.print()


@app.command()
def windows(config_file: ConfigOption = None):
    """
    Show the meal-time windows used for scheduling.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Meal windows", show_header=True, header_style="bold cyan")
    table.add_column("Meal", style="bold yellow")
    table.add_column("Window")

    for category, window in config.meal_window_table().items():
        table.add_row(category, str(window))

    console.print()
    console.print(table)
    console.print("[dim]Unknown meal types use the dinner window.[/dim]\n")


@app.command()
def search(
    meal_type: Annotated[str, typer.Argument(help="breakfast, lunch, dinner, snack or teatime")],
    query: Annotated[str, typer.Option("--query", "-q", help="Free-text search.")] = "",
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum number of recipes.")] = 10,
    config_file: ConfigOption = None,
):
    """
    Search Edamam for recipes of a meal type.
    """
    try:
        config = _load_config(config_file)
        if not config.edamam.is_configured():
            raise MealSlotError("Edamam app_id and app_key are missing from the config file.")

        client = EdamamClient(
            app_id=config.edamam.app_id,
            app_key=config.edamam.app_key,
            user_id=config.edamam.user_id,
            base_url=config.edamam.base_url,
        )
        recipes = client.search(meal_type, query=query, limit=limit)

    except (MealSlotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not recipes:
        console.print("[yellow]No recipes found.[/yellow]")
        return

    table = Table(title=f"{meal_type.capitalize()} recipes", show_header=True, header_style="bold cyan")
    table.add_column("Recipe", style="bold yellow")
    table.add_column("Meal type")
    table.add_column("Time", justify="right")
    table.add_column("URL", style="dim")

    for recipe in recipes:
        table.add_row(
            recipe.label,
            ", ".join(recipe.meal_types) or "-",
            f"{recipe.total_time} min" if recipe.total_time else "-",
            recipe.url,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the Microsoft Graph token cache.
    """
    try:
        config = _load_config(config_file)
        if config.graph is None:
            raise MealSlotError("The 'graph' section is missing from the config file.")

        authenticator = GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id
        )
        authenticator.clear_cache()
        console.print("\n[green]✓ Token cache cleared.[/green]")
        console.print("You will need to sign in again next time.\n")

    except (MealSlotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    console.print(f"\n[bold cyan]mealslot[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
