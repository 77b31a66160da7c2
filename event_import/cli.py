"""CLI for the event import pipeline."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from event_import.config import PostgresConfig, Settings
from event_import.errors import EventImportError
from event_import.extractors import classify
from event_import.models import ImportOutcome, ImportRequest
from event_import.pipeline import import_from_url
from event_import.store import EventStore, JsonEventStore, PostgresEventStore
from event_import.validators import is_safe

# Load environment variables (override=True to beat shell env vars)
load_dotenv(override=True)

app = typer.Typer(
    name="event-import",
    help="Import events from URLs into the event store",
    add_completion=False,
)
console = Console()

DEFAULT_STORE = Path(".cache") / "events.json"


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)


def print_outcome(outcome: ImportOutcome) -> None:
    """Print imported records and the run summary."""
    if outcome.records:
        table = Table(title=f"Imported from {outcome.platform.value}")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Starts (UTC)", style="green")
        table.add_column("Location", max_width=30)
        table.add_column("Slug", style="dim")
        for record in outcome.records:
            table.add_row(
                escape(record.title),
                record.starts_at or "[yellow]draft[/yellow]",
                escape(record.location_name or "-"),
                record.slug,
            )
        console.print(table)

    for detail in outcome.details:
        console.print(f"  [dim]{escape(detail)}[/dim]")
    console.print(f"\n[bold]{outcome.summary()}[/bold]")


@app.command()
def check(url: str = typer.Argument(..., help="Event or search URL")):
    """Check whether a URL is safe and which platform handles it."""
    settings = _load_settings()

    if not is_safe(url):
        console.print(f"[red]Unsafe URL:[/red] {escape(url)}")
        raise typer.Exit(1)

    try:
        target = classify(url, settings)
    except EventImportError as e:
        console.print(f"[yellow]{escape(e.message)}[/yellow]")
        raise typer.Exit(1)

    table = Table(title="URL Classification")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("URL", escape(target.url))
    table.add_row("Platform", target.platform.value)
    table.add_row("Strategy", target.strategy.value)
    table.add_row("Broker job", target.job_profile or "-")
    table.add_row("Batch", "yes" if target.is_batch else "no")
    console.print(table)


async def _open_store(store_path: Path, postgres: bool) -> EventStore:
    if postgres:
        return await PostgresEventStore.connect(PostgresConfig.from_env())
    return JsonEventStore(store_path)


@app.command("import")
def import_url(
    url: str = typer.Argument(..., help="Event or search URL to import"),
    user: str = typer.Option(..., "--user", "-u", help="User id recorded as creator"),
    store_path: Path = typer.Option(
        DEFAULT_STORE, "--store", "-s",
        help="JSON store file (ignored with --postgres)",
    ),
    date: Optional[str] = typer.Option(None, "--date", help="Start date for multi-showtime pages (YYYY-MM-DD or DD/MM/YYYY)"),
    time: Optional[str] = typer.Option(None, "--time", help="Start time with --date (HH:MM, local)"),
    postgres: bool = typer.Option(False, "--postgres", help="Store events in PostgreSQL (POSTGRES_* env vars)"),
):
    """Import the event(s) behind a URL."""
    settings = _load_settings()

    async def run() -> ImportOutcome:
        store = await _open_store(store_path, postgres)
        try:
            return await import_from_url(
                ImportRequest(url=url, requesting_user_id=user, date=date, time=time),
                store,
                settings=settings,
            )
        finally:
            await store.close()

    try:
        outcome = asyncio.run(run())
    except EventImportError as e:
        console.print(f"[red]Error ({e.status_code}): {escape(e.message)}[/red]")
        if e.details:
            console.print(f"[dim]{escape(e.details)}[/dim]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)

    print_outcome(outcome)


@app.command()
def stats(
    store_path: Path = typer.Option(DEFAULT_STORE, "--store", "-s", help="JSON store file"),
):
    """Show JSON store statistics."""
    try:
        store = JsonEventStore(store_path)
    except EventImportError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    data = store.stats()
    console.print("\n[bold]Event Store[/bold]")
    console.print(f"  Path: {store_path}")
    console.print(f"  Events: {data['total']}")

    if data["by_platform"]:
        table = Table(title="By Platform")
        table.add_column("Platform", style="cyan")
        table.add_column("Count", justify="right")
        for platform, count in sorted(data["by_platform"].items(), key=lambda x: -x[1]):
            table.add_row(platform, str(count))
        console.print(table)

    for status, count in sorted(data["by_status"].items()):
        console.print(f"  {status}: {count}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    store_path: Path = typer.Option(DEFAULT_STORE, "--store", "-s", help="JSON store file"),
    postgres: bool = typer.Option(False, "--postgres", help="Store events in PostgreSQL"),
):
    """Run the import HTTP API."""
    import uvicorn

    from event_import.api import create_app

    settings = _load_settings()
    if not settings.api_keys:
        console.print("[yellow]IMPORT_API_KEYS is empty: every request will get 401[/yellow]")

    # Postgres pools are bound to the server loop, so the app opens its own
    store = None if postgres else JsonEventStore(store_path)

    console.print(f"[cyan]Serving on http://{host}:{port}/api/import/url[/cyan]")
    uvicorn.run(create_app(store, settings=settings), host=host, port=port)


if __name__ == "__main__":
    app()
