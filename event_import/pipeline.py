"""Import orchestration: URL → classified target → raw items → stored events."""

import asyncio
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional

import httpx
from rich.console import Console
from rich.markup import escape

from event_import.config import Settings
from event_import.errors import (
    DuplicateSourceError,
    EventImportError,
    ImportDeadlineError,
    ImportFailedError,
    NormalizationRejected,
    PersistenceError,
    truncate,
)
from event_import.extractors import (
    acquire_from_broker,
    acquire_luma,
    acquire_opengraph,
    classify,
    parse_date_override,
)
from event_import.models import (
    AcquisitionStrategy,
    CanonicalEventRecord,
    ClassifiedTarget,
    ImportOutcome,
    ImportRequest,
    ImportResponse,
)
from event_import.normalizers import normalize
from event_import.store import EventStore
from event_import.validators import assert_safe

console = Console()

PROCESSED = "processed"
SKIPPED = "skipped"
ERROR = "error"

IMPORTED_AT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class ItemResult(NamedTuple):
    status: str
    detail: Optional[str] = None
    record: Optional[CanonicalEventRecord] = None


async def acquire(
    target: ClassifiedTarget,
    settings: Settings,
    client: httpx.AsyncClient,
    start_override: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Fetch raw items for a target with its acquisition strategy.

    Single-event targets yield at most one item. `start_override` only
    applies to OpenGraph pages.
    """
    if target.strategy == AcquisitionStrategy.BROKER:
        items = await acquire_from_broker(target, settings, client)
    elif target.strategy == AcquisitionStrategy.DIRECT_PAGE:
        items = [await acquire_luma(target.url, settings, client)]
    else:
        items = [await acquire_opengraph(target.url, settings, client, start_override)]

    if not target.is_batch:
        items = items[:1]
    return items


async def _log_race_winner(store: EventStore, source_url: str) -> None:
    """Report which record won an insert race. Lookup failures are only logged."""
    try:
        existing = await store.find_by_source_url(source_url)
    except Exception as e:
        console.print(
            f"[yellow]Concurrent import of {escape(source_url)}; "
            f"could not read the stored record ({type(e).__name__})[/yellow]"
        )
        return
    console.print(
        f"[yellow]Concurrent import of {escape(source_url)}, "
        f"kept {existing.slug if existing else 'existing record'}[/yellow]"
    )


async def process_item(
    item: dict[str, Any],
    target: ClassifiedTarget,
    request: ImportRequest,
    store: EventStore,
    settings: Settings,
) -> ItemResult:
    """Normalize, dedup and persist one raw item. Never raises for item failures."""
    source_url = item.get("url") or target.url
    try:
        event = normalize(target.platform, item, target.url, settings.event_timezone)
        source_url = event.source_url
        event.source_metadata["imported_at"] = datetime.now(timezone.utc).strftime(IMPORTED_AT_FORMAT)

        if await store.exists(source_url):
            return ItemResult(SKIPPED, f"Skipped: already exists - {source_url}")

        record = await store.insert(event, request.requesting_user_id)
        console.print(f"[green]Imported:[/green] {escape(record.title[:60])} [dim]({record.slug})[/dim]")
        return ItemResult(PROCESSED, record=record)

    except NormalizationRejected as e:
        return ItemResult(SKIPPED, e.message)
    except DuplicateSourceError:
        # Lost an insert race to a concurrent import of the same URL
        await _log_race_winner(store, source_url)
        return ItemResult(SKIPPED, f"Skipped: already exists - {source_url}")
    except PersistenceError as e:
        console.print(f"[red]Failed to save {escape(str(source_url))}: {escape(e.message)}[/red]")
        return ItemResult(ERROR, f"Error: {e.message} - {source_url}")
    except Exception as e:
        console.print(f"[red]Unexpected error on {escape(str(source_url))}: {type(e).__name__}[/red]")
        return ItemResult(ERROR, f"Error: {truncate(str(e)) or type(e).__name__} - {source_url}")


def summarize(target: ClassifiedTarget, results: list[ItemResult]) -> ImportOutcome:
    outcome = ImportOutcome(platform=target.platform, is_multiple=target.is_batch)
    for result in results:
        if result.status == PROCESSED:
            outcome.processed_count += 1
            outcome.records.append(result.record)
        elif result.status == SKIPPED:
            outcome.skipped_count += 1
        else:
            outcome.error_count += 1
        if result.detail:
            outcome.details.append(result.detail)
    return outcome


async def _run(
    target: ClassifiedTarget,
    request: ImportRequest,
    store: EventStore,
    settings: Settings,
    client: httpx.AsyncClient,
    start_override: Optional[str] = None,
) -> ImportOutcome:
    items = await acquire(target, settings, client, start_override)
    console.print(f"[cyan]Processing {len(items)} item(s) from {target.platform.value}[/cyan]")

    semaphore = asyncio.Semaphore(settings.max_concurrent_items)

    async def bounded(item: dict[str, Any]) -> ItemResult:
        async with semaphore:
            return await process_item(item, target, request, store, settings)

    results = await asyncio.gather(*(bounded(item) for item in items))
    outcome = summarize(target, list(results))

    console.print(f"[bold]Import finished:[/bold] {outcome.summary()}")
    if not outcome.is_multiple and outcome.processed_count == 0 and outcome.skipped_count == 0:
        raise ImportFailedError(
            outcome.details[0] if outcome.details else "Failed to process event",
        )
    return outcome


async def _run_with_client(
    target: ClassifiedTarget,
    request: ImportRequest,
    store: EventStore,
    settings: Settings,
    client: Optional[httpx.AsyncClient],
    start_override: Optional[str] = None,
) -> ImportOutcome:
    if client is not None:
        return await _run(target, request, store, settings, client, start_override)
    # Per-call timeouts are enforced with asyncio.wait_for, not by httpx
    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.request_deadline)) as own_client:
        return await _run(target, request, store, settings, own_client, start_override)


async def import_from_url(
    request: ImportRequest,
    store: EventStore,
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ImportOutcome:
    """Import the event(s) behind a URL into the store.

    1. Validate the URL (no network access for unsafe targets)
    2. Classify the platform and pick an acquisition strategy; check any
       date/time override
    3. Acquire raw items
    4. Normalize, dedup and persist each item

    Raises:
        EventImportError: request-level failure (see event_import.errors)
    """
    settings = settings or Settings.from_env()

    assert_safe(request.url)
    target = classify(request.url, settings)
    start_override = parse_date_override(request.date, request.time) if request.date else None
    console.print(
        f"\n[bold cyan]Importing {escape(target.url)}[/bold cyan] "
        f"[dim]({target.platform.value}, {target.strategy.value})[/dim]"
    )

    try:
        return await asyncio.wait_for(
            _run_with_client(target, request, store, settings, client, start_override),
            timeout=settings.request_deadline,
        )
    except asyncio.TimeoutError:
        console.print(f"[red]Import exceeded {settings.request_deadline:.0f}s deadline[/red]")
        raise ImportDeadlineError(
            "Import timed out. Please try again.",
            details=f"The import did not finish within {settings.request_deadline:.0f} seconds.",
        )


def build_response(outcome: ImportOutcome) -> tuple[int, ImportResponse]:
    """HTTP status and body for a finished run."""
    if outcome.processed_count > 0:
        if outcome.is_multiple:
            plural = "s" if outcome.processed_count > 1 else ""
            return 200, ImportResponse(
                success=True,
                title=f"Imported {outcome.processed_count} event{plural}",
                message=outcome.summary(),
                count=outcome.processed_count,
                is_multiple=True,
            )
        record = outcome.records[0]
        return 200, ImportResponse(success=True, title=record.title, slug=record.slug)

    if outcome.skipped_count > 0:
        if outcome.is_multiple:
            error = f"{outcome.skipped_count} events already exist or missing data"
        else:
            error = "Event already exists or is missing required data"
        return 409, ImportResponse(success=False, error=error)

    return 500, ImportResponse(
        success=False,
        error=outcome.details[0] if outcome.details else "Failed to process event",
    )


def error_response(exc: Exception) -> tuple[int, ImportResponse]:
    """HTTP status and body for a request-level failure."""
    if isinstance(exc, EventImportError):
        return exc.status_code, ImportResponse(
            success=False,
            error=exc.message,
            details=exc.details,
        )
    return 500, ImportResponse(
        success=False,
        error="Failed to import event",
        details=truncate(str(exc)) or type(exc).__name__,
    )
