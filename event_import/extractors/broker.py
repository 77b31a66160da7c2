"""Scraping broker client (Apify-style run-sync job API).

One synchronous job per acquisition: the broker runs a browser-based scraper
against the target URL and answers with the resulting dataset items as a
JSON array.
"""

import asyncio
from typing import Any, Optional

import httpx
from rich.console import Console
from rich.markup import escape

from event_import.config import Settings
from event_import.errors import (
    BrokerBlockedError,
    BrokerFailureError,
    BrokerNotConfiguredError,
    BrokerQuotaExhaustedError,
    BrokerTimeoutError,
    NoDataFoundError,
    truncate,
)
from event_import.models import ClassifiedTarget, Platform

console = Console()

PLATFORM_LABELS = {
    Platform.FACEBOOK: "Facebook",
    Platform.FACEBOOK_SEARCH: "Facebook",
    Platform.EVENTBRITE: "Eventbrite",
}


def build_job_input(target: ClassifiedTarget, settings: Settings) -> dict[str, Any]:
    """Job input: search pages fan out, single events stop after one page."""
    job_input: dict[str, Any] = {"startUrls": [{"url": target.url}]}
    if target.is_batch:
        job_input["maxResults"] = settings.broker_max_results
    else:
        job_input["maxRequestsPerCrawl"] = 1
    return job_input


def build_job_url(target: ClassifiedTarget, settings: Settings) -> str:
    return f"{settings.broker_base_url}/{target.job_profile}/run-sync-get-dataset-items"


def looks_like_html(body: str) -> bool:
    head = body.lstrip()[:1000].lower()
    return "<!doctype" in head or "<html" in head


def _error_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if payload.get("message"):
        return str(payload["message"])
    return None


async def acquire_from_broker(
    target: ClassifiedTarget,
    settings: Settings,
    client: httpx.AsyncClient,
) -> list[dict[str, Any]]:
    """Run a broker scrape job for the target and return its raw items.

    Raises:
        BrokerNotConfiguredError: no broker token configured
        BrokerTimeoutError: job exceeded settings.broker_timeout (request aborted)
        BrokerBlockedError: broker answered with an HTML page
        BrokerQuotaExhaustedError: broker answered 402
        BrokerFailureError: any other broker failure
        NoDataFoundError: job succeeded but returned no items
    """
    if not settings.broker_token:
        raise BrokerNotConfiguredError()

    label = PLATFORM_LABELS.get(target.platform, "Event")
    job_url = build_job_url(target, settings)
    job_input = build_job_input(target, settings)

    console.print(f"[cyan]Calling broker job '{target.job_profile}' for {escape(target.url)}[/cyan]")
    console.print(f"[dim]Broker input: {escape(str(job_input))}[/dim]")

    # wait_for cancels the request task on timeout, which closes its connection
    try:
        response = await asyncio.wait_for(
            client.post(
                job_url,
                params={"token": settings.broker_token},
                json=job_input,
                headers={"Content-Type": "application/json"},
            ),
            timeout=settings.broker_timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        console.print(f"[red]Broker job timed out after {settings.broker_timeout:.0f}s[/red]")
        raise BrokerTimeoutError(
            f"{label} scraping timed out. This can happen with complex event pages.",
            details=(
                "Try again, or if this persists, the event page may be "
                "inaccessible to scrapers."
            ),
        )
    except httpx.HTTPError as e:
        console.print(f"[red]Broker request failed: {type(e).__name__}[/red]")
        raise BrokerFailureError(
            "Could not reach the scraping service.",
            details=truncate(str(e)),
        )

    content_type = response.headers.get("content-type", "").lower()
    if "application/json" not in content_type:
        body = response.text
        console.print(
            f"[red]Broker returned non-JSON response[/red] "
            f"[dim](status {response.status_code}, type {content_type or 'missing'}): "
            f"{escape(truncate(body))}[/dim]"
        )
        if looks_like_html(body):
            raise BrokerBlockedError(
                f"{label} scraper returned an error page instead of data.",
                details=(
                    "The scraper may be rate-limited or the event page requires "
                    "login. Try again later."
                ),
            )
        raise BrokerFailureError("Unexpected response from scraper. Please try again.")

    try:
        payload = response.json()
    except ValueError:
        console.print(f"[red]Broker sent malformed JSON: {escape(truncate(response.text))}[/red]")
        raise BrokerFailureError("Unexpected response from scraper. Please try again.")

    if not response.is_success:
        message = _error_message(payload) or "Failed to scrape event"
        console.print(
            f"[red]Broker error {response.status_code}[/red] [dim]{escape(truncate(str(payload)))}[/dim]"
        )
        if response.status_code == 402:
            raise BrokerQuotaExhaustedError(
                truncate(message),
                details="Scraping credits may be exhausted.",
            )
        raise BrokerFailureError(truncate(message), details="Please try again or check the URL.")

    if not isinstance(payload, list):
        console.print(f"[red]Broker returned {type(payload).__name__}, expected a list[/red]")
        raise BrokerFailureError("Unexpected response from scraper. Please try again.")

    items = [item for item in payload if isinstance(item, dict)]
    if not items:
        raise NoDataFoundError("No event data found at URL")

    console.print(f"[green]Broker returned {len(items)} item(s)[/green]")
    return items
