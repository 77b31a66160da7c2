"""HTML page fetcher for the direct-page and OpenGraph acquirers.

Redirects are followed by hand so every hop goes through the SSRF guard
before a connection is opened.
"""

import asyncio
from urllib.parse import urljoin

import httpx
from rich.console import Console
from rich.markup import escape

from event_import.config import Settings
from event_import.errors import PageFetchError, PageTimeoutError, UnsafeUrlError
from event_import.validators import is_safe

console = Console()

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def page_headers(settings: Settings) -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": "text/html",
        "Accept-Language": "en-US,en;q=0.9",
    }


async def _get_following_redirects(
    client: httpx.AsyncClient,
    url: str,
    settings: Settings,
) -> httpx.Response:
    current = url
    for _ in range(settings.max_redirects + 1):
        if not is_safe(current):
            raise UnsafeUrlError(details=f"Redirect target refused: {current[:200]}")

        response = await client.get(current, headers=page_headers(settings), follow_redirects=False)
        if response.status_code not in REDIRECT_STATUSES:
            return response

        location = response.headers.get("location")
        if not location:
            return response
        current = urljoin(current, location)
        console.print(f"[dim]Following redirect to {escape(current[:80])}[/dim]")

    raise PageFetchError(f"Too many redirects fetching {url}")


async def fetch_html(
    url: str,
    settings: Settings,
    client: httpx.AsyncClient,
) -> str:
    """Fetch a page and return its HTML.

    Raises:
        PageTimeoutError: page did not answer within settings.page_timeout
        PageFetchError: transport error, non-2xx status or non-HTML body
        UnsafeUrlError: a redirect pointed at an internal target
    """
    try:
        response = await asyncio.wait_for(
            _get_following_redirects(client, url, settings),
            timeout=settings.page_timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        console.print(f"[yellow]Page fetch timed out after {settings.page_timeout}s: {escape(url)}[/yellow]")
        raise PageTimeoutError(
            "The event page took too long to respond.",
            details=f"Timed out after {settings.page_timeout:.0f}s",
        )
    except httpx.HTTPError as e:
        console.print(f"[red]Page fetch failed for {escape(url)}: {type(e).__name__}[/red]")
        raise PageFetchError("Could not reach the event page.", details=str(e)[:200])

    if not response.is_success:
        console.print(f"[red]Page fetch error {response.status_code} for {escape(url)}[/red]")
        raise PageFetchError(
            f"Event page returned HTTP {response.status_code}",
            details="Check that the URL is public and still exists.",
        )

    content_type = response.headers.get("content-type", "").lower()
    if not any(ct in content_type for ct in HTML_CONTENT_TYPES):
        console.print(f"[yellow]Expected HTML from {escape(url)}, got {content_type or 'no content type'}[/yellow]")
        raise PageFetchError(
            "Event page did not return HTML.",
            details=f"Content-Type: {content_type or 'missing'}",
        )

    return response.text
