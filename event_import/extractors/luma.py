"""Lu.ma direct-page acquirer.

Lu.ma server-renders its event pages with the event embedded as JSON inside
a script payload. That payload is large and often cut short in the HTML we
receive, so instead of parsing it we locate the `"event": {...}` fragment and
pull each field out with a targeted pattern. A missing optional field never
blocks the others; only the event name is mandatory.
"""

import json
import re
from typing import Any, Optional

import httpx
from rich.console import Console
from rich.markup import escape

from event_import.config import Settings
from event_import.errors import NoDataFoundError
from event_import.extractors.fetch import fetch_html

console = Console()

EVENT_KEY_PATTERN = re.compile(r'"event"\s*:\s*\{')
MAX_FRAGMENT_CHARS = 50_000

# A JSON string literal body, escapes included
_STRING = r'"((?:[^"\\]|\\.)*)"'

HOSTS_PATTERN = re.compile(r'"hosts"\s*:\s*\[([^\]]{0,5000})\]')
GEO_ADDRESS_PATTERN = re.compile(r'"geo_address_info"\s*:\s*\{([^{}]{0,5000})\}')
DESCRIPTION_PATTERN = re.compile(r'"description(?:_md)?"\s*:\s*' + _STRING)
LATITUDE_PATTERN = re.compile(r'"(?:geo_)?latitude"\s*:\s*"?(-?\d{1,3}(?:\.\d+)?)')
LONGITUDE_PATTERN = re.compile(r'"(?:geo_)?longitude"\s*:\s*"?(-?\d{1,3}(?:\.\d+)?)')

NOT_FOUND_MESSAGE = (
    "Could not fetch Lu.ma event. Make sure the URL is a direct event link "
    "(e.g., lu.ma/abc123)"
)


def _decode(raw: str) -> str:
    """Unescape a JSON string body; keep the raw text if it is malformed."""
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw.replace("\\n", "\n").replace('\\"', '"')


def get_field(text: str, field: str) -> Optional[str]:
    """First non-empty string value for `field` in text."""
    match = re.search(rf'"{re.escape(field)}"\s*:\s*' + _STRING, text)
    if not match or not match.group(1):
        return None
    value = _decode(match.group(1)).strip()
    return value or None


def _scan_object(html: str, start: int) -> tuple[str, str]:
    """Scan a JSON object starting at `start` (the opening brace).

    Returns (fragment, top_level) where top_level keeps only the characters
    at depth 1, so nested objects' keys cannot shadow the event's own.
    The scan stops at the matching brace or after MAX_FRAGMENT_CHARS, in
    which case the partial fragment is returned.
    """
    depth = 0
    in_string = False
    escaped = False
    top_level: list[str] = []
    end = min(len(html), start + MAX_FRAGMENT_CHARS)

    for i in range(start, end):
        ch = html[i]
        if depth == 1 and not (ch in "{[" and not in_string):
            top_level.append(ch)

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return html[start:i + 1], "".join(top_level)

    return html[start:end], "".join(top_level)


def find_event_fragment(html: str) -> Optional[tuple[str, str]]:
    """Locate the embedded event object that carries a name."""
    for match in EVENT_KEY_PATTERN.finditer(html):
        fragment, top_level = _scan_object(html, match.end() - 1)
        if '"name"' in fragment:
            return fragment, top_level
    return None


def _host_name(html: str) -> Optional[str]:
    match = HOSTS_PATTERN.search(html)
    if not match:
        return None
    return get_field(match.group(1), "name")


def _description(fragment: str, html: str) -> Optional[str]:
    for text in (fragment, html):
        match = DESCRIPTION_PATTERN.search(text)
        if match and match.group(1):
            return _decode(match.group(1)).strip() or None
    return None


def _coordinate(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def extract_luma_event(html: str, url: str) -> Optional[dict[str, Any]]:
    """Extract a Lu.ma event from page HTML, or None without a name."""
    located = find_event_fragment(html)
    if not located:
        console.print("[yellow]Lu.ma: could not find event data in page[/yellow]")
        return None
    fragment, top_level = located

    def event_field(field: str) -> Optional[str]:
        return get_field(top_level, field) or get_field(fragment, field)

    name = event_field("name")
    if not name:
        console.print("[yellow]Lu.ma: could not extract event name[/yellow]")
        return None

    address = city = None
    geo = GEO_ADDRESS_PATTERN.search(html)
    if geo:
        address = get_field(geo.group(1), "full_address") or get_field(geo.group(1), "address")
        city = get_field(geo.group(1), "city")

    venue = get_field(html, "location_name") or event_field("venue")

    return {
        "url": url,
        "title": name,
        "description": _description(fragment, html),
        "start": event_field("start_at"),
        "end": event_field("end_at"),
        "venue": venue,
        "address": address,
        "city": city,
        "latitude": _coordinate(LATITUDE_PATTERN, fragment),
        "longitude": _coordinate(LONGITUDE_PATTERN, fragment),
        "organizer": _host_name(html),
        "image_url": event_field("cover_url"),
        "timezone": event_field("timezone"),
    }


async def acquire_luma(
    url: str,
    settings: Settings,
    client: httpx.AsyncClient,
) -> dict[str, Any]:
    """Fetch a Lu.ma page and extract its event.

    Raises:
        NoDataFoundError: page has no recognizable event
        PageFetchError: page could not be fetched as HTML
    """
    html = await fetch_html(url, settings, client)
    event = extract_luma_event(html, url)
    if not event:
        raise NoDataFoundError(NOT_FOUND_MESSAGE)
    console.print(f"[green]Got Lu.ma event:[/green] {escape(event['title'][:60])}")
    return event
