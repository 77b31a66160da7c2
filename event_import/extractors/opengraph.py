"""OpenGraph acquirer for allow-listed sources without a richer data feed."""

import re
from datetime import datetime
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup
from rich.console import Console
from rich.markup import escape

from event_import.config import Settings
from event_import.errors import InvalidDateOverrideError, NoDataFoundError
from event_import.extractors.fetch import fetch_html

console = Console()

ISO_DATETIME_PATTERN = re.compile(
    r"\b(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)"
)
ORGANIZER_STRING_PATTERN = re.compile(r'"organizer"\s*:\s*"([^"]{2,120})"', re.I)
ORGANIZER_OBJECT_PATTERN = re.compile(
    r'"organizer"\s*:\s*\{[^{}]{0,500}?"name"\s*:\s*"([^"]{2,120})"', re.I
)
HOSTED_BY_PATTERN = re.compile(r"\bhosted by\s+([^<>\"\n.,|]{2,80})", re.I)

# Ticketing sites (flip.vn) put the schedule in og:description:
# "T6, 31/10/2025 • 12:00 - 15:30 tại Capital Theatre. Mua vé..."
SCHEDULE_DATE_PATTERN = re.compile(r"(?:T\d|Th\s?\d|CN),?\s*(\d{1,2})/(\d{1,2})/(\d{4})", re.I)
SCHEDULE_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})(?:\s*-\s*(\d{1,2}):(\d{2}))?")
SCHEDULE_VENUE_PATTERN = re.compile(r"\btại\s+(.+?)(?:\.\s*Mua\b|\.?\s*$)", re.I)
MULTI_SHOWTIME_MARKER = "Nhiều khung giờ"

OVERRIDE_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ](\d{2}):(\d{2}))?")
OVERRIDE_DMY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
OVERRIDE_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
DEFAULT_OVERRIDE_HOUR = 19

CITY_PATTERNS = [
    (re.compile(r"TP\.?\s*HCM|Hồ Chí Minh|Ho Chi Minh|Saigon|Sài Gòn", re.I), "TP.HCM"),
    (re.compile(r"Hà Nội|Ha Noi|Hanoi", re.I), "Hà Nội"),
    (re.compile(r"Đà Nẵng|Da Nang", re.I), "Đà Nẵng"),
    (re.compile(r"Đà Lạt|Da Lat|Dalat", re.I), "Đà Lạt"),
    (re.compile(r"Nha Trang", re.I), "Nha Trang"),
    (re.compile(r"Huế|\bHue\b", re.I), "Huế"),
    (re.compile(r"Hải Phòng|Hai Phong", re.I), "Hải Phòng"),
    (re.compile(r"Cần Thơ|Can Tho", re.I), "Cần Thơ"),
    (re.compile(r"Vũng Tàu|Vung Tau", re.I), "Vũng Tàu"),
    (re.compile(r"Quy Nhơn|Quy Nhon", re.I), "Quy Nhơn"),
]

LOCAL_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _local_iso(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> Optional[str]:
    """Naive local timestamp, or None for an impossible date."""
    try:
        return datetime(year, month, day, hour, minute).strftime(LOCAL_FORMAT)
    except ValueError:
        return None


def extract_city(venue: Optional[str]) -> Optional[str]:
    """Known Vietnamese city mentioned in a venue string."""
    if not venue:
        return None
    for pattern, city in CITY_PATTERNS:
        if pattern.search(venue):
            return city
    return None


def parse_schedule_description(description: Optional[str]) -> dict[str, Optional[str]]:
    """Read start, end and venue from a ticketing-site description.

    Times are the site's local time and are returned naive; the normalizer
    applies the event timezone.
    """
    schedule: dict[str, Optional[str]] = {"start": None, "end": None, "venue": None}
    if not description:
        return schedule

    venue_match = SCHEDULE_VENUE_PATTERN.search(description)
    if venue_match:
        schedule["venue"] = venue_match.group(1).strip() or None

    date_match = SCHEDULE_DATE_PATTERN.search(description)
    if not date_match:
        return schedule
    day, month, year = (int(g) for g in date_match.groups())

    time_match = SCHEDULE_TIME_PATTERN.search(description, date_match.end())
    if not time_match:
        schedule["start"] = _local_iso(year, month, day)
        return schedule

    start_hour, start_minute, end_hour, end_minute = time_match.groups()
    schedule["start"] = _local_iso(year, month, day, int(start_hour), int(start_minute))
    if end_hour is not None:
        schedule["end"] = _local_iso(year, month, day, int(end_hour), int(end_minute))
    return schedule


def parse_date_override(date: str, time: Optional[str] = None) -> str:
    """Naive local start time from a user-supplied date and optional HH:MM.

    Accepts YYYY-MM-DD (optionally with a time part) or DD/MM/YYYY. Without
    a time the event starts at 19:00.

    Raises:
        InvalidDateOverrideError: date or time cannot be parsed
    """
    text = date.strip()
    hour, minute = DEFAULT_OVERRIDE_HOUR, 0

    iso_match = OVERRIDE_ISO_PATTERN.match(text)
    dmy_match = OVERRIDE_DMY_PATTERN.match(text)
    if iso_match:
        year, month, day = (int(g) for g in iso_match.groups()[:3])
        if iso_match.group(4):
            hour, minute = int(iso_match.group(4)), int(iso_match.group(5))
    elif dmy_match:
        day, month, year = (int(g) for g in dmy_match.groups())
    else:
        raise InvalidDateOverrideError(
            "Invalid date. Use YYYY-MM-DD or DD/MM/YYYY (e.g. '2026-03-15' or '15/03/2026').",
        )

    if time:
        time_match = OVERRIDE_TIME_PATTERN.match(time.strip())
        if not time_match:
            raise InvalidDateOverrideError("Invalid time. Use HH:MM (e.g. '19:00').")
        hour, minute = int(time_match.group(1)), int(time_match.group(2))

    if hour > 23 or minute > 59:
        raise InvalidDateOverrideError("Invalid time. Use HH:MM (e.g. '19:00').")
    start = _local_iso(year, month, day, hour, minute)
    if start is None:
        raise InvalidDateOverrideError(f"Invalid date: {date}")
    return start


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    meta = soup.find("meta", attrs=attrs)
    if not meta:
        return None
    content = (meta.get("content") or "").strip()
    return content or None


def _clean_title(title: str, site_name: Optional[str]) -> str:
    """Drop a trailing '| Site' suffix that repeats the site name."""
    if site_name:
        title = re.sub(rf"\s*[|\-–]\s*{re.escape(site_name)}\s*$", "", title, flags=re.I)
    return title.strip()


def find_start_date(html: str) -> Optional[str]:
    """First ISO-8601 date-time anywhere in the raw HTML."""
    match = ISO_DATETIME_PATTERN.search(html)
    return match.group(1) if match else None


def find_organizer(html: str) -> Optional[str]:
    for pattern in (ORGANIZER_OBJECT_PATTERN, ORGANIZER_STRING_PATTERN, HOSTED_BY_PATTERN):
        match = pattern.search(html)
        if match:
            organizer = match.group(1).strip()
            if organizer:
                return organizer
    return None


def extract_opengraph_event(html: str, url: str) -> Optional[dict[str, Any]]:
    """Extract event fields from OpenGraph/meta tags, or None without a title."""
    soup = BeautifulSoup(html, "lxml")

    site_name = _meta_content(soup, property="og:site_name")
    title = _meta_content(soup, property="og:title")
    if not title:
        title_tag = soup.find("title")
        if title_tag:
            title = title_tag.get_text().strip() or None
    if not title:
        console.print(f"[yellow]OpenGraph: no title found for {escape(url)}[/yellow]")
        return None

    description = (
        _meta_content(soup, property="og:description")
        or _meta_content(soup, name="description")
    )
    schedule = parse_schedule_description(description)
    if not schedule["start"] and description and MULTI_SHOWTIME_MARKER in description:
        console.print(
            f"[yellow]OpenGraph: {escape(url)} lists several showtimes; "
            f"pass a date to import one of them[/yellow]"
        )

    return {
        "url": url,
        "title": _clean_title(title, site_name),
        "description": description,
        "start": (
            _meta_content(soup, property="event:start_time")
            or schedule["start"]
            or find_start_date(html)
        ),
        "end": _meta_content(soup, property="event:end_time") or schedule["end"],
        "venue": schedule["venue"],
        "address": None,
        "city": extract_city(schedule["venue"]),
        "organizer": find_organizer(html),
        "image_url": _meta_content(soup, property="og:image"),
        "site_name": site_name,
    }


async def acquire_opengraph(
    url: str,
    settings: Settings,
    client: httpx.AsyncClient,
    start_override: Optional[str] = None,
) -> dict[str, Any]:
    """Fetch an allow-listed page and extract its OpenGraph event.

    `start_override` (from parse_date_override) replaces whatever schedule
    the page shows, for pages listing several showtimes.

    Raises:
        NoDataFoundError: page has no title
        PageFetchError: page could not be fetched as HTML
    """
    html = await fetch_html(url, settings, client)
    event = extract_opengraph_event(html, url)
    if not event:
        raise NoDataFoundError(
            "Could not read event details from this page.",
            details="The page has no title or OpenGraph metadata.",
        )
    if start_override:
        console.print(f"[dim]Using requested start {start_override}[/dim]")
        event["start"] = start_override
        event["end"] = None
    console.print(f"[green]Got OpenGraph event:[/green] {escape(event['title'][:60])}")
    return event
