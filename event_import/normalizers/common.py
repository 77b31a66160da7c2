"""Shared helpers for mapping raw platform items into RawImportedEvent."""

import html
import re
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from event_import.errors import NormalizationRejected
from event_import.models import Platform, START_REQUIRED_PLATFORMS

DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"

# Human formats seen in scraped listings, tried after ISO parsing
DATE_FORMATS = [
    "%B %d, %Y %I:%M %p",  # January 15, 2026 7:00 PM
    "%b %d, %Y %I:%M %p",  # Jan 15, 2026 7:00 PM
    "%B %d, %Y",           # January 15, 2026
    "%b %d, %Y",           # Jan 15, 2026
    "%d %B %Y",            # 15 January 2026
    "%d %b %Y",            # 15 Jan 2026
    "%d/%m/%Y %H:%M",      # 15/01/2026 19:00
    "%d/%m/%Y",            # 15/01/2026
    "%Y/%m/%d",            # 2026/01/15
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
]

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?$")
NUMBER_PATTERN = re.compile(r"\d+(?:[.,]\d+)*")


def pick(item: dict[str, Any], *paths: str) -> Any:
    """First non-empty value among dotted paths.

    A path like "location.name" matches either a flattened key
    ("location.name") or the nested structure item["location"]["name"].
    """
    for path in paths:
        if path in item and item[path] not in (None, "", [], {}):
            return item[path]
        value: Any = item
        for part in path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
                value = value[int(part)]
            else:
                value = None
                break
        if value not in (None, "", [], {}):
            return value
    return None


def clean_text(value: Any) -> Optional[str]:
    """Strip, unescape HTML entities; None for empty or non-text values."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = html.unescape(str(value)).replace("\x00", "").strip()
    return text or None


def _zone(tz_name: str):
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def _to_utc_string(dt: datetime, tz_name: str) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(tz_name))
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_event_date(
    value: Any,
    time_str: Optional[str] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Optional[str]:
    """Parse a scraped date (and optional separate time) to UTC ISO-8601.

    Naive values are read in the event timezone. Returns None when the value
    cannot be parsed.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    # Epoch seconds or milliseconds
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
        try:
            stamp = float(value)
            if stamp > 1e12:
                stamp /= 1000
            return _to_utc_string(datetime.fromtimestamp(stamp, tz=timezone.utc), tz_name)
        except (ValueError, OverflowError, OSError):
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if time_str and ISO_DATE_PATTERN.match(text) and TIME_PATTERN.match(str(time_str).strip()):
        text = f"{text}T{str(time_str).strip()}"

    try:
        return _to_utc_string(datetime.fromisoformat(text.replace("Z", "+00:00")), tz_name)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return _to_utc_string(datetime.strptime(text, fmt), tz_name)
        except ValueError:
            continue

    return None


def coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number


def coordinates(latitude: Any, longitude: Any) -> tuple[Optional[float], Optional[float]]:
    """A usable lat/lng pair, or (None, None). (0, 0) counts as missing."""
    lat, lng = coerce_float(latitude), coerce_float(longitude)
    if lat is None or lng is None or (lat == 0 and lng == 0):
        return None, None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None, None
    return lat, lng


def generate_maps_url(
    latitude: Optional[float],
    longitude: Optional[float],
    address: Optional[str] = None,
    location_name: Optional[str] = None,
    city: Optional[str] = None,
) -> Optional[str]:
    """Maps link by location preference: coordinates, address, venue name."""
    if latitude is not None and longitude is not None:
        return f"https://www.google.com/maps?q={latitude},{longitude}"

    if address:
        query = address
    elif location_name:
        query = ", ".join(part for part in (location_name, city) if part)
    else:
        return None
    return f"https://www.google.com/maps/search/?api=1&query={quote_plus(query)}"


class ResolvedLocation(NamedTuple):
    location_name: Optional[str]
    address: Optional[str]
    city: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    maps_url: Optional[str]


def resolve_location(
    location_name: Any = None,
    address: Any = None,
    city: Any = None,
    latitude: Any = None,
    longitude: Any = None,
) -> ResolvedLocation:
    """Clean raw location fields and build the maps link.

    Preference order: coordinates, then address, then venue name. The venue
    name falls back to the city so listings always have something to show.
    """
    lat, lng = coordinates(latitude, longitude)
    name = clean_text(location_name)
    addr = clean_text(address)
    city_name = clean_text(city)
    return ResolvedLocation(
        location_name=name or city_name,
        address=addr,
        city=city_name,
        latitude=lat,
        longitude=lng,
        maps_url=generate_maps_url(lat, lng, addr, name, city_name),
    )


def extract_organizer_name(organized_by: Optional[str]) -> Optional[str]:
    """'Event by Dalat Jazz Club and Friends' -> 'Dalat Jazz Club'."""
    if not organized_by:
        return None
    name = re.sub(r"^event by\s*", "", str(organized_by), flags=re.I)
    name = re.split(r"\s+and\s+", name, maxsplit=1)[0].strip()
    return name or None


def resolve_pricing(is_free: Any, price: Any) -> tuple[bool, Optional[str]]:
    """Free-ness and display price.

    Without any pricing signal the event is assumed free. That is a product
    default, not something detected from the source.
    """
    price_text = clean_text(price) if not isinstance(price, (int, float)) else str(price)

    if isinstance(is_free, bool):
        return is_free, price_text

    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return price == 0, price_text

    if price_text:
        match = NUMBER_PATTERN.search(price_text)
        if match:
            return not any(ch in "123456789" for ch in match.group(0)), price_text

    return True, price_text


def require_fields(
    platform: Platform,
    title: Optional[str],
    starts_at: Optional[str],
    source_url: str,
) -> None:
    """Enforce the minimum-field policy of a platform."""
    if not title:
        raise NormalizationRejected(f"Skipped: missing title - {source_url}")
    if platform in START_REQUIRED_PLATFORMS and not starts_at:
        raise NormalizationRejected(f"Skipped: missing title or date - {source_url}")
