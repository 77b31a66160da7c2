"""Eventbrite event normalizer.

Handles both the public API shape (name.text, start.utc, venue.address...)
and the flatter scraper shape (name, start_date + start_time, primary_venue).
"""

from typing import Any, Optional

from event_import.models import Platform, RawImportedEvent
from event_import.normalizers.common import (
    DEFAULT_TIMEZONE,
    clean_text,
    parse_event_date,
    pick,
    require_fields,
    resolve_location,
    resolve_pricing,
)


def _text(value: Any) -> Optional[str]:
    """Eventbrite wraps strings as {"text": ..., "html": ...}."""
    if isinstance(value, dict):
        value = value.get("text") or value.get("name")
    return clean_text(value)


def _date(item: dict[str, Any], prefix: str, tz_name: str) -> Optional[str]:
    block = item.get(prefix)
    if isinstance(block, dict):
        if block.get("utc"):
            return parse_event_date(block["utc"], tz_name=tz_name)
        return parse_event_date(block.get("local"), tz_name=block.get("timezone") or tz_name)
    if block:
        return parse_event_date(block, tz_name=tz_name)
    return parse_event_date(
        item.get(f"{prefix}_date"),
        item.get(f"{prefix}_time"),
        tz_name=item.get("timezone") or tz_name,
    )


def _venue(item: dict[str, Any]) -> dict[str, Any]:
    venue = pick(item, "venue", "primary_venue")
    return venue if isinstance(venue, dict) else {}


def _address(venue: dict[str, Any]) -> tuple[Optional[str], Optional[str], Any, Any]:
    """(address, city, latitude, longitude) from a venue block."""
    address = venue.get("address")
    if isinstance(address, dict):
        return (
            address.get("localized_address_display") or address.get("address_1"),
            address.get("city"),
            address.get("latitude") or venue.get("latitude"),
            address.get("longitude") or venue.get("longitude"),
        )
    return address, venue.get("city"), venue.get("latitude"), venue.get("longitude")


def _image_url(item: dict[str, Any]) -> Any:
    image = pick(item, "image", "logo")
    if isinstance(image, dict):
        return pick(image, "original.url", "url")
    return image


def _pricing(item: dict[str, Any]) -> tuple[bool, Optional[str]]:
    is_free = pick(item, "is_free", "ticket_availability.is_free")
    minimum = pick(item, "ticket_availability.minimum_ticket_price")
    if isinstance(minimum, dict):
        display = minimum.get("display")
        value = minimum.get("major_value")
        if is_free is None and value is not None:
            try:
                is_free = float(value) == 0
            except (TypeError, ValueError):
                pass
        return resolve_pricing(is_free, display or value)
    return resolve_pricing(is_free, pick(item, "price", "ticket_price"))


def normalize_eventbrite(
    item: dict[str, Any],
    requested_url: str,
    tz_name: str = DEFAULT_TIMEZONE,
) -> RawImportedEvent:
    """Map one Eventbrite scraper item to a RawImportedEvent.

    Raises:
        NormalizationRejected: missing title or start time
    """
    source_url = clean_text(item.get("url")) or requested_url
    title = _text(item.get("name")) or clean_text(item.get("title"))
    starts_at = _date(item, "start", tz_name)
    require_fields(Platform.EVENTBRITE, title, starts_at, source_url)

    venue = _venue(item)
    address, city, latitude, longitude = _address(venue)
    location = resolve_location(
        location_name=venue.get("name"),
        address=address,
        city=city,
        latitude=latitude,
        longitude=longitude,
    )
    is_free, price = _pricing(item)

    metadata: dict[str, Any] = {}
    if item.get("id"):
        metadata["eventbrite_id"] = str(item["id"])
    if item.get("is_online_event") is not None:
        metadata["is_online"] = bool(item["is_online_event"])
    if item.get("tickets_url"):
        metadata["ticket_url"] = item["tickets_url"]

    return RawImportedEvent(
        source_url=source_url,
        platform=Platform.EVENTBRITE,
        title=title,
        description=_text(pick(item, "summary", "description")),
        starts_at=starts_at,
        ends_at=_date(item, "end", tz_name),
        location_name=location.location_name,
        address=location.address,
        city=location.city,
        latitude=location.latitude,
        longitude=location.longitude,
        maps_url=location.maps_url,
        organizer_name=_text(pick(item, "organizer.name", "primary_organizer.name", "organizer")),
        image_url=clean_text(_image_url(item)),
        is_free=is_free,
        price=price,
        source_metadata=metadata,
    )
