"""Lu.ma event normalizer."""

from typing import Any

from event_import.models import Platform, RawImportedEvent
from event_import.normalizers.common import (
    DEFAULT_TIMEZONE,
    clean_text,
    parse_event_date,
    require_fields,
    resolve_location,
)


def venue_address(event: dict[str, Any]) -> Any:
    """Explicit address, else "{venue}, {city}" from whatever is known."""
    if event.get("address"):
        return event["address"]
    parts = [clean_text(event.get("venue")), clean_text(event.get("city"))]
    return ", ".join(part for part in parts if part) or None


def normalize_luma(
    event: dict[str, Any],
    requested_url: str,
    tz_name: str = DEFAULT_TIMEZONE,
) -> RawImportedEvent:
    """Map an extracted Lu.ma event to a RawImportedEvent.

    A missing start time is tolerated: the event is kept as a draft.
    """
    source_url = clean_text(event.get("url")) or requested_url
    title = clean_text(event.get("title"))
    # Lu.ma sends UTC timestamps; its own timezone only matters for naive values
    event_tz = event.get("timezone") or tz_name
    starts_at = parse_event_date(event.get("start"), tz_name=event_tz)
    require_fields(Platform.LUMA, title, starts_at, source_url)

    location = resolve_location(
        location_name=event.get("venue"),
        address=venue_address(event),
        city=event.get("city"),
        latitude=event.get("latitude"),
        longitude=event.get("longitude"),
    )

    metadata: dict[str, Any] = {}
    if event.get("timezone"):
        metadata["timezone"] = event["timezone"]

    return RawImportedEvent(
        source_url=source_url,
        platform=Platform.LUMA,
        title=title,
        description=clean_text(event.get("description")),
        starts_at=starts_at,
        ends_at=parse_event_date(event.get("end"), tz_name=event_tz),
        location_name=location.location_name,
        address=location.address,
        city=location.city,
        latitude=location.latitude,
        longitude=location.longitude,
        maps_url=location.maps_url,
        organizer_name=clean_text(event.get("organizer")),
        image_url=clean_text(event.get("image_url")),
        status="published" if starts_at else "draft",
        source_metadata=metadata,
    )
