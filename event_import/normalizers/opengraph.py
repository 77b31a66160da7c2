"""Normalizer for events read from OpenGraph metadata."""

from typing import Any

from event_import.models import Platform, RawImportedEvent
from event_import.normalizers.common import (
    DEFAULT_TIMEZONE,
    clean_text,
    parse_event_date,
    require_fields,
    resolve_location,
)
from event_import.normalizers.luma import venue_address


def normalize_opengraph(
    event: dict[str, Any],
    requested_url: str,
    tz_name: str = DEFAULT_TIMEZONE,
) -> RawImportedEvent:
    source_url = clean_text(event.get("url")) or requested_url
    title = clean_text(event.get("title"))
    starts_at = parse_event_date(event.get("start"), tz_name=tz_name)
    require_fields(Platform.OPENGRAPH_GENERIC, title, starts_at, source_url)

    location = resolve_location(
        location_name=event.get("venue"),
        address=venue_address(event),
        city=event.get("city"),
    )

    metadata: dict[str, Any] = {}
    if event.get("site_name"):
        metadata["site_name"] = event["site_name"]

    return RawImportedEvent(
        source_url=source_url,
        platform=Platform.OPENGRAPH_GENERIC,
        title=title,
        description=clean_text(event.get("description")),
        starts_at=starts_at,
        ends_at=parse_event_date(event.get("end"), tz_name=tz_name),
        location_name=location.location_name,
        address=location.address,
        city=location.city,
        maps_url=location.maps_url,
        organizer_name=clean_text(event.get("organizer")),
        image_url=clean_text(event.get("image_url")),
        status="published" if starts_at else "draft",
        source_metadata=metadata,
    )
