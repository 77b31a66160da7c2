"""Facebook event normalizer.

Broker items arrive either nested ({"location": {"name": ...}}) or with
flattened dotted keys ({"location.name": ...}) depending on the scraper
profile, so every lookup goes through `pick`.
"""

from typing import Any

from event_import.errors import NormalizationRejected
from event_import.models import Platform, RawImportedEvent
from event_import.normalizers.common import (
    DEFAULT_TIMEZONE,
    clean_text,
    extract_organizer_name,
    parse_event_date,
    pick,
    require_fields,
    resolve_location,
    resolve_pricing,
)


def _image_url(item: dict[str, Any]) -> Any:
    image = pick(item, "coverPhoto", "imageUrl", "image", "images.0")
    if isinstance(image, dict):
        return image.get("url") or image.get("uri")
    return image


def _organizer(item: dict[str, Any]) -> Any:
    name = pick(item, "organizer.name", "organizers.0.name")
    if name:
        return clean_text(name)
    return extract_organizer_name(clean_text(pick(item, "organizedBy")))


def _metadata(item: dict[str, Any]) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    going = pick(item, "usersGoing", "goingCount")
    if going is not None:
        metadata["going_count"] = going
    interested = pick(item, "usersInterested", "interestedCount")
    if interested is not None:
        metadata["interested_count"] = interested
    ticket_url = pick(item, "ticketUrl", "ticketsUrl")
    if ticket_url:
        metadata["ticket_url"] = ticket_url
    images = item.get("images")
    if isinstance(images, list) and len(images) > 1:
        metadata["additional_images"] = [img for img in images[1:] if isinstance(img, str)]
    if item.get("id"):
        metadata["facebook_id"] = str(item["id"])
    return metadata


def normalize_facebook(
    item: dict[str, Any],
    requested_url: str,
    tz_name: str = DEFAULT_TIMEZONE,
    platform: Platform = Platform.FACEBOOK,
) -> RawImportedEvent:
    """Map one Facebook scraper item to a RawImportedEvent.

    A single-event item without its own URL falls back to the requested URL;
    search results must carry their own.

    Raises:
        NormalizationRejected: missing source URL (search results), title or
            start time
    """
    title = clean_text(pick(item, "name", "title"))
    item_url = clean_text(pick(item, "url", "eventUrl"))
    if not item_url and platform == Platform.FACEBOOK_SEARCH:
        raise NormalizationRejected(
            f"Skipped: missing source URL - {title or requested_url}"
        )
    source_url = item_url or requested_url
    starts_at = parse_event_date(
        pick(item, "utcStartDate", "startDate", "startTimestamp", "start_time"),
        tz_name=tz_name,
    )
    require_fields(platform, title, starts_at, source_url)

    location = resolve_location(
        location_name=pick(item, "location.name", "locationName"),
        address=pick(item, "location.address", "location.streetAddress", "address"),
        city=pick(item, "location.city", "locationCity"),
        latitude=pick(item, "location.latitude", "location.lat", "latitude"),
        longitude=pick(item, "location.longitude", "location.lng", "longitude"),
    )
    is_free, price = resolve_pricing(item.get("isFree"), pick(item, "price", "ticketPrice"))

    return RawImportedEvent(
        source_url=source_url,
        platform=platform,
        title=title,
        description=clean_text(pick(item, "description", "about")),
        starts_at=starts_at,
        ends_at=parse_event_date(
            pick(item, "utcEndDate", "endDate", "endTimestamp", "end_time"),
            tz_name=tz_name,
        ),
        location_name=location.location_name,
        address=location.address,
        city=location.city,
        latitude=location.latitude,
        longitude=location.longitude,
        maps_url=location.maps_url,
        organizer_name=_organizer(item),
        image_url=clean_text(_image_url(item)),
        is_free=is_free,
        price=price,
        source_metadata=_metadata(item),
    )
