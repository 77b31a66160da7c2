"""Per-platform normalizers: raw acquired items → RawImportedEvent."""

from typing import Any

from event_import.models import Platform, RawImportedEvent
from event_import.normalizers.common import (
    DEFAULT_TIMEZONE,
    clean_text,
    extract_organizer_name,
    parse_event_date,
    resolve_location,
)
from event_import.normalizers.eventbrite import normalize_eventbrite
from event_import.normalizers.facebook import normalize_facebook
from event_import.normalizers.luma import normalize_luma
from event_import.normalizers.opengraph import normalize_opengraph


def normalize(
    platform: Platform,
    item: dict[str, Any],
    requested_url: str,
    tz_name: str = DEFAULT_TIMEZONE,
) -> RawImportedEvent:
    """Dispatch one raw item to its platform normalizer.

    Raises:
        NormalizationRejected: item fails the platform's minimum-field policy
    """
    if platform in (Platform.FACEBOOK, Platform.FACEBOOK_SEARCH):
        return normalize_facebook(item, requested_url, tz_name, platform=platform)
    if platform == Platform.EVENTBRITE:
        return normalize_eventbrite(item, requested_url, tz_name)
    if platform == Platform.LUMA:
        return normalize_luma(item, requested_url, tz_name)
    return normalize_opengraph(item, requested_url, tz_name)


__all__ = [
    "clean_text",
    "extract_organizer_name",
    "normalize",
    "normalize_eventbrite",
    "normalize_facebook",
    "normalize_luma",
    "normalize_opengraph",
    "parse_event_date",
    "resolve_location",
]
