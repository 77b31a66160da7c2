"""URL → raw event acquisition.

This package provides:
1. Platform classification of submitted URLs
2. Acquirers, one per strategy:
   - Broker: delegates scraping to an external job API (Facebook, Eventbrite)
   - Direct page: fetches the page and reads embedded JSON (Lu.ma)
   - OpenGraph: fetches the page and reads meta tags (allow-listed sources)
"""

from event_import.extractors.broker import acquire_from_broker
from event_import.extractors.fetch import fetch_html
from event_import.extractors.luma import acquire_luma, extract_luma_event
from event_import.extractors.opengraph import (
    acquire_opengraph,
    extract_opengraph_event,
    parse_date_override,
    parse_schedule_description,
)
from event_import.extractors.platforms import classify

__all__ = [
    "acquire_from_broker",
    "acquire_luma",
    "acquire_opengraph",
    "classify",
    "extract_luma_event",
    "extract_opengraph_event",
    "fetch_html",
    "parse_date_override",
    "parse_schedule_description",
]
