"""Map an event URL to its platform and acquisition strategy."""

import re
from typing import Optional
from urllib.parse import urlsplit

from event_import.config import Settings
from event_import.errors import UnsupportedPlatformError
from event_import.models import AcquisitionStrategy, ClassifiedTarget, Platform

FACEBOOK_SEARCH_PATTERN = re.compile(r"/(?:search/events|events/search)(?:/|$|\?)", re.I)

SUPPORTED_HOSTS = ["facebook.com", "eventbrite.com", "lu.ma", "luma.com"]


def _hostname(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def is_facebook_url(url: str) -> bool:
    """Check if URL is a Facebook page."""
    return "facebook.com" in _hostname(url)


def is_facebook_search_url(url: str) -> bool:
    """Check if URL is a Facebook event search results page."""
    return is_facebook_url(url) and bool(FACEBOOK_SEARCH_PATTERN.search(urlsplit(url).path + "/"))


def is_eventbrite_url(url: str) -> bool:
    """Check if URL is an Eventbrite page (any country TLD)."""
    return "eventbrite." in _hostname(url)


def is_luma_url(url: str) -> bool:
    """Check if URL is a Lu.ma event page."""
    host = _hostname(url)
    return _host_matches(host, "lu.ma") or _host_matches(host, "luma.com")


def is_opengraph_url(url: str, allowed_hosts: tuple[str, ...]) -> bool:
    """Check if URL belongs to an allow-listed OpenGraph-only source."""
    host = _hostname(url)
    return any(_host_matches(host, allowed) for allowed in allowed_hosts)


def supported_hosts_message(settings: Settings) -> str:
    hosts = SUPPORTED_HOSTS + list(settings.opengraph_hosts)
    return "Unsupported URL. Supported platforms: " + ", ".join(hosts)


def classify(url: str, settings: Optional[Settings] = None) -> ClassifiedTarget:
    """Classify a (safe) URL.

    Raises:
        UnsupportedPlatformError: host is not a known platform or allow-listed source
    """
    settings = settings or Settings()

    if is_facebook_url(url):
        if is_facebook_search_url(url):
            return ClassifiedTarget(
                url=url,
                platform=Platform.FACEBOOK_SEARCH,
                strategy=AcquisitionStrategy.BROKER,
                job_profile=settings.facebook_search_profile,
            )
        return ClassifiedTarget(
            url=url,
            platform=Platform.FACEBOOK,
            strategy=AcquisitionStrategy.BROKER,
            job_profile=settings.facebook_profile,
        )

    if is_eventbrite_url(url):
        return ClassifiedTarget(
            url=url,
            platform=Platform.EVENTBRITE,
            strategy=AcquisitionStrategy.BROKER,
            job_profile=settings.eventbrite_profile,
        )

    if is_luma_url(url):
        return ClassifiedTarget(
            url=url,
            platform=Platform.LUMA,
            strategy=AcquisitionStrategy.DIRECT_PAGE,
        )

    if is_opengraph_url(url, settings.opengraph_hosts):
        return ClassifiedTarget(
            url=url,
            platform=Platform.OPENGRAPH_GENERIC,
            strategy=AcquisitionStrategy.OPENGRAPH,
        )

    raise UnsupportedPlatformError(supported_hosts_message(settings))
