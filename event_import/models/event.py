"""Data models for the import pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    """Closed set of sources the pipeline knows how to import from."""

    FACEBOOK = "facebook"
    FACEBOOK_SEARCH = "facebook_search"
    EVENTBRITE = "eventbrite"
    LUMA = "luma"
    OPENGRAPH_GENERIC = "opengraph_generic"


class AcquisitionStrategy(str, Enum):
    BROKER = "broker"
    DIRECT_PAGE = "direct_page"
    OPENGRAPH = "opengraph"


# Platforms whose items must carry a start time to be imported
START_REQUIRED_PLATFORMS = frozenset({
    Platform.FACEBOOK,
    Platform.FACEBOOK_SEARCH,
    Platform.EVENTBRITE,
})


class ImportRequest(BaseModel):
    """One inbound import call."""

    url: str
    requesting_user_id: str
    # Start date/time for pages listing several showtimes (local time)
    date: Optional[str] = None
    time: Optional[str] = None


class ClassifiedTarget(BaseModel):
    """Platform + acquisition strategy derived from a URL."""

    model_config = ConfigDict(frozen=True)

    url: str
    platform: Platform
    strategy: AcquisitionStrategy
    job_profile: Optional[str] = None  # Broker actor id, broker platforms only

    @property
    def is_batch(self) -> bool:
        """True when one acquisition yields many events (search results)."""
        return self.platform == Platform.FACEBOOK_SEARCH


class RawImportedEvent(BaseModel):
    """Canonical, platform-independent event ready for persistence."""

    source_url: str
    platform: Platform
    title: str
    description: Optional[str] = None

    # UTC, "2025-01-10T18:00:00Z"
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None

    # Location
    location_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    maps_url: Optional[str] = None

    organizer_name: Optional[str] = None
    image_url: Optional[str] = None

    # Optimistic default: no pricing signal means free
    is_free: bool = True
    price: Optional[str] = None

    status: str = "published"  # "draft" when imported without a start time
    source_metadata: dict[str, Any] = Field(default_factory=dict)


class CanonicalEventRecord(BaseModel):
    """Persisted event row. Never mutated by the pipeline."""

    id: str
    slug: str
    source_url: str
    platform: Platform
    title: str
    description: Optional[str] = None
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    location_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    maps_url: Optional[str] = None
    organizer_name: Optional[str] = None
    image_url: Optional[str] = None
    is_free: bool = True
    price: Optional[str] = None
    status: str = "published"
    source_metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_event(
        cls,
        event: RawImportedEvent,
        record_id: str,
        slug: str,
        created_by: Optional[str],
    ) -> "CanonicalEventRecord":
        return cls(id=record_id, slug=slug, created_by=created_by, **event.model_dump())


class ImportOutcome(BaseModel):
    """Aggregated result of one import run."""

    platform: Platform
    is_multiple: bool = False
    processed_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    details: list[str] = Field(default_factory=list)
    records: list[CanonicalEventRecord] = Field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.processed_count} imported, {self.skipped_count} skipped, "
            f"{self.error_count} errors"
        )


class ImportResponse(BaseModel):
    """Body returned by the HTTP endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    title: Optional[str] = None
    slug: Optional[str] = None
    count: Optional[int] = None
    is_multiple: Optional[bool] = Field(default=None, alias="isMultiple")
    message: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    def to_json(self) -> dict:
        """Serialize with the wire names, dropping unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
