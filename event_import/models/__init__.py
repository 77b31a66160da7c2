"""Data models for the import pipeline."""

from event_import.models.event import (
    AcquisitionStrategy,
    CanonicalEventRecord,
    ClassifiedTarget,
    ImportOutcome,
    ImportRequest,
    ImportResponse,
    Platform,
    RawImportedEvent,
    START_REQUIRED_PLATFORMS,
)

__all__ = [
    "AcquisitionStrategy",
    "CanonicalEventRecord",
    "ClassifiedTarget",
    "ImportOutcome",
    "ImportRequest",
    "ImportResponse",
    "Platform",
    "RawImportedEvent",
    "START_REQUIRED_PLATFORMS",
]
