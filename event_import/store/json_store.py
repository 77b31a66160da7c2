"""JSON file event store for local runs and tests."""

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console

from event_import.errors import DuplicateSourceError, PersistenceError
from event_import.models import CanonicalEventRecord, RawImportedEvent
from event_import.store.base import EventStore, unique_slug

console = Console()


class JsonEventStore(EventStore):
    """Keeps every record in memory, keyed by source URL.

    With a path, the store loads it on creation and rewrites it after each
    insert. Without one it is purely in-memory. The uniqueness check and the
    write happen with no await in between, so coroutines sharing one event
    loop cannot both insert the same source URL.
    """

    def __init__(self, store_path: Optional[Path] = None):
        self.store_path = Path(store_path) if store_path else None
        self._events: dict[str, CanonicalEventRecord] = {}
        self._slugs: set[str] = set()
        self._load()

    def _load(self) -> None:
        """Load store from disk."""
        if not self.store_path or not self.store_path.exists():
            return
        try:
            with open(self.store_path) as f:
                data = json.load(f)
            for event_data in data.get("events", []):
                record = CanonicalEventRecord.model_validate(event_data)
                self._events[record.source_url] = record
                self._slugs.add(record.slug)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(
                f"Failed to load event store {self.store_path}",
                details=str(e),
            ) from e
        console.print(f"[dim]Loaded {len(self._events)} events from store[/dim]")

    def _save(self) -> None:
        """Save store to disk."""
        if not self.store_path:
            return
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.store_path, "w") as f:
            json.dump({
                "updated_at": datetime.now().timestamp(),
                "events": [record.model_dump(mode="json") for record in self._events.values()],
            }, f, indent=2, ensure_ascii=False)

    async def exists(self, source_url: str) -> bool:
        return source_url in self._events

    async def find_by_source_url(self, source_url: str) -> Optional[CanonicalEventRecord]:
        return self._events.get(source_url)

    async def insert(
        self,
        event: RawImportedEvent,
        created_by: Optional[str],
    ) -> CanonicalEventRecord:
        if event.source_url in self._events:
            raise DuplicateSourceError(event.source_url)

        record = CanonicalEventRecord.from_event(
            event,
            record_id=str(uuid.uuid4()),
            slug=unique_slug(event.title, lambda slug: slug in self._slugs),
            created_by=created_by,
        )
        self._events[record.source_url] = record
        self._slugs.add(record.slug)

        try:
            self._save()
        except OSError as e:
            del self._events[record.source_url]
            self._slugs.discard(record.slug)
            raise PersistenceError("Failed to save event", details=str(e)) from e

        return record

    def get_all(self) -> list[CanonicalEventRecord]:
        """Get all stored events."""
        return list(self._events.values())

    def stats(self) -> dict:
        """Record counts by platform and status."""
        by_platform: dict[str, int] = {}
        by_status: dict[str, int] = {}
        for record in self._events.values():
            by_platform[record.platform.value] = by_platform.get(record.platform.value, 0) + 1
            by_status[record.status] = by_status.get(record.status, 0) + 1
        return {
            "total": len(self._events),
            "by_platform": by_platform,
            "by_status": by_status,
        }
