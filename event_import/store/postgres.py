"""PostgreSQL event store (asyncpg).

Uniqueness of source_url and slug is enforced by table constraints, so the
check in `exists` is only an optimisation: the insert itself is the
authority when two imports of the same URL race.
"""

import json
import uuid
from datetime import datetime, timezone
from importlib import resources
from typing import Any, Optional

import asyncpg
from rich.console import Console
from rich.markup import escape

from event_import.config import PostgresConfig
from event_import.errors import DuplicateSourceError, PersistenceError
from event_import.models import CanonicalEventRecord, RawImportedEvent
from event_import.store.base import EventStore, slug_candidate, slugify

console = Console()

SOURCE_URL_CONSTRAINT = "imported_events_source_url_key"
SLUG_CONSTRAINT = "imported_events_slug_key"
MAX_SLUG_ATTEMPTS = 50

COLUMNS = [
    "id", "slug", "source_url", "platform", "title", "description",
    "starts_at", "ends_at", "location_name", "address", "city",
    "latitude", "longitude", "maps_url", "organizer_name", "image_url",
    "is_free", "price", "status", "source_metadata", "created_by", "created_at",
]

INSERT_SQL = (
    f"INSERT INTO imported_events ({', '.join(COLUMNS)}) VALUES ("
    + ", ".join(
        f"${i}::jsonb" if column == "source_metadata" else f"${i}"
        for i, column in enumerate(COLUMNS, start=1)
    )
    + ")"
)


def load_schema() -> str:
    return resources.files("event_import.store").joinpath("schema.sql").read_text()


def _to_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _from_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def record_to_row(record: CanonicalEventRecord) -> list[Any]:
    """Positional values for INSERT_SQL."""
    data = record.model_dump()
    data["id"] = uuid.UUID(record.id)
    data["platform"] = record.platform.value
    data["starts_at"] = _to_timestamp(record.starts_at)
    data["ends_at"] = _to_timestamp(record.ends_at)
    data["source_metadata"] = json.dumps(record.source_metadata)
    return [data[column] for column in COLUMNS]


def row_to_record(row: Any) -> CanonicalEventRecord:
    data = dict(row)
    data["id"] = str(data["id"])
    data["starts_at"] = _from_timestamp(data.get("starts_at"))
    data["ends_at"] = _from_timestamp(data.get("ends_at"))
    metadata = data.get("source_metadata")
    if isinstance(metadata, str):
        data["source_metadata"] = json.loads(metadata)
    return CanonicalEventRecord.model_validate(data)


class PostgresEventStore(EventStore):
    """Event store on an asyncpg pool."""

    def __init__(self, pool: Any):
        self.pool = pool

    @classmethod
    async def connect(cls, config: Optional[PostgresConfig] = None) -> "PostgresEventStore":
        """Create a pool from config (or POSTGRES_* env vars) and ensure the schema."""
        config = config or PostgresConfig.from_env()
        try:
            pool = await asyncpg.create_pool(**config.to_asyncpg_kwargs())
        except (OSError, asyncpg.PostgresError) as e:
            raise PersistenceError(
                f"Could not connect to PostgreSQL at {config.host}:{config.port}",
                details=str(e),
            ) from e
        store = cls(pool)
        await store.ensure_schema()
        console.print(f"[dim]Connected to PostgreSQL {config.host}/{config.database}[/dim]")
        return store

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(load_schema())

    async def exists(self, source_url: str) -> bool:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT 1 FROM imported_events WHERE source_url = $1",
                source_url,
            )
        return row is not None

    async def find_by_source_url(self, source_url: str) -> Optional[CanonicalEventRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {', '.join(COLUMNS)} FROM imported_events WHERE source_url = $1",
                source_url,
            )
        return row_to_record(row) if row else None

    async def insert(
        self,
        event: RawImportedEvent,
        created_by: Optional[str],
    ) -> CanonicalEventRecord:
        base = slugify(event.title)
        record_id = str(uuid.uuid4())

        for attempt in range(MAX_SLUG_ATTEMPTS):
            record = CanonicalEventRecord.from_event(
                event,
                record_id=record_id,
                slug=slug_candidate(base, attempt),
                created_by=created_by,
            )
            try:
                async with self.pool.acquire() as conn:
                    await conn.execute(INSERT_SQL, *record_to_row(record))
                return record
            except asyncpg.UniqueViolationError as e:
                constraint = getattr(e, "constraint_name", None)
                if constraint == SLUG_CONSTRAINT:
                    continue
                if constraint == SOURCE_URL_CONSTRAINT:
                    raise DuplicateSourceError(event.source_url) from e
                raise PersistenceError("Failed to save event", details=str(e)) from e
            except (OSError, asyncpg.PostgresError) as e:
                console.print(f"[red]Insert failed for {escape(event.source_url)}: {type(e).__name__}[/red]")
                raise PersistenceError("Failed to save event", details=str(e)) from e

        raise PersistenceError(
            "Failed to save event",
            details=f"No free slug for '{base}' after {MAX_SLUG_ATTEMPTS} attempts",
        )

    async def close(self) -> None:
        await self.pool.close()
