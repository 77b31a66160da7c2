"""Event persistence backends."""

from event_import.store.base import EventStore, slugify, unique_slug
from event_import.store.json_store import JsonEventStore
from event_import.store.postgres import PostgresEventStore

__all__ = [
    "EventStore",
    "JsonEventStore",
    "PostgresEventStore",
    "slugify",
    "unique_slug",
]
