"""Event store contract and slug helpers shared by all backends."""

import re
import unicodedata
from abc import ABC, abstractmethod
from typing import Callable, Optional

from event_import.models import CanonicalEventRecord, RawImportedEvent

MAX_SLUG_LENGTH = 60
DEFAULT_SLUG = "event"


def slugify(title: str) -> str:
    """URL-safe slug: ASCII, lowercase, hyphen separated, at most 60 chars.

    Vietnamese and other accented titles are folded to ASCII first
    ("Đêm nhạc" -> "dem-nhac").
    """
    text = title.replace("đ", "d").replace("Đ", "D")
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    text = text[:MAX_SLUG_LENGTH].rstrip("-")
    return text or DEFAULT_SLUG


def slug_candidate(base: str, attempt: int) -> str:
    """base, base-1, base-2, ... trimmed so the suffix still fits."""
    if attempt == 0:
        return base
    suffix = f"-{attempt}"
    return f"{base[:MAX_SLUG_LENGTH - len(suffix)].rstrip('-')}{suffix}"


def unique_slug(title: str, is_taken: Callable[[str], bool]) -> str:
    base = slugify(title)
    attempt = 0
    while is_taken(slug_candidate(base, attempt)):
        attempt += 1
    return slug_candidate(base, attempt)


class EventStore(ABC):
    """Persistence for imported events.

    `source_url` is unique across the store. `insert` is the only write and
    must enforce that uniqueness atomically: two concurrent inserts for the
    same source URL yield exactly one record and one DuplicateSourceError.
    """

    @abstractmethod
    async def exists(self, source_url: str) -> bool:
        """True if an event with this source URL is already stored."""

    @abstractmethod
    async def find_by_source_url(self, source_url: str) -> Optional[CanonicalEventRecord]:
        """Stored record for a source URL, or None."""

    @abstractmethod
    async def insert(
        self,
        event: RawImportedEvent,
        created_by: Optional[str],
    ) -> CanonicalEventRecord:
        """Persist a new event with a fresh id and unique slug.

        Raises:
            DuplicateSourceError: source URL already stored
            PersistenceError: any other storage failure
        """

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
