"""Runtime configuration loaded once per process from the environment."""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; EventImport/1.0; +https://github.com/event-import)"


def _split_csv(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


def _parse_api_keys(value: Optional[str]) -> dict[str, str]:
    """Parse 'key:user_id,key2:user_id2' into a mapping."""
    keys: dict[str, str] = {}
    if not value:
        return keys
    for pair in (p.strip() for p in value.split(",")):
        if not pair:
            continue
        key, sep, user_id = pair.partition(":")
        if not sep or not key or not user_id:
            raise ValueError(f"IMPORT_API_KEYS entry must be 'key:user_id', got {pair!r}")
        keys[key] = user_id
    return keys


@dataclass(frozen=True)
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str
    port: int = 5432
    user: str = "events"
    password: str = ""
    database: str = "events"
    min_size: int = 1
    max_size: int = 5

    @classmethod
    def from_env(cls) -> "PostgresConfig":
        host = os.getenv("POSTGRES_HOST")
        if not host:
            raise ValueError("POSTGRES_HOST environment variable is required")
        return cls(
            host=host,
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            user=os.getenv("POSTGRES_USER", "events"),
            password=os.getenv("POSTGRES_PASSWORD", ""),
            database=os.getenv("POSTGRES_DB", "events"),
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.database,
            "min_size": self.min_size,
            "max_size": self.max_size,
        }


@dataclass(frozen=True)
class Settings:
    """Import pipeline settings.

    Immutable: the OpenGraph allow-list and broker profiles are fixed for
    the lifetime of the process.
    """

    broker_token: Optional[str] = None
    broker_base_url: str = "https://api.apify.com/v2/acts"
    facebook_profile: str = "apify~facebook-events-scraper"
    facebook_search_profile: str = "data-slayer~facebook-search-events"
    eventbrite_profile: str = "aitorsm~eventbrite"
    broker_max_results: int = 50

    # Seconds. The broker budget must leave room inside the request deadline
    # for normalization and persistence.
    broker_timeout: float = 280.0
    request_deadline: float = 300.0
    page_timeout: float = 30.0
    max_redirects: int = 5

    user_agent: str = DEFAULT_USER_AGENT
    opengraph_hosts: tuple[str, ...] = ("flip.vn",)
    event_timezone: str = "Asia/Ho_Chi_Minh"
    max_concurrent_items: int = 5

    api_keys: dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self):
        if self.broker_timeout <= 0 or self.page_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.broker_timeout >= self.request_deadline:
            raise ValueError(
                f"BROKER_TIMEOUT ({self.broker_timeout}s) must be shorter than "
                f"REQUEST_DEADLINE ({self.request_deadline}s)"
            )
        if self.page_timeout >= self.request_deadline:
            raise ValueError("PAGE_TIMEOUT must be shorter than REQUEST_DEADLINE")
        if self.max_concurrent_items < 1:
            raise ValueError("MAX_CONCURRENT_ITEMS must be at least 1")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (call load_dotenv first)."""
        defaults = cls()
        opengraph_hosts = _split_csv(os.getenv("OPENGRAPH_HOSTS")) or defaults.opengraph_hosts
        return cls(
            broker_token=os.getenv("APIFY_API_TOKEN") or None,
            broker_base_url=os.getenv("BROKER_BASE_URL", defaults.broker_base_url).rstrip("/"),
            facebook_profile=os.getenv("BROKER_FACEBOOK_PROFILE", defaults.facebook_profile),
            facebook_search_profile=os.getenv(
                "BROKER_FACEBOOK_SEARCH_PROFILE", defaults.facebook_search_profile
            ),
            eventbrite_profile=os.getenv("BROKER_EVENTBRITE_PROFILE", defaults.eventbrite_profile),
            broker_max_results=int(os.getenv("BROKER_MAX_RESULTS", defaults.broker_max_results)),
            broker_timeout=float(os.getenv("BROKER_TIMEOUT", defaults.broker_timeout)),
            request_deadline=float(os.getenv("REQUEST_DEADLINE", defaults.request_deadline)),
            page_timeout=float(os.getenv("PAGE_TIMEOUT", defaults.page_timeout)),
            user_agent=os.getenv("IMPORT_USER_AGENT", defaults.user_agent),
            opengraph_hosts=opengraph_hosts,
            event_timezone=os.getenv("EVENT_TIMEZONE", defaults.event_timezone),
            max_concurrent_items=int(os.getenv("MAX_CONCURRENT_ITEMS", defaults.max_concurrent_items)),
            api_keys=_parse_api_keys(os.getenv("IMPORT_API_KEYS")),
        )
