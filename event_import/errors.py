"""Error taxonomy for the import pipeline.

Request-level errors abort a run and carry the HTTP status the API layer
answers with. Item-level errors (NormalizationRejected, DuplicateSourceError,
PersistenceError) are caught by the orchestrator and folded into the
ImportOutcome counts.
"""

from typing import Optional

# Upstream bodies are echoed/logged at most this long
MAX_UPSTREAM_BODY = 500


def truncate(text: Optional[str], limit: int = MAX_UPSTREAM_BODY) -> str:
    """Cut an upstream body down before it reaches logs or callers."""
    if not text:
        return ""
    text = str(text)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class EventImportError(Exception):
    """Base class for every error raised by the pipeline."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


# ===== Classification =====

class UnsafeUrlError(EventImportError):
    status_code = 400

    def __init__(self, message: str = "Invalid or unsafe URL", details: Optional[str] = None):
        super().__init__(message, details)


class UnsupportedPlatformError(EventImportError):
    status_code = 400


class InvalidDateOverrideError(EventImportError):
    """Request carried a date/time override that cannot be parsed."""

    status_code = 400


class UnauthenticatedError(EventImportError):
    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Optional[str] = None):
        super().__init__(message, details)


# ===== Acquisition =====

class NoDataFoundError(EventImportError):
    """Acquisition succeeded but yielded nothing importable."""

    status_code = 404


class BrokerFailureError(EventImportError):
    status_code = 502


class BrokerBlockedError(BrokerFailureError):
    """Broker answered with an HTML page instead of JSON."""


class BrokerQuotaExhaustedError(BrokerFailureError):
    """Broker refused the job for payment/quota reasons (HTTP 402)."""


class BrokerNotConfiguredError(EventImportError):
    status_code = 503

    def __init__(self, message: str = "Scraping broker not configured", details: Optional[str] = None):
        super().__init__(message, details)


class BrokerTimeoutError(EventImportError):
    status_code = 504


class PageFetchError(EventImportError):
    status_code = 502


class PageTimeoutError(PageFetchError):
    status_code = 504


class ImportDeadlineError(EventImportError):
    status_code = 504


class ImportFailedError(EventImportError):
    """Single-event run ended with nothing processed and nothing skipped."""

    status_code = 500


# ===== Item level =====

class NormalizationRejected(EventImportError):
    """Item misses a field its platform requires."""

    status_code = 422


class DuplicateSourceError(EventImportError):
    """Source URL already present in the store."""

    status_code = 409

    def __init__(self, source_url: str):
        super().__init__(f"Event already exists for {source_url}")
        self.source_url = source_url


class PersistenceError(EventImportError):
    status_code = 500
