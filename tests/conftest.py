"""Shared test fixtures and configuration."""

from typing import Callable

import httpx
import pytest

from event_import.config import Settings
from event_import.store import JsonEventStore

from helpers import BROKER_BASE


@pytest.fixture
def settings() -> Settings:
    """Settings with a broker token and short timeouts."""
    return Settings(
        broker_token="test-token",
        broker_base_url=BROKER_BASE,
        broker_timeout=2.0,
        request_deadline=5.0,
        page_timeout=1.0,
        api_keys={"secret-key": "user-1"},
    )


@pytest.fixture
def store() -> JsonEventStore:
    """In-memory event store."""
    return JsonEventStore()


class RecordingHandler:
    """MockTransport handler that records every request it serves."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.respond(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def recorder() -> Callable[[Callable], RecordingHandler]:
    """Factory: wrap a request -> response function in a RecordingHandler."""
    return RecordingHandler
