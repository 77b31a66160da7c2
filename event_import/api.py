"""HTTP endpoint for URL imports (FastAPI)."""

import hmac
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from rich.console import Console

from event_import.config import Settings
from event_import.errors import EventImportError, UnauthenticatedError
from event_import.models import ImportRequest, ImportResponse
from event_import.pipeline import build_response, error_response, import_from_url
from event_import.store import EventStore, PostgresEventStore

console = Console()

# Resolves the calling user id from a request, None when unauthenticated
Authenticator = Callable[[Request], Awaitable[Optional[str]]]


def api_key_authenticator(settings: Settings) -> Authenticator:
    """Map `Authorization: Bearer <key>` to a user id via settings.api_keys."""

    async def authenticate(request: Request) -> Optional[str]:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        token = token.strip()
        for key, user_id in settings.api_keys.items():
            if hmac.compare_digest(key.encode(), token.encode()):
                return user_id
        return None

    return authenticate


def _json(status: int, body: ImportResponse) -> JSONResponse:
    return JSONResponse(content=body.to_json(), status_code=status)


def create_app(
    store: Optional[EventStore] = None,
    settings: Optional[Settings] = None,
    authenticator: Optional[Authenticator] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the import API around a store.

    Without a store the app connects to PostgreSQL (POSTGRES_* env vars) on
    startup and closes the pool on shutdown. `client` is only for tests; in
    production each import opens its own HTTP client.
    """
    settings = settings or Settings.from_env()
    authenticate = authenticator or api_key_authenticator(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.store is None:
            app.state.store = await PostgresEventStore.connect()
            try:
                yield
            finally:
                await app.state.store.close()
        else:
            yield

    app = FastAPI(
        title="Event Import",
        description="Import events from Facebook, Eventbrite, Lu.ma and allow-listed pages",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = settings

    @app.post("/api/import/url")
    async def import_url(request: Request) -> JSONResponse:
        user_id = await authenticate(request)
        if not user_id:
            return _json(*error_response(UnauthenticatedError()))

        try:
            payload = await request.json()
        except ValueError:
            payload = None
        url = payload.get("url") if isinstance(payload, dict) else None
        if not isinstance(url, str) or not url.strip():
            return _json(400, ImportResponse(success=False, error="URL is required"))

        date, time = payload.get("date"), payload.get("time")
        if (date is not None and not isinstance(date, str)) or (time is not None and not isinstance(time, str)):
            return _json(400, ImportResponse(success=False, error="date and time must be strings"))

        try:
            outcome = await import_from_url(
                ImportRequest(
                    url=url.strip(),
                    requesting_user_id=user_id,
                    date=date or None,
                    time=time or None,
                ),
                app.state.store,
                settings=settings,
                client=client,
            )
        except EventImportError as e:
            console.print(f"[red]Import failed ({e.status_code}): {type(e).__name__}[/red]")
            return _json(*error_response(e))
        except Exception as e:
            console.print(f"[red]Unexpected import error: {type(e).__name__}[/red]")
            return _json(*error_response(e))

        return _json(*build_response(outcome))

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app
