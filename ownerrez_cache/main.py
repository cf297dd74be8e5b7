"""
ownerrez_cache/main.py  — OwnerRez read-through cache
Startup: builds one cache slot + refresh scheduler per resource, warms every
cache in the background, then serves cache reads only.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ownerrez_cache.core.auth import CHALLENGE_HEADERS, AccessGate
from ownerrez_cache.core.cache import build_slots
from ownerrez_cache.core.config import Settings, load_settings
from ownerrez_cache.core.errors import (
    AuthorizationError,
    CacheNotReadyError,
    CacheServiceError,
    ConfigurationError,
)
from ownerrez_cache.core.http_client import close_client, upstream_client
from ownerrez_cache.core.resources import build_descriptors
from ownerrez_cache.core.scheduler import build_policy, build_schedulers, start_all, stop_all
from ownerrez_cache.fetchers.ownerrez import ResourceFetcher
from ownerrez_cache.routers import cached

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("main")

VERSION = "1.0.0"


async def _service_error(request: Request, exc: CacheServiceError) -> JSONResponse:
    headers = {}
    if isinstance(exc, AuthorizationError):
        headers.update(CHALLENGE_HEADERS)
    elif isinstance(exc, CacheNotReadyError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)


def create_app(
    settings: Settings,
    fetcher: Optional[ResourceFetcher] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    start_schedulers: bool = True,
) -> FastAPI:
    """
    Build the app with its own slots, schedulers and access gate.
    Raises ConfigurationError for an empty allow-list.
    """
    gate = AccessGate(settings.api_tokens)
    descriptors = build_descriptors(settings)
    slots = build_slots(descriptors)

    client = None
    if fetcher is None:
        client = upstream_client(settings, transport=transport)
        fetcher = ResourceFetcher(client)

    schedulers = build_schedulers(descriptors, fetcher, slots, build_policy(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"🚀 OwnerRez cache v{VERSION} starting ({', '.join(descriptors)})...")
        if start_schedulers:
            start_all(schedulers.values())
        yield
        log.info("🛑 Shutting down...")
        await stop_all(schedulers.values())
        await close_client(client)

    app = FastAPI(
        title="OwnerRez Cache",
        description=(
            "Read-through cache in front of the OwnerRez v2 API. "
            "Properties, bookings, listings and guests are refreshed in the "
            "background and served from memory to token-holding clients."
        ),
        version=VERSION,
        lifespan=lifespan,
        # Nothing but /healthz is reachable without a token
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.gate = gate
    app.state.descriptors = descriptors
    app.state.slots = slots
    app.state.schedulers = schedulers

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.allowed_origins),
            allow_methods=["GET"],
            allow_headers=["Authorization", "X-API-Key"],
        )

    app.add_exception_handler(CacheServiceError, _service_error)
    app.include_router(cached.router)

    @app.get("/healthz", tags=["meta"])
    async def healthz():
        """Liveness probe. Never gated, never touches the cache."""
        return {"ok": True}

    return app


def run() -> None:
    """Console entry point: resolve config, then serve. Exits 1 on bad config."""
    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigurationError as ex:
        log.critical(f"Configuration error: {ex}")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
