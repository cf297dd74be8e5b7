"""
ownerrez_cache/core/http_client.py
Shared async httpx client for the OwnerRez API.
  • upstream_client(settings) → authenticated client (bearer token or basic auth)
  • close_client(client)      → called from the app lifespan on shutdown
"""

from typing import Optional

import httpx

from ownerrez_cache.core.config import Settings

_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)


def _timeout(settings: Settings) -> httpx.Timeout:
    return httpx.Timeout(settings.upstream_timeout_s, connect=min(15.0, settings.upstream_timeout_s))


def upstream_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    headers = {
        "Accept":       "application/json",
        "Content-Type": "application/json",
        "User-Agent":   settings.user_agent,
    }
    auth = None
    if settings.uses_bearer:
        headers["Authorization"] = f"Bearer {settings.token}"
    else:
        auth = httpx.BasicAuth(settings.username, settings.password)

    return httpx.AsyncClient(
        base_url=settings.base_url,
        headers=headers,
        auth=auth,
        timeout=_timeout(settings),
        follow_redirects=True,
        limits=_LIMITS,
        transport=transport,
    )


async def close_client(client: Optional[httpx.AsyncClient]) -> None:
    if client and not client.is_closed:
        await client.aclose()
