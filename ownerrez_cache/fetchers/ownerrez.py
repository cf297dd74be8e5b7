"""
ownerrez_cache/fetchers/ownerrez.py
═══════════════════════════════════════════════════════════════════════════════
OwnerRez v2 API fetcher (authenticated, one GET per call).

One ResourceFetcher serves every resource kind: the ResourceDescriptor
supplies the path, the fixed query parameters and the result shape.

  body  shape → parsed JSON body cached verbatim
  items shape → the "items" array of the paged envelope (a bare list is
                accepted as-is)

fetch() NEVER raises for upstream problems. Transport errors, timeouts,
non-2xx statuses and malformed bodies come back as FetchResult.error so the
scheduler can log them and keep the last good cache.
═══════════════════════════════════════════════════════════════════════════════
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ownerrez_cache.core.errors import UpstreamFetchError
from ownerrez_cache.core.resources import SHAPE_ITEMS, ResourceDescriptor

log = logging.getLogger("ownerrez")

_MAX_ERROR_BODY = 200


@dataclass(frozen=True)
class FetchResult:
    payload: Any = None
    error: Optional[UpstreamFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _error_detail(resp: httpx.Response) -> str:
    """Short upstream error text — OwnerRez puts it in "message" when JSON."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:_MAX_ERROR_BODY] or resp.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error", "title"):
            if body.get(key):
                return str(body[key])[:_MAX_ERROR_BODY]
    return resp.reason_phrase


def _normalise(descriptor: ResourceDescriptor, body: Any) -> Any:
    if descriptor.result_shape != SHAPE_ITEMS:
        return body
    if isinstance(body, list):
        return body
    if isinstance(body, dict) and isinstance(body.get("items"), list):
        return body["items"]
    raise UpstreamFetchError(f"{descriptor.name}: expected a list of items, got {type(body).__name__}")


class ResourceFetcher:
    """Performs one upstream call per fetch() for any ResourceDescriptor."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def fetch(self, descriptor: ResourceDescriptor) -> FetchResult:
        try:
            resp = await self.client.get(descriptor.path, params=dict(descriptor.params))
        except httpx.TimeoutException as ex:
            return FetchResult(error=UpstreamFetchError(f"timeout: {ex!r}"))
        except httpx.HTTPError as ex:
            return FetchResult(error=UpstreamFetchError(f"transport error: {ex!r}"))

        if not resp.is_success:
            return FetchResult(error=UpstreamFetchError(_error_detail(resp), status=resp.status_code))

        try:
            body = resp.json()
        except ValueError:
            return FetchResult(
                error=UpstreamFetchError("malformed JSON body", status=resp.status_code)
            )

        try:
            payload = _normalise(descriptor, body)
        except UpstreamFetchError as ex:
            return FetchResult(error=UpstreamFetchError(ex.message, status=resp.status_code))

        log.debug(f"{descriptor.name}: HTTP {resp.status_code} from {descriptor.path}")
        return FetchResult(payload=payload)
