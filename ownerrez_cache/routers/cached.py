"""
ownerrez_cache/routers/cached.py
Endpoints (all behind the access gate):
  GET /cached-properties        → {cachedAt, data}
  GET /cached-bookings          → {cachedAt, data}
  GET /cached-listings          → {cachedAt, data}
  GET /cached-guests            → {cachedAt, data} (full collection)
  GET /cached-guests/{guest_id} → {cachedAt, data} (one guest record)
  GET /cache-status             → refresh state of every resource

All reads from in-memory slots only. Zero upstream calls.
Empty slot → 503 + Retry-After. Unknown guest id → 404.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request

from ownerrez_cache.core.auth import require_access
from ownerrez_cache.core.cache import CacheEntry, CacheSlot
from ownerrez_cache.core.config import NOT_READY_RETRY_AFTER_S
from ownerrez_cache.core.errors import CacheNotReadyError, EntityNotFoundError
from ownerrez_cache.core.resources import BOOKINGS, GUESTS, LISTINGS, PROPERTIES

router = APIRouter(tags=["cache"], dependencies=[Depends(require_access)])


def _slot(request: Request, name: str) -> CacheSlot:
    return request.app.state.slots[name]


def _read_ready(request: Request, name: str) -> CacheEntry:
    entry = _slot(request, name).read()
    if entry is None:
        raise CacheNotReadyError(name, NOT_READY_RETRY_AFTER_S)
    return entry


def _cached(entry: CacheEntry, data: Any) -> dict:
    return {"cachedAt": entry.cached_at, "data": data}


def find_by_id(collection: Any, entity_id: str) -> Optional[dict]:
    """Linear scan on str(record["id"]). Anything but a list never matches."""
    if not isinstance(collection, list):
        return None
    for record in collection:
        if isinstance(record, dict) and "id" in record and str(record["id"]) == entity_id:
            return record
    return None


@router.get("/cached-properties")
async def cached_properties(request: Request):
    entry = _read_ready(request, PROPERTIES)
    return _cached(entry, entry.payload)


@router.get("/cached-bookings")
async def cached_bookings(request: Request):
    entry = _read_ready(request, BOOKINGS)
    return _cached(entry, entry.payload)


@router.get("/cached-listings")
async def cached_listings(request: Request):
    entry = _read_ready(request, LISTINGS)
    return _cached(entry, entry.payload)


@router.get("/cached-guests")
async def cached_guests(request: Request):
    entry = _read_ready(request, GUESTS)
    return _cached(entry, entry.payload)


@router.get("/cached-guests/{guest_id}")
async def cached_guest(guest_id: str, request: Request):
    # One read so the record and cachedAt come from the same fetch
    entry = _read_ready(request, GUESTS)
    record = find_by_id(entry.payload, guest_id)
    if record is None:
        raise EntityNotFoundError("guest", guest_id)
    return _cached(entry, record)


@router.get("/cache-status")
async def cache_status(request: Request):
    schedulers = request.app.state.schedulers
    return {name: s.status() for name, s in schedulers.items()}
