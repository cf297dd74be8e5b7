"""
ownerrez_cache/core/cache.py
═══════════════════════════════════════════════════════════════════════════
Atomic in-memory cache slots, one per resource kind.
  • Only the owning RefreshScheduler calls write()
  • Routers call read() — never blocks on an in-flight refresh
  • payload + fetched_at live in one immutable CacheEntry, replaced whole
  • Failed fetches never call write() → stale data stays valid
═══════════════════════════════════════════════════════════════════════════
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import pytz


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    fetched_at: datetime

    @property
    def cached_at(self) -> str:
        """fetched_at as an ISO-8601 UTC string."""
        return self.fetched_at.astimezone(pytz.UTC).isoformat()


class CacheSlot:
    """Last successfully fetched payload for one resource kind."""

    def __init__(self, name: str):
        self.name = name
        self._entry: Optional[CacheEntry] = None
        self._lock = threading.Lock()

    def write(self, payload: Any) -> CacheEntry:
        """Atomically replace the slot content. Called by the scheduler only."""
        entry = CacheEntry(payload=payload, fetched_at=datetime.now(pytz.UTC))
        with self._lock:
            self._entry = entry
        return entry

    def read(self) -> Optional[CacheEntry]:
        """Current entry, or None if no fetch has succeeded yet."""
        with self._lock:
            return self._entry

    @property
    def is_ready(self) -> bool:
        return self.read() is not None

    def age_seconds(self) -> Optional[float]:
        """Seconds since last successful write, or None."""
        entry = self.read()
        if entry is None:
            return None
        return round((datetime.now(pytz.UTC) - entry.fetched_at).total_seconds(), 1)

    def __repr__(self) -> str:
        return f"CacheSlot({self.name!r}, ready={self.is_ready})"


def build_slots(names) -> dict[str, CacheSlot]:
    """One empty slot per resource name."""
    return {name: CacheSlot(name) for name in names}
