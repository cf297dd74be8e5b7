"""
ownerrez_cache/core/scheduler.py
═══════════════════════════════════════════════════════════════════════════════
Background refresh, one RefreshScheduler per resource kind:

  1. Immediate fetch at startup so the cache warms as soon as possible
  2. Then one tick per policy delay, for the lifetime of the process
  3. ONE fetch at a time per resource (asyncio.Lock) — an overlapping tick
     is skipped, never queued
  4. Failed fetch → keep last valid slot content, log resource + error
  5. Schedulers are independent tasks: a failing resource never delays or
     blocks another one

Policy:
  FixedIntervalPolicy (default) — no backoff, no jitter, no retry ceiling.
  A permanently failing upstream keeps serving stale (or never-populated)
  data forever and is only visible in the logs and /cache-status.
  ExponentialBackoffPolicy is the drop-in hardened variant.
═══════════════════════════════════════════════════════════════════════════════
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Iterable, Optional

import pytz

from ownerrez_cache.core.cache import CacheSlot
from ownerrez_cache.core.config import Settings
from ownerrez_cache.core.errors import UpstreamFetchError
from ownerrez_cache.core.resources import ResourceDescriptor
from ownerrez_cache.fetchers.ownerrez import FetchResult, ResourceFetcher

log = logging.getLogger("scheduler")


# ── Policies ──────────────────────────────────────────────────────────────────

class RefreshPolicy:
    """Decides how long to sleep before the next tick."""

    def next_delay(self, consecutive_failures: int) -> float:
        raise NotImplementedError


class FixedIntervalPolicy(RefreshPolicy):
    def __init__(self, interval_s: float):
        self.interval_s = interval_s

    def next_delay(self, consecutive_failures: int) -> float:
        return self.interval_s

    def __repr__(self) -> str:
        return f"FixedIntervalPolicy({self.interval_s}s)"


class ExponentialBackoffPolicy(RefreshPolicy):
    """interval × factor^failures, capped at max_interval_s. Resets on success."""

    def __init__(self, interval_s: float, max_interval_s: float, factor: float = 2.0):
        self.interval_s = interval_s
        self.max_interval_s = max(max_interval_s, interval_s)
        self.factor = factor

    def next_delay(self, consecutive_failures: int) -> float:
        if consecutive_failures <= 0:
            return self.interval_s
        # Exponent capped, float overflows past ~1000
        delay = self.interval_s * (self.factor ** min(consecutive_failures, 32))
        return min(delay, self.max_interval_s)

    def __repr__(self) -> str:
        return f"ExponentialBackoffPolicy({self.interval_s}s..{self.max_interval_s}s)"


def build_policy(settings: Settings) -> RefreshPolicy:
    if settings.refresh_backoff == "exponential":
        return ExponentialBackoffPolicy(settings.refresh_interval_s, settings.refresh_max_interval_s)
    return FixedIntervalPolicy(settings.refresh_interval_s)


# ── Scheduler ─────────────────────────────────────────────────────────────────

class RefreshScheduler:
    def __init__(
        self,
        descriptor: ResourceDescriptor,
        fetcher: ResourceFetcher,
        slot: CacheSlot,
        policy: RefreshPolicy,
    ):
        self.descriptor = descriptor
        self.fetcher = fetcher
        self.slot = slot
        self.policy = policy
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None
        self.last_attempt: Optional[datetime] = None
        self._in_flight = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    async def tick(self) -> bool:
        """One fetch-and-commit cycle. Returns True if the slot was replaced."""
        if self._in_flight.locked():
            log.warning(f"{self.name}: previous refresh still running — skipping tick")
            return False

        async with self._in_flight:
            self.last_attempt = datetime.now(pytz.UTC)
            t0 = time.monotonic()
            try:
                result = await self.fetcher.fetch(self.descriptor)
            except Exception as ex:
                log.exception(f"{self.name}: fetcher raised unexpectedly")
                result = FetchResult(error=UpstreamFetchError(f"unexpected error: {ex!r}"))

            elapsed = time.monotonic() - t0
            if not result.ok:
                self.consecutive_failures += 1
                self.last_error = str(result.error)
                log.error(
                    f"{self.name}: refresh failed after {elapsed:.1f}s "
                    f"({self.consecutive_failures} in a row): {result.error} — keeping previous cache"
                )
                return False

            self.slot.write(result.payload)
            self.consecutive_failures = 0
            self.last_error = None
            log.info(f"{self.name}: cache refreshed in {elapsed:.1f}s")
            return True

    async def run(self) -> None:
        """Immediate tick, then one tick per policy delay. Runs until cancelled."""
        log.info(f"{self.name}: scheduler started ({self.policy!r})")
        while True:
            try:
                await self.tick()
            except Exception as ex:
                log.error(f"{self.name}: tick error (continuing): {ex}")
            delay = self.policy.next_delay(self.consecutive_failures)
            log.debug(f"{self.name}: next refresh in {delay:.0f}s")
            await asyncio.sleep(delay)

    def start(self) -> asyncio.Task:
        """Spawn the refresh loop. A second start() while running is ignored."""
        if self.running:
            log.warning(f"{self.name}: scheduler already running — ignoring duplicate start")
            return self._task
        self._task = asyncio.create_task(self.run(), name=f"refresh:{self.name}")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop. An in-flight fetch is abandoned and never written."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info(f"{self.name}: scheduler stopped")

    def status(self) -> dict:
        entry = self.slot.read()
        return {
            "ready":               entry is not None,
            "cachedAt":            entry.cached_at if entry else None,
            "ageSeconds":          self.slot.age_seconds(),
            "consecutiveFailures": self.consecutive_failures,
            "lastError":           self.last_error,
            "lastAttempt":         self.last_attempt.isoformat() if self.last_attempt else None,
            "refreshing":          self.in_flight,
        }


def build_schedulers(
    descriptors: dict[str, ResourceDescriptor],
    fetcher: ResourceFetcher,
    slots: dict[str, CacheSlot],
    policy: RefreshPolicy,
) -> dict[str, RefreshScheduler]:
    return {
        name: RefreshScheduler(descriptor, fetcher, slots[name], policy)
        for name, descriptor in descriptors.items()
    }


def start_all(schedulers: Iterable[RefreshScheduler]) -> None:
    for s in schedulers:
        s.start()


async def stop_all(schedulers: Iterable[RefreshScheduler]) -> None:
    await asyncio.gather(*(s.stop() for s in schedulers))
