"""Shared fixtures: settings, scripted fetchers, app factory. No network."""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ownerrez_cache.core.config import Settings
from ownerrez_cache.core.errors import UpstreamFetchError
from ownerrez_cache.fetchers.ownerrez import FetchResult
from ownerrez_cache.main import create_app

VALID_TOKEN = "tok-valid"
OTHER_TOKEN = "tok-other"


class ScriptedFetcher:
    """
    Stand-in ResourceFetcher. Per resource name, returns queued results in
    order; the last one repeats. Optional asyncio.Event per resource blocks
    the fetch until set.
    """

    def __init__(self, script=None):
        self.script = {name: list(results) for name, results in (script or {}).items()}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    def succeed(self, name, payload):
        self.script.setdefault(name, []).append(FetchResult(payload=payload))

    def fail(self, name, message="boom", status=500):
        self.script.setdefault(name, []).append(
            FetchResult(error=UpstreamFetchError(message, status=status))
        )

    async def fetch(self, descriptor):
        self.calls.append(descriptor.name)
        gate = self.gates.get(descriptor.name)
        if gate is not None:
            await gate.wait()
        queue = self.script.get(descriptor.name) or [FetchResult(error=UpstreamFetchError("unscripted"))]
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]


@pytest.fixture
def settings():
    return Settings(
        api_tokens=frozenset({VALID_TOKEN, OTHER_TOKEN}),
        username="owner@example.com",
        password="secret",
        refresh_interval_s=300,
    )


@pytest.fixture
def fetcher():
    return ScriptedFetcher()


@pytest.fixture
def app(settings, fetcher):
    return create_app(settings, fetcher=fetcher, start_schedulers=False)


@pytest.fixture
def auth():
    return {"Authorization": f"Bearer {VALID_TOKEN}"}
