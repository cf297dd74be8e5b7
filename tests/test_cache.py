"""CacheSlot behaviour: empty start, whole-entry replace, atomic pairs."""

import threading
from datetime import datetime

from ownerrez_cache.core.cache import CacheSlot, build_slots


def test_slot_starts_empty():
    slot = CacheSlot("properties")
    assert slot.read() is None
    assert slot.is_ready is False
    assert slot.age_seconds() is None


def test_write_sets_payload_and_timestamp_together():
    slot = CacheSlot("properties")
    entry = slot.write([{"id": 1}])

    assert slot.read() is entry
    assert entry.payload == [{"id": 1}]
    assert entry.fetched_at.tzinfo is not None
    assert slot.is_ready
    assert slot.age_seconds() >= 0


def test_write_replaces_whole_entry():
    slot = CacheSlot("bookings")
    first = slot.write({"items": [1]})
    second = slot.write({"items": [2]})

    assert slot.read() is second
    assert second.payload == {"items": [2]}
    assert second.fetched_at >= first.fetched_at
    # The previous entry object is untouched
    assert first.payload == {"items": [1]}


def test_cached_at_is_iso8601_utc():
    slot = CacheSlot("guests")
    entry = slot.write([])
    parsed = datetime.fromisoformat(entry.cached_at)
    assert parsed == entry.fetched_at
    assert entry.cached_at.endswith("+00:00")


def test_build_slots_one_per_name():
    slots = build_slots(["properties", "guests"])
    assert set(slots) == {"properties", "guests"}
    assert all(not s.is_ready for s in slots.values())
    assert slots["properties"] is not slots["guests"]


def test_concurrent_readers_never_see_mixed_pairs():
    slot = CacheSlot("listings")
    written: dict[int, datetime] = {}
    observed: list[tuple[int, datetime]] = []
    stop = threading.Event()

    def writer():
        for seq in range(2000):
            entry = slot.write({"seq": seq})
            written[seq] = entry.fetched_at
        stop.set()

    def reader():
        while not stop.is_set():
            entry = slot.read()
            if entry is not None:
                observed.append((entry.payload["seq"], entry.fetched_at))

    readers = [threading.Thread(target=reader) for _ in range(4)]
    w = threading.Thread(target=writer)
    for t in readers:
        t.start()
    w.start()
    w.join()
    for t in readers:
        t.join()

    for seq, fetched_at in observed:
        assert written[seq] == fetched_at
