"""
Cache layer tests: categories, freshness, coalescing, failure handling
"""
import threading
import time

import pytest

from proclubs.cache import CacheManager, CacheSource, DataCategory, get_category_for_endpoint
from proclubs.cache.coalescer import RequestCoalescer
from proclubs.cache.core import CacheEntry, CacheMeta


@pytest.mark.parametrize("path, params, category", [
    ("/fc/clubs/info", {}, DataCategory.CLUB_METADATA),
    ("/fc/clubs/overallStats", {}, DataCategory.CLUB_STATS),
    ("/fc/clubs/matches", {"matchType": "leagueMatch"}, DataCategory.MATCHES),
    ("/fc/members/stats", {"clubId": "1"}, DataCategory.MEMBERS),
    ("/fc/members/career/stats", {"personaId": "42"}, DataCategory.PLAYER),
    ("/fc/allTimeLeaderboard/search", {"clubName": "x"}, DataCategory.SEARCH),
    ("proxy", {}, DataCategory.PROXY),
])
def test_endpoint_categories(path, params, category):
    assert get_category_for_endpoint(path, params) == category


def test_entry_freshness_windows():
    entry = CacheEntry(data=1, stored_at=time.monotonic() - 10, ttl_seconds=5, stale_ttl_seconds=10)
    assert not entry.is_fresh
    assert entry.is_usable_stale

    expired = CacheEntry(data=1, stored_at=time.monotonic() - 30, ttl_seconds=5, stale_ttl_seconds=10)
    assert not expired.is_usable_stale


def test_meta_to_dict():
    meta = CacheMeta.now(CacheSource.FRESH, category="matches", ttl_seconds=300, age_seconds=12.34)
    data = meta.to_dict()
    assert data["cacheSource"] == "fresh"
    assert data["lastUpdated"].endswith("Z")
    assert data["_debug"] == {"category": "matches", "ttl": 300, "age": 12.3}


def test_second_get_is_a_fresh_hit():
    manager = CacheManager()
    calls = []

    def fetch():
        calls.append(1)
        return {"n": len(calls)}

    first, meta1 = manager.get("k", fetch, "/fc/clubs/info", {})
    second, meta2 = manager.get("k", fetch, "/fc/clubs/info", {})
    assert first == second == {"n": 1}
    assert meta1.cache_source == "upstream"
    assert meta2.cache_source == "fresh"
    assert manager.get_stats()["hits_fresh"] == 1


def test_force_refresh_goes_upstream():
    manager = CacheManager()
    values = iter([1, 2])
    manager.get("k", lambda: next(values), "/fc/clubs/info", {})
    data, meta = manager.get("k", lambda: next(values), "/fc/clubs/info", {}, force_refresh=True)
    assert data == 2
    assert meta.cache_source == "upstream"


def test_failures_are_not_stored():
    manager = CacheManager()

    def boom():
        raise RuntimeError("EA down")

    with pytest.raises(RuntimeError):
        manager.get("k", boom, "/fc/clubs/info", {})
    assert manager.get_stats()["entries"] == 0


def test_fetch_uncached_never_stores():
    manager = CacheManager()
    data, meta = manager.fetch_uncached("k", lambda: [1])
    assert data == [1]
    assert meta.cache_source == "upstream"
    assert manager.get_stats()["entries"] == 0


def test_clear_counts_entries():
    manager = CacheManager()
    manager.get("a", lambda: 1, "/fc/clubs/info", {})
    manager.get("b", lambda: 2, "/fc/clubs/info", {})
    assert manager.clear() == 2


def test_concurrent_callers_share_one_fetch():
    coalescer = RequestCoalescer()
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow_fetch():
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return "payload"

    results = []
    leader = threading.Thread(target=lambda: results.append(coalescer.get_or_fetch("k", slow_fetch)))
    leader.start()
    started.wait(timeout=5)

    follower = threading.Thread(target=lambda: results.append(coalescer.get_or_fetch("k", slow_fetch)))
    follower.start()
    time.sleep(0.05)
    release.set()
    leader.join(timeout=5)
    follower.join(timeout=5)

    assert results == ["payload", "payload"]
    assert len(calls) == 1
    assert coalescer.get_stats()["active_requests"] == 0


def test_coalescer_propagates_errors():
    coalescer = RequestCoalescer()

    def boom():
        raise ValueError("bad")

    with pytest.raises(ValueError):
        coalescer.get_or_fetch("k", boom)
