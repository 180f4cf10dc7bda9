"""Tests for the TTL cache and request coalescing."""

import threading
import time

import pytest

from branchscope.cache import CacheEntry, SingleFlight, TTLCache


class TestTTLCache:
    """Test TTLCache expiry, invalidation and bounds."""

    def test_get_after_set_before_expiry(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("status", ["clean"], ttl=1.5)
        clock.advance(1.5)
        assert cache.get("status") == ["clean"]

    def test_absent_after_expiry(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("status", ["clean"], ttl=1.5)
        clock.advance(1.6)
        assert cache.get("status") is None
        # Stale entry evicted on read
        assert len(cache) == 0

    def test_expired_entries_linger_until_read(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=1)
        clock.advance(5)
        assert len(cache) == 2
        cache.get("a")
        assert len(cache) == 1

    def test_zero_ttl_always_misses(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("log", "x", ttl=0)
        assert cache.get("log") is None

    def test_set_resets_created_at(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("k", "old", ttl=2)
        clock.advance(1.5)
        cache.set("k", "new", ttl=2)
        clock.advance(1.5)
        assert cache.get("k") == "new"

    def test_missing_key(self):
        assert TTLCache().get("nothing") is None

    def test_invalidate_all(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("branches", 1, 10)
        cache.set("status", 2, 10)
        assert cache.invalidate() == 2
        assert len(cache) == 0

    def test_invalidate_by_substring(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("branches", 1, 10)
        cache.set("remote_branches:origin", 2, 10)
        cache.set("log:50:all", 3, 10)
        assert cache.invalidate("branches") == 2
        assert cache.get("log:50:all") == 3
        assert cache.get("branches") is None

    def test_invalidate_no_match(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("tags", 1, 10)
        assert cache.invalidate("remotes") == 0
        assert cache.get("tags") == 1

    def test_bounded_size_drops_oldest(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.set("c", 3, 10)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_overwrite_does_not_evict(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.set("a", 10, 10)
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_invalid_max_entries(self):
        with pytest.raises(ValueError):
            TTLCache(max_entries=0)

    def test_get_or_compute(self, clock):
        cache = TTLCache(clock=clock)
        calls = []

        def compute():
            calls.append(1)
            return len(calls)

        assert cache.get_or_compute("k", 5, compute) == 1
        assert cache.get_or_compute("k", 5, compute) == 1
        assert cache.get_or_compute("k", 5, compute, force_refresh=True) == 2
        assert cache.get("k") == 2
        clock.advance(6)
        assert cache.get_or_compute("k", 5, compute) == 3

    def test_none_not_cached(self, clock):
        cache = TTLCache(clock=clock)
        assert cache.get_or_compute("k", 5, lambda: None) is None
        assert len(cache) == 0

    def test_falsy_values_are_cached(self, clock):
        cache = TTLCache(clock=clock)
        calls = []

        def compute():
            calls.append(1)
            return []

        cache.get_or_compute("empty", 5, compute)
        cache.get_or_compute("empty", 5, compute)
        assert len(calls) == 1

    def test_stats(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("a", 1, 1)
        cache.get("a")
        cache.get("b")
        clock.advance(2)
        cache.get("a")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 2
        assert stats["evictions"] == 1
        assert stats["size"] == 0

    def test_contains(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("a", 1, 1)
        assert "a" in cache
        clock.advance(2)
        assert "a" not in cache


class TestCacheEntry:
    def test_freshness_boundary(self):
        entry = CacheEntry(data=1, created_at=10.0, ttl=2.0)
        assert entry.is_fresh(12.0)
        assert not entry.is_fresh(12.01)


class TestSingleFlight:
    """Test request coalescing across threads."""

    def test_concurrent_callers_share_one_computation(self):
        flight = SingleFlight()
        started = threading.Event()
        release = threading.Event()
        calls = []
        results = []

        def slow():
            calls.append(1)
            started.set()
            release.wait(5)
            return "graph"

        leader = threading.Thread(target=lambda: results.append(flight.do("k", slow)))
        leader.start()
        assert started.wait(5)

        followers = [
            threading.Thread(target=lambda: results.append(flight.do("k", slow))) for _ in range(3)
        ]
        for t in followers:
            t.start()
        # Let the followers reach the wait
        time.sleep(0.2)
        release.set()
        for t in [leader, *followers]:
            t.join(5)

        assert results == ["graph"] * 4
        assert len(calls) == 1
        assert flight.in_flight() == 0

    def test_sequential_calls_recompute(self):
        flight = SingleFlight()
        calls = []
        flight.do("k", lambda: calls.append(1))
        flight.do("k", lambda: calls.append(1))
        assert len(calls) == 2

    def test_exception_propagates_and_key_released(self):
        flight = SingleFlight()

        def boom():
            raise RuntimeError("query failed")

        with pytest.raises(RuntimeError):
            flight.do("k", boom)
        assert flight.in_flight() == 0
        assert flight.do("k", lambda: 5) == 5
