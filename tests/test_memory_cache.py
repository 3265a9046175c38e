"""
Unit tests for MemoryCache and cache key construction.
"""

import asyncio

import pytest

from catalog_proxy.memory_cache import MemoryCache, build_cache_key, cached


class TestBuildCacheKey:
    """Test cases for build_cache_key."""

    def test_equivalent_requests_share_a_key(self):
        a = build_cache_key("search", "Red Hat", "All", "Relevance", None, 30)
        b = build_cache_key("search", " red hat ", "ALL", "relevance", None, "30")
        assert a == b

    def test_distinct_parameters_differ(self):
        a = build_cache_key("search", "hat", "All", "Relevance", None, 30)
        b = build_cache_key("search", "hat", "All", "Relevance", "cursor-2", 30)
        c = build_cache_key("search", "hat", "All", "Relevance", None, 10)
        assert len({a, b, c}) == 3

    def test_none_becomes_empty_segment(self):
        assert build_cache_key("item", None, 5) == build_cache_key("item", "", "5")

    @pytest.mark.parametrize("left,right", [
        (("search", "a|b", "c"), ("search", "a", "b|c")),
        (("search", 'a", "b', "c"), ("search", "a", 'b", "c')),
        (("search", "a,b", "c"), ("search", "a", "b,c")),
    ])
    def test_separators_inside_a_part_stay_in_that_part(self, left, right):
        assert build_cache_key(*left) != build_cache_key(*right)


class TestMemoryCache:
    """Test cases for MemoryCache."""

    @pytest.fixture
    def cache(self, clock):
        return MemoryCache(ttl=300, clock=clock)

    def test_get_missing_returns_none(self, cache):
        assert cache.get("nope") is None

    def test_get_within_ttl(self, cache, clock):
        cache.set("k", {"items": [1, 2]})
        clock.advance(299)
        assert cache.get("k") == {"items": [1, 2]}

    def test_stale_entry_is_absent_but_not_deleted(self, cache, clock):
        cache.set("k", [1])
        clock.advance(300)

        assert cache.get("k") is None
        assert len(cache) == 1

    def test_set_overwrites_stale_entry(self, cache, clock):
        cache.set("k", "old")
        clock.advance(400)
        cache.put("k", "new")

        assert cache.get("k") == "new"
        assert len(cache) == 1

    def test_values_are_copied(self, cache):
        payload = {"items": [{"price": 1}]}
        cache.set("k", payload)
        payload["items"][0]["price"] = 99

        first = cache.get("k")
        first["items"].clear()

        assert cache.get("k") == {"items": [{"price": 1}]}

    def test_delete_and_clear_all(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        assert len(cache) == 1

        cache.clear_all()
        assert len(cache) == 0

    def test_clear_expired(self, cache, clock):
        cache.set("old", 1)
        clock.advance(200)
        cache.set("fresh", 2)
        clock.advance(150)

        assert cache.clear_expired() == 1
        assert cache.get("fresh") == 2
        assert len(cache) == 1

    def test_unbounded_by_default(self, cache):
        for i in range(500):
            cache.set(f"k{i}", i)
        assert len(cache) == 500

    def test_lru_bound_evicts_least_recently_used(self, clock):
        cache = MemoryCache(ttl=300, max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert len(cache) == 2
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3


class _Loader:
    def __init__(self, cache):
        self.cache = cache
        self.calls = 0

    @cached(lambda self: self.cache, lambda name: build_cache_key("load", name))
    async def load(self, name):
        self.calls += 1
        return {"name": name}


class TestCachedDecorator:
    """Test cases for the cached decorator."""

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, clock):
        loader = _Loader(MemoryCache(ttl=60, clock=clock))

        assert await loader.load("Hat") == {"name": "Hat"}
        assert await loader.load("hat") == {"name": "Hat"}
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_reloaded(self, clock):
        loader = _Loader(MemoryCache(ttl=60, clock=clock))

        await loader.load("hat")
        clock.advance(61)
        await loader.load("hat")

        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_load_once(self, clock):
        loader = _SlowLoader(MemoryCache(ttl=60, clock=clock))

        results = await asyncio.gather(*(loader.load("hat") for _ in range(5)))

        assert loader.calls == 1
        assert results == [{"name": "hat"}] * 5
        assert loader.cache._key_locks == {}

    @pytest.mark.asyncio
    async def test_concurrent_misses_on_different_keys_run_in_parallel(self, clock):
        loader = _SlowLoader(MemoryCache(ttl=60, clock=clock))

        await asyncio.gather(loader.load("hat"), loader.load("shirt"))

        assert loader.calls == 2
        assert loader.peak == 2

    @pytest.mark.asyncio
    async def test_failed_load_lets_waiter_retry(self, clock):
        loader = _SlowLoader(MemoryCache(ttl=60, clock=clock), fail_first=True)

        results = await asyncio.gather(loader.load("hat"), loader.load("hat"), return_exceptions=True)

        assert isinstance(results[0], RuntimeError)
        assert results[1] == {"name": "hat"}
        assert loader.calls == 2


class _SlowLoader:
    def __init__(self, cache, fail_first=False):
        self.cache = cache
        self.fail_first = fail_first
        self.calls = 0
        self.in_flight = 0
        self.peak = 0

    @cached(lambda self: self.cache, lambda name: build_cache_key("slow", name))
    async def load(self, name):
        self.calls += 1
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if self.fail_first and self.calls == 1:
                raise RuntimeError("upstream down")
            return {"name": name}
        finally:
            self.in_flight -= 1
