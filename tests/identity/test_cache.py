"""Tests for the bounded TTL read-through cache."""

from unittest.mock import AsyncMock

import pytest

from personnel_ledger.identity.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache[str]:
    return TTLCache(max_size=2, ttl_seconds=10.0, clock=clock)


class TestTTLCache:
    def test_put_then_get(self, cache):
        cache.put("a", "alpha")

        assert cache.get("a") == "alpha"
        assert cache.hits == 1

    def test_entries_expire_after_ttl(self, cache, clock):
        cache.put("a", "alpha")
        clock.now = 9.9
        assert cache.get("a") == "alpha"

        clock.now = 10.0
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_least_recently_used_is_evicted(self, cache):
        cache.put("a", "alpha")
        cache.put("b", "beta")
        cache.get("a")
        cache.put("c", "gamma")

        assert cache.get("b") is None
        assert cache.get("a") == "alpha"
        assert cache.get("c") == "gamma"

    def test_invalidate_and_clear(self, cache):
        cache.put("a", "alpha")
        cache.put("b", "beta")

        cache.invalidate("a", "missing")
        assert cache.get("a") is None
        assert cache.get("b") == "beta"

        cache.clear()
        assert len(cache) == 0

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)

    @pytest.mark.asyncio
    async def test_get_or_load_reads_through_once(self, cache):
        loader = AsyncMock(return_value="alpha")

        assert await cache.get_or_load("a", loader) == "alpha"
        assert await cache.get_or_load("a", loader) == "alpha"
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_or_load_does_not_cache_misses(self, cache):
        loader = AsyncMock(return_value=None)

        assert await cache.get_or_load("a", loader) is None
        assert await cache.get_or_load("a", loader) is None
        assert loader.await_count == 2
