"""
Unit Tests for ResponseCache

Tests TTL expiry (lazy and swept), LRU eviction, the expired-first eviction
order and key normalization.
"""

import pytest

from iris.infrastructure.cache.cache_manager import ResponseCache, normalize_cache_key


@pytest.fixture
def cache(clock):
    return ResponseCache(max_size=3, ttl_seconds=900, clock=clock)


@pytest.mark.unit
class TestCacheKey:
    def test_equivalent_queries_share_a_key(self):
        assert normalize_cache_key("  What is Python? ") == normalize_cache_key("what is python?")
        assert normalize_cache_key("hi", None, None) == normalize_cache_key("hi", "auto", "balanced")
        assert normalize_cache_key("hi", "Groq") == normalize_cache_key("hi", "groq")

    def test_hint_and_task_type_are_part_of_the_key(self):
        base = normalize_cache_key("hi")
        assert normalize_cache_key("hi", "groq") != base
        assert normalize_cache_key("hi", None, "code") != base

    def test_key_format(self):
        key = ResponseCache.make_key("hi")
        prefix, digest = key.rsplit(":", 1)
        assert prefix == "iris:response"
        assert len(digest) == 64


@pytest.mark.unit
@pytest.mark.asyncio
class TestCacheExpiry:
    async def test_hit_within_ttl(self, cache, clock):
        await cache.put("k", {"content": "answer"})
        clock.advance(899)
        assert await cache.get("k") == {"content": "answer"}

    async def test_expired_entry_is_a_miss(self, cache, clock):
        await cache.put("k", "v")
        clock.advance(900)

        assert await cache.get("k") is None
        stats = cache.get_stats()
        assert stats["expirations"] == 1
        assert stats["size"] == 0

    async def test_put_refreshes_ttl(self, cache, clock):
        await cache.put("k", "old")
        clock.advance(600)
        await cache.put("k", "new")
        clock.advance(600)
        assert await cache.get("k") == "new"

    async def test_purge_expired(self, cache, clock):
        await cache.put("a", 1)
        clock.advance(500)
        await cache.put("b", 2)
        clock.advance(400)

        assert await cache.purge_expired() == 1
        assert cache.size == 1
        assert await cache.get("b") == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestCacheEviction:
    async def test_lru_entry_evicted_at_capacity(self, cache):
        for key in ("a", "b", "c"):
            await cache.put(key, key)
        await cache.get("a")

        await cache.put("d", "d")

        assert cache.size == 3
        assert await cache.get("b") is None
        assert await cache.get("a") == "a"
        assert cache.get_stats()["evictions"] == 1

    async def test_expired_entries_go_before_live_ones(self, cache, clock):
        await cache.put("old", 1)
        clock.advance(600)
        await cache.put("b", 2)
        await cache.put("c", 3)
        await cache.get("old")  # still live: most recently used
        clock.advance(300)      # "old" expires, b and c stay live

        await cache.put("d", 4)

        assert cache.get_stats()["evictions"] == 0
        assert cache.get_stats()["expirations"] == 1
        assert [await cache.get(k) for k in ("b", "c", "d")] == [2, 3, 4]

    async def test_never_exceeds_max_size(self, cache):
        for i in range(20):
            await cache.put(f"k{i}", i)
            assert cache.size <= cache.max_size


@pytest.mark.unit
@pytest.mark.asyncio
class TestCacheManagement:
    async def test_delete(self, cache):
        await cache.put("k", "v")
        assert await cache.delete("k") is True
        assert await cache.delete("k") is False

    async def test_clear_returns_count(self, cache):
        await cache.put("a", 1)
        await cache.put("b", 2)
        assert await cache.clear() == 2
        assert cache.size == 0

    async def test_stats(self, cache):
        await cache.put("a", 1)
        await cache.get("a")
        await cache.get("a")
        await cache.get("missing")

        stats = cache.get_stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(66.67)
        assert stats["ttl_seconds"] == 900.0


@pytest.mark.unit
class TestCacheConfiguration:
    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            ResponseCache(max_size=0)

    def test_from_settings(self, settings):
        cache = ResponseCache.from_settings(settings)
        assert cache.max_size == 100
        assert cache.get_stats()["ttl_seconds"] == 900.0
