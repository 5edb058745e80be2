"""Unit tests for file path resolution and caching."""

from __future__ import annotations

import logging

import pytest
from tg_stream.errors import ResolutionError
from tg_stream.resolver import DEFAULT_TTL, PathCache, PathResolver


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestPathCache:
    """Test the TTL-bound path cache."""

    def test_put_and_get(self):
        cache = PathCache()
        assert cache.get("a") is None
        assert cache.put("a", "videos/a.mp4") == "videos/a.mp4"
        assert cache.get("a") == "videos/a.mp4"
        assert "a" in cache
        assert len(cache) == 1

    def test_put_keeps_first_value(self):
        cache = PathCache()
        cache.put("a", "videos/a.mp4")
        assert cache.put("a", "videos/other.mp4") == "videos/a.mp4"
        assert cache.get("a") == "videos/a.mp4"

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = PathCache(timer=clock)
        cache.put("a", "videos/a.mp4")

        clock.now = DEFAULT_TTL - 1
        assert cache.get("a") == "videos/a.mp4"

        clock.now = DEFAULT_TTL + 1
        assert cache.get("a") is None

    def test_clear(self):
        cache = PathCache()
        cache.put("a", "videos/a.mp4")
        cache.clear()
        assert len(cache) == 0


class TestPathResolver:
    """Test resolver behaviour against a fake store."""

    @pytest.mark.anyio
    async def test_miss_then_hit(self, fake_store):
        resolver = PathResolver(fake_store, PathCache())

        assert await resolver.resolve("a") == "videos/a.mp4"
        assert await resolver.resolve("a") == "videos/a.mp4"

        assert fake_store.resolve_calls == ["a"]

    @pytest.mark.anyio
    async def test_expired_entry_is_resolved_again(self, fake_store):
        clock = FakeClock()
        resolver = PathResolver(fake_store, PathCache(ttl=60, timer=clock))

        await resolver.resolve("a")
        clock.now = 61
        await resolver.resolve("a")

        assert fake_store.resolve_calls == ["a", "a"]

    @pytest.mark.anyio
    async def test_failure_raises_and_is_not_cached(self, fake_store):
        cache = PathCache()
        resolver = PathResolver(fake_store, cache)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve("missing")

        assert exc_info.value.identifier == "missing"
        assert "invalid file_id" in exc_info.value.description
        assert "missing" not in cache

    @pytest.mark.anyio
    async def test_logs_cache_hits(self, fake_store, caplog):
        resolver = PathResolver(fake_store, PathCache())

        with caplog.at_level(logging.DEBUG, logger="tg_stream.resolver"):
            await resolver.resolve("b")
            await resolver.resolve("b")

        messages = [record.message for record in caplog.records]
        assert "path cache miss for b" in messages
        assert "path cache hit for b" in messages
