"""Tests for the cache administration endpoints."""

import pytest
from httpx import AsyncClient

from civilyst.cache import InMemoryCacheStore, cache_stats


class TestCacheStats:
    """Test hit/miss statistics endpoints."""

    @pytest.mark.asyncio
    async def test_stats_count_reads(self, client: AsyncClient) -> None:
        await client.get("/campaigns/search", params={"query": "trees"})
        await client.get("/campaigns/search", params={"query": "trees"})

        response = await client.get("/cache/stats")

        body = response.json()
        assert response.status_code == 200
        assert body["backend"] == "InMemoryCacheStore"
        assert body["hits"] == 1
        assert body["misses"] == 1
        assert body["hit_rate"] == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_reset_returns_previous_values(self, client: AsyncClient) -> None:
        await client.get("/campaigns/search", params={"query": "trees"})

        response = await client.post("/cache/stats/reset")

        assert response.json()["misses"] == 1
        assert cache_stats.snapshot()["requests"] == 0


class TestPurge:
    """Test manual namespace sweeps."""

    @pytest.mark.asyncio
    async def test_purge_namespace(
        self, client: AsyncClient, cache_store: InMemoryCacheStore
    ) -> None:
        await cache_store.set("geo:nearby:lat=1:lng=1:limit=10", b"[]", 60)
        await cache_store.set("geo:city:springfield", b"{}", 60)
        await cache_store.set("search:q=trees", b"{}", 60)

        response = await client.delete("/cache", params={"pattern": "geo:*"})

        body = response.json()
        assert response.status_code == 200
        assert body["deleted_count"] == 2
        assert body["ok"] is True
        assert len(cache_store) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pattern", ["*", "   ", "sessions:*", "geo"])
    async def test_rejects_patterns_outside_namespaces(
        self, client: AsyncClient, pattern: str
    ) -> None:
        response = await client.delete("/cache", params={"pattern": pattern})
        assert response.status_code == 400
        assert response.json()["messages"][0]["code"] == "BadRequest"

    @pytest.mark.asyncio
    async def test_pattern_is_required(self, client: AsyncClient) -> None:
        response = await client.delete("/cache")
        assert response.status_code == 400
