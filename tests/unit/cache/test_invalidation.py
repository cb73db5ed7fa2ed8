"""Tests for write-triggered invalidation."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from civilyst.cache.invalidation import (
    CacheInvalidator,
    InvalidationScope,
    InvalidationTrigger,
)
from civilyst.cache.keys import CacheKeys
from civilyst.cache.policy import GeoPrecision
from civilyst.cache.store import InMemoryCacheStore


class TestInvalidationScope:
    """Test scope selection per write kind."""

    def test_create_sweeps_listings_and_creator(self) -> None:
        scope = InvalidationScope.for_create("u1")
        assert scope.keys == frozenset()
        assert scope.patterns == {"search:*", "geo:*", "user:u1:*"}

    def test_create_without_creator(self) -> None:
        assert InvalidationScope.for_create().patterns == {"search:*", "geo:*"}

    def test_update_clears_detail_and_listings(self) -> None:
        scope = InvalidationScope.for_update("c1", "owner")
        assert scope.keys == {"campaign:c1"}
        assert scope.patterns == {"search:*", "geo:*", "user:owner:*"}

    def test_delete_matches_update(self) -> None:
        assert InvalidationScope.for_delete("c1", "owner") == InvalidationScope.for_update(
            "c1", "owner"
        )

    def test_vote_does_not_sweep_listings(self) -> None:
        scope = InvalidationScope.for_vote("c1", "voter", "owner")
        assert scope.keys == {"campaign:c1"}
        assert scope.patterns == {"user:voter:*", "user:owner:*"}

    def test_union(self) -> None:
        scope = InvalidationScope.for_vote("c1", "v") | InvalidationScope.for_create()
        assert scope.keys == {"campaign:c1"}
        assert "search:*" in scope.patterns
        assert "user:v:*" in scope.patterns

    def test_is_empty(self) -> None:
        assert InvalidationScope().is_empty
        assert not InvalidationScope.for_create().is_empty


async def _populate(store: InMemoryCacheStore) -> None:
    for key in (
        CacheKeys.campaign("c1"),
        CacheKeys.campaign("c2"),
        CacheKeys.search("bike lane", limit=20),
        CacheKeys.geo_radius(40.0, -73.0, 10, GeoPrecision.CITY),
        CacheKeys.geo_city("springfield"),
        CacheKeys.user_campaigns("owner", limit=20),
        CacheKeys.user_campaigns("other", limit=20),
    ):
        await store.set(key, b"{}", 300)


class TestCacheInvalidator:
    """Test applying scopes to a store."""

    @pytest.mark.asyncio
    async def test_update_removes_only_affected_entries(self) -> None:
        store = InMemoryCacheStore()
        await _populate(store)

        report = await CacheInvalidator(store).apply(
            InvalidationScope.for_update("c1", "owner"), InvalidationTrigger.UPDATE
        )

        assert report.ok
        assert report.deleted == 5
        assert await store.get(CacheKeys.campaign("c1")) is None
        assert await store.get(CacheKeys.search("bike lane", limit=20)) is None
        assert await store.get(CacheKeys.geo_city("springfield")) is None
        assert await store.get(CacheKeys.user_campaigns("owner", limit=20)) is None
        assert await store.get(CacheKeys.campaign("c2")) == b"{}"
        assert await store.get(CacheKeys.user_campaigns("other", limit=20)) == b"{}"

    @pytest.mark.asyncio
    async def test_vote_keeps_listings(self) -> None:
        store = InMemoryCacheStore()
        await _populate(store)

        await CacheInvalidator(store).apply(
            InvalidationScope.for_vote("c1", "voter", "owner"), InvalidationTrigger.VOTE
        )

        assert await store.get(CacheKeys.campaign("c1")) is None
        assert await store.get(CacheKeys.search("bike lane", limit=20)) == b"{}"

    @pytest.mark.asyncio
    async def test_store_failure_is_reported_not_raised(self) -> None:
        """The write already committed, so invalidation failures are non-fatal."""
        store = AsyncMock()
        store.delete.side_effect = ConnectionError("redis down")
        store.delete_pattern.side_effect = [ConnectionError("redis down"), 3, 1]

        report = await CacheInvalidator(store).apply(
            InvalidationScope.for_update("c1", "owner"), InvalidationTrigger.UPDATE
        )

        assert not report.ok
        assert report.deleted == 4
        assert "campaign:c1" in report.failures
        # Every pattern is attempted even after a failure
        assert store.delete_pattern.await_count == 3

    @pytest.mark.asyncio
    async def test_empty_scope(self) -> None:
        store = AsyncMock()
        report = await CacheInvalidator(store).apply(InvalidationScope())
        assert report.deleted == 0
        store.delete.assert_not_awaited()
        store.delete_pattern.assert_not_awaited()
