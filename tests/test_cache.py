"""Tests for the query result cache."""

import asyncio
from uuid import uuid4

import pytest

from finance_tracker.queries import QueryCache


class TestQueryCache:

    def test_loader_runs_once(self):
        cache = QueryCache()
        calls = []

        async def loader():
            calls.append(1)
            return ["row"]

        async def run():
            first = await cache.fetch(("transactions", "u1"), loader)
            second = await cache.fetch(("transactions", "u1"), loader)
            return first, second

        first, second = asyncio.run(run())
        assert first == second == ["row"]
        assert len(calls) == 1

    def test_uuid_and_string_keys_are_the_same_entry(self):
        cache = QueryCache()
        user_id = uuid4()

        async def loader():
            return 1

        asyncio.run(cache.fetch(("categories", user_id), loader))
        assert ("categories", str(user_id)) in cache

    def test_failed_load_is_not_cached(self):
        cache = QueryCache()

        async def broken():
            raise RuntimeError("sheet unavailable")

        with pytest.raises(RuntimeError):
            asyncio.run(cache.fetch(("budgets", "u1"), broken))
        assert len(cache) == 0

    def test_invalidate_by_prefix_is_scoped_to_user(self):
        cache = QueryCache()

        async def loader():
            return []

        async def fill():
            await cache.fetch(("transactions", "u1", "all"), loader)
            await cache.fetch(("transactions", "u1", "recent", 5), loader)
            await cache.fetch(("transactions", "u2", "all"), loader)
            await cache.fetch(("categories", "u1"), loader)

        asyncio.run(fill())
        assert cache.invalidate("transactions", "u1") == 2
        assert ("transactions", "u2", "all") in cache
        assert ("categories", "u1") in cache

    def test_clear(self):
        cache = QueryCache()

        async def loader():
            return None

        asyncio.run(cache.fetch(("dashboard", "u1"), loader))
        cache.clear()
        assert len(cache) == 0
