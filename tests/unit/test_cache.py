"""
Unit Tests - Stats Cache
"""
import json

import pytest

from admin_service.serving.cache import CacheManager
from tests.fakes import FakeRedis


class TestCacheManager:

    @pytest.mark.asyncio
    async def test_get_or_set_caches_value(self):
        redis = FakeRedis()
        cache = CacheManager(redis, "stats", default_ttl=60)
        calls = []

        async def load():
            calls.append(1)
            return {"totalOrders": 4}

        assert await cache.get_or_set("orders", load) == {"totalOrders": 4}
        assert await cache.get_or_set("orders", load) == {"totalOrders": 4}

        assert len(calls) == 1
        assert json.loads(redis.store["stats:orders"]) == {"totalOrders": 4}
        assert redis.ttls["stats:orders"] == 60

    @pytest.mark.asyncio
    async def test_unavailable_redis_falls_through(self):
        cache = CacheManager(FakeRedis(broken=True), "stats")

        async def load():
            return {"totalStores": 3}

        assert await cache.get_or_set("merchants", load) == {"totalStores": 3}

    @pytest.mark.asyncio
    async def test_loader_errors_propagate(self):
        cache = CacheManager(FakeRedis(), "stats")

        async def load():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            await cache.get_or_set("orders", load)

    @pytest.mark.asyncio
    async def test_delete(self):
        redis = FakeRedis()
        cache = CacheManager(redis, "stats")
        await cache.set("orders", {"totalOrders": 1})

        assert await cache.delete("orders") is True
        assert await cache.get("orders") is None
        assert await cache.delete("orders") is False

    @pytest.mark.asyncio
    async def test_delete_with_unavailable_redis(self):
        cache = CacheManager(FakeRedis(broken=True), "stats")

        assert await cache.delete("orders") is False
