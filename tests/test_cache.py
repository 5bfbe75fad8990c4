"""
Campaign cache tests with a mocked Redis client
"""
import json
from unittest.mock import AsyncMock

import pytest

from fundraising.cache.redis import RedisCache


class TestRedisCache:

    @pytest.mark.asyncio
    async def test_disabled_cache_is_a_miss(self):
        cache = RedisCache()

        assert await cache.get_campaign(1) is None
        assert await cache.set_campaign(1, {"id": 1}) is False
        assert await cache.invalidate_campaign(1) is False
        assert await cache.ping() is False

    @pytest.mark.asyncio
    async def test_round_trip_through_client(self):
        client = AsyncMock()
        client.get.return_value = json.dumps({"id": 3, "title": "Winter"})
        cache = RedisCache(client)

        assert await cache.set_campaign(3, {"id": 3, "title": "Winter"}) is True
        assert await cache.get_campaign(3) == {"id": 3, "title": "Winter"}

        key, ttl, _ = client.setex.await_args.args
        assert key == "campaign:3"
        assert ttl > 0

    @pytest.mark.asyncio
    async def test_client_errors_degrade_to_miss(self):
        client = AsyncMock()
        client.get.side_effect = ConnectionError("redis down")
        client.delete.side_effect = ConnectionError("redis down")
        cache = RedisCache(client)

        assert await cache.get_campaign(3) is None
        assert await cache.invalidate_campaign(3) is False
