import json
from typing import Optional
from datetime import timedelta

import redis.asyncio as redis
import structlog

from fundraising.core.config import get_settings

logger = structlog.get_logger(__name__)


class RedisCache:
    """Redis cache for campaign responses. Every failure degrades to a cache miss."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis_client: Optional[redis.Redis] = client

    async def init_redis(self) -> Optional[redis.Redis]:
        """Initialize Redis connection; without REDIS_URL the cache stays disabled"""
        redis_url = get_settings().redis_url
        if not redis_url:
            logger.info("Redis URL not configured, campaign cache disabled")
            return None

        self.redis_client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
        try:
            await self.redis_client.ping()
            logger.info("Redis connection established successfully", redis_url=redis_url)
        except Exception as e:
            logger.warning("Failed to connect to Redis, campaign cache disabled", error=str(e))
            self.redis_client = None
        return self.redis_client

    async def close(self):
        """Close Redis connection"""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("Redis connection closed")

    async def ping(self) -> bool:
        if not self.redis_client:
            return False
        try:
            return bool(await self.redis_client.ping())
        except Exception:
            return False

    @staticmethod
    def _get_campaign_key(campaign_id: int) -> str:
        return f"campaign:{campaign_id}"

    async def get_campaign(self, campaign_id: int) -> Optional[dict]:
        """Get campaign from cache"""
        if not self.redis_client:
            return None

        try:
            cached_data = await self.redis_client.get(self._get_campaign_key(campaign_id))
            if cached_data:
                logger.debug("Cache hit", campaign_id=campaign_id)
                return json.loads(cached_data)
            logger.debug("Cache miss", campaign_id=campaign_id)
            return None
        except Exception as e:
            logger.warning("Failed to get campaign from cache", campaign_id=campaign_id, error=str(e))
            return None

    async def set_campaign(self, campaign_id: int, campaign_data: dict,
                           ttl: Optional[timedelta] = None) -> bool:
        """Set campaign in cache"""
        if not self.redis_client:
            return False

        ttl = ttl or timedelta(seconds=get_settings().campaign_cache_ttl_seconds)
        try:
            await self.redis_client.setex(
                self._get_campaign_key(campaign_id),
                int(ttl.total_seconds()),
                json.dumps(campaign_data, default=str)
            )
            logger.debug("Campaign cached", campaign_id=campaign_id, ttl_seconds=int(ttl.total_seconds()))
            return True
        except Exception as e:
            logger.warning("Failed to cache campaign", campaign_id=campaign_id, error=str(e))
            return False

    async def invalidate_campaign(self, campaign_id: int) -> bool:
        """Delete campaign from cache"""
        if not self.redis_client:
            return False

        try:
            result = await self.redis_client.delete(self._get_campaign_key(campaign_id))
            if result:
                logger.debug("Campaign cache invalidated", campaign_id=campaign_id)
            return bool(result)
        except Exception as e:
            logger.warning("Failed to delete campaign from cache", campaign_id=campaign_id, error=str(e))
            return False


# Global cache instance
redis_cache = RedisCache()
