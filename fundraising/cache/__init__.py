from .redis import RedisCache, redis_cache

__all__ = ["RedisCache", "redis_cache"]
