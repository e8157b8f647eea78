"""Redis client wrapper for the read-through cache."""

from collections.abc import Iterable

import redis.asyncio as redis
from redis.asyncio import Redis

from sitecms.config import settings
from sitecms.core.logging import get_logger

logger = get_logger(__name__)

# Global Redis connection pool
_redis_pool: redis.ConnectionPool | None = None
_redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool.

    Call this during application startup.
    """
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_pool = redis.ConnectionPool.from_url(
        str(settings.redis_url),
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("redis_connected", url=str(settings.redis_url).split("@")[-1])
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connections.

    Call this during application shutdown.
    """
    global _redis_pool, _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("redis_disconnected")


def get_cache_client() -> "CacheClient | None":
    """Get a cache client over the shared pool.

    Returns None if Redis is not initialized; services then run uncached.
    """
    if _redis_client is None:
        return None
    return CacheClient(_redis_client)


async def check_redis_connection() -> bool:
    """Check Redis connectivity for health checks."""
    if _redis_client is None:
        return False

    try:
        await _redis_client.ping()
        return True
    except Exception:
        return False


class CacheClient:
    """Advisory cache over Redis.

    Never authoritative: every Redis failure is logged and turned into a
    miss or a no-op. Keys may be registered under tags; a tag is a Redis set
    listing the keys that depend on it, so invalidation can target exactly
    those keys instead of scanning the key space.

    Usage:
        cache = CacheClient(redis_client)

        data = await cache.get("translation:id:42")
        if data is None:
            data = await fetch()
            await cache.set("translation:id:42", data, ttl=3600, tags=["element:7"])

        await cache.invalidate_tags("element:7")
    """

    def __init__(self, redis_client: Redis, prefix: str | None = None) -> None:
        self.redis = redis_client
        self.prefix = prefix if prefix is not None else settings.cache_key_prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:tag:{tag}"

    async def get(self, key: str) -> str | None:
        """Get value from cache."""
        try:
            return await self.redis.get(self._key(key))
        except Exception as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Set value in cache with TTL, recording it under each tag."""
        ttl = ttl or settings.cache_ttl_seconds
        full_key = self._key(key)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.setex(full_key, ttl, value)
                for tag in tags:
                    tag_key = self._tag_key(tag)
                    pipe.sadd(tag_key, full_key)
                    # A tag set lives as long as the newest key it indexes
                    pipe.expire(tag_key, ttl)
                await pipe.execute()
        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))

    async def delete(self, *keys: str) -> int:
        """Delete values from cache."""
        if not keys:
            return 0
        try:
            return await self.redis.delete(*(self._key(key) for key in keys))
        except Exception as e:
            logger.warning("cache_delete_failed", keys=list(keys), error=str(e))
            return 0

    async def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        try:
            return await self.redis.exists(self._key(key)) > 0
        except Exception as e:
            logger.warning("cache_exists_failed", key=key, error=str(e))
            return False

    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime of a key in seconds, None if missing or persistent."""
        try:
            remaining = await self.redis.ttl(self._key(key))
        except Exception as e:
            logger.warning("cache_ttl_failed", key=key, error=str(e))
            return None
        return remaining if remaining >= 0 else None

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern.

        Args:
            pattern: Glob pattern (e.g., "translations:element:42:*")

        Returns:
            Number of keys deleted
        """
        full_pattern = self._key(pattern)
        try:
            keys = [key async for key in self.redis.scan_iter(match=full_pattern)]
            if keys:
                return await self.redis.delete(*keys)
        except Exception as e:
            logger.warning("cache_delete_pattern_failed", pattern=pattern, error=str(e))
        return 0

    async def invalidate_tags(self, *tags: str) -> int:
        """Delete every key recorded under any of the tags, then the tags.

        The tag sets are read and dropped in one MULTI, so a key indexed
        concurrently lands in a fresh tag set instead of being forgotten.

        Returns:
            Number of cached values deleted
        """
        if not tags:
            return 0
        tag_keys = [self._tag_key(tag) for tag in tags]
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                for tag_key in tag_keys:
                    pipe.smembers(tag_key)
                pipe.delete(*tag_keys)
                *tag_members, _ = await pipe.execute()

            members = set().union(*tag_members)
            if not members:
                return 0
            return await self.redis.delete(*members)
        except Exception as e:
            logger.warning("cache_invalidate_tags_failed", tags=list(tags), error=str(e))
            return 0
