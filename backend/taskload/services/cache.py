"""Redis cache layer.

Every operation degrades to a cache miss when Redis is unreachable or the
cache is disabled, so callers never need their own error handling.
"""

from typing import Any

import orjson
import redis.asyncio as aioredis
import structlog

from taskload.config import get_settings

logger = structlog.get_logger()
settings = get_settings()


class CacheService:
    """JSON cache and token store backed by Redis."""

    PREFIX_TASKS = "tasks:"
    PREFIX_TASK_STATS = "task_stats:"
    PREFIX_REFRESH_TOKEN = "refresh_token:"
    PREFIX_AI_CONTEXT = "ai:context:"

    def __init__(self, url: str | None = None, enabled: bool | None = None):
        self._url = url or settings.redis_url
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self._redis: aioredis.Redis | None = None

    async def _get_redis(self) -> aioredis.Redis:
        """Lazy initialization of the Redis client."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Redis cache connection established")
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        """True when Redis answers; raises on connection errors."""
        client = await self._get_redis()
        return bool(await client.ping())

    async def get_json(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        try:
            client = await self._get_redis()
            value = await client.get(key)
            return orjson.loads(value) if value else None
        except Exception as e:
            logger.warning("Cache GET failed", key=key, error=str(e))
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not self.enabled:
            return False
        try:
            client = await self._get_redis()
            payload = orjson.dumps(value, default=str).decode()
            await client.set(key, payload, ex=ttl or settings.cache_ttl)
            return True
        except Exception as e:
            logger.warning("Cache SET failed", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            client = await self._get_redis()
            return await client.delete(key) > 0
        except Exception as e:
            logger.warning("Cache DELETE failed", key=key, error=str(e))
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        if not self.enabled:
            return 0
        deleted = 0
        try:
            client = await self._get_redis()
            async for key in client.scan_iter(match=pattern, count=100):
                deleted += await client.delete(key)
        except Exception as e:
            logger.warning("Cache pattern delete failed", pattern=pattern, error=str(e))
        return deleted

    # ========== Task caches ==========

    async def invalidate_tasks(self) -> None:
        """Drop every cached task list and stats entry after a task write."""
        await self.delete_pattern(f"{self.PREFIX_TASKS}*")
        await self.delete_pattern(f"{self.PREFIX_TASK_STATS}*")

    # ========== Refresh tokens ==========

    async def store_refresh_token(self, user_id: str, token: str, ttl: int) -> bool:
        return await self.set_json(f"{self.PREFIX_REFRESH_TOKEN}{user_id}", token, ttl=ttl)

    async def get_refresh_token(self, user_id: str) -> str | None:
        return await self.get_json(f"{self.PREFIX_REFRESH_TOKEN}{user_id}")

    async def revoke_refresh_token(self, user_id: str) -> bool:
        return await self.delete(f"{self.PREFIX_REFRESH_TOKEN}{user_id}")


cache = CacheService()


def get_cache() -> CacheService:
    """Dependency returning the shared cache service."""
    return cache
