"""
Redis implementation of the CacheRepository.
"""

import json
import logging
import redis.asyncio as redis
from typing import Any, Optional
from app.repositories.base import CacheRepository
from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisCacheRepository(CacheRepository):
    """Redis implementation of caching. Disabled when no REDIS_URL is configured."""

    def __init__(self, url: Optional[str] = None):
        self._url = url if url is not None else settings.REDIS_URL
        self._redis: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._url,
                db=settings.REDIS_DB,
                decode_responses=True,
                encoding="utf-8"
            )
        return self._redis

    async def get(self, key: str) -> Optional[Any]:
        """Get value from Redis cache."""
        if not self.enabled:
            return None
        try:
            redis_client = await self.get_redis()
            value = await redis_client.get(key)
            if value is None:
                return None
            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                return value
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in Redis cache with TTL."""
        if not self.enabled:
            return False
        try:
            redis_client = await self.get_redis()
            if isinstance(value, (dict, list)):
                serialized_value = json.dumps(value, default=str)
            else:
                serialized_value = str(value)
            await redis_client.set(key, serialized_value, ex=ttl)
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete value from Redis cache."""
        if not self.enabled:
            return False
        try:
            redis_client = await self.get_redis()
            result = await redis_client.delete(key)
            return result > 0
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None
