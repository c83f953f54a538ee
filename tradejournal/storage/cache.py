"""
Look-aside cache for journal reads.

Services depend on the Cache protocol; NullCache stands in when no Redis URL
is configured so call sites never branch on its absence.
"""

from __future__ import annotations

from typing import Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from tradejournal.utils.exceptions import CacheError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)


def journal_key(journal_id: str) -> str:
    return f"journal:{journal_id}"


class Cache(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class NullCache:
    """Always misses."""

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCache:
    """redis.asyncio client; RedisError surfaces as CacheError."""

    def __init__(self, url: str):
        self._url = url
        self._redis = Redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise CacheError(f"cache get failed for {key}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheError(f"cache set failed for {key}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except RedisError as e:
            raise CacheError(f"cache delete failed for {key}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            logger.warning("cache_ping_failed", url=self._url)
            return False

    async def close(self) -> None:
        await self._redis.aclose()


def build_cache(redis_url: str) -> Cache:
    if not redis_url:
        logger.info("cache_disabled")
        return NullCache()
    logger.info("cache_enabled", url=redis_url)
    return RedisCache(redis_url)
