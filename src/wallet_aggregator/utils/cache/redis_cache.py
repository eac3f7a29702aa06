"""Durable cache backed by Redis."""

import json
import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from .interface import CacheInterface, CacheStats

logger = logging.getLogger(__name__)


class RedisCache(CacheInterface):
    """JSON values in Redis with server-side expiry."""

    def __init__(self, redis_url: str, default_ttl: int = 300, key_prefix: str = ""):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._stats = CacheStats("redis")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Any:
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as e:
            self._stats.errors += 1
            logger.warning(f"⚠️ Redis get failed for {key}: {e}")
            return None
        if raw is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        try:
            await self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl or self.default_ttl)
        except RedisError as e:
            self._stats.errors += 1
            logger.warning(f"⚠️ Redis set failed for {key}: {e}")
            return False
        self._stats.sets += 1
        return True

    async def delete(self, key: str) -> bool:
        deleted = await self._client.delete(self._key(key))
        if deleted:
            self._stats.deletes += 1
        return bool(deleted)

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(self._key(key)))

    async def clear(self) -> bool:
        async for key in self._client.scan_iter(match=f"{self.key_prefix}*"):
            await self._client.delete(key)
        return True

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        if not keys:
            return {}
        values = await self._client.mget([self._key(key) for key in keys])
        return {key: json.loads(raw) for key, raw in zip(keys, values, strict=True) if raw is not None}

    async def set_many(self, mapping: dict[str, Any], ttl: int | None = None) -> bool:
        async with self._client.pipeline(transaction=True) as pipe:
            for key, value in mapping.items():
                pipe.set(self._key(key), json.dumps(value, default=str), ex=ttl or self.default_ttl)
            await pipe.execute()
        self._stats.sets += len(mapping)
        return True

    async def close(self) -> None:
        await self._client.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning(f"⚠️ Redis health check failed: {e}")
            return False

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats.as_dict(), "redis_url": self.redis_url, "default_ttl": self.default_ttl}
