"""Process-local volatile cache."""

import time
from collections.abc import Callable
from typing import Any

from .interface import CacheInterface, CacheStats


class MemoryCache(CacheInterface):
    """In-memory cache with a fixed default TTL."""

    def __init__(self, default_ttl: int = 300, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._data: dict[str, tuple[Any, float]] = {}
        self._stats = CacheStats("memory")
        self._closed = False

    def _live(self, key: str) -> tuple[bool, Any]:
        entry = self._data.get(key)
        if entry is None:
            return False, None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return False, None
        return True, value

    async def get(self, key: str) -> Any:
        found, value = self._live(key)
        if found:
            self._stats.hits += 1
        else:
            self._stats.misses += 1
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        self._data[key] = (value, self._clock() + (ttl if ttl is not None else self.default_ttl))
        self._stats.sets += 1
        return True

    async def delete(self, key: str) -> bool:
        existed = self._data.pop(key, None) is not None
        if existed:
            self._stats.deletes += 1
        return existed

    async def exists(self, key: str) -> bool:
        return self._live(key)[0]

    async def clear(self) -> bool:
        self._data.clear()
        return True

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        result = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                result[key] = value
        return result

    async def set_many(self, mapping: dict[str, Any], ttl: int | None = None) -> bool:
        for key, value in mapping.items():
            await self.set(key, value, ttl)
        return True

    async def close(self) -> None:
        self._data.clear()
        self._closed = True

    async def health_check(self) -> bool:
        return not self._closed

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats.as_dict(), "keys": len(self._data), "default_ttl": self.default_ttl}
