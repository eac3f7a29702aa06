"""Abstract cache interface implemented by every cache layer."""

from abc import ABC, abstractmethod
from typing import Any


class CacheInterface(ABC):
    """Async key/value cache with per-entry TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the cached value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value; ``ttl`` in seconds, backend default when None."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key; True if it existed."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether an unexpired value is stored."""

    @abstractmethod
    async def clear(self) -> bool:
        """Remove every key owned by this cache."""

    @abstractmethod
    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        """Return found keys only."""

    @abstractmethod
    async def set_many(self, mapping: dict[str, Any], ttl: int | None = None) -> bool:
        """Store several values with the same TTL."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backend is usable."""

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """Backend statistics."""


class CacheStats:
    """Hit/miss counters shared by the cache implementations."""

    def __init__(self, backend: str):
        self.backend = backend
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.deletes = 0
        self.errors = 0

    def as_dict(self) -> dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "backend": self.backend,
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "hit_rate_percent": round(self.hits / lookups * 100, 2) if lookups else 0.0,
        }
