"""Two-tier cache: volatile memory layer in front of a durable store."""

import logging
import time
from collections.abc import Callable
from typing import Any

from .interface import CacheInterface

logger = logging.getLogger(__name__)


class LayeredCache:
    """Read-through, write-through composition of two cache layers.

    The memory layer only ever mirrors the durable layer. Durable entries are
    stamped with ``expires_at``; evicting them is the durable store's job, and a
    memory copy refilled from one never outlives that stamp.
    Durable keys are namespaced as ``"{namespace}/{key}"`` so unrelated data
    can share the store.
    """

    def __init__(
        self,
        memory: CacheInterface,
        durable: CacheInterface,
        namespace: str,
        memory_ttl: int = 300,
        durable_ttl: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.memory = memory
        self.durable = durable
        self.namespace = namespace.strip("/")
        self.memory_ttl = memory_ttl
        self.durable_ttl = durable_ttl
        self._clock = clock

    def durable_key(self, key: str) -> str:
        return f"{self.namespace}/{key}"

    async def get(self, key: str) -> Any:
        value = await self.memory.get(key)
        if value is not None:
            return value

        entry = await self.durable.get(self.durable_key(key))
        if not isinstance(entry, dict) or "value" not in entry:
            return None

        try:
            remaining = float(entry.get("expires_at")) - self._clock()
        except (TypeError, ValueError):
            remaining = 0
        if remaining <= 0:
            logger.debug(f"💾 Durable entry for {self.durable_key(key)} is past its stamped expiry")
            return None

        logger.debug(f"💾 Durable cache hit for {self.durable_key(key)}")
        # memory copy must expire no later than the durable entry
        memory_ttl = min(self.memory_ttl, int(remaining))
        if memory_ttl > 0:
            await self.memory.set(key, entry["value"], memory_ttl)
        return entry["value"]

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Write both layers before returning."""
        durable_ttl = ttl if ttl is not None else self.durable_ttl
        memory_ttl = min(self.memory_ttl, durable_ttl)
        entry = {"value": value, "expires_at": self._clock() + durable_ttl}

        memory_ok = await self.memory.set(key, value, memory_ttl)
        durable_ok = await self.durable.set(self.durable_key(key), entry, durable_ttl)
        if not durable_ok:
            logger.warning(f"⚠️ Durable cache write failed for {self.durable_key(key)}")
        return memory_ok and durable_ok

    async def delete(self, key: str) -> bool:
        memory_deleted = await self.memory.delete(key)
        durable_deleted = await self.durable.delete(self.durable_key(key))
        return memory_deleted or durable_deleted

    def get_stats(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "memory": self.memory.get_stats(),
            "durable": self.durable.get_stats(),
        }
