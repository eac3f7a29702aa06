"""Owns the shared durable store and hands out namespaced layered caches."""

import logging
from typing import Any

from ...config import CacheConfig
from .factory import CacheFactory
from .interface import CacheInterface
from .layered import LayeredCache
from .memory_cache import MemoryCache

logger = logging.getLogger(__name__)


class CacheManager:
    """Cache manager for the wallet aggregator."""

    def __init__(self, config: CacheConfig, durable: CacheInterface | None = None):
        self.config = config
        self._durable = durable
        self._layers: dict[str, LayeredCache] = {}

    def get_durable_cache(self) -> CacheInterface:
        if self._durable is None:
            self._durable = CacheFactory.create_cache(self.config)
        return self._durable

    def get_layered_cache(self, namespace: str) -> LayeredCache:
        if namespace not in self._layers:
            self._layers[namespace] = LayeredCache(
                memory=MemoryCache(default_ttl=self.config.memory_ttl),
                durable=self.get_durable_cache(),
                namespace=namespace,
                memory_ttl=self.config.memory_ttl,
                durable_ttl=self.config.durable_ttl,
            )
        return self._layers[namespace]

    async def health_check(self) -> dict[str, bool]:
        health = {namespace: await layer.memory.health_check() for namespace, layer in self._layers.items()}
        if self._durable is not None:
            health["durable"] = await self._durable.health_check()
        return health

    async def get_stats(self) -> dict[str, Any]:
        return {namespace: layer.get_stats() for namespace, layer in self._layers.items()}

    async def close(self) -> None:
        for layer in self._layers.values():
            await layer.memory.close()
        if self._durable is not None:
            await self._durable.close()
        logger.info("🔌 Cache manager closed")
