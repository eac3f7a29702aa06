"""Build the durable cache layer from configuration."""

import logging

from ...config import CacheBackend, CacheConfig
from .file_cache import FileCache
from .interface import CacheInterface
from .redis_cache import RedisCache

logger = logging.getLogger(__name__)


class CacheFactory:
    """Creates durable cache backends."""

    @staticmethod
    def create_cache(config: CacheConfig) -> CacheInterface:
        if config.backend == CacheBackend.FILE:
            logger.debug(f"💾 Using file cache at {config.file_cache_dir}")
            return FileCache(
                cache_dir=config.file_cache_dir,
                default_ttl=config.durable_ttl,
                max_size_mb=config.max_size_mb,
                key_prefix=config.key_prefix,
            )
        if config.backend == CacheBackend.REDIS:
            logger.debug(f"💾 Using Redis cache at {config.redis_url}")
            return RedisCache(
                redis_url=config.redis_url,
                default_ttl=config.durable_ttl,
                key_prefix=config.key_prefix,
            )
        raise ValueError(f"Unsupported cache backend: {config.backend}")
