"""Caching layers."""

from .factory import CacheFactory
from .file_cache import FileCache
from .interface import CacheInterface
from .layered import LayeredCache
from .manager import CacheManager
from .memory_cache import MemoryCache
from .redis_cache import RedisCache

__all__ = [
    "CacheFactory",
    "CacheInterface",
    "CacheManager",
    "FileCache",
    "LayeredCache",
    "MemoryCache",
    "RedisCache",
]
