"""Durable JSON file cache that survives process restarts."""

import asyncio
import hashlib
import json
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .interface import CacheInterface, CacheStats

logger = logging.getLogger(__name__)


class FileCache(CacheInterface):
    """One JSON file per key under ``cache_dir``.

    Each file stores the stamped ``expires_at``; expired files are removed on
    read. When the directory grows past ``max_size_mb`` the oldest files are
    evicted.
    """

    def __init__(
        self,
        cache_dir: Path,
        default_ttl: int = 300,
        max_size_mb: int = 100,
        key_prefix: str = "",
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.default_ttl = default_ttl
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.key_prefix = key_prefix
        self._clock = clock
        self._stats = CacheStats("file")
        self._lock = asyncio.Lock()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(f"{self.key_prefix}{key}".encode()).hexdigest()
        return self.cache_dir / f"{digest}.json"

    def _read(self, key: str) -> tuple[bool, Any]:
        path = self._path_for(key)
        if not path.exists():
            return False, None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Dropping unreadable cache file {path.name}: {e}")
            path.unlink(missing_ok=True)
            return False, None

        if self._clock() >= entry.get("expires_at", 0):
            path.unlink(missing_ok=True)
            return False, None
        return True, entry.get("value")

    def _write(self, key: str, value: Any, ttl: int) -> None:
        entry = {"key": f"{self.key_prefix}{key}", "value": value, "expires_at": self._clock() + ttl}
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(entry, default=str), encoding="utf-8")
        tmp_path.replace(path)

    def _evict_if_needed(self) -> None:
        files = sorted(self.cache_dir.glob("*.json"), key=lambda p: p.stat().st_mtime)
        total = sum(p.stat().st_size for p in files)
        while files and total > self.max_size_bytes:
            oldest = files.pop(0)
            total -= oldest.stat().st_size
            oldest.unlink(missing_ok=True)
            logger.debug(f"🧹 Evicted cache file {oldest.name}")

    async def get(self, key: str) -> Any:
        try:
            found, value = await asyncio.to_thread(self._read, key)
        except OSError as e:
            self._stats.errors += 1
            logger.warning(f"⚠️ File cache read failed for {key}: {e}")
            return None
        if found:
            self._stats.hits += 1
        else:
            self._stats.misses += 1
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, key, value, ttl if ttl is not None else self.default_ttl)
                await asyncio.to_thread(self._evict_if_needed)
            except (OSError, TypeError) as e:
                self._stats.errors += 1
                logger.warning(f"⚠️ File cache write failed for {key}: {e}")
                return False
        self._stats.sets += 1
        return True

    async def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if not path.exists():
            return False
        path.unlink(missing_ok=True)
        self._stats.deletes += 1
        return True

    async def exists(self, key: str) -> bool:
        found, _ = await asyncio.to_thread(self._read, key)
        return found

    async def clear(self) -> bool:
        async with self._lock:
            for path in self.cache_dir.glob("*.json"):
                path.unlink(missing_ok=True)
        return True

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        result = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                result[key] = value
        return result

    async def set_many(self, mapping: dict[str, Any], ttl: int | None = None) -> bool:
        results = [await self.set(key, value, ttl) for key, value in mapping.items()]
        return all(results)

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        return self.cache_dir.exists() and self.cache_dir.is_dir()

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats.as_dict(), "cache_dir": str(self.cache_dir), "default_ttl": self.default_ttl}
