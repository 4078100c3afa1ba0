"""Score cache stores.

A store holds CacheEntry records keyed by normalized entity key. Expiry is
decided against the caller's clock (CacheEntry.expires_at), never against the
store's own notion of time, so pinned clocks in tests behave.
"""

import logging
import os
import threading
from typing import Protocol

import diskcache

from vetr_mcp.scoring.models import CacheEntry

logger = logging.getLogger(__name__)


class ScoreCacheStore(Protocol):
    """Concurrency-safe mapping of entity key -> CacheEntry."""

    def get(self, key: str, now_ms: int) -> CacheEntry | None:
        """Unexpired entry for key, evicting it if expired."""
        ...

    def set(self, entry: CacheEntry, ttl: float | None = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def clear(self) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryScoreCache:
    """In-process store. One lock guards the map; computation never holds it."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, now_ms: int) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now_ms):
                del self._entries[key]
                logger.debug(f"evicted expired score: {key}")
                return None
            return entry

    def set(self, entry: CacheEntry, ttl: float | None = None) -> None:
        with self._lock:
            self._entries[entry.key] = entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DiskScoreCache:
    """
    diskcache-backed store, shared across processes using the same directory.

    Entries are pickled CacheEntry records. diskcache's own expire is set to
    the TTL as housekeeping for abandoned keys; logical expiry is still
    checked against the caller's clock.
    """

    def __init__(self, cache_dir: str | None = None):
        if cache_dir is None:
            cache_dir = os.environ.get("CACHE_DIR", ".cache/scores")
        self.cache: diskcache.Cache = diskcache.Cache(cache_dir)

    def get(self, key: str, now_ms: int) -> CacheEntry | None:
        with self.cache.transact():
            entry = self.cache.get(key)
            if entry is None:
                return None
            if entry.is_expired(now_ms):
                self.cache.delete(key)
                logger.debug(f"evicted expired score: {key}")
                return None
            return entry

    def set(self, entry: CacheEntry, ttl: float | None = None) -> None:
        self.cache.set(entry.key, entry, expire=ttl)

    def delete(self, key: str) -> bool:
        return bool(self.cache.delete(key))

    def clear(self) -> None:
        self.cache.clear()

    def keys(self) -> list[str]:
        return sorted(str(k) for k in self.cache.iterkeys())

    def close(self) -> None:
        self.cache.close()


def create_score_cache(backend: str | None = None, cache_dir: str | None = None) -> ScoreCacheStore:
    """
    Build the store named by backend (or SCORE_CACHE_BACKEND).

    Args:
        backend: "memory" (default) or "disk"
        cache_dir: Directory for the disk store (default: CACHE_DIR or .cache/scores)

    Raises:
        ValueError: If backend is not recognized
    """
    if backend is None:
        backend = os.environ.get("SCORE_CACHE_BACKEND", "memory")
    backend = backend.lower().strip()

    if backend == "memory":
        return MemoryScoreCache()
    if backend == "disk":
        return DiskScoreCache(cache_dir)
    raise ValueError(f"Invalid cache backend '{backend}'. Must be one of: memory, disk")
