"""
In-memory result cache for the analytics engine.

- TTL expiry, checked lazily on read
- LRU eviction once max_size is exceeded
- Glob invalidation ("correlation:*", "correlation:*:INIT-7")
- Hit/miss statistics
- Injectable clock so expiry can be driven from tests

Keys are namespaced by operation, e.g. "correlation:cluster:Technology".
"""

import fnmatch
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    hit_rate: float = 0.0
    oldest_entry_age: float | None = None

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "hitRate": round(self.hit_rate, 4),
            "oldestEntryAge": self.oldest_entry_age,
        }


@dataclass
class _Entry:
    value: Any
    expires_at: float
    stored_at: float


class CacheManager:
    """Thread-safe TTL cache. Entries are kept in LRU order (oldest first)."""

    def __init__(self, max_size: int = 2000, default_ttl: float = 300, clock: Clock | None = None):
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.RLock()
        self._max_size = max(1, max_size)
        self._default_ttl = default_ttl
        self._clock = clock or time.monotonic
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def get(self, key: str, default: Any = None) -> Any:
        """Cached value, or default when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return default
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry.expires_at

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            # Zero TTL disables caching for this entry
            self.delete(key)
            return
        with self._lock:
            now = self._clock()
            self._entries[key] = _Entry(value=value, expires_at=now + ttl, stored_at=now)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted LRU key: %s", evicted)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every key matching a glob pattern. Returns the count dropped."""
        with self._lock:
            doomed = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache entries matching %s", len(doomed), pattern)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            oldest = None
            if self._entries:
                now = self._clock()
                oldest = now - min(entry.stored_at for entry in self._entries.values())
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
                hit_rate=self._hits / total if total else 0.0,
                oldest_entry_age=oldest,
            )
