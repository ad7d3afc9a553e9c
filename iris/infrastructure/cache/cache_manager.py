"""
Response Cache

In-memory TTL + LRU cache for upstream answers, keyed on the normalized
query. A repeated question within the TTL is answered without touching any
backend.

STAGE-2.0: Cache lookup

Implementation Details:
- OrderedDict for O(1) access and LRU ordering (most recent last)
- Expiry is lazy: an entry past its expires_at is treated as absent on read,
  even before the background sweep physically removes it
- On insert at capacity, expired entries are dropped first; only then is the
  least recently used live entry evicted
- asyncio.Lock serializes every mutation

This cache is per-process and is never persisted.

Author: Platform Engineering
Date: 2026-02-14
"""

import asyncio
import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import orjson

from iris.core.config.constants import AUTO_PROVIDER, CACHE_KEY_PREFIX, DEFAULT_TASK_TYPE, Stage
from iris.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float
    last_accessed: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def normalize_cache_key(
    text: str, provider_hint: str | None = None, task_type: str | None = None
) -> str:
    """
    Build the cache key for a query.

    Text is case-folded and trimmed; a missing provider hint is "auto" and a
    missing task type is "balanced", so equivalent queries share one entry.

    Example:
        >>> normalize_cache_key("  What is Python? ") == normalize_cache_key("what is python?")
        True
    """
    payload = {
        "message": text.strip().casefold(),
        "provider": (provider_hint or AUTO_PROVIDER).strip().lower(),
        "task_type": (task_type or DEFAULT_TASK_TYPE).strip().lower(),
    }
    digest = hashlib.sha256(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{digest}"


class ResponseCache:
    """
    TTL-first, then LRU, bounded response cache.

    Usage:
        cache = ResponseCache(max_size=100, ttl_seconds=900)
        key = cache.make_key("What is Python?", None, "balanced")
        await cache.put(key, {"content": "...", "provider": "groq"})
        await cache.get(key)
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 900,
        clock: Callable[[], float] | None = None,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._ttl = float(ttl_seconds)
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @classmethod
    def from_settings(cls, settings, clock=None) -> "ResponseCache":
        return cls(
            max_size=settings.cache.CACHE_MAX_SIZE,
            ttl_seconds=settings.cache.CACHE_TTL_SECONDS,
            clock=clock,
        )

    make_key = staticmethod(normalize_cache_key)

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            entry.last_accessed = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    async def put(self, key: str, value: Any) -> None:
        """Insert or refresh an entry, evicting as needed to stay within max_size."""
        async with self._lock:
            now = self._clock()
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._max_size:
                self._purge_expired_locked(now)
                while len(self._entries) >= self._max_size:
                    evicted_key, _ = self._entries.popitem(last=False)
                    self._evictions += 1
                    logger.debug("Evicted LRU entry", stage=Stage.CACHE_LOOKUP, cache_key=evicted_key)

            self._entries[key] = CacheEntry(
                value=value,
                created_at=now,
                expires_at=now + self._ttl,
                last_accessed=now,
            )

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        """Drop every entry. Returns how many were removed."""
        async with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info("Response cache cleared", stage=Stage.CACHE_LOOKUP, removed=removed)
        return removed

    def _purge_expired_locked(self, now: float) -> int:
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)
        return len(expired)

    async def purge_expired(self) -> int:
        """Physically remove expired entries. Returns how many were removed."""
        async with self._lock:
            return self._purge_expired_locked(self._clock())

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def max_size(self) -> int:
        return self._max_size

    def get_stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "expirations": self._expirations,
            "size": len(self._entries),
            "max_size": self._max_size,
            "hit_rate": round(100.0 * self._hits / lookups, 2) if lookups else 0.0,
            "ttl_seconds": self._ttl,
        }
