"""
Cache Module

In-memory TTL + LRU response cache.
"""

from .cache_manager import CacheEntry, ResponseCache, normalize_cache_key

__all__ = [
    "CacheEntry",
    "ResponseCache",
    "normalize_cache_key",
]
