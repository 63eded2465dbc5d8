"""Result caching for the analytics engine."""

from .cache_manager import CacheManager, CacheStats

__all__ = ["CacheManager", "CacheStats"]
