"""Local response cache for offline CLI operation."""

from petwatch.cli.cache.store import (
    DEVICES_KEY,
    PETS_KEY,
    CacheEntry,
    CacheStats,
    CacheStore,
    history_key,
)

__all__ = [
    "DEVICES_KEY",
    "PETS_KEY",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "history_key",
]
