"""File-backed response cache with per-entry expiry."""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Generic, TypeVar

import anyio
from pydantic import BaseModel, ValidationError

from petwatch.api.models import DateRange, HistoryKind
from petwatch.cli.fileio import atomic_write_text
from petwatch.errors import CacheStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = timedelta(hours=24)
PETS_KEY = "pets"
DEVICES_KEY = "devices"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def history_key(kind: HistoryKind, pet_id: int, date_range: DateRange) -> str:
    """Cache key for one pet's history over a normalized date range."""
    return f"{kind.value}_history_{pet_id}_{date_range.cache_token()}"


class CacheEntry(BaseModel, Generic[T]):
    """A cached payload and the window during which it is fresh."""

    data: T
    cached_at: datetime
    expires_at: datetime

    @classmethod
    def create(cls, data: T, ttl: timedelta, now: datetime | None = None) -> "CacheEntry[T]":
        """Build an entry expiring ``ttl`` after ``now``."""
        cached_at = now or datetime.now(UTC)
        return cls(data=data, cached_at=cached_at, expires_at=cached_at + ttl)

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once ``now`` is strictly past ``expires_at``."""
        return (now or datetime.now(UTC)) > self.expires_at

    @property
    def age(self) -> timedelta:
        """Time elapsed since the entry was written."""
        return datetime.now(UTC) - self.cached_at


class _EntryTimes(BaseModel):
    cached_at: datetime
    expires_at: datetime


@dataclass
class CacheStats:
    """Summary of the cache directory for diagnostics."""

    total_entries: int = 0
    expired_entries: int = 0
    total_bytes: int = 0


class CacheStore:
    """One JSON document per cached resource, under a single directory.

    Misses are silent (``None``), including entries that fail to parse.
    Storage failures other than a missing file raise CacheStorageError.
    """

    def __init__(self, directory: Path, ttl: timedelta = DEFAULT_TTL):
        """Initialize the store.

        Args:
            directory: Directory holding the entry files. Created on first write.
            ttl: Lifetime applied by ``put`` when no explicit ttl is given.
        """
        self.directory = anyio.Path(directory)
        self.ttl = ttl

    def _path(self, key: str) -> anyio.Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid cache key '{key}'")
        return self.directory / f"{key}.json"

    async def _read(self, key: str, payload_type: Any) -> CacheEntry[Any] | None:
        path = self._path(key)
        try:
            raw = await path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheStorageError(f"Failed to read cache entry {path}: {exc}") from exc

        try:
            return CacheEntry[payload_type].model_validate_json(raw)
        except ValidationError:
            logger.debug("Ignoring unreadable cache entry %s", path)
            return None

    async def get(self, key: str, payload_type: Any) -> CacheEntry[Any] | None:
        """Return the entry for ``key`` if present and still fresh.

        An expired entry is left on disk so ``get_fallback`` can still serve it
        until it is overwritten or purged.

        Args:
            key: Cache key.
            payload_type: Type the payload is validated against, e.g. ``list[Pet]``.

        Returns:
            The fresh entry, or None on a miss.

        Raises:
            CacheStorageError: If the entry exists but cannot be read.
        """
        entry = await self._read(key, payload_type)
        if entry is None:
            return None
        if entry.is_expired():
            logger.debug("Cache entry '%s' expired at %s", key, entry.expires_at)
            return None
        return entry

    async def get_fallback(self, key: str, payload_type: Any) -> CacheEntry[Any] | None:
        """Return the entry for ``key`` regardless of expiry."""
        return await self._read(key, payload_type)

    async def put(self, key: str, value: Any, ttl: timedelta | None = None) -> CacheEntry[Any]:
        """Store ``value`` under ``key``, replacing any previous entry.

        Raises:
            CacheStorageError: If the entry cannot be written.
        """
        entry: CacheEntry[Any] = CacheEntry.create(value, self.ttl if ttl is None else ttl)
        path = self._path(key)
        try:
            await atomic_write_text(path, entry.model_dump_json(indent=2))
        except OSError as exc:
            raise CacheStorageError(f"Failed to write cache entry {path}: {exc}") from exc
        logger.debug("Cached '%s' until %s", key, entry.expires_at)
        return entry

    async def _entry_files(self) -> list[anyio.Path]:
        try:
            if not await self.directory.exists():
                return []
            return [path async for path in self.directory.glob("*.json")]
        except OSError as exc:
            raise CacheStorageError(f"Failed to list cache directory {self.directory}: {exc}") from exc

    async def _expiry_of(self, path: anyio.Path) -> datetime | None:
        try:
            raw = await path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheStorageError(f"Failed to read cache entry {path}: {exc}") from exc
        try:
            return _EntryTimes.model_validate_json(raw).expires_at
        except ValidationError:
            return None

    async def purge_expired(self) -> int:
        """Delete every entry whose ``expires_at`` is in the past.

        Returns:
            Number of entries removed.
        """
        now = datetime.now(UTC)
        removed = 0
        for path in await self._entry_files():
            expires_at = await self._expiry_of(path)
            if expires_at is None or expires_at >= now:
                continue
            try:
                await path.unlink(missing_ok=True)
            except OSError as exc:
                raise CacheStorageError(f"Failed to remove cache entry {path}: {exc}") from exc
            removed += 1
        logger.debug("Purged %d expired cache entries", removed)
        return removed

    async def purge_all(self) -> int:
        """Delete every entry.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for path in await self._entry_files():
            try:
                await path.unlink(missing_ok=True)
            except OSError as exc:
                raise CacheStorageError(f"Failed to remove cache entry {path}: {exc}") from exc
            removed += 1
        logger.debug("Purged all %d cache entries", removed)
        return removed

    async def stats(self) -> CacheStats:
        """Count entries, expired entries and bytes on disk."""
        now = datetime.now(UTC)
        stats = CacheStats()
        for path in await self._entry_files():
            try:
                size = (await path.stat()).st_size
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise CacheStorageError(f"Failed to stat cache entry {path}: {exc}") from exc
            stats.total_entries += 1
            stats.total_bytes += size
            expires_at = await self._expiry_of(path)
            if expires_at is not None and expires_at < now:
                stats.expired_entries += 1
        return stats
