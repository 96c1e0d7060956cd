"""Tests for the file-backed response cache."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import anyio
import pytest

from petwatch.api.models import DateRange, HistoryKind, Pet, PetHistory
from petwatch.cli.cache.store import PETS_KEY, CacheStore, history_key
from petwatch.errors import CacheStorageError

TOM = Pet(id=1, name="Tom", household_id=9)


@pytest.fixture
def store(tmp_path: Path) -> CacheStore:
    """Cache store in a temp directory."""
    return CacheStore(tmp_path / "responses", ttl=timedelta(hours=1))


def _write_entry(directory: Path, key: str, data: object, expires_at: datetime) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{key}.json"
    path.write_text(
        json.dumps(
            {
                "data": data,
                "cached_at": (expires_at - timedelta(hours=1)).isoformat(),
                "expires_at": expires_at.isoformat(),
            }
        )
    )
    return path


class TestReadWrite:
    """Fresh reads, misses and overwrites."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, store: CacheStore) -> None:
        await store.put(PETS_KEY, [TOM])

        entry = await store.get(PETS_KEY, list[Pet])

        assert entry is not None
        assert entry.data == [TOM]
        assert entry.expires_at == entry.cached_at + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_file_layout(self, store: CacheStore, tmp_path: Path) -> None:
        await store.put(PETS_KEY, [TOM], ttl=timedelta(minutes=5))

        raw = json.loads((tmp_path / "responses" / "pets.json").read_text())
        assert set(raw) == {"data", "cached_at", "expires_at"}
        assert raw["data"][0]["name"] == "Tom"

    @pytest.mark.asyncio
    async def test_missing_entry_is_a_miss(self, store: CacheStore) -> None:
        assert await store.get(PETS_KEY, list[Pet]) is None
        assert await store.get_fallback(PETS_KEY, list[Pet]) is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, store: CacheStore, tmp_path: Path) -> None:
        directory = tmp_path / "responses"
        directory.mkdir()
        (directory / "pets.json").write_text("{not json")

        assert await store.get(PETS_KEY, list[Pet]) is None
        assert await store.get_fallback(PETS_KEY, list[Pet]) is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self, store: CacheStore, tmp_path: Path) -> None:
        directory = tmp_path / "responses"
        directory.mkdir()
        (directory / "pets.json").write_bytes(b'\xff\xfe{"data": []}')

        assert await store.get(PETS_KEY, list[Pet]) is None
        assert await store.get_fallback(PETS_KEY, list[Pet]) is None

    @pytest.mark.asyncio
    async def test_put_overwrites(self, store: CacheStore) -> None:
        await store.put(PETS_KEY, [TOM])
        kit = Pet(id=2, name="Kit", household_id=9)
        await store.put(PETS_KEY, [kit])

        entry = await store.get(PETS_KEY, list[Pet])
        assert entry is not None
        assert entry.data == [kit]

    @pytest.mark.asyncio
    async def test_history_keys_do_not_collide(self, store: CacheStore) -> None:
        now = datetime(2026, 3, 10, tzinfo=UTC)
        week = DateRange.parse("week", now=now)
        month = DateRange.parse("month", now=now)
        feeding = history_key(HistoryKind.FEEDING, 1, week)

        assert feeding == "feeding_history_1_20260303_to_20260310"
        assert feeding != history_key(HistoryKind.FEEDING, 1, month)
        assert feeding != history_key(HistoryKind.DRINKING, 1, week)
        assert feeding != history_key(HistoryKind.FEEDING, 2, week)

        history = PetHistory(pet_id=1, kind=HistoryKind.FEEDING, total=5.0)
        await store.put(feeding, history)
        entry = await store.get(feeding, PetHistory)
        assert entry is not None
        assert entry.data == history

    @pytest.mark.asyncio
    async def test_rejects_path_like_keys(self, store: CacheStore) -> None:
        with pytest.raises(ValueError):
            await store.put("../escape", [TOM])

    @pytest.mark.asyncio
    async def test_unreadable_entry_raises_storage_error(
        self, store: CacheStore, tmp_path: Path
    ) -> None:
        (tmp_path / "responses" / "pets.json").mkdir(parents=True)

        with pytest.raises(CacheStorageError):
            await store.get(PETS_KEY, list[Pet])


class TestExpiry:
    """Stale entries, fallback reads and purging."""

    @pytest.mark.asyncio
    async def test_zero_ttl_is_honored(self, store: CacheStore) -> None:
        entry = await store.put(PETS_KEY, [TOM], ttl=timedelta(0))

        assert entry.expires_at == entry.cached_at
        assert await store.get_fallback(PETS_KEY, list[Pet]) is not None

    @pytest.mark.asyncio
    async def test_expired_entry_only_served_as_fallback(
        self, store: CacheStore, tmp_path: Path
    ) -> None:
        past = datetime.now(UTC) - timedelta(minutes=1)
        _write_entry(tmp_path / "responses", PETS_KEY, [TOM.model_dump()], past)

        assert await store.get(PETS_KEY, list[Pet]) is None
        fallback = await store.get_fallback(PETS_KEY, list[Pet])
        assert fallback is not None
        assert fallback.data == [TOM]
        assert fallback.age >= timedelta(hours=1)

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_short_ttl_expires_in_real_time(self, store: CacheStore) -> None:
        await store.put(PETS_KEY, [TOM], ttl=timedelta(seconds=1))
        fresh = await store.get(PETS_KEY, list[Pet])
        assert fresh is not None
        assert fresh.data == [TOM]

        await anyio.sleep(2)

        assert await store.get(PETS_KEY, list[Pet]) is None
        fallback = await store.get_fallback(PETS_KEY, list[Pet])
        assert fallback is not None
        assert fallback.data == [TOM]

    @pytest.mark.asyncio
    async def test_purge_expired_keeps_fresh_entries(
        self, store: CacheStore, tmp_path: Path
    ) -> None:
        directory = tmp_path / "responses"
        stale = _write_entry(directory, "devices", [], datetime.now(UTC) - timedelta(hours=2))
        await store.put(PETS_KEY, [TOM])

        removed = await store.purge_expired()

        assert removed == 1
        assert not stale.exists()
        assert (directory / "pets.json").exists()

    @pytest.mark.asyncio
    async def test_purge_all(self, store: CacheStore, tmp_path: Path) -> None:
        await store.put(PETS_KEY, [TOM])
        await store.put("devices", [])

        assert await store.purge_all() == 2
        assert list((tmp_path / "responses").glob("*.json")) == []

    @pytest.mark.asyncio
    async def test_purge_on_missing_directory(self, store: CacheStore) -> None:
        assert await store.purge_expired() == 0
        assert await store.purge_all() == 0

    @pytest.mark.asyncio
    async def test_stats(self, store: CacheStore, tmp_path: Path) -> None:
        _write_entry(
            tmp_path / "responses", "devices", [], datetime.now(UTC) - timedelta(hours=2)
        )
        await store.put(PETS_KEY, [TOM])

        stats = await store.stats()

        assert stats.total_entries == 2
        assert stats.expired_entries == 1
        assert stats.total_bytes > 0

    @pytest.mark.asyncio
    async def test_stats_on_empty_store(self, store: CacheStore) -> None:
        stats = await store.stats()

        assert (stats.total_entries, stats.expired_entries, stats.total_bytes) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_undecodable_entry_counts_but_never_expires(
        self, store: CacheStore, tmp_path: Path
    ) -> None:
        directory = tmp_path / "responses"
        directory.mkdir()
        (directory / "devices.json").write_bytes(b"\xff\x00\x01")

        stats = await store.stats()

        assert (stats.total_entries, stats.expired_entries, stats.total_bytes) == (1, 0, 3)
        assert await store.purge_expired() == 0
