"""Contract tests shared by the SQLite and in-memory metadata stores."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from docvault.interfaces.metadata_store import IContentMetadataStore
from docvault.models.content import ContentMetadata, StorageType
from docvault.providers.metadata.memory_metadata_store import InMemoryContentMetadataStore
from docvault.providers.metadata.sqlite_metadata_store import SQLiteContentMetadataStore
from docvault.utils.errors import ContentAlreadyExistsError, MetadataStoreError

HASH_A = "a" * 64
HASH_B = "b" * 64
T0 = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)  # noqa: UP017


def _meta(
    content_id: str,
    content_hash: str = HASH_A,
    storage_type: StorageType = StorageType.CONTENT_DIR,
    created_at: datetime = T0,
    size: int = 10,
) -> ContentMetadata:
    return ContentMetadata(
        id=content_id,
        storage_type=storage_type,
        original_path="/docs/original.txt" if storage_type is StorageType.FILESYSTEM else None,
        content_path=f"/vault/{content_id}.txt",
        display_name=f"{content_id}.txt",
        content_type="text/plain",
        file_size=size,
        content_hash=content_hash,
        created_at=created_at,
    )


@pytest_asyncio.fixture(params=["sqlite", "memory"])
async def store(request: pytest.FixtureRequest, tmp_path: Path) -> IContentMetadataStore:
    if request.param == "sqlite":
        backend: IContentMetadataStore = SQLiteContentMetadataStore(db_path=tmp_path / "nested" / "meta.db")
    else:
        backend = InMemoryContentMetadataStore()
    await backend.initialize()
    return backend


# ======================================================================
# Records
# ======================================================================


class TestRecords:
    @pytest.mark.asyncio
    async def test_insert_and_get_by_id(self, store: IContentMetadataStore) -> None:
        record = _meta("doc1")
        await store.insert(record)
        assert await store.get_by_id("doc1") == record

    @pytest.mark.asyncio
    async def test_get_missing(self, store: IContentMetadataStore) -> None:
        assert await store.get_by_id("nope") is None
        assert await store.get_by_hash(HASH_B) is None

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store: IContentMetadataStore) -> None:
        await store.insert(_meta("doc1"))
        with pytest.raises(ContentAlreadyExistsError) as exc_info:
            await store.insert(_meta("doc1", content_hash=HASH_B))
        assert exc_info.value.content_id == "doc1"

    @pytest.mark.asyncio
    async def test_get_by_hash_returns_earliest(self, store: IContentMetadataStore) -> None:
        await store.insert(_meta("later", created_at=T0 + timedelta(seconds=5)))
        await store.insert(_meta("earlier", created_at=T0))
        found = await store.get_by_hash(HASH_A)
        assert found is not None
        assert found.id == "earlier"

    @pytest.mark.asyncio
    async def test_created_at_ties_break_by_insertion(self, store: IContentMetadataStore) -> None:
        await store.insert(_meta("first"))
        await store.insert(_meta("second"))
        found = await store.get_by_hash(HASH_A)
        assert found is not None
        assert found.id == "first"

    @pytest.mark.asyncio
    async def test_get_by_storage_type(self, store: IContentMetadataStore) -> None:
        await store.insert(_meta("c2", created_at=T0 + timedelta(seconds=1)))
        await store.insert(_meta("ref", content_hash=HASH_B, storage_type=StorageType.FILESYSTEM))
        await store.insert(_meta("c1", created_at=T0))

        managed = await store.get_by_storage_type(StorageType.CONTENT_DIR)
        refs = await store.get_by_storage_type(StorageType.FILESYSTEM)

        assert [m.id for m in managed] == ["c1", "c2"]
        assert [m.id for m in refs] == ["ref"]
        assert refs[0].original_path == "/docs/original.txt"

    @pytest.mark.asyncio
    async def test_delete(self, store: IContentMetadataStore) -> None:
        await store.insert(_meta("doc1"))
        assert await store.delete("doc1") is True
        assert await store.delete("doc1") is False
        assert await store.get_by_id("doc1") is None

    @pytest.mark.asyncio
    async def test_timestamps_are_utc(self, store: IContentMetadataStore) -> None:
        await store.insert(_meta("doc1"))
        found = await store.get_by_id("doc1")
        assert found is not None
        assert found.created_at == T0
        assert found.created_at.utcoffset() == timedelta(0)


# ======================================================================
# Aggregate stats
# ======================================================================


class TestAggregateStats:
    @pytest.mark.asyncio
    async def test_absent_until_set(self, store: IContentMetadataStore) -> None:
        assert await store.get_aggregate_stats() is None

    @pytest.mark.asyncio
    async def test_partial_updates_keep_other_fields(self, store: IContentMetadataStore) -> None:
        await store.set_aggregate_stats(content_dir_files=3, content_dir_size=300, filesystem_refs=1)
        await store.set_aggregate_stats(last_cleanup=T0)

        stats = await store.get_aggregate_stats()
        assert stats is not None
        assert stats.content_dir_files == 3
        assert stats.content_dir_size == 300
        assert stats.filesystem_refs == 1
        assert stats.last_cleanup == T0

    @pytest.mark.asyncio
    async def test_zero_is_a_real_value(self, store: IContentMetadataStore) -> None:
        await store.set_aggregate_stats(content_dir_files=3, content_dir_size=300)
        updated = await store.set_aggregate_stats(content_dir_files=0, content_dir_size=0)
        assert updated.content_dir_files == 0
        assert updated.content_dir_size == 0


# ======================================================================
# Provider specifics
# ======================================================================


class TestProviderSpecifics:
    def test_provider_names(self, tmp_path: Path) -> None:
        assert SQLiteContentMetadataStore(tmp_path / "m.db").get_provider_name() == "sqlite_metadata"
        assert InMemoryContentMetadataStore().get_provider_name() == "memory_metadata"

    @pytest.mark.asyncio
    async def test_uninitialized_sqlite_raises_store_error(self, tmp_path: Path) -> None:
        store = SQLiteContentMetadataStore(tmp_path / "uninitialized.db")
        with pytest.raises(MetadataStoreError):
            await store.get_by_id("doc1")

    @pytest.mark.asyncio
    async def test_sqlite_constraint_violation_is_not_a_duplicate(self, tmp_path: Path) -> None:
        store = SQLiteContentMetadataStore(tmp_path / "checked.db")
        await store.initialize()
        invalid = _meta("doc1").model_copy(update={"file_size": -1})

        with pytest.raises(MetadataStoreError) as exc_info:
            await store.insert(invalid)
        assert not isinstance(exc_info.value, ContentAlreadyExistsError)
        assert await store.get_by_id("doc1") is None

    @pytest.mark.asyncio
    async def test_sqlite_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "meta.db"
        first = SQLiteContentMetadataStore(path)
        await first.initialize()
        await first.insert(_meta("doc1"))

        second = SQLiteContentMetadataStore(path)
        await second.initialize()
        assert await second.get_by_id("doc1") == _meta("doc1")

    @pytest.mark.asyncio
    async def test_memory_len(self) -> None:
        store = InMemoryContentMetadataStore()
        await store.insert(_meta("doc1"))
        assert len(store) == 1
