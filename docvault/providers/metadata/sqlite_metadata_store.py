"""SQLite-backed content metadata store.

Persists :class:`ContentMetadata` rows and the single-row storage counters
to a local SQLite database (``.docvault/metadata.db`` by default).  Uses
``aiosqlite`` for async I/O; each call opens its own connection.

Timestamps are stored as ISO-8601 UTC strings with microseconds, so lexical
order equals chronological order and ``ORDER BY created_at`` is exact.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docvault.interfaces.metadata_store import IContentMetadataStore
from docvault.models.content import AggregateStats, ContentMetadata, StorageType, utc_now
from docvault.utils.errors import ContentAlreadyExistsError, MetadataStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path(".docvault/metadata.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS content_metadata (
    id             TEXT    PRIMARY KEY,
    storage_type   TEXT    NOT NULL CHECK (storage_type IN ('filesystem', 'content_dir')),
    original_path  TEXT,
    content_path   TEXT    NOT NULL,
    display_name   TEXT    NOT NULL,
    content_type   TEXT    NOT NULL,
    file_size      INTEGER NOT NULL CHECK (file_size >= 0),
    content_hash   TEXT    NOT NULL,
    created_at     TEXT    NOT NULL
);
"""

_CREATE_STATS_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS storage_stats (
    id                 INTEGER PRIMARY KEY CHECK (id = 1),
    content_dir_files  INTEGER NOT NULL DEFAULT 0,
    content_dir_size   INTEGER NOT NULL DEFAULT 0,
    filesystem_refs    INTEGER NOT NULL DEFAULT 0,
    last_cleanup       TEXT,
    updated_at         TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_content_metadata_hash ON content_metadata(content_hash);",
    "CREATE INDEX IF NOT EXISTS idx_content_metadata_storage_type ON content_metadata(storage_type);",
]

_COLUMNS = (
    "id, storage_type, original_path, content_path, display_name, "
    "content_type, file_size, content_hash, created_at"
)

_INSERT_SQL = (
    f"INSERT INTO content_metadata ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
    "ON CONFLICT(id) DO NOTHING;"
)

_SELECT_BY_HASH_SQL = (
    f"SELECT {_COLUMNS} FROM content_metadata "
    "WHERE content_hash = ? ORDER BY created_at ASC, rowid ASC LIMIT 1;"
)

_SELECT_BY_ID_SQL = f"SELECT {_COLUMNS} FROM content_metadata WHERE id = ?;"

_SELECT_BY_STORAGE_TYPE_SQL = (
    f"SELECT {_COLUMNS} FROM content_metadata "
    "WHERE storage_type = ? ORDER BY created_at ASC, rowid ASC;"
)

_UPSERT_STATS_SQL = """\
INSERT INTO storage_stats (id, content_dir_files, content_dir_size, filesystem_refs,
                           last_cleanup, updated_at)
VALUES (1, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET content_dir_files = excluded.content_dir_files,
              content_dir_size  = excluded.content_dir_size,
              filesystem_refs   = excluded.filesystem_refs,
              last_cleanup      = excluded.last_cleanup,
              updated_at        = excluded.updated_at;
"""


def _to_db_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")  # noqa: UP017


def _from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _row_to_metadata(row: aiosqlite.Row) -> ContentMetadata:
    r = dict(row)
    r["created_at"] = _from_db_time(r["created_at"])
    return ContentMetadata(**r)


def _row_to_stats(row: aiosqlite.Row) -> AggregateStats:
    r = dict(row)
    return AggregateStats(
        content_dir_files=r["content_dir_files"],
        content_dir_size=r["content_dir_size"],
        filesystem_refs=r["filesystem_refs"],
        last_cleanup=_from_db_time(r["last_cleanup"]),
        updated_at=_from_db_time(r["updated_at"]),
    )


class SQLiteContentMetadataStore(IContentMetadataStore):
    """SQLite-backed content metadata persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.execute(_CREATE_STATS_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to initialize metadata database: {exc}") from exc
        logger.info("metadata_db_initialized", path=str(self._db_path))

    async def insert(self, metadata: ContentMetadata) -> None:
        params = (
            metadata.id,
            metadata.storage_type.value,
            metadata.original_path,
            metadata.content_path,
            metadata.display_name,
            metadata.content_type,
            metadata.file_size,
            metadata.content_hash,
            _to_db_time(metadata.created_at),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_INSERT_SQL, params)
                inserted = cursor.rowcount
                await db.commit()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to insert content metadata: {exc}") from exc
        if inserted == 0:
            raise ContentAlreadyExistsError(metadata.id)
        logger.debug("metadata_inserted", content_id=metadata.id, storage_type=metadata.storage_type.value)

    async def get_by_hash(self, content_hash: str) -> ContentMetadata | None:
        row = await self._fetch_one(_SELECT_BY_HASH_SQL, (content_hash,), "get content by hash")
        return _row_to_metadata(row) if row is not None else None

    async def get_by_id(self, content_id: str) -> ContentMetadata | None:
        row = await self._fetch_one(_SELECT_BY_ID_SQL, (content_id,), "get content by id")
        return _row_to_metadata(row) if row is not None else None

    async def get_by_storage_type(self, storage_type: StorageType) -> list[ContentMetadata]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_BY_STORAGE_TYPE_SQL, (StorageType(storage_type).value,))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to list content by storage type: {exc}") from exc
        return [_row_to_metadata(r) for r in rows]

    async def delete(self, content_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("DELETE FROM content_metadata WHERE id = ?;", (content_id,))
                await db.commit()
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to delete content metadata: {exc}") from exc
        if deleted:
            logger.debug("metadata_deleted", content_id=content_id)
        return deleted

    async def get_aggregate_stats(self) -> AggregateStats | None:
        row = await self._fetch_one("SELECT * FROM storage_stats WHERE id = 1;", (), "get storage stats")
        return _row_to_stats(row) if row is not None else None

    async def set_aggregate_stats(
        self,
        *,
        content_dir_files: int | None = None,
        content_dir_size: int | None = None,
        filesystem_refs: int | None = None,
        last_cleanup: datetime | None = None,
    ) -> AggregateStats:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute("SELECT * FROM storage_stats WHERE id = 1;")
                row = await cursor.fetchone()
                current = _row_to_stats(row) if row is not None else AggregateStats()
                updated = current.model_copy(
                    update=_present(
                        content_dir_files=content_dir_files,
                        content_dir_size=content_dir_size,
                        filesystem_refs=filesystem_refs,
                        last_cleanup=last_cleanup,
                    )
                    | {"updated_at": utc_now()}
                )
                await db.execute(
                    _UPSERT_STATS_SQL,
                    (
                        updated.content_dir_files,
                        updated.content_dir_size,
                        updated.filesystem_refs,
                        _to_db_time(updated.last_cleanup) if updated.last_cleanup else None,
                        _to_db_time(updated.updated_at),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to update storage stats: {exc}") from exc
        return updated

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
        return "sqlite_metadata"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, sql: str, params: tuple, action: str) -> aiosqlite.Row | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to {action}: {exc}") from exc


def _present(**values: Any) -> dict[str, Any]:
    """Drop keyword arguments that were left as ``None``."""
    return {k: v for k, v in values.items() if v is not None}
