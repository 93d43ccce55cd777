"""In-memory content metadata store.

Keeps records in a dict keyed by id.  Fast and dependency-free, suited to
tests and short-lived sessions; nothing survives the process and nothing is
shared between processes.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from docvault.interfaces.metadata_store import IContentMetadataStore
from docvault.models.content import AggregateStats, ContentMetadata, StorageType, utc_now
from docvault.utils.errors import ContentAlreadyExistsError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryContentMetadataStore(IContentMetadataStore):
    """Dict-backed metadata store."""

    def __init__(self) -> None:
        self._records: dict[str, ContentMetadata] = {}
        # Insertion order breaks created_at ties, matching SQLite's rowid order.
        self._sequence: dict[str, int] = {}
        self._counter = 0
        self._stats: AggregateStats | None = None

    # ------------------------------------------------------------------
    # IContentMetadataStore implementation
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        logger.debug("memory_metadata_store_initialized")

    async def insert(self, metadata: ContentMetadata) -> None:
        if metadata.id in self._records:
            raise ContentAlreadyExistsError(metadata.id)
        self._records[metadata.id] = metadata
        self._counter += 1
        self._sequence[metadata.id] = self._counter

    async def get_by_hash(self, content_hash: str) -> ContentMetadata | None:
        matches = [m for m in self._records.values() if m.content_hash == content_hash]
        if not matches:
            return None
        return min(matches, key=self._order_key)

    async def get_by_id(self, content_id: str) -> ContentMetadata | None:
        return self._records.get(content_id)

    async def get_by_storage_type(self, storage_type: StorageType) -> list[ContentMetadata]:
        wanted = StorageType(storage_type)
        matches = [m for m in self._records.values() if m.storage_type is wanted]
        return sorted(matches, key=self._order_key)

    async def delete(self, content_id: str) -> bool:
        self._sequence.pop(content_id, None)
        return self._records.pop(content_id, None) is not None

    async def get_aggregate_stats(self) -> AggregateStats | None:
        return self._stats

    async def set_aggregate_stats(
        self,
        *,
        content_dir_files: int | None = None,
        content_dir_size: int | None = None,
        filesystem_refs: int | None = None,
        last_cleanup: datetime | None = None,
    ) -> AggregateStats:
        update = {
            k: v
            for k, v in {
                "content_dir_files": content_dir_files,
                "content_dir_size": content_dir_size,
                "filesystem_refs": filesystem_refs,
                "last_cleanup": last_cleanup,
            }.items()
            if v is not None
        }
        update["updated_at"] = utc_now()
        self._stats = (self._stats or AggregateStats()).model_copy(update=update)
        return self._stats

    def get_provider_name(self) -> str:
        return "memory_metadata"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _order_key(self, metadata: ContentMetadata) -> tuple[datetime, int]:
        return metadata.created_at, self._sequence.get(metadata.id, 0)

    def __len__(self) -> int:
        return len(self._records)
