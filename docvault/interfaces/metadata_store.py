"""Abstract base class for content metadata stores.

Defines the contract the content manager relies on to persist
:class:`ContentMetadata` records and the cached :class:`AggregateStats`
counters.  Implementations may use SQLite (local file), an in-memory dict
(tests, ephemeral sessions) or any other backend; the manager only ever
talks to this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from docvault.models.content import AggregateStats, ContentMetadata, StorageType


class IContentMetadataStore(ABC):
    """Contract for content metadata persistence.

    All operations are async to support file- or network-backed stores.
    Implementations raise :class:`ContentAlreadyExistsError` on duplicate ids
    and wrap driver failures in :class:`MetadataStoreError`.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables, indices or other backing structures if missing."""

    @abstractmethod
    async def insert(self, metadata: ContentMetadata) -> None:
        """Persist a new metadata record.

        Parameters
        ----------
        metadata:
            The record to store.  Its ``id`` must not already exist.
        """

    @abstractmethod
    async def get_by_hash(self, content_hash: str) -> ContentMetadata | None:
        """Return the earliest record with *content_hash*, or ``None``.

        Parameters
        ----------
        content_hash:
            SHA-256 hex digest of the content bytes.

        Returns
        -------
        ContentMetadata | None
            The record with the smallest ``created_at`` for that hash.
        """

    @abstractmethod
    async def get_by_id(self, content_id: str) -> ContentMetadata | None:
        """Return the record with *content_id*, or ``None``."""

    @abstractmethod
    async def get_by_storage_type(self, storage_type: StorageType) -> list[ContentMetadata]:
        """Return every record of *storage_type*, oldest first."""

    @abstractmethod
    async def delete(self, content_id: str) -> bool:
        """Delete the record with *content_id*.

        Returns
        -------
        bool
            ``True`` if a record was removed, ``False`` if none existed.
        """

    @abstractmethod
    async def get_aggregate_stats(self) -> AggregateStats | None:
        """Return the cached counters, or ``None`` if never written."""

    @abstractmethod
    async def set_aggregate_stats(
        self,
        *,
        content_dir_files: int | None = None,
        content_dir_size: int | None = None,
        filesystem_refs: int | None = None,
        last_cleanup: datetime | None = None,
    ) -> AggregateStats:
        """Update the given counters, leaving the others unchanged.

        ``updated_at`` is refreshed on every call.

        Returns
        -------
        AggregateStats
            The counters after the update.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
