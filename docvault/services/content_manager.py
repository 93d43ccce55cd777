"""Ingestion, deduplication, quota enforcement and cleanup for the content store.

The :class:`ContentManager` is the single entry point callers use.  It
coordinates the leaf services without any of them knowing about each
other:

    ContentTypeDetector   -- MIME sniffing and allow-list validation
    ContentHasher         -- SHA-256 ids, streamed for large files
    TransactionManager    -- all-or-nothing tracking of side effects
    StorageQuotaTracker   -- warning / error thresholds
    IContentMetadataStore -- persisted records and cached counters

Two ingestion paths exist:

* :meth:`ContentManager.ingest_from_reference` records a caller-owned file
  in place (``StorageType.FILESYSTEM``); nothing is copied.
* :meth:`ContentManager.ingest_from_bytes` stores a managed copy named
  ``{content_id}{ext}`` in the content directory
  (``StorageType.CONTENT_DIR``) through an atomic temp-file rename.

Both run inside a transaction: any failure after the first side effect
rolls back everything the ingest created before the error is re-raised.
Ingests of the same hash are serialised per manager so in-process dedup is
exact; across processes it is best-effort and
:meth:`ContentManager.remove_duplicate_content` is the repair.
"""

from __future__ import annotations

import asyncio
import os
import secrets
import stat
import weakref
from collections import defaultdict
from pathlib import Path, PurePath

import structlog

from docvault.config.settings import ContentSettings
from docvault.interfaces.metadata_store import IContentMetadataStore
from docvault.models.content import (
    AggregateStats,
    CleanupResult,
    ContentDescriptor,
    ContentDirectorySection,
    ContentMetadata,
    DirectoryValidationResult,
    FilesystemReferencesSection,
    IngestionResult,
    LimitsSection,
    OverallSection,
    StorageLimitStatus,
    StorageMetrics,
    StorageStats,
    StorageType,
    utc_now,
)
from docvault.services.content_hasher import ContentHasher, hash_bytes
from docvault.services.content_type_detector import ContentTypeDetector
from docvault.services.secure_buffer import SecureBuffer
from docvault.services.storage_quota import QuotaDecision, StorageQuotaTracker
from docvault.services.transaction_manager import ResourceTransaction, TransactionManager
from docvault.utils.concurrency import with_timeout
from docvault.utils.errors import (
    ContentStorageIOError,
    DocVaultError,
    NotAFileError,
    SizeExceededError,
)
from docvault.utils.fs import (
    directory_usage,
    ensure_directory,
    is_regular_file,
    read_bytes,
    read_prefix,
    scan_directory,
    stat_path,
    unlink_if_exists,
    write_file_atomic,
    write_file_streaming,
)
from docvault.utils.sizes import to_megabytes

logger = structlog.get_logger(logger_name=__name__)

_MIN_CHUNK_SIZE = 64 * 1024
_MAX_CHUNK_SIZE = 1024 * 1024
_STATS_TOLERANCE_BYTES = 1024
_REPORT_TITLE = "=== DocVault Content Storage Report ==="


def _chunk_size_for(max_file_size: int) -> int:
    return max(_MIN_CHUNK_SIZE, min(_MAX_CHUNK_SIZE, max_file_size // 100))


class ContentManager:
    """Ingests documents into the corpus and keeps the content store healthy.

    Parameters
    ----------
    settings:
        Validated content settings (limits, thresholds, timeouts).
    metadata_store:
        Backend persisting :class:`ContentMetadata` and the cached counters.
    transactions:
        Shared transaction registry for this process or session.
    detector:
        MIME detector; a default instance is created when omitted.
    hasher:
        File hasher; created with a chunk size derived from
        ``max_file_size`` when omitted.
    """

    def __init__(
        self,
        settings: ContentSettings,
        metadata_store: IContentMetadataStore,
        transactions: TransactionManager,
        detector: ContentTypeDetector | None = None,
        hasher: ContentHasher | None = None,
    ) -> None:
        self._settings = settings
        self._store = metadata_store
        self._transactions = transactions
        self._detector = detector or ContentTypeDetector()
        self._chunk_size = _chunk_size_for(settings.max_file_size)
        self._hasher = hasher or ContentHasher(chunk_size=self._chunk_size)
        self._quota = StorageQuotaTracker(settings.storage_quota())
        self._content_dir = Path(settings.content_dir).expanduser().resolve()
        self._timeouts = settings.timeouts
        self._hash_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        # Lifetime dedup accounting for the "Dedup savings" figure.
        self._dedup_hits = 0
        self._bytes_saved = 0
        self._bytes_stored = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Prepare the metadata store and the managed directory."""
        await self._store.initialize()
        await ensure_directory(self._content_dir, self._timeouts.mkdir)
        logger.info(
            "content_manager_initialized",
            content_dir=str(self._content_dir),
            metadata_store=self._store.get_provider_name(),
            deduplication=self._settings.enable_deduplication,
        )

    @property
    def content_dir(self) -> Path:
        return self._content_dir

    @property
    def settings(self) -> ContentSettings:
        return self._settings

    @property
    def transactions(self) -> TransactionManager:
        return self._transactions

    # ------------------------------------------------------------------
    # Public API -- ingestion
    # ------------------------------------------------------------------

    def generate_id(self, data: bytes | bytearray | memoryview) -> str:
        """Deterministic content id: SHA-256 hex of the exact bytes."""
        return hash_bytes(data)

    async def ingest_from_reference(self, path: str | Path) -> IngestionResult:
        """Record an existing file in place, without copying it.

        Raises
        ------
        NotAFileError
            *path* is a directory, device or other non-regular file.
        SizeExceededError
            The file is larger than ``max_file_size``.
        UnsupportedContentTypeError
            The detected type is not on the allow-list.
        ContentStorageIOError, OperationTimeoutError, MetadataStoreError
            Infrastructure failures; the transaction has been rolled back.
        """
        file_path = Path(path).expanduser().resolve()
        return await with_timeout(
            self._ingest_reference(file_path),
            self._timeouts.reference_ingest,
            "filesystem ingestion",
        )

    async def ingest_from_bytes(
        self,
        data: bytes | bytearray | memoryview,
        descriptor: ContentDescriptor | None = None,
    ) -> IngestionResult:
        """Store *data* as a managed copy in the content directory.

        Raises
        ------
        SizeExceededError
            *data* is larger than ``max_file_size``.
        StorageLimitExceededError
            Admitting *data* would push usage past the error threshold.
        UnsupportedContentTypeError
            The detected (or declared) type is not on the allow-list.
        DirectoryCreationError, ContentStorageIOError, OperationTimeoutError, MetadataStoreError
            Infrastructure failures; the transaction has been rolled back.
        """
        descriptor = descriptor or ContentDescriptor()
        size = len(data)
        if size > self._settings.max_file_size:
            raise SizeExceededError(size, self._settings.max_file_size, context="memory_ingestion")

        result = await with_timeout(
            self._transactions.wrap(
                lambda tx: self._store_bytes(tx, data, descriptor),
                deadline=self._timeouts.transaction_deadline,
            ),
            self._timeouts.bytes_ingest,
            "memory ingestion",
        )
        if not result.was_deduped and self._settings.enable_storage_tracking:
            await self._refresh_stats_quietly()
        return result

    async def deduplicate_content(self, content_id: str) -> bool:
        """Return ``True`` if content with this hash-derived id is already stored."""
        return await self._store.get_by_hash(content_id) is not None

    # ------------------------------------------------------------------
    # Public API -- cleanup
    # ------------------------------------------------------------------

    async def remove_orphaned_files(self) -> CleanupResult:
        """Delete files in the content directory that no metadata references.

        Files tracked by an open transaction (in-flight temp files and
        writes) are never considered orphans.
        """
        await ensure_directory(self._content_dir, self._timeouts.mkdir)
        referenced: set[Path] = set()
        for storage_type in StorageType:
            records = await self._store.get_by_storage_type(storage_type)
            referenced.update(Path(m.content_path).resolve() for m in records)
        in_flight = self._transactions.tracked_paths()

        try:
            entries = await asyncio.to_thread(scan_directory, self._content_dir)
        except OSError as exc:
            raise ContentStorageIOError("scan", self._content_dir, exc) from exc

        result = CleanupResult()
        for entry in entries:
            resolved = entry.path.resolve()
            if resolved in referenced or resolved in in_flight:
                continue
            try:
                removed = await unlink_if_exists(entry.path)
            except ContentStorageIOError as exc:
                result.errors.append(f"Failed to process {entry.name}: {exc.message}")
                continue
            if removed:
                result.removed_files.append(entry.name)
                result.freed_space += entry.size

        if result.removed_files:
            await self.update_storage_stats()
            await self._store.set_aggregate_stats(last_cleanup=utc_now())

        logger.info(
            "orphaned_files_removed",
            removed=len(result.removed_files),
            freed_bytes=result.freed_space,
            errors=len(result.errors),
        )
        return result

    async def remove_duplicate_content(self) -> CleanupResult:
        """Collapse managed copies that share a hash, keeping the earliest.

        Bytes are only deleted when the duplicate's file is not the kept
        record's file; a duplicate whose file is already gone still has its
        metadata removed.
        """
        records = await self._store.get_by_storage_type(StorageType.CONTENT_DIR)
        groups: dict[str, list[ContentMetadata]] = defaultdict(list)
        for record in records:
            groups[record.content_hash].append(record)

        result = CleanupResult()
        for group in groups.values():
            if len(group) < 2:
                continue
            keep, *duplicates = sorted(group, key=lambda m: m.created_at)
            keep_path = Path(keep.content_path).resolve()
            for duplicate in duplicates:
                try:
                    freed = await self._remove_duplicate(duplicate, keep_path)
                except DocVaultError as exc:
                    result.errors.append(f"Failed to remove duplicate {duplicate.id}: {exc.message}")
                    continue
                result.removed_files.append(Path(duplicate.content_path).name)
                result.freed_space += freed

        if result.removed_files:
            await self.update_storage_stats()

        logger.info(
            "duplicate_content_removed",
            removed=len(result.removed_files),
            freed_bytes=result.freed_space,
            errors=len(result.errors),
        )
        return result

    # ------------------------------------------------------------------
    # Public API -- reporting
    # ------------------------------------------------------------------

    async def update_storage_stats(self) -> AggregateStats:
        """Rescan the content directory and persist the counters."""
        files, size = await directory_usage(self._content_dir, self._timeouts.stats_refresh)
        refs = await self._store.get_by_storage_type(StorageType.FILESYSTEM)
        stats = await self._store.set_aggregate_stats(
            content_dir_files=files,
            content_dir_size=size,
            filesystem_refs=len(refs),
        )
        logger.debug("storage_stats_updated", files=files, size=size, filesystem_refs=len(refs))
        return stats

    async def get_storage_stats(self) -> StorageStats:
        """Assemble the storage report from cached counters and metadata."""
        cached = await self._store.get_aggregate_stats()
        if cached is None:
            cached = await self.update_storage_stats()

        dir_exists = await asyncio.to_thread(self._content_dir.is_dir)
        dir_files = cached.content_dir_files if dir_exists else 0
        dir_size = cached.content_dir_size if dir_exists else 0

        references = await self._store.get_by_storage_type(StorageType.FILESYSTEM)
        refs_size = sum(m.file_size for m in references)

        max_size = self._settings.max_content_dir_size
        remaining = max(0, max_size - dir_size)
        total_used = dir_size + refs_size

        return StorageStats(
            content_directory=ContentDirectorySection(
                total_files=dir_files,
                total_size=dir_size,
                total_size_mb=to_megabytes(dir_size),
                average_file_size=round(dir_size / dir_files) if dir_files else 0,
            ),
            filesystem_references=FilesystemReferencesSection(
                total_refs=len(references),
                total_size=refs_size,
                total_size_mb=to_megabytes(refs_size),
            ),
            overall=OverallSection(
                total_content_items=dir_files + len(references),
                total_storage_used=total_used,
                total_storage_used_mb=to_megabytes(total_used),
                dedup_savings_percent=self._dedup_savings_percent(),
            ),
            limits=LimitsSection(
                max_content_dir_size=max_size,
                max_content_dir_size_mb=to_megabytes(max_size),
                current_usage_percent=round(dir_size / max_size * 100, 2),
                remaining_space=remaining,
                remaining_space_mb=to_megabytes(remaining),
            ),
            last_updated=utc_now(),
            last_cleanup=cached.last_cleanup,
        )

    async def get_storage_metrics(self) -> StorageMetrics:
        """Flat, monitoring-friendly view of :meth:`get_storage_stats`."""
        stats = await self.get_storage_stats()
        return StorageMetrics(
            content_dir_files=stats.content_directory.total_files,
            content_dir_size_bytes=stats.content_directory.total_size,
            content_dir_size_mb=stats.content_directory.total_size_mb,
            filesystem_refs=stats.filesystem_references.total_refs,
            filesystem_size_bytes=stats.filesystem_references.total_size,
            filesystem_size_mb=stats.filesystem_references.total_size_mb,
            total_content_items=stats.overall.total_content_items,
            total_storage_bytes=stats.overall.total_storage_used,
            total_storage_mb=stats.overall.total_storage_used_mb,
            usage_percent=stats.limits.current_usage_percent,
            remaining_bytes=stats.limits.remaining_space,
            remaining_mb=stats.limits.remaining_space_mb,
            last_cleanup_timestamp=stats.last_cleanup.timestamp() if stats.last_cleanup else None,
            last_updated_timestamp=stats.last_updated.timestamp(),
        )

    async def generate_storage_report(self) -> str:
        """Render a plain-text storage report."""
        stats = await self.get_storage_stats()
        cd = stats.content_directory
        refs = stats.filesystem_references
        overall = stats.overall
        limits = stats.limits
        last_cleanup = stats.last_cleanup.isoformat() if stats.last_cleanup else "Never"

        lines = [
            _REPORT_TITLE,
            "",
            "Content Directory:",
            f"  Files: {cd.total_files}",
            f"  Size: {cd.total_size_mb} MB",
            f"  Average file size: {round(cd.average_file_size / 1024)} KB",
            "",
            "Filesystem References:",
            f"  References: {refs.total_refs}",
            f"  Total size: {refs.total_size_mb} MB",
            "",
            "Overall Usage:",
            f"  Total content items: {overall.total_content_items}",
            f"  Total storage used: {overall.total_storage_used_mb} MB",
            f"  Dedup savings: {overall.dedup_savings_percent}%",
            "",
            "Storage Limits:",
            f"  Content directory limit: {limits.max_content_dir_size_mb} MB",
            f"  Current usage: {limits.current_usage_percent}%",
            f"  Remaining space: {limits.remaining_space_mb} MB",
            "",
            "Maintenance:",
            f"  Last updated: {stats.last_updated.isoformat()}",
            f"  Last cleanup: {last_cleanup}",
            "",
        ]
        if limits.current_usage_percent > 90:
            lines += [
                "WARNING: Content directory is over 90% full!",
                "   Consider running cleanup operations to free space.",
                "",
            ]
        elif limits.current_usage_percent > 75:
            lines += [
                "NOTICE: Content directory is over 75% full.",
                "   You may want to run cleanup operations soon.",
                "",
            ]
        return "\n".join(lines)

    async def get_storage_limit_status(self) -> StorageLimitStatus:
        stats = await self.get_storage_stats()
        return self._quota.limit_status(stats.content_directory.total_size)

    # ------------------------------------------------------------------
    # Public API -- maintenance
    # ------------------------------------------------------------------

    async def ensure_content_directory_permissions(self) -> None:
        """Create the content directory if needed and set mode 0o755."""
        await ensure_directory(self._content_dir, self._timeouts.mkdir)
        try:
            await asyncio.to_thread(os.chmod, self._content_dir, 0o755)
        except OSError as exc:
            raise ContentStorageIOError("chmod", self._content_dir, exc) from exc

    async def validate_and_repair_content_directory(self) -> DirectoryValidationResult:
        """Check the content directory and its counters, fixing what can be fixed."""
        issues: list[str] = []
        repaired: list[str] = []

        is_dir = False
        try:
            st = await stat_path(self._content_dir, self._timeouts.stat)
            is_dir = stat.S_ISDIR(st.st_mode)
            if not is_dir:
                issues.append("Content path exists but is not a directory")
        except ContentStorageIOError as exc:
            if not exc.is_not_found:
                issues.append(f"Cannot inspect content directory: {exc.message}")
            else:
                await ensure_directory(self._content_dir, self._timeouts.mkdir)
                repaired.append("Created missing content directory")
                is_dir = True

        if is_dir:
            accessible = await asyncio.to_thread(os.access, self._content_dir, os.R_OK | os.W_OK)
            if not accessible:
                issues.append("Content directory is not readable/writable")
                try:
                    await self.ensure_content_directory_permissions()
                    repaired.append("Fixed content directory permissions")
                except ContentStorageIOError:
                    issues.append("Failed to fix content directory permissions")

        try:
            cached = await self._store.get_aggregate_stats()
            files, size = await directory_usage(self._content_dir, self._timeouts.stats_refresh)
            if (
                cached is None
                or cached.content_dir_files != files
                or abs(cached.content_dir_size - size) > _STATS_TOLERANCE_BYTES
            ):
                await self.update_storage_stats()
                repaired.append("Updated inconsistent storage statistics")
        except DocVaultError as exc:
            issues.append(f"Failed to validate storage stats: {exc.message}")

        result = DirectoryValidationResult(is_valid=not issues, issues=issues, repaired=repaired)
        logger.info("content_directory_validated", is_valid=result.is_valid, repaired=len(repaired))
        return result

    def get_performance_stats(self) -> dict[str, object]:
        """Hash cache, transaction and dedup counters."""
        return {
            "hash_cache": self._hasher.cache_stats(),
            "transactions": self._transactions.get_statistics(),
            "deduplication": {
                "hits": self._dedup_hits,
                "bytes_saved": self._bytes_saved,
                "bytes_stored": self._bytes_stored,
                "savings_percent": self._dedup_savings_percent(),
            },
        }

    def clear_performance_caches(self) -> None:
        self._hasher.clear_cache()

    # ------------------------------------------------------------------
    # Ingestion internals
    # ------------------------------------------------------------------

    async def _ingest_reference(self, file_path: Path) -> IngestionResult:
        st = await stat_path(file_path, self._timeouts.stat)
        if not is_regular_file(st):
            raise NotAFileError(file_path)
        if st.st_size > self._settings.max_file_size:
            raise SizeExceededError(
                st.st_size, self._settings.max_file_size, context="filesystem_ingestion"
            )

        async def _record(tx: ResourceTransaction) -> IngestionResult:
            if st.st_size > self._settings.streaming_threshold:
                try:
                    content_hash = await with_timeout(
                        self._hasher.hash_file(file_path, st), self._timeouts.hash, "file hash"
                    )
                except OSError as exc:
                    raise ContentStorageIOError("hash", file_path, exc) from exc
                sample: bytes | bytearray = await read_prefix(
                    file_path, min(self._settings.sniff_sample_size, st.st_size), self._timeouts.read
                )
            else:
                buffer = SecureBuffer(await read_bytes(file_path, self._timeouts.read))
                tx.register_buffer(buffer)
                sample = buffer.get()
                content_hash = hash_bytes(sample)

            async with self._hash_lock(content_hash):
                existing = await self._find_existing(content_hash, st.st_size)
                if existing is not None:
                    return existing

                content_type = self._detector.detect(file_path, sample)
                self._detector.validate(content_type).raise_for_unsupported("filesystem_ingestion")

                metadata = ContentMetadata(
                    id=self._new_content_id(content_hash),
                    storage_type=StorageType.FILESYSTEM,
                    original_path=str(file_path),
                    content_path=str(file_path),
                    display_name=file_path.name,
                    content_type=content_type,
                    file_size=st.st_size,
                    content_hash=content_hash,
                )
                await self._insert_metadata(tx, metadata)

            self._bytes_stored += st.st_size
            logger.info(
                "content_ingested",
                content_id=metadata.id,
                storage_type=metadata.storage_type.value,
                content_type=content_type,
                size=st.st_size,
            )
            return _result_for(metadata, was_deduped=False)

        return await self._transactions.wrap(_record, deadline=self._timeouts.transaction_deadline)

    async def _store_bytes(
        self,
        tx: ResourceTransaction,
        data: bytes | bytearray | memoryview,
        descriptor: ContentDescriptor,
    ) -> IngestionResult:
        buffer = SecureBuffer(data)
        tx.register_buffer(buffer)
        content = buffer.get()
        size = len(content)

        await self._enforce_storage_limits(size)

        content_hash = await with_timeout(
            asyncio.to_thread(hash_bytes, content), self._timeouts.hash, "content hash"
        )

        async with self._hash_lock(content_hash):
            existing = await self._find_existing(content_hash, size)
            if existing is not None:
                return existing

            content_id = self._new_content_id(content_hash)
            content_type = descriptor.content_type or self._detector.detect(
                descriptor.display_name, content
            )
            self._detector.validate(content_type).raise_for_unsupported("memory_ingestion")

            await ensure_directory(self._content_dir, self._timeouts.mkdir)
            target = self._content_dir / f"{content_id}{self._extension_for(content_type, descriptor)}"
            if size > self._settings.streaming_threshold:
                await write_file_streaming(
                    target, content, tx, self._chunk_size, self._timeouts.streaming_write
                )
            else:
                await write_file_atomic(target, content, tx, self._timeouts.write)

            metadata = ContentMetadata(
                id=content_id,
                storage_type=StorageType.CONTENT_DIR,
                original_path=descriptor.original_path,
                content_path=str(target),
                display_name=descriptor.display_name,
                content_type=content_type,
                file_size=size,
                content_hash=content_hash,
            )
            await self._insert_metadata(tx, metadata)

        self._bytes_stored += size
        logger.info(
            "content_ingested",
            content_id=content_id,
            storage_type=metadata.storage_type.value,
            content_type=content_type,
            size=size,
        )
        return _result_for(metadata, was_deduped=False)

    async def _find_existing(self, content_hash: str, size: int) -> IngestionResult | None:
        if not self._settings.enable_deduplication:
            return None
        existing = await with_timeout(
            self._store.get_by_hash(content_hash),
            self._timeouts.metadata_query,
            "metadata lookup",
        )
        if existing is None:
            return None
        self._dedup_hits += 1
        self._bytes_saved += size
        logger.info("content_deduplicated", content_id=existing.id, size=size)
        return _result_for(existing, was_deduped=True)

    async def _insert_metadata(self, tx: ResourceTransaction, metadata: ContentMetadata) -> None:
        # Tracked first: an insert that times out may still land.
        tx.register_metadata_row(metadata.id, self._store)
        await with_timeout(
            self._store.insert(metadata),
            self._timeouts.metadata_insert,
            "metadata insert",
        )

    def _new_content_id(self, content_hash: str) -> str:
        if self._settings.enable_deduplication:
            return content_hash
        return f"{content_hash}-{secrets.token_hex(6)}"

    def _extension_for(self, content_type: str, descriptor: ContentDescriptor) -> str:
        ext = self._detector.extension_for(content_type)
        if ext:
            return ext
        return PurePath(descriptor.display_name).suffix.lower() or ".bin"

    def _hash_lock(self, content_hash: str) -> asyncio.Lock:
        lock = self._hash_locks.get(content_hash)
        if lock is None:
            lock = asyncio.Lock()
            self._hash_locks[content_hash] = lock
        return lock

    # ------------------------------------------------------------------
    # Quota and stats internals
    # ------------------------------------------------------------------

    async def _enforce_storage_limits(self, incoming: int) -> QuotaDecision | None:
        if not self._settings.enable_storage_tracking:
            return None
        return await with_timeout(
            self._check_quota(incoming), self._timeouts.quota_check, "storage quota check"
        )

    async def _check_quota(self, incoming: int) -> QuotaDecision | None:
        try:
            cached = await self._store.get_aggregate_stats()
            if cached is None:
                cached = await self.update_storage_stats()
            current = cached.content_dir_size
        except DocVaultError as exc:
            logger.warning("storage_usage_unavailable", error=str(exc))
            return None
        return self._quota.check(current, incoming)

    async def _refresh_stats_quietly(self) -> None:
        try:
            await with_timeout(
                self.update_storage_stats(), self._timeouts.stats_refresh, "storage stats refresh"
            )
        except DocVaultError as exc:
            logger.warning("storage_stats_refresh_failed", error=str(exc))

    async def _remove_duplicate(self, duplicate: ContentMetadata, keep_path: Path) -> int:
        dup_path = Path(duplicate.content_path)
        freed = 0
        if dup_path.resolve() != keep_path:
            try:
                st = await stat_path(dup_path, self._timeouts.stat)
            except ContentStorageIOError as exc:
                if not exc.is_not_found:
                    raise
            else:
                if await unlink_if_exists(dup_path):
                    freed = st.st_size
        await self._store.delete(duplicate.id)
        return freed

    def _dedup_savings_percent(self) -> float:
        total = self._bytes_saved + self._bytes_stored
        if total == 0:
            return 0.0
        return round(self._bytes_saved / total * 100, 2)


def _result_for(metadata: ContentMetadata, was_deduped: bool) -> IngestionResult:
    return IngestionResult(
        content_id=metadata.id,
        was_deduped=was_deduped,
        storage_type=metadata.storage_type,
        content_path=metadata.content_path,
    )
