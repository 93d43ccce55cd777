"""Content metadata, ingestion results and storage reporting models.

Value objects are frozen Pydantic v2 models; a changed record is a new
instance produced with ``model_copy(update={...})``.  Byte counts are plain
``int`` fields and every ``*_mb`` field is derived from them, rounded to two
decimals.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current UTC time with microsecond precision."""
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class StorageType(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Where the bytes of an ingested item live."""

    FILESYSTEM = "filesystem"    # reference to a caller-owned file, no copy
    CONTENT_DIR = "content_dir"  # managed copy inside the content directory


# ---------------------------------------------------------------------------
# Metadata records
# ---------------------------------------------------------------------------
class ContentMetadata(BaseModel):
    """One persisted record in the metadata store.

    With deduplication enabled ``id == content_hash``.  ``content_path``
    always points at the bytes the record describes: the original file for
    ``FILESYSTEM`` items, the managed copy for ``CONTENT_DIR`` items.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    storage_type: StorageType
    original_path: str | None = None
    content_path: str
    display_name: str
    content_type: str = Field(description="MIME type, e.g. 'application/pdf'")
    file_size: int = Field(ge=0)
    content_hash: str = Field(pattern=r"^[0-9a-f]{64}$", description="SHA-256 hex digest")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from the store are UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)  # noqa: UP017
        return value


class ContentDescriptor(BaseModel):
    """Caller-supplied description of in-memory content."""

    model_config = ConfigDict(frozen=True)

    display_name: str = "untitled"
    content_type: str | None = Field(
        default=None,
        description="MIME override; skips detection when set",
    )
    original_path: str | None = None


class IngestionResult(BaseModel):
    """Outcome of a single ingest call."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    was_deduped: bool
    storage_type: StorageType
    content_path: str


class CleanupResult(BaseModel):
    """Outcome of an orphan or duplicate cleanup pass."""

    removed_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    freed_space: int = 0


class AggregateStats(BaseModel):
    """Cached counters persisted next to the metadata.

    Always derivable from a directory scan; never a source of truth.
    """

    model_config = ConfigDict(frozen=True)

    content_dir_files: int = 0
    content_dir_size: int = 0
    filesystem_refs: int = 0
    last_cleanup: datetime | None = None
    updated_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------
class ContentDirectorySection(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_files: int
    total_size: int
    total_size_mb: float
    average_file_size: int


class FilesystemReferencesSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_refs: int
    total_size: int
    total_size_mb: float


class OverallSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_content_items: int
    total_storage_used: int
    total_storage_used_mb: float
    # Share of submitted bytes that dedup hits avoided storing again.
    dedup_savings_percent: float


class LimitsSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_content_dir_size: int
    max_content_dir_size_mb: float
    current_usage_percent: float
    remaining_space: int
    remaining_space_mb: float


class StorageStats(BaseModel):
    """Full storage report assembled from cached counters and metadata."""

    model_config = ConfigDict(frozen=True)

    content_directory: ContentDirectorySection
    filesystem_references: FilesystemReferencesSection
    overall: OverallSection
    limits: LimitsSection
    last_updated: datetime
    last_cleanup: datetime | None = None


class StorageMetrics(BaseModel):
    """Flat projection of :class:`StorageStats` for monitoring systems."""

    model_config = ConfigDict(frozen=True)

    content_dir_files: int
    content_dir_size_bytes: int
    content_dir_size_mb: float
    filesystem_refs: int
    filesystem_size_bytes: int
    filesystem_size_mb: float
    total_content_items: int
    total_storage_bytes: int
    total_storage_mb: float
    usage_percent: float
    remaining_bytes: int
    remaining_mb: float
    last_cleanup_timestamp: float | None = None
    last_updated_timestamp: float


class LimitsSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    warning_threshold: float
    error_threshold: float
    max_size_mb: float
    current_size_mb: float
    remaining_size_mb: float


class StorageLimitStatus(BaseModel):
    """Current usage against the configured quota, with recommendations."""

    model_config = ConfigDict(frozen=True)

    current_usage_percent: float
    is_near_warning_threshold: bool
    is_near_error_threshold: bool
    can_accept_content: bool
    recommendations: list[str] = Field(default_factory=list)
    limits: LimitsSummary


class DirectoryValidationResult(BaseModel):
    """Outcome of :meth:`ContentManager.validate_and_repair_content_directory`."""

    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    repaired: list[str] = Field(default_factory=list)
