"""Content store settings loaded via pydantic-settings.

Values come from (highest priority first):

    1. Keyword arguments passed to ``ContentSettings(...)``
    2. Environment variables prefixed ``DOCVAULT_``
       (nested timeouts use ``__``: ``DOCVAULT_TIMEOUTS__WRITE=30``)
    3. A ``.env`` file in the working directory
    4. The defaults below

Size fields accept byte counts or strings like ``"50MB"`` and are stored as
``int`` bytes after construction.  Invalid sizes raise
:class:`InvalidSizeFormatError` and bad thresholds raise
:class:`ConfigurationError`, both before any I/O happens.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docvault.models.transaction import StorageQuota
from docvault.utils.errors import ConfigurationError
from docvault.utils.sizes import parse_size


class OperationTimeouts(BaseModel):
    """Per-step timeouts in seconds."""

    stat: float = 10
    read: float = 60
    hash: float = 120
    metadata_query: float = 10
    metadata_insert: float = 10
    quota_check: float = 30
    mkdir: float = 5
    write: float = 60
    streaming_write: float = 180
    stats_refresh: float = 15
    reference_ingest: float = 90
    bytes_ingest: float = 120
    transaction_deadline: float = 150


class ContentSettings(BaseSettings):
    """DocVault content store settings."""

    model_config = SettingsConfigDict(
        env_prefix="DOCVAULT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Storage layout ===
    content_dir: Path = Path(".docvault/content")
    metadata_db_path: Path = Path(".docvault/metadata.db")

    # === Limits ===
    max_file_size: int = Field(default=parse_size("50MB"))
    max_content_dir_size: int = Field(default=parse_size("2GB"))
    storage_warning_threshold_pct: float = 75
    storage_error_threshold_pct: float = 95

    # === Behaviour ===
    enable_deduplication: bool = True
    enable_storage_tracking: bool = True
    streaming_threshold: int = Field(default=parse_size("10MB"))
    sniff_sample_size: int = Field(default=8192, gt=0)

    # === Operations ===
    timeouts: OperationTimeouts = Field(default_factory=OperationTimeouts)
    log_level: str = "INFO"

    @field_validator(
        "max_file_size", "max_content_dir_size", "streaming_threshold", mode="before"
    )
    @classmethod
    def _parse_size_field(cls, value: object) -> int:
        # InvalidSizeFormatError is not a ValueError, so pydantic lets it through.
        return parse_size(value)  # type: ignore[arg-type]

    @model_validator(mode="after")
    def _check_limits(self) -> ContentSettings:
        if self.max_file_size <= 0:
            raise ConfigurationError("max_file_size must be greater than zero")
        if self.max_content_dir_size <= 0:
            raise ConfigurationError("max_content_dir_size must be greater than zero")
        # Constructing the quota validates the threshold ordering.
        self.storage_quota()
        return self

    def storage_quota(self) -> StorageQuota:
        """Return the quota described by these settings."""
        return StorageQuota(
            max_bytes=self.max_content_dir_size,
            warn_threshold_pct=self.storage_warning_threshold_pct,
            error_threshold_pct=self.storage_error_threshold_pct,
        )
