"""Transaction and quota models.

A :class:`~docvault.services.transaction_manager.ResourceTransaction` moves
through ``OPEN -> COMMITTED`` or ``OPEN -> ROLLED_BACK`` exactly once; both
end states are terminal.  :class:`TransactionStatus` is the read-only
snapshot handed to callers that want to inspect one.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docvault.utils.errors import ConfigurationError


class TransactionState(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class ResourceKind(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """What a tracked resource is, and therefore how it is undone."""

    TEMP_FILE = "temp_file"        # deleted if present on rollback
    WRITTEN_FILE = "written_file"  # deleted if present on rollback
    METADATA_ROW = "metadata_row"  # deleted from the store on rollback
    BUFFER = "buffer"              # zeroed on commit and on rollback


class TransactionStatus(BaseModel):
    """Point-in-time view of a transaction."""

    model_config = ConfigDict(frozen=True)

    id: str
    state: TransactionState
    resource_count: int
    started_at: datetime
    duration_seconds: float
    deadline_seconds: float | None = None


class StorageQuota(BaseModel):
    """Limit on the managed content directory.

    ``0 <= warn_threshold_pct < error_threshold_pct <= 100`` is checked on
    construction and raises :class:`ConfigurationError`.
    """

    model_config = ConfigDict(frozen=True)

    max_bytes: int = Field(gt=0)
    warn_threshold_pct: float = 75.0
    error_threshold_pct: float = 95.0

    @model_validator(mode="after")
    def _check_thresholds(self) -> StorageQuota:
        if not 0 <= self.warn_threshold_pct < self.error_threshold_pct <= 100:
            raise ConfigurationError(
                "Storage thresholds must satisfy 0 <= warning < error <= 100 "
                f"(got warning={self.warn_threshold_pct}, error={self.error_threshold_pct})",
                suggestions=("Lower the warning threshold or raise the error threshold",),
            )
        return self
