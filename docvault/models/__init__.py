"""DocVault domain models -- re-exports all public model classes.

Import from ``docvault.models`` rather than the submodules:
    - content.py      -- metadata records, ingestion/cleanup results, reports
    - transaction.py  -- transaction state, resource kinds, storage quota
"""

from __future__ import annotations

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
    LimitsSummary,
    OverallSection,
    StorageLimitStatus,
    StorageMetrics,
    StorageStats,
    StorageType,
    utc_now,
)
from docvault.models.transaction import (
    ResourceKind,
    StorageQuota,
    TransactionState,
    TransactionStatus,
)

__all__ = [
    "AggregateStats",
    "CleanupResult",
    "ContentDescriptor",
    "ContentDirectorySection",
    "ContentMetadata",
    "DirectoryValidationResult",
    "FilesystemReferencesSection",
    "IngestionResult",
    "LimitsSection",
    "LimitsSummary",
    "OverallSection",
    "ResourceKind",
    "StorageLimitStatus",
    "StorageMetrics",
    "StorageQuota",
    "StorageStats",
    "StorageType",
    "TransactionState",
    "TransactionStatus",
    "utc_now",
]
