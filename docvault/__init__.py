"""DocVault -- deduplicating, quota-aware document store with transactional ingestion."""

from docvault.config import ContentSettings, load_settings
from docvault.main import build_content_manager, open_content_manager
from docvault.models import ContentDescriptor, IngestionResult, StorageType
from docvault.services import ContentManager, TransactionManager

__version__ = "0.1.0"

__all__ = [
    "ContentDescriptor",
    "ContentManager",
    "ContentSettings",
    "IngestionResult",
    "StorageType",
    "TransactionManager",
    "build_content_manager",
    "load_settings",
    "open_content_manager",
]
