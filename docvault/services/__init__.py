"""Content store services: detection, hashing, transactions, quota and the manager."""

from docvault.services.content_hasher import ContentHasher, hash_bytes
from docvault.services.content_manager import ContentManager
from docvault.services.content_type_detector import ContentTypeDetector, ContentTypeValidation
from docvault.services.secure_buffer import BufferOwnership, SecureBuffer
from docvault.services.storage_quota import QuotaDecision, StorageQuotaTracker
from docvault.services.transaction_manager import ResourceTransaction, TransactionManager

__all__ = [
    "BufferOwnership",
    "ContentHasher",
    "ContentManager",
    "ContentTypeDetector",
    "ContentTypeValidation",
    "QuotaDecision",
    "ResourceTransaction",
    "SecureBuffer",
    "StorageQuotaTracker",
    "TransactionManager",
    "hash_bytes",
]
