"""Utility modules for DocVault.

- **errors** -- exception hierarchy rooted at DocVaultError; every class
  carries an ``ErrorKind`` tag so callers match on type, never on text.
- **sizes** -- ``"50MB"``-style size parsing and byte formatting.
- **concurrency** -- ``with_timeout`` and the settle-all join used by
  rollback paths.
- **fs** (not re-exported here) -- async filesystem helpers and atomic
  writes.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from docvault.utils.errors import (
    BufferClearedError,
    ConfigurationError,
    ContentAlreadyExistsError,
    ContentStorageIOError,
    DirectoryCreationError,
    DocVaultError,
    ErrorKind,
    InvalidSizeFormatError,
    MetadataStoreError,
    NotAFileError,
    OperationTimeoutError,
    SizeExceededError,
    StorageLimitExceededError,
    TransactionStateError,
    UnsupportedContentTypeError,
)

# -- Timeouts and settle-all joins -----------------------------------------
from docvault.utils.concurrency import settle_all, with_timeout

# -- Structured logging setup ----------------------------------------------
from docvault.utils.logging import configure_logging, get_logger

# -- Size parsing ----------------------------------------------------------
from docvault.utils.sizes import format_bytes, parse_size

__all__ = [
    "BufferClearedError",
    "ConfigurationError",
    "ContentAlreadyExistsError",
    "ContentStorageIOError",
    "DirectoryCreationError",
    "DocVaultError",
    "ErrorKind",
    "InvalidSizeFormatError",
    "MetadataStoreError",
    "NotAFileError",
    "OperationTimeoutError",
    "SizeExceededError",
    "StorageLimitExceededError",
    "TransactionStateError",
    "UnsupportedContentTypeError",
    "configure_logging",
    "format_bytes",
    "get_logger",
    "parse_size",
    "settle_all",
    "with_timeout",
]
