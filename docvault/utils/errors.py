"""Custom exception hierarchy for DocVault.

All application exceptions inherit from :class:`DocVaultError`, which
carries a human-readable ``message``, an optional ``context`` naming the
operation that failed (e.g. "memory_ingestion", "storage_enforcement") and
a tuple of remediation ``suggestions`` a caller can render unaided.

Every class also pins a :class:`ErrorKind` tag so handlers can match
structurally -- ``except StorageLimitExceededError`` or
``if exc.kind is ErrorKind.TIMEOUT`` -- instead of searching message text.

    DocVaultError  (base -- catch-all for any DocVault error)
    +-- ConfigurationError           (bad settings, raised at construction)
    |   +-- InvalidSizeFormatError   (unparseable size string such as "5 XB")
    +-- NotAFileError                (reference ingest of a non-regular file)
    +-- SizeExceededError            (single item above max_file_size)
    +-- UnsupportedContentTypeError  (MIME type outside the allow-list)
    +-- StorageLimitExceededError    (quota error threshold would be crossed)
    +-- ContentStorageIOError        (wrapped filesystem failure)
    |   +-- DirectoryCreationError   (managed directory could not be created)
    +-- OperationTimeoutError        (a bounded step overran its timeout)
    +-- MetadataStoreError           (metadata persistence failure)
    |   +-- ContentAlreadyExistsError
    +-- TransactionStateError        (illegal transaction transition)
    +-- BufferClearedError           (SecureBuffer read after clear())
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from docvault.utils.sizes import format_bytes


class ErrorKind(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Closed set of error tags carried by every :class:`DocVaultError`."""

    UNKNOWN = "UNKNOWN"
    CONFIGURATION = "CONFIGURATION"
    INVALID_SIZE_FORMAT = "INVALID_SIZE_FORMAT"
    NOT_A_FILE = "NOT_A_FILE"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    STORAGE_LIMIT_EXCEEDED = "STORAGE_LIMIT_EXCEEDED"
    STORAGE_IO = "STORAGE_IO"
    DIRECTORY_CREATION_FAILED = "DIRECTORY_CREATION_FAILED"
    TIMEOUT = "TIMEOUT"
    METADATA_STORE = "METADATA_STORE"
    CONTENT_ALREADY_EXISTS = "CONTENT_ALREADY_EXISTS"
    TRANSACTION_STATE = "TRANSACTION_STATE"
    BUFFER_CLEARED = "BUFFER_CLEARED"


class DocVaultError(Exception):
    """Base exception for all DocVault errors.

    The ``__str__`` method prefixes the context in brackets for structured
    log output, e.g. ``[memory_ingestion] Content size (60 MB) exceeds ...``.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: str | None = None,
        suggestions: Sequence[str] = (),
    ) -> None:
        self._message = message
        self._context = context
        self._suggestions = tuple(suggestions)
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def context(self) -> str | None:
        return self._context

    @property
    def suggestions(self) -> tuple[str, ...]:
        return self._suggestions

    def __str__(self) -> str:
        if self._context:
            return f"[{self._context}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(DocVaultError):
    """Raised when configuration is invalid (thresholds, paths, sizes)."""

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        context: str | None = "configuration",
        suggestions: Sequence[str] = (),
    ) -> None:
        super().__init__(message=message, context=context, suggestions=suggestions)


class InvalidSizeFormatError(ConfigurationError):
    """Raised when a size value cannot be parsed into a byte count."""

    kind = ErrorKind.INVALID_SIZE_FORMAT

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(
            message=(
                f"Invalid size format: {value!r}. "
                'Use formats like "50MB", "2GB", "500B" or a number of bytes.'
            ),
            suggestions=(
                "Supported units: B, KB, MB, GB, TB (case-insensitive, 1024-based)",
                "Omit the unit to specify a plain byte count",
            ),
        )


# ---------------------------------------------------------------------------
# Ingestion validation errors
# ---------------------------------------------------------------------------

class NotAFileError(DocVaultError):
    """Raised when a reference ingest targets something other than a regular file."""

    kind = ErrorKind.NOT_A_FILE

    def __init__(self, path: str | Path, context: str | None = "filesystem_ingestion") -> None:
        self.path = str(path)
        super().__init__(
            message=f"Path is not a file: {self.path}",
            context=context,
            suggestions=(
                "Pass the path of a regular file, not a directory or device",
                "Resolve symbolic links before ingesting if the target moved",
            ),
        )


class SizeExceededError(DocVaultError):
    """Raised when a single item is larger than ``max_file_size``."""

    kind = ErrorKind.SIZE_EXCEEDED

    def __init__(self, size: int, limit: int, context: str | None = None) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            message=(
                f"Content size ({format_bytes(size)}) exceeds maximum allowed "
                f"size ({format_bytes(limit)})"
            ),
            context=context,
            suggestions=(
                "Split the document into smaller parts before ingesting",
                "Raise max_file_size in the configuration",
            ),
        )


_AUDIO_GUIDANCE = (
    "Audio files are not supported for text-based processing",
    "Extract transcripts or metadata from the audio before ingestion",
    "Supported formats include text, documents (PDF, DOCX) and images",
)

_VIDEO_GUIDANCE = (
    "Video files are not supported for text-based processing",
    "Extract subtitles, transcripts or metadata from the video before ingestion",
    "Supported formats include text, documents (PDF, DOCX) and images",
)

_BINARY_GUIDANCE = (
    "Executable and binary files are not supported for security reasons",
    "Only document and text formats are supported for processing",
    "Convert binary data to text if it contains readable content",
)

_APPLICATION_GUIDANCE = (
    "This application format is not currently supported",
    "Supported application formats: PDF, Office documents, JSON, XML",
    "Check that the file extension matches the actual content",
)


def guidance_for_content_type(content_type: str) -> tuple[str, ...]:
    """Return remediation hints for a rejected MIME type, by category."""
    category = content_type.split("/", 1)[0]
    if category == "audio":
        return _AUDIO_GUIDANCE
    if category == "video":
        return _VIDEO_GUIDANCE
    if category == "application":
        if "executable" in content_type or "binary" in content_type:
            return _BINARY_GUIDANCE
        return _APPLICATION_GUIDANCE
    return (
        f"The {category} content type is not supported",
        "Supported types: text files, documents (PDF, DOCX), images (JPEG, PNG)",
        "Convert the content to a supported format before ingestion",
    )


class UnsupportedContentTypeError(DocVaultError):
    """Raised when the detected MIME type is outside the allow-list."""

    kind = ErrorKind.UNSUPPORTED_CONTENT_TYPE

    def __init__(self, content_type: str, reason: str, context: str | None = None) -> None:
        self.content_type = content_type
        self.category = content_type.split("/", 1)[0]
        self.reason = reason
        super().__init__(
            message=f"Invalid content format: {content_type}. {reason}",
            context=context,
            suggestions=guidance_for_content_type(content_type),
        )


class StorageLimitExceededError(DocVaultError):
    """Raised when admitting content would push usage past the error threshold.

    Carries the raw byte counts so callers can render their own message.
    """

    kind = ErrorKind.STORAGE_LIMIT_EXCEEDED

    def __init__(
        self,
        current_bytes: int,
        limit_bytes: int,
        incoming_bytes: int,
        context: str | None = "storage_enforcement",
    ) -> None:
        self.current_bytes = current_bytes
        self.limit_bytes = limit_bytes
        self.incoming_bytes = incoming_bytes
        self.remaining_bytes = max(0, limit_bytes - current_bytes)
        shortfall = max(0, incoming_bytes - self.remaining_bytes)
        super().__init__(
            message=(
                f"Storage limit exceeded. Cannot add {format_bytes(incoming_bytes)} content. "
                f"Current usage: {format_bytes(current_bytes)} / {format_bytes(limit_bytes)} "
                f"({format_bytes(self.remaining_bytes)} remaining)"
            ),
            context=context,
            suggestions=(
                "Run cleanup to remove orphaned files: remove_orphaned_files()",
                "Remove duplicate content: remove_duplicate_content()",
                "Increase max_content_dir_size in the configuration",
                f"Free up at least {format_bytes(shortfall)} of space",
            ),
        )


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------

class ContentStorageIOError(DocVaultError):
    """Wraps an ``OSError`` raised by a filesystem step, with operation context."""

    kind = ErrorKind.STORAGE_IO

    def __init__(
        self,
        operation: str,
        path: str | Path | None,
        cause: BaseException | None = None,
        context: str | None = None,
    ) -> None:
        self.operation = operation
        self.path = str(path) if path is not None else None
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        target = f" ({self.path})" if self.path else ""
        super().__init__(
            message=f"Filesystem {operation} failed{target}: {detail}",
            context=context,
            suggestions=(
                "Check that the path exists and is readable/writable",
                "Verify sufficient disk space is available",
            ),
        )

    @property
    def is_not_found(self) -> bool:
        """``True`` when the underlying failure was a missing file (ENOENT)."""
        return isinstance(self.cause, FileNotFoundError)


class DirectoryCreationError(ContentStorageIOError):
    """Raised when the managed content directory cannot be created."""

    kind = ErrorKind.DIRECTORY_CREATION_FAILED

    def __init__(self, path: str | Path, cause: BaseException | None = None) -> None:
        super().__init__(
            operation="directory creation",
            path=path,
            cause=cause,
            context="content_directory",
        )


class OperationTimeoutError(DocVaultError):
    """Raised when a bounded step does not finish within its timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, operation: str, seconds: float, context: str | None = None) -> None:
        self.operation = operation
        self.seconds = seconds
        super().__init__(
            message=f"{operation} timed out after {seconds:g}s",
            context=context,
            suggestions=("Retry the operation", "Raise the matching timeout in the configuration"),
        )


class MetadataStoreError(DocVaultError):
    """Raised when the metadata store fails to read or write a record."""

    kind = ErrorKind.METADATA_STORE

    def __init__(
        self,
        message: str = "Metadata store operation failed",
        context: str | None = "metadata_store",
    ) -> None:
        super().__init__(message=message, context=context)


class ContentAlreadyExistsError(MetadataStoreError):
    """Raised when inserting metadata whose id is already present."""

    kind = ErrorKind.CONTENT_ALREADY_EXISTS

    def __init__(self, content_id: str) -> None:
        self.content_id = content_id
        super().__init__(message=f"Content with ID '{content_id}' already exists")


# ---------------------------------------------------------------------------
# Programming errors
# ---------------------------------------------------------------------------

class TransactionStateError(DocVaultError):
    """Raised on an illegal transaction transition (e.g. committing twice)."""

    kind = ErrorKind.TRANSACTION_STATE

    def __init__(self, message: str = "Illegal transaction state transition") -> None:
        super().__init__(message=message, context="transaction")


class BufferClearedError(DocVaultError):
    """Raised when a :class:`SecureBuffer` is read after it was cleared."""

    kind = ErrorKind.BUFFER_CLEARED

    def __init__(self) -> None:
        super().__init__(message="Buffer has been cleared", context="secure_buffer")
