"""Zero-on-release wrapper for sensitive byte buffers.

Content read into memory during ingestion may be confidential.  A
:class:`SecureBuffer` holds its own ``bytearray`` copy and overwrites it with
zeros on :meth:`SecureBuffer.clear`.  When constructed with
``BufferOwnership.OWNS_ORIGINAL`` over a mutable buffer, the caller's buffer
is zeroed too.

Python's ``bytes`` objects are immutable and may be interned or copied by
the interpreter, so zeroing only reaches the copies this class controls.
"""

from __future__ import annotations

from enum import Enum

from docvault.utils.errors import BufferClearedError, ConfigurationError


class BufferOwnership(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    OWNS_COPY = "owns_copy"          # only the internal copy is zeroed
    OWNS_ORIGINAL = "owns_original"  # the caller's mutable buffer is zeroed as well


class SecureBuffer:
    """Owned byte buffer that can be explicitly wiped.

    Parameters
    ----------
    data:
        Bytes to protect.
    ownership:
        ``OWNS_ORIGINAL`` requires *data* to be a ``bytearray`` (or a writable
        ``memoryview``) so it can be zeroed in place.
    """

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        ownership: BufferOwnership = BufferOwnership.OWNS_COPY,
    ) -> None:
        self._original: bytearray | memoryview | None = None
        if ownership is BufferOwnership.OWNS_ORIGINAL:
            if isinstance(data, bytes) or (isinstance(data, memoryview) and data.readonly):
                raise ConfigurationError(
                    "OWNS_ORIGINAL requires a mutable buffer (bytearray or writable memoryview)",
                    context="secure_buffer",
                )
            self._original = data
        self._data = bytearray(data)
        self._ownership = ownership
        self._cleared = False

    @property
    def ownership(self) -> BufferOwnership:
        return self._ownership

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def get(self) -> bytearray:
        """Return the protected bytes; raises :class:`BufferClearedError` once cleared."""
        if self._cleared:
            raise BufferClearedError()
        return self._data

    def clear(self) -> None:
        """Zero the internal copy (and the original when owned). Idempotent."""
        if self._cleared:
            return
        self._data[:] = bytes(len(self._data))
        if self._original is not None:
            self._original[:] = bytes(len(self._original))
            self._original = None
        self._cleared = True

    def __len__(self) -> int:
        return 0 if self._cleared else len(self._data)

    def __enter__(self) -> SecureBuffer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clear()

    def __repr__(self) -> str:
        state = "cleared" if self._cleared else f"{len(self._data)} bytes"
        return f"SecureBuffer({state}, {self._ownership.value})"
