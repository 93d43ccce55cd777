"""Async filesystem helpers for the content store.

Blocking calls run in a worker thread via :func:`asyncio.to_thread` and are
bounded with :func:`with_timeout`.  ``OSError`` is wrapped in
:class:`ContentStorageIOError` (chained with ``from``) so callers get the
operation name and path; ``is_not_found`` tells a missing file apart from
other failures.

Writes into the managed directory go through :func:`write_file_atomic` or
:func:`write_file_streaming`: bytes land in ``<target>.tmp.<token>`` next to
the target and are moved into place with :func:`os.replace`, so a reader
never sees a partially written file.  Both register what they create with
the owning transaction so a rollback removes it.
"""

from __future__ import annotations

import asyncio
import os
import secrets
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from docvault.utils.concurrency import with_timeout
from docvault.utils.errors import ContentStorageIOError, DirectoryCreationError

if TYPE_CHECKING:
    from docvault.services.transaction_manager import ResourceTransaction

logger = structlog.get_logger(logger_name=__name__)

BytesLike = bytes | bytearray | memoryview


@dataclass(frozen=True)
class DirectoryEntry:
    """A regular file found by :func:`scan_directory`."""

    name: str
    path: Path
    size: int


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------

async def stat_path(path: Path, timeout: float | None = None) -> os.stat_result:
    """Return ``os.stat`` for *path*, wrapping ``OSError``."""
    try:
        return await with_timeout(asyncio.to_thread(os.stat, path), timeout, "file stat")
    except OSError as exc:
        raise ContentStorageIOError("stat", path, exc) from exc


async def read_bytes(path: Path, timeout: float | None = None) -> bytes:
    """Read the whole file at *path*."""
    try:
        return await with_timeout(asyncio.to_thread(path.read_bytes), timeout, "file read")
    except OSError as exc:
        raise ContentStorageIOError("read", path, exc) from exc


def _read_prefix_sync(path: Path, size: int) -> bytes:
    with open(path, "rb") as fh:
        return fh.read(size)


async def read_prefix(path: Path, size: int, timeout: float | None = None) -> bytes:
    """Read at most *size* bytes from the start of *path*."""
    try:
        return await with_timeout(
            asyncio.to_thread(_read_prefix_sync, path, size), timeout, "file sample read"
        )
    except OSError as exc:
        raise ContentStorageIOError("read", path, exc) from exc


def scan_directory(directory: Path) -> list[DirectoryEntry]:
    """List regular files directly inside *directory*.

    Entries that vanish or cannot be stat'ed mid-scan are skipped.  A missing
    directory yields an empty list.
    """
    entries: list[DirectoryEntry] = []
    try:
        iterator = os.scandir(directory)
    except FileNotFoundError:
        return entries
    with iterator:
        for entry in iterator:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                size = entry.stat(follow_symlinks=False).st_size
            except OSError:
                continue
            entries.append(DirectoryEntry(name=entry.name, path=Path(entry.path), size=size))
    return entries


async def directory_usage(directory: Path, timeout: float | None = None) -> tuple[int, int]:
    """Return ``(file_count, total_bytes)`` for regular files in *directory*."""
    try:
        entries = await with_timeout(
            asyncio.to_thread(scan_directory, directory), timeout, "directory scan"
        )
    except OSError as exc:
        raise ContentStorageIOError("scan", directory, exc) from exc
    return len(entries), sum(e.size for e in entries)


# ------------------------------------------------------------------
# Mutations
# ------------------------------------------------------------------

async def ensure_directory(path: Path, timeout: float | None = None) -> None:
    """Create *path* (and parents) if missing; raise :class:`DirectoryCreationError`."""
    try:
        await with_timeout(
            asyncio.to_thread(path.mkdir, parents=True, exist_ok=True),
            timeout,
            "directory creation",
        )
    except OSError as exc:
        raise DirectoryCreationError(path, exc) from exc


def _unlink_if_exists_sync(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


async def unlink_if_exists(path: Path) -> bool:
    """Delete *path*; return ``False`` when it was already gone."""
    try:
        return await asyncio.to_thread(_unlink_if_exists_sync, path)
    except OSError as exc:
        raise ContentStorageIOError("delete", path, exc) from exc


def is_regular_file(st: os.stat_result) -> bool:
    return stat.S_ISREG(st.st_mode)


def _temp_path_for(target: Path) -> Path:
    return target.with_name(f"{target.name}.tmp.{secrets.token_hex(8)}")


def _write_whole_sync(path: Path, data: BytesLike) -> None:
    with open(path, "wb") as fh:
        fh.write(data)


def _write_chunked_sync(path: Path, data: BytesLike, chunk_size: int) -> None:
    view = memoryview(data)
    with open(path, "wb") as fh:
        for offset in range(0, len(view), chunk_size):
            fh.write(view[offset:offset + chunk_size])


async def _write_via_temp(
    target: Path,
    transaction: ResourceTransaction,
    write_step,
    timeout: float | None,
    description: str,
) -> None:
    await ensure_directory(target.parent)

    existed = await asyncio.to_thread(target.exists)
    temp_path = _temp_path_for(target)
    transaction.register_temp_file(temp_path)
    try:
        await with_timeout(asyncio.to_thread(write_step, temp_path), timeout, description)
        # Registered ahead of the rename so a cancellation mid-rename still undoes it.
        if not existed:
            transaction.register_written_file(target)
        await asyncio.to_thread(os.replace, temp_path, target)
    except OSError as exc:
        raise ContentStorageIOError("write", target, exc) from exc
    transaction.deregister_temp_file(temp_path)
    logger.debug("file_written_atomically", path=str(target), replaced_existing=existed)


async def write_file_atomic(
    target: Path,
    data: BytesLike,
    transaction: ResourceTransaction,
    timeout: float | None = None,
) -> None:
    """Write *data* to *target* through a temp file and an atomic rename."""
    await _write_via_temp(
        target,
        transaction,
        lambda tmp: _write_whole_sync(tmp, data),
        timeout,
        "file write",
    )


async def write_file_streaming(
    target: Path,
    data: BytesLike,
    transaction: ResourceTransaction,
    chunk_size: int,
    timeout: float | None = None,
) -> None:
    """Like :func:`write_file_atomic` but writes *data* in ``chunk_size`` pieces."""
    await _write_via_temp(
        target,
        transaction,
        lambda tmp: _write_chunked_sync(tmp, data, chunk_size),
        timeout,
        "streaming file write",
    )
