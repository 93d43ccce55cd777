"""Unit tests for the async filesystem helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from docvault.models.transaction import ResourceKind
from docvault.services.transaction_manager import TransactionManager
from docvault.utils.errors import ContentStorageIOError, DirectoryCreationError
from docvault.utils.fs import (
    directory_usage,
    ensure_directory,
    read_bytes,
    read_prefix,
    scan_directory,
    stat_path,
    unlink_if_exists,
    write_file_atomic,
    write_file_streaming,
)


def _leftover_temps(directory: Path) -> list[Path]:
    return [p for p in directory.iterdir() if ".tmp." in p.name]


# ======================================================================
# Atomic writes
# ======================================================================


class TestAtomicWrites:
    @pytest.mark.asyncio
    async def test_write_creates_parent_and_file(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        target = tmp_path / "vault" / "doc.txt"
        tx = transactions.begin()

        await write_file_atomic(target, b"payload", tx)

        assert target.read_bytes() == b"payload"
        assert _leftover_temps(target.parent) == []
        assert [r.kind for r in tx.resources] == [ResourceKind.WRITTEN_FILE]
        await tx.commit()
        assert target.exists()

    @pytest.mark.asyncio
    async def test_rollback_removes_new_file(self, transactions: TransactionManager, tmp_path: Path) -> None:
        target = tmp_path / "doc.txt"
        tx = transactions.begin()
        await write_file_atomic(target, b"payload", tx)
        await tx.rollback()
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_rollback_keeps_preexisting_target(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        target = tmp_path / "doc.txt"
        target.write_bytes(b"payload")
        tx = transactions.begin()

        await write_file_atomic(target, b"payload", tx)
        assert tx.resources == ()
        await tx.rollback()

        assert target.read_bytes() == b"payload"

    @pytest.mark.asyncio
    async def test_streaming_write(self, transactions: TransactionManager, tmp_path: Path) -> None:
        target = tmp_path / "big.bin"
        data = bytes(range(256)) * 40
        tx = transactions.begin()

        await write_file_streaming(target, memoryview(data), tx, chunk_size=1000)
        await tx.commit()

        assert target.read_bytes() == data
        assert _leftover_temps(tmp_path) == []

    @pytest.mark.asyncio
    async def test_write_into_unwritable_parent(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        tx = transactions.begin()
        with pytest.raises(DirectoryCreationError):
            await write_file_atomic(blocker / "doc.txt", b"payload", tx)
        await tx.rollback()


# ======================================================================
# Reads and scans
# ======================================================================


class TestReads:
    @pytest.mark.asyncio
    async def test_stat_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ContentStorageIOError) as exc_info:
            await stat_path(tmp_path / "absent.txt")
        assert exc_info.value.is_not_found is True
        assert exc_info.value.operation == "stat"

    @pytest.mark.asyncio
    async def test_read_bytes_and_prefix(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.txt"
        path.write_bytes(b"0123456789")
        assert await read_bytes(path, timeout=5) == b"0123456789"
        assert await read_prefix(path, 4, timeout=5) == b"0123"

    @pytest.mark.asyncio
    async def test_read_directory_is_not_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ContentStorageIOError) as exc_info:
            await read_bytes(tmp_path)
        assert exc_info.value.is_not_found is False

    def test_scan_directory_lists_regular_files_only(self, tmp_path: Path) -> None:
        (tmp_path / "a.txt").write_bytes(b"aaa")
        (tmp_path / "b.bin").write_bytes(b"bb")
        (tmp_path / "nested").mkdir()
        (tmp_path / "nested" / "c.txt").write_bytes(b"c")

        entries = sorted(scan_directory(tmp_path), key=lambda e: e.name)

        assert [(e.name, e.size) for e in entries] == [("a.txt", 3), ("b.bin", 2)]

    def test_scan_missing_directory(self, tmp_path: Path) -> None:
        assert scan_directory(tmp_path / "absent") == []

    @pytest.mark.asyncio
    async def test_directory_usage(self, tmp_path: Path) -> None:
        (tmp_path / "a.txt").write_bytes(b"aaa")
        (tmp_path / "b.txt").write_bytes(b"bbbb")
        assert await directory_usage(tmp_path) == (2, 7)


class TestMutations:
    @pytest.mark.asyncio
    async def test_ensure_directory_is_idempotent(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b"
        await ensure_directory(target)
        await ensure_directory(target)
        assert target.is_dir()

    @pytest.mark.asyncio
    async def test_unlink_if_exists(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.txt"
        path.write_bytes(b"x")
        assert await unlink_if_exists(path) is True
        assert await unlink_if_exists(path) is False
