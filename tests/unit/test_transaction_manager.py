"""Unit tests for ResourceTransaction and TransactionManager."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from docvault.models.content import ContentMetadata, StorageType
from docvault.models.transaction import ResourceKind, TransactionState
from docvault.providers.metadata.memory_metadata_store import InMemoryContentMetadataStore
from docvault.services.secure_buffer import SecureBuffer
from docvault.services.transaction_manager import (
    DEADLINE_EXCEEDED,
    ResourceTransaction,
    TrackedResource,
    TransactionManager,
    _undo,
)
from docvault.utils.errors import TransactionStateError


def _touch(path: Path, data: bytes = b"x") -> Path:
    path.write_bytes(data)
    return path


def _meta(content_id: str) -> ContentMetadata:
    return ContentMetadata(
        id=content_id,
        storage_type=StorageType.CONTENT_DIR,
        content_path=f"/vault/{content_id}",
        display_name=content_id,
        content_type="text/plain",
        file_size=1,
        content_hash="c" * 64,
    )


# ======================================================================
# Commit and rollback
# ======================================================================


class TestCommitAndRollback:
    @pytest.mark.asyncio
    async def test_commit_keeps_resources_and_clears_buffers(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        tx = transactions.begin()
        written = _touch(tmp_path / "kept.txt")
        buffer = SecureBuffer(b"secret")
        tx.register_written_file(written)
        tx.register_buffer(buffer)

        await tx.commit()

        assert tx.state is TransactionState.COMMITTED
        assert written.exists()
        assert buffer.is_cleared
        assert len(transactions) == 0
        assert transactions.get(tx.id) is None

    @pytest.mark.asyncio
    async def test_rollback_undoes_everything(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        store = InMemoryContentMetadataStore()
        await store.insert(_meta("doc1"))
        temp = _touch(tmp_path / "doc.tmp.1")
        written = _touch(tmp_path / "doc.txt")
        buffer = SecureBuffer(b"secret")

        tx = transactions.begin()
        tx.register_temp_file(temp)
        tx.register_written_file(written)
        tx.register_metadata_row("doc1", store)
        tx.register_buffer(buffer)
        await tx.rollback("insert failed")

        assert tx.state is TransactionState.ROLLED_BACK
        assert tx.rollback_reason == "insert failed"
        assert not temp.exists()
        assert not written.exists()
        assert await store.get_by_id("doc1") is None
        assert buffer.is_cleared

    @pytest.mark.asyncio
    async def test_rollback_tolerates_missing_resources(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        tx = transactions.begin()
        tx.register_written_file(tmp_path / "never-created.txt")
        tx.register_metadata_row("never-inserted", InMemoryContentMetadataStore())
        await tx.rollback()
        assert tx.state is TransactionState.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_failing_undo_step_does_not_stop_others(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        broken_store = MagicMock()
        broken_store.delete = AsyncMock(side_effect=RuntimeError("database is locked"))
        written = _touch(tmp_path / "doc.txt")

        tx = transactions.begin()
        tx.register_metadata_row("doc1", broken_store)
        tx.register_written_file(written)
        await tx.rollback()

        broken_store.delete.assert_awaited_once_with("doc1")
        assert not written.exists()
        assert transactions.get_statistics()["rolled_back"] == 1

    @pytest.mark.asyncio
    async def test_second_transition_raises(self, transactions: TransactionManager) -> None:
        tx = transactions.begin()
        await tx.commit()
        with pytest.raises(TransactionStateError):
            await tx.commit()
        with pytest.raises(TransactionStateError):
            await tx.rollback()

    @pytest.mark.asyncio
    async def test_register_after_finish_raises(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        tx = transactions.begin()
        await tx.rollback("gave up")
        with pytest.raises(TransactionStateError) as exc_info:
            tx.register_written_file(tmp_path / "late.txt")
        assert "gave up" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_deregister_temp_file(self, transactions: TransactionManager, tmp_path: Path) -> None:
        tx = transactions.begin()
        temp = tmp_path / "doc.tmp.1"
        tx.register_temp_file(temp)
        tx.deregister_temp_file(temp)
        assert tx.resources == ()
        await tx.commit()


# ======================================================================
# wrap()
# ======================================================================


class TestWrap:
    @pytest.mark.asyncio
    async def test_success_commits(self, transactions: TransactionManager, tmp_path: Path) -> None:
        target = tmp_path / "doc.txt"

        async def step(tx: ResourceTransaction) -> str:
            tx.register_written_file(target)
            _touch(target)
            return "done"

        assert await transactions.wrap(step) == "done"
        assert target.exists()
        assert transactions.get_statistics()["committed"] == 1

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_reraises(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        target = tmp_path / "doc.txt"

        async def step(tx: ResourceTransaction) -> None:
            tx.register_written_file(target)
            _touch(target)
            raise ValueError("metadata insert failed")

        with pytest.raises(ValueError, match="metadata insert failed"):
            await transactions.wrap(step)
        assert not target.exists()
        assert len(transactions) == 0

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self, transactions: TransactionManager, tmp_path: Path) -> None:
        target = tmp_path / "doc.txt"
        started = asyncio.Event()

        async def step(tx: ResourceTransaction) -> None:
            tx.register_written_file(target)
            _touch(target)
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(transactions.wrap(step))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not target.exists()
        assert transactions.get_statistics()["rolled_back"] == 1

    @pytest.mark.asyncio
    async def test_operation_that_rolls_back_itself(self, transactions: TransactionManager) -> None:
        async def step(tx: ResourceTransaction) -> None:
            await tx.rollback("manual")
            raise RuntimeError("after manual rollback")

        with pytest.raises(RuntimeError, match="after manual rollback"):
            await transactions.wrap(step)
        assert transactions.get_statistics()["rolled_back"] == 1


# ======================================================================
# Deadlines
# ======================================================================


class TestDeadline:
    @pytest.mark.asyncio
    async def test_deadline_forces_rollback(self, transactions: TransactionManager, tmp_path: Path) -> None:
        written = _touch(tmp_path / "slow.txt")
        tx = transactions.begin(deadline=0.05)
        tx.register_written_file(written)

        await asyncio.sleep(0.3)

        assert tx.state is TransactionState.ROLLED_BACK
        assert tx.rollback_reason == DEADLINE_EXCEEDED
        assert not written.exists()
        with pytest.raises(TransactionStateError) as exc_info:
            await tx.commit()
        assert DEADLINE_EXCEEDED in exc_info.value.message

    @pytest.mark.asyncio
    async def test_commit_before_deadline_cancels_timer(self, transactions: TransactionManager) -> None:
        tx = transactions.begin(deadline=0.05)
        assert transactions.get_statistics()["transactions_with_deadline"] == 1
        await tx.commit()
        await asyncio.sleep(0.1)
        assert tx.state is TransactionState.COMMITTED
        assert transactions.get_statistics()["transactions_with_deadline"] == 0

    @pytest.mark.asyncio
    async def test_wrapped_operation_outliving_deadline(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        async def step(tx: ResourceTransaction) -> None:
            await asyncio.sleep(0.3)
            tx.register_written_file(tmp_path / "too-late.txt")

        with pytest.raises(TransactionStateError):
            await transactions.wrap(step, deadline=0.05)
        assert len(transactions) == 0

    @pytest.mark.asyncio
    async def test_deadline_cancels_operation_before_late_insert(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        store = InMemoryContentMetadataStore()
        written = _touch(tmp_path / "deadline.txt")
        reached_insert = False

        async def step(tx: ResourceTransaction) -> None:
            nonlocal reached_insert
            tx.register_written_file(written)
            tx.register_metadata_row("doc1", store)
            await asyncio.sleep(0.3)
            reached_insert = True
            await store.insert(_meta("doc1"))

        with pytest.raises(TransactionStateError) as exc_info:
            await transactions.wrap(step, deadline=0.05)
        assert DEADLINE_EXCEEDED in exc_info.value.message

        await asyncio.sleep(0.4)
        assert reached_insert is False
        assert await store.get_by_id("doc1") is None
        assert not written.exists()
        assert transactions.get_statistics()["rolled_back"] == 1

    @pytest.mark.asyncio
    async def test_operation_ignoring_cancellation_is_still_rolled_back(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        written = _touch(tmp_path / "stubborn.txt")

        async def step(tx: ResourceTransaction) -> str:
            tx.register_written_file(written)
            try:
                await asyncio.sleep(0.3)
            except asyncio.CancelledError:
                pass
            return "done"

        with pytest.raises(TransactionStateError):
            await transactions.wrap(step, deadline=0.05)
        assert not written.exists()
        assert len(transactions) == 0


# ======================================================================
# Introspection
# ======================================================================


class TestIntrospection:
    @pytest.mark.asyncio
    async def test_status_and_statistics(self, transactions: TransactionManager, tmp_path: Path) -> None:
        tx = transactions.begin(deadline=30)
        tx.register_temp_file(tmp_path / "a.tmp.1")
        tx.register_buffer(SecureBuffer(b"abc"))

        status = transactions.get_transaction_status(tx.id)
        assert status is not None
        assert status.state is TransactionState.OPEN
        assert status.resource_count == 2
        assert status.deadline_seconds == 30
        assert tx.id.startswith("tx_")

        stats = transactions.get_statistics()
        assert stats["active_transactions"] == 1
        assert stats["total_resources"] == 2
        assert stats["resources_by_kind"][ResourceKind.TEMP_FILE.value] == 1
        assert stats["resources_by_kind"][ResourceKind.BUFFER.value] == 1

        await tx.commit()
        assert transactions.get_transaction_status(tx.id) is None

    @pytest.mark.asyncio
    async def test_tracked_paths_are_resolved(self, transactions: TransactionManager, tmp_path: Path) -> None:
        tx = transactions.begin()
        tx.register_written_file(tmp_path / "sub" / ".." / "doc.txt")
        assert transactions.tracked_paths() == {(tmp_path / "doc.txt").resolve()}
        await tx.commit()
        assert transactions.tracked_paths() == set()

    @pytest.mark.asyncio
    async def test_rollback_all(self, transactions: TransactionManager, tmp_path: Path) -> None:
        files = [_touch(tmp_path / f"f{i}.txt") for i in range(3)]
        txs = []
        for path in files:
            tx = transactions.begin()
            tx.register_written_file(path)
            txs.append(tx)

        assert await transactions.rollback_all("shutdown") == 3
        assert all(tx.state is TransactionState.ROLLED_BACK for tx in txs)
        assert not any(p.exists() for p in files)
        assert len(transactions) == 0

    @pytest.mark.asyncio
    async def test_rollback_all_interrupts_wrapped_operations(
        self, transactions: TransactionManager, tmp_path: Path
    ) -> None:
        written = _touch(tmp_path / "wrapped.txt")
        started = asyncio.Event()

        async def step(tx: ResourceTransaction) -> None:
            tx.register_written_file(written)
            started.set()
            await asyncio.sleep(5)

        wrapped = asyncio.ensure_future(transactions.wrap(step))
        await started.wait()

        assert await transactions.rollback_all("shutdown") == 1
        assert not written.exists()
        with pytest.raises(TransactionStateError, match="shutdown"):
            await wrapped
        assert len(transactions) == 0

    @pytest.mark.asyncio
    async def test_incomplete_resource_fails_its_undo(self) -> None:
        with pytest.raises(TransactionStateError):
            await _undo(TrackedResource(kind=ResourceKind.WRITTEN_FILE))
        with pytest.raises(TransactionStateError):
            await _undo(TrackedResource(kind=ResourceKind.METADATA_ROW, content_id="doc1"))
