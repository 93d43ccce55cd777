"""All-or-nothing tracking of the side effects of a multi-step operation.

An ingest touches several resources (a temp file, the final file, a metadata
row, in-memory buffers).  Each step registers what it created with the
owning :class:`ResourceTransaction` *before* creating it.  On success the
transaction is committed and the resources are kept; on any failure it is
rolled back and every undo action runs best-effort:

    TEMP_FILE     -> delete if present
    WRITTEN_FILE  -> delete if present
    METADATA_ROW  -> delete from the metadata store
    BUFFER        -> zero-fill (also done on commit)

A :class:`TransactionManager` owns the set of open transactions.  One is
created per process or session and handed to the
:class:`~docvault.services.content_manager.ContentManager` that uses it.
:meth:`TransactionManager.wrap` is the usual entry point::

    async def step(tx):
        tx.register_written_file(target)
        ...

    result = await transactions.wrap(step, deadline=150)

State machine: ``OPEN -> COMMITTED | ROLLED_BACK``; both are terminal and
a second transition raises :class:`TransactionStateError`.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from docvault.interfaces.metadata_store import IContentMetadataStore
from docvault.models.content import utc_now
from docvault.models.transaction import ResourceKind, TransactionState, TransactionStatus
from docvault.services.secure_buffer import SecureBuffer
from docvault.utils.concurrency import settle_all
from docvault.utils.errors import TransactionStateError
from docvault.utils.fs import unlink_if_exists

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

DEADLINE_EXCEEDED = "Transaction deadline exceeded"


@dataclass(frozen=True)
class TrackedResource:
    """One resource registered with a transaction."""

    kind: ResourceKind
    path: Path | None = None
    content_id: str | None = None
    store: IContentMetadataStore | None = None
    buffer: SecureBuffer | None = None

    def describe(self) -> str:
        if self.kind is ResourceKind.METADATA_ROW:
            return f"{self.kind.value}:{self.content_id}"
        if self.kind is ResourceKind.BUFFER:
            return self.kind.value
        return f"{self.kind.value}:{self.path}"


class ResourceTransaction:
    """Resources created by one in-flight operation.

    Created by :meth:`TransactionManager.begin`; do not instantiate directly.
    """

    def __init__(self, manager: TransactionManager, deadline: float | None = None) -> None:
        self._manager = manager
        self._id = f"tx_{uuid.uuid4().hex[:16]}"
        self._state = TransactionState.OPEN
        self._resources: list[TrackedResource] = []
        self._started_at = utc_now()
        self._started_monotonic = time.monotonic()
        self._deadline = deadline
        self._rollback_reason: str | None = None
        # Set when the manager interrupts the owning operation (deadline or
        # rollback_all); the rollback itself waits until the operation settles.
        self._forced_reason: str | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self._id

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is TransactionState.OPEN

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def rollback_reason(self) -> str | None:
        return self._rollback_reason

    @property
    def forced_reason(self) -> str | None:
        return self._forced_reason

    @property
    def resources(self) -> tuple[TrackedResource, ...]:
        return tuple(self._resources)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_temp_file(self, path: Path) -> None:
        self._add(TrackedResource(kind=ResourceKind.TEMP_FILE, path=Path(path)))

    def deregister_temp_file(self, path: Path) -> None:
        """Forget a temp file once it has been renamed into place."""
        self._ensure_open("deregister a temp file")
        target = Path(path)
        for idx, res in enumerate(self._resources):
            if res.kind is ResourceKind.TEMP_FILE and res.path == target:
                del self._resources[idx]
                return

    def register_written_file(self, path: Path) -> None:
        self._add(TrackedResource(kind=ResourceKind.WRITTEN_FILE, path=Path(path)))

    def register_metadata_row(self, content_id: str, store: IContentMetadataStore) -> None:
        self._add(TrackedResource(kind=ResourceKind.METADATA_ROW, content_id=content_id, store=store))

    def register_buffer(self, buffer: SecureBuffer) -> None:
        self._add(TrackedResource(kind=ResourceKind.BUFFER, buffer=buffer))

    def file_paths(self) -> set[Path]:
        """Paths of temp and written files currently tracked."""
        return {
            r.path
            for r in self._resources
            if r.path is not None and r.kind in (ResourceKind.TEMP_FILE, ResourceKind.WRITTEN_FILE)
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        await self._manager.commit(self)

    async def rollback(self, reason: str = "Operation failed") -> None:
        await self._manager.rollback(self, reason)

    def status(self) -> TransactionStatus:
        return TransactionStatus(
            id=self._id,
            state=self._state,
            resource_count=len(self._resources),
            started_at=self._started_at,
            duration_seconds=round(time.monotonic() - self._started_monotonic, 6),
            deadline_seconds=self._deadline,
        )

    # ------------------------------------------------------------------
    # Internal helpers (used by TransactionManager)
    # ------------------------------------------------------------------

    def _add(self, resource: TrackedResource) -> None:
        self._ensure_open(f"register {resource.kind.value}")
        self._resources.append(resource)

    def _ensure_open(self, action: str) -> None:
        if self._state is not TransactionState.OPEN:
            detail = f" ({self._rollback_reason})" if self._rollback_reason else ""
            raise TransactionStateError(
                f"Cannot {action}: transaction {self._id} is {self._state.value}{detail}"
            )

    def _finish(self, state: TransactionState, reason: str | None = None) -> list[TrackedResource]:
        self._ensure_open(
            "commit" if state is TransactionState.COMMITTED else "roll back"
        )
        self._state = state
        self._rollback_reason = reason
        resources, self._resources = self._resources, []
        return resources

    def __repr__(self) -> str:
        return f"ResourceTransaction({self._id}, {self._state.value}, resources={len(self._resources)})"


class TransactionManager:
    """Registry of open :class:`ResourceTransaction` objects."""

    def __init__(self) -> None:
        self._active: dict[str, ResourceTransaction] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._operations: dict[str, asyncio.Future[Any]] = {}
        self._committed = 0
        self._rolled_back = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def begin(self, deadline: float | None = None) -> ResourceTransaction:
        """Open a transaction; with *deadline* (seconds) it is force-rolled-back if still open."""
        tx = ResourceTransaction(self, deadline=deadline)
        self._active[tx.id] = tx
        if deadline is not None and deadline > 0:
            loop = asyncio.get_running_loop()
            self._timers[tx.id] = loop.call_later(deadline, self._on_deadline, tx.id)
        logger.debug("transaction_started", transaction_id=tx.id, deadline=deadline)
        return tx

    async def commit(self, tx: ResourceTransaction) -> None:
        """Keep every resource of *tx*, releasing its buffers."""
        resources = tx._finish(TransactionState.COMMITTED)
        self._close(tx)
        _release_buffers(resources)
        self._committed += 1
        logger.debug("transaction_committed", transaction_id=tx.id, resources=len(resources))

    async def rollback(self, tx: ResourceTransaction, reason: str = "Operation failed") -> None:
        """Undo every resource of *tx*; failures are logged and do not stop the others."""
        resources = tx._finish(TransactionState.ROLLED_BACK, reason)
        self._close(tx)
        undo = [r for r in resources if r.kind is not ResourceKind.BUFFER]
        try:
            failures = await settle_all(
                [_undo(r) for r in undo],
                labels=[r.describe() for r in undo],
                event="rollback_step_failed",
            )
        finally:
            _release_buffers(resources)
        self._rolled_back += 1
        logger.warning(
            "transaction_rolled_back",
            transaction_id=tx.id,
            reason=reason,
            resources=len(resources),
            failures=len(failures),
        )

    async def wrap(
        self,
        operation: Callable[[ResourceTransaction], Awaitable[_T]],
        deadline: float | None = None,
    ) -> _T:
        """Run *operation* inside a transaction.

        Commits when *operation* returns; otherwise (exception or
        cancellation) rolls back if still open and re-raises the original
        error.

        *operation* runs as its own task.  When the deadline expires (or
        :meth:`rollback_all` is called) that task is cancelled and the
        rollback runs only once it has settled, so no step of *operation*
        can land after its undo.  The caller then sees
        :class:`TransactionStateError` carrying the reason.
        """
        tx = self.begin(deadline=deadline)
        runner = asyncio.ensure_future(self._run(tx, operation))
        self._operations[tx.id] = runner
        try:
            result = await runner
        except BaseException as exc:
            if tx.is_open:
                await self.rollback(tx, reason=tx.forced_reason or f"{type(exc).__name__}: {exc}")
            if tx.forced_reason is not None and isinstance(exc, asyncio.CancelledError) and runner.cancelled():
                raise _interrupted(tx) from None
            raise
        finally:
            self._operations.pop(tx.id, None)
        if tx.forced_reason is not None:
            # The operation ignored the cancellation and returned anyway.
            if tx.is_open:
                await self.rollback(tx, reason=tx.forced_reason)
            raise _interrupted(tx)
        await self.commit(tx)
        return result

    def get(self, tx_id: str) -> ResourceTransaction | None:
        return self._active.get(tx_id)

    def get_transaction_status(self, tx_id: str) -> TransactionStatus | None:
        tx = self._active.get(tx_id)
        return tx.status() if tx is not None else None

    def get_statistics(self) -> dict[str, Any]:
        """Counters describing open and finished transactions."""
        by_kind = {kind.value: 0 for kind in ResourceKind}
        total = 0
        for tx in self._active.values():
            for res in tx.resources:
                by_kind[res.kind.value] += 1
                total += 1
        return {
            "active_transactions": len(self._active),
            "total_resources": total,
            "resources_by_kind": by_kind,
            "transactions_with_deadline": len(self._timers),
            "committed": self._committed,
            "rolled_back": self._rolled_back,
        }

    async def rollback_all(self, reason: str = "Emergency cleanup") -> int:
        """Roll back every open transaction; returns how many were rolled back."""
        count = 0
        interrupted: list[asyncio.Future[Any]] = []
        current = asyncio.current_task()
        for tx in list(self._active.values()):
            if not tx.is_open:
                continue
            runner = self._operations.get(tx.id)
            if runner is not None and runner is not current and not runner.done():
                tx._forced_reason = reason
                runner.cancel()
                interrupted.append(runner)
            else:
                await self.rollback(tx, reason)
            count += 1
        if interrupted:
            await asyncio.wait(interrupted)
        return count

    def tracked_paths(self) -> set[Path]:
        """Resolved paths of every file tracked by an open transaction."""
        paths: set[Path] = set()
        for tx in self._active.values():
            paths.update(p.resolve() for p in tx.file_paths())
        return paths

    def __len__(self) -> int:
        return len(self._active)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _close(self, tx: ResourceTransaction) -> None:
        self._active.pop(tx.id, None)
        timer = self._timers.pop(tx.id, None)
        if timer is not None:
            timer.cancel()

    def _on_deadline(self, tx_id: str) -> None:
        self._timers.pop(tx_id, None)
        tx = self._active.get(tx_id)
        if tx is None or not tx.is_open:
            return
        logger.warning("transaction_deadline_exceeded", transaction_id=tx_id, deadline=tx.deadline)
        runner = self._operations.get(tx_id)
        if runner is not None and not runner.done():
            tx._forced_reason = DEADLINE_EXCEEDED
            runner.cancel()
            return
        task = asyncio.get_running_loop().create_task(self.rollback(tx, DEADLINE_EXCEEDED))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run(
        self,
        tx: ResourceTransaction,
        operation: Callable[[ResourceTransaction], Awaitable[_T]],
    ) -> _T:
        try:
            return await operation(tx)
        except asyncio.CancelledError:
            if tx.forced_reason is not None and tx.is_open:
                await self.rollback(tx, tx.forced_reason)
            raise


def _interrupted(tx: ResourceTransaction) -> TransactionStateError:
    return TransactionStateError(f"Transaction {tx.id} was rolled back ({tx.forced_reason})")


async def _undo(resource: TrackedResource) -> None:
    if resource.kind in (ResourceKind.TEMP_FILE, ResourceKind.WRITTEN_FILE):
        if resource.path is None:
            raise TransactionStateError(f"Tracked {resource.kind.value} has no path")
        await unlink_if_exists(resource.path)
    elif resource.kind is ResourceKind.METADATA_ROW:
        if resource.store is None or resource.content_id is None:
            raise TransactionStateError(f"Tracked {resource.kind.value} has no store or content id")
        await resource.store.delete(resource.content_id)


def _release_buffers(resources: list[TrackedResource]) -> None:
    for res in resources:
        if res.buffer is not None:
            res.buffer.clear()
