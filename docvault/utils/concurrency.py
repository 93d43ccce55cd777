"""Timeout and settle-all helpers shared by the storage services.

Two patterns are exposed:

1. **with_timeout** -- bounds a single awaitable and converts
   ``asyncio.TimeoutError`` into :class:`OperationTimeoutError` so callers
   can tell a slow disk apart from a business rule violation.

2. **settle_all** -- a thin wrapper over
   ``asyncio.gather(..., return_exceptions=True)`` used by rollback and
   cleanup paths where every step must run even if an earlier one fails.
   Failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

import structlog

from docvault.utils.errors import OperationTimeoutError

_T = TypeVar("_T")

logger = structlog.get_logger(logger_name=__name__)


async def with_timeout(
    awaitable: Awaitable[_T],
    seconds: float | None,
    description: str,
) -> _T:
    """Await *awaitable*, failing with :class:`OperationTimeoutError` after *seconds*.

    Parameters
    ----------
    awaitable:
        The coroutine or future to bound.
    seconds:
        Timeout in seconds.  ``None`` or a non-positive value disables the
        bound and simply awaits.
    description:
        Human-readable name of the step ("metadata insert", "file hash" ...),
        carried by the raised error.

    Returns
    -------
    _T
        Whatever *awaitable* produces.
    """
    if seconds is None or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise OperationTimeoutError(description, seconds) from exc


async def settle_all(
    aws: list[Awaitable[Any]],
    labels: list[str] | None = None,
    event: str = "settle_step_failed",
) -> list[BaseException]:
    """Run every awaitable to completion and return the failures.

    Parameters
    ----------
    aws:
        Awaitables to run concurrently.
    labels:
        Optional label per awaitable, included in the warning log for each
        failure.
    event:
        Log event name used for failures.

    Returns
    -------
    list[BaseException]
        The exceptions raised by failing awaitables, in input order.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    failures: list[BaseException] = []
    for idx, result in enumerate(results):
        if isinstance(result, BaseException):
            label = labels[idx] if labels and idx < len(labels) else str(idx)
            logger.warning(event, step=label, error=str(result))
            failures.append(result)
    return failures
