"""Quota arithmetic for the managed content directory.

The tracker is pure: it is handed the current usage and decides.  Reading
usage (directory counters, timeouts, error tolerance) is the content
manager's job.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from docvault.models.content import LimitsSummary, StorageLimitStatus
from docvault.models.transaction import StorageQuota
from docvault.utils.errors import StorageLimitExceededError
from docvault.utils.sizes import format_bytes, to_megabytes

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of an admitted :meth:`StorageQuotaTracker.check`."""

    current_percent: float
    projected_percent: float
    # True only when this addition moves usage across the warning line.
    warning_triggered: bool


class StorageQuotaTracker:
    """Applies a :class:`StorageQuota` to usage figures."""

    def __init__(self, quota: StorageQuota) -> None:
        self._quota = quota

    @property
    def quota(self) -> StorageQuota:
        return self._quota

    def usage_percent(self, current_bytes: int) -> float:
        return current_bytes / self._quota.max_bytes * 100

    def check(self, current_bytes: int, incoming_bytes: int) -> QuotaDecision:
        """Admit or reject *incoming_bytes* on top of *current_bytes*.

        Raises
        ------
        StorageLimitExceededError
            If the projected usage exceeds the error threshold.
        """
        current_pct = self.usage_percent(current_bytes)
        projected_pct = self.usage_percent(current_bytes + incoming_bytes)

        if projected_pct > self._quota.error_threshold_pct:
            raise StorageLimitExceededError(
                current_bytes=current_bytes,
                limit_bytes=self._quota.max_bytes,
                incoming_bytes=incoming_bytes,
            )

        warn = self._quota.warn_threshold_pct
        warning_triggered = projected_pct > warn and current_pct <= warn
        if warning_triggered:
            logger.warning(
                "storage_warning",
                projected_percent=round(projected_pct),
                current_percent=round(current_pct),
                current=format_bytes(current_bytes),
                limit=format_bytes(self._quota.max_bytes),
                hint="Consider running cleanup operations to free space",
            )
        return QuotaDecision(
            current_percent=current_pct,
            projected_percent=projected_pct,
            warning_triggered=warning_triggered,
        )

    def limit_status(self, current_bytes: int) -> StorageLimitStatus:
        """Summarise *current_bytes* against the quota with recommendations."""
        pct = self.usage_percent(current_bytes)
        near_warning = pct >= self._quota.warn_threshold_pct
        near_error = pct >= self._quota.error_threshold_pct

        if near_error:
            recommendations = [
                "URGENT: Storage is critically full - new content will be rejected",
                "Run cleanup operations immediately: remove_orphaned_files() and remove_duplicate_content()",
                "Consider increasing storage limits or removing unused content",
            ]
        elif near_warning:
            recommendations = [
                "WARNING: Storage is getting full",
                "Consider running cleanup operations: remove_orphaned_files() and remove_duplicate_content()",
                "Monitor storage usage closely",
            ]
        elif pct > 50:
            recommendations = [
                "Storage is over 50% full",
                "Regular cleanup operations recommended",
            ]
        else:
            recommendations = ["Storage usage is healthy"]

        return StorageLimitStatus(
            current_usage_percent=round(pct, 2),
            is_near_warning_threshold=near_warning,
            is_near_error_threshold=near_error,
            can_accept_content=not near_error,
            recommendations=recommendations,
            limits=LimitsSummary(
                warning_threshold=self._quota.warn_threshold_pct,
                error_threshold=self._quota.error_threshold_pct,
                max_size_mb=to_megabytes(self._quota.max_bytes),
                current_size_mb=to_megabytes(current_bytes),
                remaining_size_mb=to_megabytes(max(0, self._quota.max_bytes - current_bytes)),
            ),
        )
