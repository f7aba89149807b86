"""Sync statistics collection.

A SyncRun's ``sync_stats`` map is the externally observable progress
signal. It is merged, never replaced: counters set by one phase survive
later phases, nested per-account maps are merged key by key, and the
error list keeps only the most recent entries.
"""

import copy
from typing import Any

from config import settings
from integrations.exceptions import (
    ProviderAuthError,
    ProviderDataError,
    ProviderRateLimitError,
    TransientProviderError,
    public_error_message,
)
from integrations.provider_protocol import ErrorCategory, ProviderSyncError
from models import SyncRun


ERRORS_KEY = "errors"


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Map an exception onto the coarse category shown to users."""
    if isinstance(exc, ProviderAuthError):
        return ErrorCategory.AUTH
    if isinstance(exc, ProviderRateLimitError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(exc, TransientProviderError):
        return ErrorCategory.CONNECTION
    if isinstance(exc, (ProviderDataError, ValueError, KeyError, TypeError)):
        return ErrorCategory.DATA
    return ErrorCategory.UNKNOWN


def merge_stats(
    existing: dict[str, Any] | None,
    updates: dict[str, Any],
    max_errors: int | None = None,
) -> dict[str, Any]:
    """Merge ``updates`` into ``existing`` and return a new dict.

    - Dict values are merged one level deep.
    - ``errors`` lists are appended, keeping the last ``max_errors``.
    - Everything else is overwritten.
    """
    limit = max_errors if max_errors is not None else settings.MAX_RECORDED_ERRORS
    merged = dict(existing or {})
    for key, value in updates.items():
        if key == ERRORS_KEY:
            combined = list(merged.get(ERRORS_KEY) or []) + list(value or [])
            merged[ERRORS_KEY] = combined[-limit:] if limit > 0 else []
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class SyncStatsCollector:
    """Accumulates statistics for one sync run.

    Counters are cumulative inside the collector. Errors are buffered and
    handed over on :meth:`flush_to`, so flushing at every phase boundary
    never records an error twice.
    """

    def __init__(self):
        self._stats: dict[str, Any] = {}
        self._pending_errors: list[dict[str, Any]] = []

    def increment(self, key: str, by: int = 1) -> None:
        self._stats[key] = self._stats.get(key, 0) + by

    def set(self, **values: Any) -> None:
        self._stats.update(values)

    def get(self, key: str, default: Any = None) -> Any:
        return self._stats.get(key, default)

    def merge_map(self, key: str, values: dict[str, Any]) -> None:
        """Merge per-account values (e.g. ``zero_runs``) under ``key``."""
        current = self._stats.setdefault(key, {})
        current.update(values)

    def add_unique(self, key: str, value: str) -> None:
        """Append ``value`` to a list stat unless already present."""
        values = self._stats.setdefault(key, [])
        if value not in values:
            values.append(value)

    def record_error(
        self,
        error: BaseException | str,
        account_id: str | None = None,
        context: str | None = None,
    ) -> ProviderSyncError:
        """Count an error and buffer its structured form for the SyncRun.

        Only provider errors keep their message; see
        :func:`~integrations.exceptions.public_error_message`.
        """
        if isinstance(error, BaseException):
            sync_error = ProviderSyncError(
                message=public_error_message(error, context),
                category=categorize_error(error),
                account_id=account_id,
                retriable=bool(getattr(error, "retriable", False)),
            )
        else:
            sync_error = ProviderSyncError(message=error, account_id=account_id)
        self.increment("total_errors")
        self._pending_errors.append(sync_error.to_dict())
        return sync_error

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._stats)

    def flush_to(self, sync_run: SyncRun) -> None:
        """Merge collected stats into ``sync_run.sync_stats``.

        A new dict is always assigned so SQLAlchemy sees the JSON change.
        """
        updates = copy.deepcopy(self._stats)
        if self._pending_errors:
            updates[ERRORS_KEY] = self._pending_errors
        sync_run.sync_stats = merge_stats(sync_run.sync_stats, updates)
        self._pending_errors = []
