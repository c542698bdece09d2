"""
Concurrency control utilities for allocation operations.

Two complementary mechanisms protect every balance change:

1. **Row locks** (lock_for_update)
   - select_for_update inside the allocating transaction
   - Instrument row first, then entry row, always in that order

2. **Version-guarded writes + retry** (retry_on_conflict)
   - Balance updates are conditional UPDATEs on the version read under lock
   - A mismatch raises StaleRecordError and the whole transaction is retried
   - Deadlocks, serialization failures and lock timeouts are retried the
     same way; other OperationalErrors propagate

Usage:
    from finance.locks import lock_for_update, retry_on_conflict

    @retry_on_conflict()
    def _step(...):
        with transaction.atomic():
            payment = lock_for_update(Payment, payment_id)
            entry = lock_for_update(LedgerEntry, entry_id)
            ...

Note:
    On SQLite select_for_update is a no-op and the database serialises
    writers itself; the version guards still hold.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, TypeVar

from django.conf import settings
from django.db import OperationalError, models

from finance.exceptions import ConcurrentModification, StaleRecordError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=models.Model)

# PostgreSQL serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

RETRYABLE_MESSAGES = (
    "deadlock detected",
    "could not serialize access",
    "could not obtain lock",
    "lock timeout",
    "database is locked",
    "database table is locked",
)


def is_retryable(exc: Exception) -> bool:
    """
    Whether an error means the transaction lost a race and may be retried.

    Stale versions always are. Database OperationalErrors only when they
    report a deadlock, serialization failure or lock wait; a dropped
    connection or a missing table is not a conflict.
    """
    if isinstance(exc, StaleRecordError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGES)


def lock_for_update(model_class: type[T], pk: Any) -> T | None:
    """
    Lock a row for the rest of the current transaction.

    Args:
        model_class: Django model class
        pk: Primary key of the record

    Returns:
        The locked instance, or None if no such row exists

    Note:
        Must be called within transaction.atomic().
    """
    return model_class.objects.select_for_update().filter(pk=pk).first()


def retry_on_conflict(
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> Callable:
    """
    Retry a transactional operation that lost a race.

    The wrapped function must open its own transaction so each attempt
    starts from fresh reads. Only errors accepted by is_retryable() are
    retried; business and other database errors propagate on the first
    attempt.

    Args:
        max_attempts: Total attempts (default FINANCE_ALLOCATION_MAX_ATTEMPTS)
        backoff_seconds: Base sleep between attempts, multiplied by the
            attempt number (default FINANCE_ALLOCATION_RETRY_BACKOFF_MS)

    Raises:
        ConcurrentModification: When the last attempt also conflicts

    Example:
        @retry_on_conflict(max_attempts=5)
        def bump(pk):
            with transaction.atomic():
                ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts = max_attempts or settings.FINANCE_ALLOCATION_MAX_ATTEMPTS
            backoff = (
                backoff_seconds
                if backoff_seconds is not None
                else settings.FINANCE_ALLOCATION_RETRY_BACKOFF_MS / 1000
            )

            last_error: Exception | None = None
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except (StaleRecordError, OperationalError) as exc:
                    if not is_retryable(exc):
                        raise
                    last_error = exc
                    if attempt == attempts:
                        break
                    logger.warning(
                        f"Conflict in {func.__name__} "
                        f"(attempt {attempt}/{attempts}): {exc}"
                    )
                    if backoff:
                        time.sleep(backoff * attempt)

            logger.error(
                f"Giving up on {func.__name__} after {attempts} attempts: {last_error}"
            )
            raise ConcurrentModification(
                f"{func.__name__} conflicted with concurrent updates "
                f"after {attempts} attempts",
                attempts=attempts,
            ) from last_error

        return wrapper

    return decorator


__all__ = [
    "is_retryable",
    "lock_for_update",
    "retry_on_conflict",
]
