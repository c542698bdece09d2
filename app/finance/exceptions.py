"""
Finance-specific exceptions for ledger and allocation operations.

Exception Hierarchy:
    FinanceError (base for finance domain)
    ├── InvalidAmount - Non-positive amount, blank reference, naive timestamp
    ├── EntryNotFound - Ledger entry lookup failures
    ├── InstrumentNotFound - Payment / credit note lookup failures
    ├── AllocationExceedsRemaining - Instrument lacks remaining capacity
    ├── InsufficientOutstanding - Entry outstanding below requested reduction
    │   └── AllocationExceedsOutstanding - Same, raised by the allocation engine
    ├── CounterpartyMismatch - Instrument and entry belong to different parties
    ├── DuplicateReferenceNumber - Reference number already used
    └── ConcurrentModification - Conflict retries exhausted

    StaleRecordError - Version check failed (inherits ConflictError, retried)

Usage:
    from finance.exceptions import AllocationExceedsOutstanding, FinanceError

    if amount_cents > entry.outstanding_cents:
        raise AllocationExceedsOutstanding(
            entry.id, required=amount_cents, available=entry.outstanding_cents
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


class FinanceError(BaseApplicationError):
    """
    Base exception for all finance operations.

    Example:
        try:
            allocations.allocate(ref, entry_id, amount_cents)
        except FinanceError as e:
            logger.error(f"Allocation failed: {e}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "FINANCE_ERROR"


class InvalidAmount(FinanceError):
    """
    Raised when an amount or other scalar input is unusable.

    Also used with error_code INVALID_REFERENCE for a blank reference_type
    and INVALID_TIMESTAMP for naive datetimes.
    """

    default_error_code: str = "INVALID_AMOUNT"


class EntryNotFound(FinanceError):
    """Raised when a ledger entry cannot be found."""

    default_error_code: str = "ENTRY_NOT_FOUND"


class InstrumentNotFound(FinanceError):
    """Raised when a payment or credit note cannot be found."""

    default_error_code: str = "INSTRUMENT_NOT_FOUND"


class _AmountShortfall(FinanceError):
    """
    Shared shape for "asked for more than is there" errors.

    Attributes:
        subject_id: Entry or instrument that fell short
        required: Amount (in cents) that was requested
        available: Amount (in cents) that was available
    """

    subject_label: str = "Record"

    def __init__(
        self,
        subject_id: Any,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.subject_id = subject_id
        self.required = required
        self.available = available

        message = (
            f"{self.subject_label} {subject_id} cannot cover the request: "
            f"required {required} cents, available {available} cents"
        )
        full_details = {
            "id": str(subject_id),
            "required_cents": required,
            "available_cents": available,
        }
        if details:
            full_details.update(details)

        super().__init__(message=message, error_code=error_code, details=full_details)


class AllocationExceedsRemaining(_AmountShortfall):
    """Raised when an allocation asks for more than the instrument has left."""

    default_error_code: str = "ALLOCATION_EXCEEDS_REMAINING"
    subject_label = "Instrument"


class InsufficientOutstanding(_AmountShortfall):
    """Raised when a reduction exceeds an entry's outstanding balance."""

    default_error_code: str = "INSUFFICIENT_OUTSTANDING"
    subject_label = "Ledger entry"


class AllocationExceedsOutstanding(InsufficientOutstanding):
    """Raised when an allocation asks for more than the entry has outstanding."""

    default_error_code: str = "ALLOCATION_EXCEEDS_OUTSTANDING"


class DuplicateReferenceNumber(FinanceError):
    """Raised when a caller-supplied reference number is already taken."""

    default_error_code: str = "DUPLICATE_REFERENCE_NUMBER"


class CounterpartyMismatch(FinanceError):
    """
    Raised when an instrument and an entry do not belong together.

    Covers a different counterparty id, and an instrument side that does
    not match the entry kind (customer instruments settle receivables,
    supplier instruments settle payables).
    """

    default_error_code: str = "COUNTERPARTY_MISMATCH"


class ConcurrentModification(FinanceError):
    """
    Raised when an operation keeps losing races after bounded retries.

    Attributes:
        attempts: Number of attempts made before giving up
    """

    default_error_code: str = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        message: str,
        attempts: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.attempts = attempts
        full_details = {"attempts": attempts}
        if details:
            full_details.update(details)
        super().__init__(message=message, error_code=error_code, details=full_details)


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when a version-guarded update matched no row.

    The record was modified by another transaction between read and write.
    retry_on_conflict() retries the whole operation when it sees this, so it
    never reaches callers of the public API.
    """

    default_error_code: str = "STALE_RECORD"
