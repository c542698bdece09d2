"""
Data types for ledger and allocation operations.

Types:
    Money: A monetary amount in cents
    InstrumentRef: Tagged reference to an allocatable instrument
    SourceReference: Optional originating document of a note
    AllocationRecord: Outcome of one committed allocation
    AutoAllocationResult: Outcome of an auto-allocation run

Usage:
    from finance.types import InstrumentRef

    ref = InstrumentRef.for_payment(payment.id)
    record = allocations.allocate(ref, entry.id, 5000)
    print(record.entry_outstanding_cents)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from finance.models import EntryKind, InstrumentType
from finance.validators import require_uuid

if TYPE_CHECKING:
    from finance.exceptions import ConcurrentModification


@dataclass(frozen=True)
class Money:
    """
    A monetary amount in the ledger's single currency.

    All amounts are stored in cents to avoid floating-point precision
    issues.

    Example:
        amount = Money(cents=5000)
        print(amount)  # "50.00"
    """

    cents: int

    def __str__(self) -> str:
        """Format with two decimal places (e.g., '50.00')."""
        sign = "-" if self.cents < 0 else ""
        whole, fraction = divmod(abs(self.cents), 100)
        return f"{sign}{whole}.{fraction:02d}"


@dataclass(frozen=True)
class InstrumentRef:
    """
    Reference to a payment or credit note.

    Both kinds expose remaining capacity and can be allocated. Debit notes
    only post ledger entries, so they have no reference kind here and are
    rejected at construction.

    Attributes:
        kind: InstrumentType value
        id: Instrument UUID

    Raises:
        ValueError: Unknown kind (including 'debit_note')
        InvalidAmount: Malformed id (error_code INVALID_REFERENCE)
    """

    kind: InstrumentType
    id: uuid.UUID

    def __post_init__(self) -> None:
        if self.kind == "debit_note":
            raise ValueError("Debit notes cannot be allocated")
        object.__setattr__(self, "kind", InstrumentType(self.kind))
        object.__setattr__(self, "id", require_uuid(self.id, "instrument_id"))

    @classmethod
    def for_payment(cls, payment_id: uuid.UUID | str) -> InstrumentRef:
        return cls(kind=InstrumentType.PAYMENT, id=payment_id)

    @classmethod
    def for_credit_note(cls, credit_note_id: uuid.UUID | str) -> InstrumentRef:
        return cls(kind=InstrumentType.CREDIT_NOTE, id=credit_note_id)

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


@dataclass(frozen=True)
class SourceReference:
    """Originating document of a credit or debit note (e.g., a return)."""

    reference_type: str
    reference_id: uuid.UUID


@dataclass(frozen=True)
class AllocationRecord:
    """
    A committed allocation and the balances it left behind.

    Attributes:
        allocation_id: ID of the PaymentAllocation / CreditNoteAllocation row
        instrument: Instrument the value came from
        entry_id: Ledger entry that was settled (fully or partly)
        entry_kind: Receivable or payable
        amount_cents: Amount transferred
        entry_outstanding_cents: Entry outstanding after the allocation
        instrument_remaining_cents: Instrument remaining after the allocation
    """

    allocation_id: uuid.UUID
    instrument: InstrumentRef
    entry_id: uuid.UUID
    entry_kind: EntryKind
    amount_cents: int
    entry_outstanding_cents: int
    instrument_remaining_cents: int

    @property
    def entry_settled(self) -> bool:
        return self.entry_outstanding_cents == 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "allocation_id": str(self.allocation_id),
            "instrument_type": str(self.instrument.kind),
            "instrument_id": str(self.instrument.id),
            "entry_id": str(self.entry_id),
            "entry_kind": str(self.entry_kind),
            "amount_cents": self.amount_cents,
            "entry_outstanding_cents": self.entry_outstanding_cents,
            "instrument_remaining_cents": self.instrument_remaining_cents,
        }


@dataclass
class AutoAllocationResult:
    """
    Outcome of auto_allocate().

    Attributes:
        allocations: Committed allocations in FIFO order
        error: ConcurrentModification if the run stopped on a conflict,
            None if it ran to completion
    """

    allocations: list[AllocationRecord] = field(default_factory=list)
    error: ConcurrentModification | None = None

    @property
    def total_allocated_cents(self) -> int:
        return sum(record.amount_cents for record in self.allocations)

    @property
    def is_complete(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "allocations": [record.to_dict() for record in self.allocations],
            "total_allocated_cents": self.total_allocated_cents,
        }
