"""Finance models: ledger entries, settlement instruments, allocations."""

from .instruments import (
    CounterpartyType,
    CreditNote,
    CreditNoteAllocation,
    DebitNote,
    InstrumentType,
    Payment,
    PaymentAllocation,
    PaymentDirection,
    entry_kind_for,
)
from .ledger_entry import EntryKind, LedgerEntry, ReferenceTypes
from .sequence import DocumentSequence, DocumentType

__all__ = [
    "CounterpartyType",
    "CreditNote",
    "CreditNoteAllocation",
    "DebitNote",
    "DocumentSequence",
    "DocumentType",
    "EntryKind",
    "InstrumentType",
    "LedgerEntry",
    "Payment",
    "PaymentAllocation",
    "PaymentDirection",
    "ReferenceTypes",
    "entry_kind_for",
]
