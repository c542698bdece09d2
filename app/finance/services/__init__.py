"""
Finance service layer.

All ledger and allocation writes go through these services.

Usage:
    from finance.services import allocations, instruments, ledger
"""

from .allocation_service import AllocationService, allocations
from .instrument_service import InstrumentService, instruments
from .ledger_service import LedgerEntryService, ledger
from .numbering import DocumentNumberService

__all__ = [
    "AllocationService",
    "DocumentNumberService",
    "InstrumentService",
    "LedgerEntryService",
    "allocations",
    "instruments",
    "ledger",
]
