"""
Finance app: accounts receivable / accounts payable sub-ledger.

This app tracks what customers owe the business (receivables) and what the
business owes suppliers (payables), and settles those balances with
payments and credit notes.

Public API (import from finance.services):
    Services:
        LedgerEntryService - Create entries, reduce outstanding, FIFO listing
        InstrumentService - Create payments, credit notes and debit notes
        AllocationService - Manual and automatic allocation
        DocumentNumberService - Reference number sequences

    Singletons:
        ledger, instruments, allocations

Usage:
    from finance.models import CounterpartyType, EntryKind
    from finance.services import allocations, instruments, ledger
    from finance.types import InstrumentRef

    entry = ledger.create_entry(
        kind=EntryKind.RECEIVABLE,
        counterparty_id=customer_id,
        reference_type="INV",
        reference_id=invoice_id,
        amount_cents=10000,
        posted_at=timezone.now(),
    )
    payment = instruments.create_payment(
        direction=PaymentDirection.INBOUND,
        counterparty_type=CounterpartyType.CUSTOMER,
        counterparty_id=customer_id,
        amount_cents=8000,
        paid_at=timezone.now(),
    )
    result = allocations.auto_allocate(InstrumentRef.for_payment(payment.id))

Related apps:
    - core: Base models, exceptions and service base class
"""
