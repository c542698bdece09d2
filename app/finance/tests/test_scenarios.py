"""
End-to-end settlement workflows.

Each test walks one business flow through the public services, from
posting entries to checking the final balances. Amounts are in whole
currency units for readability (x100 for cents).
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from finance.exceptions import AllocationExceedsOutstanding, CounterpartyMismatch
from finance.models import (
    CounterpartyType,
    CreditNoteAllocation,
    EntryKind,
    LedgerEntry,
    PaymentAllocation,
    PaymentDirection,
    ReferenceTypes,
)
from finance.services import AllocationService, InstrumentService, LedgerEntryService
from finance.types import InstrumentRef


def _receivable(customer_id, amount, posted_at):
    return LedgerEntryService.create_entry(
        kind=EntryKind.RECEIVABLE,
        counterparty_id=customer_id,
        reference_type=ReferenceTypes.SALES_INVOICE,
        reference_id=uuid.uuid4(),
        amount_cents=amount * 100,
        posted_at=posted_at,
    )


def _customer_payment(customer_id, amount):
    return InstrumentService.create_payment(
        direction=PaymentDirection.INBOUND,
        counterparty_type=CounterpartyType.CUSTOMER,
        counterparty_id=customer_id,
        amount_cents=amount * 100,
        paid_at=timezone.now(),
    )


@pytest.mark.django_db
class TestSettlementScenarios:
    def test_payment_fully_settles_invoice(
        self, customer_id, settled_events, django_capture_on_commit_callbacks
    ):
        entry = _receivable(customer_id, 100, timezone.now())
        payment = _customer_payment(customer_id, 100)

        with django_capture_on_commit_callbacks(execute=True):
            AllocationService.allocate(
                InstrumentRef.for_payment(payment.id), entry.id, 100 * 100
            )

        entry.refresh_from_db()
        assert entry.outstanding_cents == 0
        assert [event["entry_id"] for event in settled_events] == [entry.id]

    def test_auto_allocation_settles_oldest_first(self, customer_id):
        t1 = timezone.now() - timedelta(days=10)
        t2 = timezone.now() - timedelta(days=5)
        e1 = _receivable(customer_id, 60, t1)
        e2 = _receivable(customer_id, 50, t2)
        payment = _customer_payment(customer_id, 80)
        ref = InstrumentRef.for_payment(payment.id)

        result = AllocationService.auto_allocate(ref)

        assert [(r.entry_id, r.amount_cents) for r in result.allocations] == [
            (e1.id, 6000),
            (e2.id, 2000),
        ]
        e1.refresh_from_db()
        e2.refresh_from_db()
        assert e1.outstanding_cents == 0
        assert e2.outstanding_cents == 3000
        assert InstrumentService.remaining_capacity(ref) == 0

    def test_supplier_credit_note_cannot_settle_customer_invoice(self, customer_id, supplier_id):
        entry = _receivable(customer_id, 100, timezone.now())
        credit_note = InstrumentService.create_credit_note(
            counterparty_type=CounterpartyType.SUPPLIER,
            counterparty_id=supplier_id,
            amount_cents=40 * 100,
            issued_at=timezone.now(),
        )

        with pytest.raises(CounterpartyMismatch):
            AllocationService.allocate(
                InstrumentRef.for_credit_note(credit_note.id), entry.id, 40 * 100
            )

        credit_note.refresh_from_db()
        assert credit_note.remaining_cents == 4000
        assert CreditNoteAllocation.objects.count() == 0

    def test_allocation_above_payable_outstanding_rejected(self, supplier_id):
        entry = LedgerEntryService.create_entry(
            kind=EntryKind.PAYABLE,
            counterparty_id=supplier_id,
            reference_type=ReferenceTypes.SUPPLIER_INVOICE,
            reference_id=uuid.uuid4(),
            amount_cents=30 * 100,
            posted_at=timezone.now(),
        )
        payment = InstrumentService.create_payment(
            direction=PaymentDirection.OUTBOUND,
            counterparty_type=CounterpartyType.SUPPLIER,
            counterparty_id=supplier_id,
            amount_cents=100 * 100,
            paid_at=timezone.now(),
        )

        with pytest.raises(AllocationExceedsOutstanding):
            AllocationService.allocate(
                InstrumentRef.for_payment(payment.id), entry.id, 50 * 100
            )

        entry.refresh_from_db()
        assert entry.outstanding_cents == 3000

    def test_second_allocation_for_same_balance_rejected(self, customer_id):
        entry = _receivable(customer_id, 100, timezone.now())
        first = _customer_payment(customer_id, 70)
        second = _customer_payment(customer_id, 70)

        AllocationService.allocate(InstrumentRef.for_payment(first.id), entry.id, 7000)
        with pytest.raises(AllocationExceedsOutstanding):
            AllocationService.allocate(InstrumentRef.for_payment(second.id), entry.id, 7000)

        entry.refresh_from_db()
        assert entry.outstanding_cents == 3000
        assert PaymentAllocation.objects.count() == 1

    def test_debit_note_raises_what_customer_owes(self, customer_id):
        note = InstrumentService.create_debit_note(
            counterparty_type=CounterpartyType.CUSTOMER,
            counterparty_id=customer_id,
            amount_cents=25 * 100,
            issued_at=timezone.now(),
        )

        entries = LedgerEntry.objects.filter(counterparty_id=customer_id)
        assert entries.count() == 1
        entry = entries.get()
        assert entry == note.ledger_entry
        assert entry.kind == EntryKind.RECEIVABLE
        assert entry.outstanding_cents == 2500
        assert entry.allocated_cents() == 0

    def test_credit_note_then_payment_clear_account(self, customer_id):
        invoices = [
            _receivable(customer_id, amount, timezone.now() - timedelta(days=days))
            for amount, days in [(120, 30), (80, 20)]
        ]
        credit_note = InstrumentService.create_credit_note(
            counterparty_type=CounterpartyType.CUSTOMER,
            counterparty_id=customer_id,
            amount_cents=50 * 100,
            issued_at=timezone.now(),
        )
        payment = _customer_payment(customer_id, 200)

        AllocationService.auto_allocate(InstrumentRef.for_credit_note(credit_note.id))
        result = AllocationService.auto_allocate(InstrumentRef.for_payment(payment.id))

        assert result.total_allocated_cents == 15000
        assert LedgerEntryService.list_outstanding(EntryKind.RECEIVABLE, customer_id).count() == 0
        assert payment.get_remaining_cents() == 5000
        for invoice in invoices:
            invoice.refresh_from_db()
            assert invoice.outstanding_cents == 0
