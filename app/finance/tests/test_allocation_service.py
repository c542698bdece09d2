"""
Tests for AllocationService.allocate().

Covers the happy paths for payments and credit notes on both ledger sides,
every rejection in the order it is checked, the entry_settled signal, and
the conflict retry loop.
"""

import uuid
from unittest.mock import patch

import pytest
from django.test import override_settings

from finance.exceptions import (
    AllocationExceedsOutstanding,
    AllocationExceedsRemaining,
    ConcurrentModification,
    CounterpartyMismatch,
    EntryNotFound,
    InstrumentNotFound,
    InvalidAmount,
    StaleRecordError,
)
from finance.locks import lock_for_update
from finance.models import (
    CreditNoteAllocation,
    EntryKind,
    InstrumentType,
    LedgerEntry,
    PaymentAllocation,
)
from finance.signals import entry_settled
from finance.services import AllocationService, LedgerEntryService
from finance.tests.factories import CreditNoteFactory, LedgerEntryFactory, PaymentFactory
from finance.types import InstrumentRef


def _pay(payment):
    return InstrumentRef.for_payment(payment.id)


def _credit(credit_note):
    return InstrumentRef.for_credit_note(credit_note.id)


@pytest.mark.django_db
class TestAllocatePayment:
    def test_partial_allocation(self, customer_payment, receivable):
        record = AllocationService.allocate(_pay(customer_payment), receivable.id, 4000)

        assert record.instrument == _pay(customer_payment)
        assert record.entry_id == receivable.id
        assert record.entry_kind == EntryKind.RECEIVABLE
        assert record.amount_cents == 4000
        assert record.entry_outstanding_cents == 6000
        assert record.instrument_remaining_cents == 6000
        assert record.entry_settled is False

        receivable.refresh_from_db()
        assert receivable.outstanding_cents == 6000
        assert customer_payment.get_remaining_cents() == 6000

        allocation = PaymentAllocation.objects.get(pk=record.allocation_id)
        assert allocation.payment_id == customer_payment.id
        assert allocation.receivable_entry_id == receivable.id
        assert allocation.payable_entry_id is None
        assert allocation.amount_cents == 4000

    def test_bumps_entry_and_instrument_versions(self, customer_payment, receivable):
        AllocationService.allocate(_pay(customer_payment), receivable.id, 100)

        receivable.refresh_from_db()
        customer_payment.refresh_from_db()
        assert receivable.version == 2
        assert customer_payment.version == 2

    def test_exact_settlement(self, customer_payment, receivable):
        record = AllocationService.allocate(_pay(customer_payment), receivable.id, 10000)

        assert record.entry_settled is True
        assert record.instrument_remaining_cents == 0
        receivable.refresh_from_db()
        assert receivable.is_settled

    def test_supplier_payment_settles_payable(self, supplier_payment, payable):
        record = AllocationService.allocate(_pay(supplier_payment), payable.id, 2500)

        allocation = PaymentAllocation.objects.get(pk=record.allocation_id)
        assert record.entry_kind == EntryKind.PAYABLE
        assert allocation.payable_entry_id == payable.id
        assert allocation.receivable_entry_id is None

    def test_successive_allocations_reduce_remaining(self, customer_id, fifo_receivables):
        payment = PaymentFactory(counterparty_id=customer_id, amount_cents=6000)

        AllocationService.allocate(_pay(payment), fifo_receivables[0].id, 3000)
        record = AllocationService.allocate(_pay(payment), fifo_receivables[1].id, 2000)

        assert record.instrument_remaining_cents == 1000
        assert payment.get_remaining_cents() == 1000

    def test_entry_settled_by_several_instruments(self, customer_id, receivable):
        payment = PaymentFactory(counterparty_id=customer_id, amount_cents=6000)
        credit_note = CreditNoteFactory(counterparty_id=customer_id, amount_cents=4000)

        AllocationService.allocate(_pay(payment), receivable.id, 6000)
        record = AllocationService.allocate(_credit(credit_note), receivable.id, 4000)

        assert record.entry_settled is True
        assert receivable.allocated_cents() == 10000


@pytest.mark.django_db
class TestAllocateCreditNote:
    def test_decrements_stored_remaining(self, customer_credit_note, receivable):
        record = AllocationService.allocate(_credit(customer_credit_note), receivable.id, 3000)

        customer_credit_note.refresh_from_db()
        assert customer_credit_note.remaining_cents == 7000
        assert customer_credit_note.version == 2
        assert record.instrument.kind == InstrumentType.CREDIT_NOTE
        assert record.instrument_remaining_cents == 7000
        assert CreditNoteAllocation.objects.filter(credit_note=customer_credit_note).count() == 1

    def test_stored_remaining_matches_allocations(self, customer_credit_note, fifo_receivables):
        for entry in fifo_receivables:
            AllocationService.allocate(_credit(customer_credit_note), entry.id, 1000)

        customer_credit_note.refresh_from_db()
        assert customer_credit_note.remaining_cents == (
            customer_credit_note.amount_cents - customer_credit_note.allocated_cents()
        )

    def test_supplier_credit_note_settles_payable(self, supplier_id, payable):
        credit_note = CreditNoteFactory(supplier=True, counterparty_id=supplier_id)

        record = AllocationService.allocate(_credit(credit_note), payable.id, 500)

        assert record.entry_kind == EntryKind.PAYABLE


@pytest.mark.django_db
class TestAllocateRejections:
    """Rejections leave every balance and table untouched."""

    def _assert_untouched(self, entry, payment=None):
        entry.refresh_from_db()
        assert entry.outstanding_cents == entry.amount_cents
        assert entry.version == 1
        assert PaymentAllocation.objects.count() == 0
        assert CreditNoteAllocation.objects.count() == 0
        if payment is not None:
            payment.refresh_from_db()
            assert payment.version == 1

    @pytest.mark.parametrize("amount", [0, -100, True, 1.5])
    def test_invalid_amount(self, customer_payment, receivable, amount):
        with pytest.raises(InvalidAmount):
            AllocationService.allocate(_pay(customer_payment), receivable.id, amount)

        self._assert_untouched(receivable, customer_payment)

    def test_invalid_amount_checked_before_instrument(self, receivable):
        with pytest.raises(InvalidAmount):
            AllocationService.allocate(InstrumentRef.for_payment(uuid.uuid4()), receivable.id, 0)

    def test_missing_instrument(self, receivable):
        with pytest.raises(InstrumentNotFound):
            AllocationService.allocate(InstrumentRef.for_payment(uuid.uuid4()), receivable.id, 100)

        self._assert_untouched(receivable)

    def test_exceeds_remaining(self, customer_id, receivable):
        payment = PaymentFactory(counterparty_id=customer_id, amount_cents=5000)

        with pytest.raises(AllocationExceedsRemaining) as exc_info:
            AllocationService.allocate(_pay(payment), receivable.id, 6000)

        assert exc_info.value.required == 6000
        assert exc_info.value.available == 5000
        self._assert_untouched(receivable, payment)

    def test_exceeds_remaining_checked_before_entry(self, customer_id):
        payment = PaymentFactory(counterparty_id=customer_id, amount_cents=100)

        with pytest.raises(AllocationExceedsRemaining):
            AllocationService.allocate(_pay(payment), uuid.uuid4(), 200)

    def test_missing_entry(self, customer_payment):
        with pytest.raises(EntryNotFound):
            AllocationService.allocate(_pay(customer_payment), uuid.uuid4(), 100)

    def test_malformed_entry_id(self, customer_payment):
        with pytest.raises(InvalidAmount) as exc_info:
            AllocationService.allocate(_pay(customer_payment), "not-a-uuid", 100)

        assert exc_info.value.error_code == "INVALID_REFERENCE"
        customer_payment.refresh_from_db()
        assert customer_payment.version == 1
        assert PaymentAllocation.objects.count() == 0

    def test_exceeds_outstanding(self, customer_id):
        entry = LedgerEntryFactory(counterparty_id=customer_id, amount_cents=3000)
        payment = PaymentFactory(counterparty_id=customer_id, amount_cents=10000)

        with pytest.raises(AllocationExceedsOutstanding) as exc_info:
            AllocationService.allocate(_pay(payment), entry.id, 3001)

        assert exc_info.value.details["available_cents"] == 3000
        self._assert_untouched(entry, payment)

    def test_settled_entry_rejects_further_allocation(self, customer_payment, receivable):
        AllocationService.allocate(_pay(customer_payment), receivable.id, 10000)
        other = PaymentFactory(counterparty_id=receivable.counterparty_id)

        with pytest.raises(AllocationExceedsOutstanding):
            AllocationService.allocate(_pay(other), receivable.id, 1)

    def test_exceeds_outstanding_checked_before_counterparty(self, customer_payment):
        stranger = LedgerEntryFactory(amount_cents=100)

        with pytest.raises(AllocationExceedsOutstanding):
            AllocationService.allocate(_pay(customer_payment), stranger.id, 200)

    def test_different_counterparty(self, customer_payment):
        stranger = LedgerEntryFactory()

        with pytest.raises(CounterpartyMismatch) as exc_info:
            AllocationService.allocate(_pay(customer_payment), stranger.id, 100)

        assert exc_info.value.details["entry_counterparty_id"] == str(stranger.counterparty_id)
        self._assert_untouched(stranger, customer_payment)

    def test_customer_payment_cannot_settle_payable(self, customer_id, customer_payment):
        payable = LedgerEntryFactory(payable=True, counterparty_id=customer_id)

        with pytest.raises(CounterpartyMismatch):
            AllocationService.allocate(_pay(customer_payment), payable.id, 100)

    def test_supplier_credit_note_cannot_settle_receivable(self, customer_id, receivable):
        credit_note = CreditNoteFactory(supplier=True, counterparty_id=customer_id)

        with pytest.raises(CounterpartyMismatch):
            AllocationService.allocate(_credit(credit_note), receivable.id, 100)

        credit_note.refresh_from_db()
        assert credit_note.remaining_cents == credit_note.amount_cents


@pytest.mark.django_db
class TestEntrySettledSignal:
    def test_sent_after_commit_when_entry_reaches_zero(
        self, customer_payment, receivable, settled_events, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            AllocationService.allocate(_pay(customer_payment), receivable.id, 10000)

        assert settled_events == [
            {
                "entry_id": receivable.id,
                "kind": EntryKind.RECEIVABLE,
                "reference_type": receivable.reference_type,
                "reference_id": receivable.reference_id,
            }
        ]

    def test_not_sent_before_commit(
        self, customer_payment, receivable, settled_events, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            AllocationService.allocate(_pay(customer_payment), receivable.id, 10000)

        assert settled_events == []
        assert len(callbacks) == 1

    def test_not_sent_for_partial_allocation(
        self, customer_payment, receivable, settled_events, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            AllocationService.allocate(_pay(customer_payment), receivable.id, 9999)

        assert callbacks == []
        assert settled_events == []

    def test_failing_receiver_does_not_break_allocation(
        self, customer_payment, receivable, django_capture_on_commit_callbacks, caplog
    ):
        def broken_receiver(sender, **kwargs):
            raise RuntimeError("invoice service down")

        entry_settled.connect(broken_receiver, sender=LedgerEntry, weak=False)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                record = AllocationService.allocate(_pay(customer_payment), receivable.id, 10000)
        finally:
            entry_settled.disconnect(broken_receiver, sender=LedgerEntry)

        assert record.entry_settled is True
        assert "invoice service down" in caplog.text


@pytest.mark.django_db
class TestAllocateRetries:
    """StaleRecordError retries the whole transaction; business errors do not."""

    def test_retries_after_stale_version(self, customer_payment, receivable):
        real_reduce = LedgerEntryService.reduce_outstanding
        calls = []

        def flaky_reduce(entry_id, amount_cents, expected_version=None):
            calls.append(expected_version)
            if len(calls) == 1:
                raise StaleRecordError("modified concurrently")
            return real_reduce(entry_id, amount_cents, expected_version=expected_version)

        with patch.object(LedgerEntryService, "reduce_outstanding", side_effect=flaky_reduce):
            record = AllocationService.allocate(_pay(customer_payment), receivable.id, 2500)

        assert len(calls) == 2
        assert record.entry_outstanding_cents == 7500
        # The first attempt's allocation row was rolled back
        assert PaymentAllocation.objects.count() == 1

    @override_settings(FINANCE_ALLOCATION_MAX_ATTEMPTS=4)
    def test_gives_up_after_max_attempts(self, customer_payment, receivable):
        with patch.object(
            LedgerEntryService,
            "reduce_outstanding",
            side_effect=StaleRecordError("always stale"),
        ) as reduce_mock:
            with pytest.raises(ConcurrentModification) as exc_info:
                AllocationService.allocate(_pay(customer_payment), receivable.id, 2500)

        assert reduce_mock.call_count == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.error_code == "CONCURRENT_MODIFICATION"
        assert PaymentAllocation.objects.count() == 0
        receivable.refresh_from_db()
        assert receivable.outstanding_cents == 10000

    def test_business_errors_are_not_retried(self, customer_payment):
        stranger = LedgerEntryFactory()

        with patch(
            "finance.services.allocation_service.lock_for_update",
            wraps=lock_for_update,
        ) as lock_mock:
            with pytest.raises(CounterpartyMismatch):
                AllocationService.allocate(_pay(customer_payment), stranger.id, 100)

        # One instrument lock and one entry lock, no second attempt
        assert lock_mock.call_count == 2
