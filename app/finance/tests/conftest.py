"""
Pytest fixtures for finance tests.

Fixtures provide one customer and one supplier with open entries and
instruments, so most tests read as "allocate X from Y to Z".

Usage:
    def test_partial_payment(customer_payment, receivable):
        record = AllocationService.allocate(
            InstrumentRef.for_payment(customer_payment.id), receivable.id, 4000
        )
        assert record.entry_outstanding_cents == 6000
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from finance.models import LedgerEntry
from finance.signals import entry_settled
from finance.tests.factories import (
    CreditNoteFactory,
    LedgerEntryFactory,
    PaymentFactory,
)

# =============================================================================
# Counterparties
# =============================================================================


@pytest.fixture
def customer_id():
    return uuid.uuid4()


@pytest.fixture
def supplier_id():
    return uuid.uuid4()


# =============================================================================
# Ledger Entry Fixtures
# =============================================================================


@pytest.fixture
def receivable(db, customer_id):
    """Open receivable of 10000 cents for the customer."""
    return LedgerEntryFactory(counterparty_id=customer_id, amount_cents=10000)


@pytest.fixture
def payable(db, supplier_id):
    """Open payable of 10000 cents to the supplier."""
    return LedgerEntryFactory(
        payable=True, counterparty_id=supplier_id, amount_cents=10000
    )


@pytest.fixture
def fifo_receivables(db, customer_id):
    """
    Three open receivables for the customer, oldest first.

    Amounts: 3000, 5000, 2000 cents.
    """
    now = timezone.now()
    return [
        LedgerEntryFactory(
            counterparty_id=customer_id,
            amount_cents=amount,
            posted_at=now - timedelta(days=days_ago),
        )
        for amount, days_ago in [(3000, 3), (5000, 2), (2000, 1)]
    ]


# =============================================================================
# Instrument Fixtures
# =============================================================================


@pytest.fixture
def customer_payment(db, customer_id):
    """Inbound customer payment of 10000 cents."""
    return PaymentFactory(counterparty_id=customer_id, amount_cents=10000)


@pytest.fixture
def supplier_payment(db, supplier_id):
    """Outbound supplier payment of 10000 cents."""
    return PaymentFactory(supplier=True, counterparty_id=supplier_id, amount_cents=10000)


@pytest.fixture
def customer_credit_note(db, customer_id):
    """Unallocated customer credit note of 10000 cents."""
    return CreditNoteFactory(counterparty_id=customer_id, amount_cents=10000)


# =============================================================================
# Signal Fixtures
# =============================================================================


@pytest.fixture
def settled_events():
    """
    Collect entry_settled signals for the duration of a test.

    Returns the list the receiver appends to; each item is the signal's
    kwargs without the signal itself.
    """
    received = []

    def receiver(sender, **kwargs):
        kwargs.pop("signal", None)
        received.append(kwargs)

    entry_settled.connect(receiver, sender=LedgerEntry, weak=False)
    yield received
    entry_settled.disconnect(receiver, sender=LedgerEntry)
