"""
Concurrent allocation tests.

These run real transactions from several threads against the same rows
and check that no entry is overdrawn and no instrument is over-allocated.
The two-way race runs on every backend: on SQLite the loser sees a
locked database and retries. The many-thread tests need real row locks
and only run on PostgreSQL.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest
from django.db import connection

from finance.exceptions import (
    AllocationExceedsOutstanding,
    AllocationExceedsRemaining,
    ConcurrentModification,
)
from finance.models import LedgerEntry, Payment, PaymentAllocation
from finance.services import AllocationService
from finance.tests.factories import LedgerEntryFactory, PaymentFactory
from finance.types import InstrumentRef

pytestmark = pytest.mark.django_db(transaction=True)

requires_row_locks = pytest.mark.skipif(
    connection.vendor != "postgresql",
    reason="row-level locking requires PostgreSQL",
)


def _run_concurrently(calls):
    """
    Run callables in parallel threads, released together by a barrier.

    Returns a list of (result, exception) pairs in completion order.
    """
    barrier = threading.Barrier(len(calls))

    def run(call):
        try:
            barrier.wait()
            return call(), None
        except Exception as exc:
            return None, exc
        finally:
            connection.close()

    outcomes = []
    with ThreadPoolExecutor(max_workers=len(calls)) as executor:
        futures = [executor.submit(run, call) for call in calls]
        for future in as_completed(futures):
            outcomes.append(future.result())
    return outcomes


@pytest.fixture
def retry_with_backoff(settings):
    """Give racing threads room to retry instead of failing in lockstep."""
    settings.FINANCE_ALLOCATION_MAX_ATTEMPTS = 10
    settings.FINANCE_ALLOCATION_RETRY_BACKOFF_MS = 20


class TestAllocationRace:
    def test_two_instruments_race_for_one_entry(self, retry_with_backoff):
        entry = LedgerEntryFactory(amount_cents=10000)
        payments = [
            PaymentFactory(counterparty_id=entry.counterparty_id, amount_cents=7000)
            for _ in range(2)
        ]

        outcomes = _run_concurrently(
            [
                lambda p=p: AllocationService.allocate(
                    InstrumentRef.for_payment(p.id), entry.id, 7000
                )
                for p in payments
            ]
        )

        successes = [result for result, error in outcomes if error is None]
        errors = [error for _, error in outcomes if error is not None]
        assert len(successes) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], (AllocationExceedsOutstanding, ConcurrentModification))

        entry.refresh_from_db()
        assert entry.outstanding_cents == 3000
        assert entry.allocated_cents() == 7000
        assert PaymentAllocation.objects.filter(receivable_entry=entry).count() == 1


@requires_row_locks
class TestConcurrentAllocation:
    def test_one_payment_spread_over_many_entries(self):
        payment = PaymentFactory(amount_cents=5000)
        entries = [
            LedgerEntryFactory(counterparty_id=payment.counterparty_id, amount_cents=1000)
            for _ in range(8)
        ]

        outcomes = _run_concurrently(
            [
                lambda e=e: AllocationService.allocate(
                    InstrumentRef.for_payment(payment.id), e.id, 1000
                )
                for e in entries
            ]
        )

        successes = [result for result, error in outcomes if error is None]
        errors = [error for _, error in outcomes if error is not None]
        assert len(successes) == 5
        assert all(
            isinstance(error, (AllocationExceedsRemaining, ConcurrentModification))
            for error in errors
        )

        payment = Payment.objects.get(pk=payment.pk)
        assert payment.get_remaining_cents() == 0
        assert PaymentAllocation.objects.filter(payment=payment).count() == 5

    def test_concurrent_auto_allocations_never_overdraw(self):
        counterparty = LedgerEntryFactory(amount_cents=4000).counterparty_id
        for amount in (3000, 2500):
            LedgerEntryFactory(counterparty_id=counterparty, amount_cents=amount)
        payments = [
            PaymentFactory(counterparty_id=counterparty, amount_cents=6000)
            for _ in range(3)
        ]

        outcomes = _run_concurrently(
            [
                lambda p=p: AllocationService.auto_allocate(InstrumentRef.for_payment(p.id))
                for p in payments
            ]
        )

        assert all(error is None for _, error in outcomes)
        for entry in LedgerEntry.objects.filter(counterparty_id=counterparty):
            assert entry.outstanding_cents == entry.amount_cents - entry.allocated_cents()
            assert entry.outstanding_cents >= 0
        for payment in Payment.objects.filter(counterparty_id=counterparty):
            assert 0 <= payment.get_remaining_cents() <= payment.amount_cents
        assert LedgerEntry.objects.filter(
            counterparty_id=counterparty, outstanding_cents__gt=0
        ).count() == 0
