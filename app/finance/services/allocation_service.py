"""
Allocation engine: applying payments and credit notes to ledger entries.

allocate() moves an exact amount from one instrument to one entry.
auto_allocate() spreads an instrument's remaining amount over the
counterparty's open entries, oldest first.

Every allocation runs in its own transaction that:
1. Locks the instrument row, then the entry row
2. Re-reads both balances under the locks
3. Inserts the allocation row
4. Reduces the entry's outstanding balance (version-guarded)
5. Bumps the instrument's version (and, for credit notes, remaining_cents)

Conflicts (stale versions, deadlocks, lock timeouts) retry the whole
transaction a bounded number of times, then surface as
ConcurrentModification.

Usage:
    from finance.services import allocations
    from finance.types import InstrumentRef

    record = allocations.allocate(InstrumentRef.for_payment(payment.id), entry.id, 5000)

    result = allocations.auto_allocate(InstrumentRef.for_credit_note(note.id))
    if result.error:
        # Stopped early; result.allocations were committed
        ...
"""

from __future__ import annotations

import uuid

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from finance.exceptions import (
    AllocationExceedsOutstanding,
    AllocationExceedsRemaining,
    ConcurrentModification,
    CounterpartyMismatch,
    EntryNotFound,
    InstrumentNotFound,
    InsufficientOutstanding,
    StaleRecordError,
)
from finance.locks import lock_for_update, retry_on_conflict
from finance.models import (
    CreditNote,
    CreditNoteAllocation,
    EntryKind,
    InstrumentType,
    LedgerEntry,
    Payment,
    PaymentAllocation,
)
from finance.signals import entry_settled
from finance.types import AllocationRecord, AutoAllocationResult, InstrumentRef
from finance.validators import require_positive_cents, require_uuid

from .instrument_service import InstrumentService
from .ledger_service import LedgerEntryService


class AllocationService(BaseService):
    """
    Service class for allocating instruments against ledger entries.

    There is no clamping: allocate() either applies the full amount or
    raises. auto_allocate() picks amounts itself and never over-allocates.
    """

    @classmethod
    def allocate(
        cls,
        instrument_ref: InstrumentRef,
        entry_id: uuid.UUID,
        amount_cents: int,
    ) -> AllocationRecord:
        """
        Apply an exact amount of an instrument to one entry.

        Checks run in this order and the first failure wins:
        amount, instrument and its remaining capacity, entry and its
        outstanding balance, counterparty.

        Args:
            instrument_ref: Payment or credit note to allocate from
            entry_id: Receivable or payable to settle
            amount_cents: Amount to transfer (must be positive)

        Returns:
            AllocationRecord with post-allocation balances

        Raises:
            InvalidAmount: amount_cents is not a positive integer, or entry_id
                is not a UUID (error_code INVALID_REFERENCE)
            InstrumentNotFound: No such payment / credit note
            AllocationExceedsRemaining: amount > instrument remaining
            EntryNotFound: No such entry
            AllocationExceedsOutstanding: amount > entry outstanding
            CounterpartyMismatch: Different counterparty or wrong ledger side
            ConcurrentModification: Conflict retries exhausted
        """
        require_positive_cents(amount_cents)
        entry_id = require_uuid(entry_id, "entry_id")
        return cls._allocate_once(instrument_ref, entry_id, amount_cents)

    @classmethod
    def auto_allocate(cls, instrument_ref: InstrumentRef) -> AutoAllocationResult:
        """
        Allocate an instrument's remaining amount to open entries, FIFO.

        Entries of the instrument's counterparty and ledger side are taken
        oldest first by (posted_at, id). Each step is its own transaction
        and takes min(instrument remaining, entry outstanding) as re-read
        under lock, so entries consumed by someone else in the meantime are
        skipped. Surplus stays on the instrument.

        Returns:
            AutoAllocationResult. If a step exhausts its conflict retries the
            run stops, keeps the steps already committed, and sets error.

        Raises:
            InstrumentNotFound: No such payment / credit note
        """
        instrument = InstrumentService.get_instrument(instrument_ref)
        result = AutoAllocationResult()

        remaining = instrument.get_remaining_cents()
        if remaining <= 0:
            return result

        entry_ids = list(
            LedgerEntryService.list_outstanding(
                instrument.entry_kind,
                instrument.counterparty_id,
            ).values_list("id", flat=True)
        )

        for entry_id in entry_ids:
            if remaining <= 0:
                break
            try:
                record, remaining = cls._auto_step(instrument_ref, entry_id)
            except ConcurrentModification as exc:
                cls.get_logger().warning(
                    f"Auto-allocation of {instrument_ref} stopped after "
                    f"{len(result.allocations)} allocations: {exc}"
                )
                result.error = exc
                break
            if record is not None:
                result.allocations.append(record)

        cls.get_logger().info(
            f"Auto-allocated {result.total_allocated_cents} cents of {instrument_ref} "
            f"across {len(result.allocations)} entries, {remaining} cents left"
        )
        return result

    # =========================================================================
    # Transactional steps
    # =========================================================================

    @classmethod
    @retry_on_conflict()
    def _allocate_once(
        cls,
        instrument_ref: InstrumentRef,
        entry_id: uuid.UUID,
        amount_cents: int,
    ) -> AllocationRecord:
        with cls.atomic():
            instrument = cls._lock_instrument(instrument_ref)
            remaining = instrument.get_remaining_cents()
            if amount_cents > remaining:
                raise AllocationExceedsRemaining(
                    instrument_ref.id, required=amount_cents, available=remaining
                )

            entry = lock_for_update(LedgerEntry, entry_id)
            if entry is None:
                raise EntryNotFound(
                    f"Ledger entry {entry_id} not found",
                    details={"entry_id": str(entry_id)},
                )
            if amount_cents > entry.outstanding_cents:
                raise AllocationExceedsOutstanding(
                    entry.id, required=amount_cents, available=entry.outstanding_cents
                )

            cls._check_counterparty(instrument, entry)
            return cls._apply(instrument_ref, instrument, entry, amount_cents, remaining)

    @classmethod
    @retry_on_conflict()
    def _auto_step(
        cls,
        instrument_ref: InstrumentRef,
        entry_id: uuid.UUID,
    ) -> tuple[AllocationRecord | None, int]:
        with cls.atomic():
            instrument = cls._lock_instrument(instrument_ref)
            remaining = instrument.get_remaining_cents()
            if remaining <= 0:
                return None, 0

            entry = lock_for_update(LedgerEntry, entry_id)
            take = min(remaining, entry.outstanding_cents) if entry else 0
            if take <= 0:
                return None, remaining

            record = cls._apply(instrument_ref, instrument, entry, take, remaining)
            return record, record.instrument_remaining_cents

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _lock_instrument(instrument_ref: InstrumentRef) -> Payment | CreditNote:
        model = InstrumentService.model_for(instrument_ref.kind)
        instrument = lock_for_update(model, instrument_ref.id)
        if instrument is None:
            raise InstrumentNotFound(
                f"{model.__name__} {instrument_ref.id} not found",
                details={
                    "instrument_type": str(instrument_ref.kind),
                    "instrument_id": str(instrument_ref.id),
                },
            )
        return instrument

    @staticmethod
    def _check_counterparty(instrument: Payment | CreditNote, entry: LedgerEntry) -> None:
        expected_kind = instrument.entry_kind
        if entry.kind != expected_kind or entry.counterparty_id != instrument.counterparty_id:
            raise CounterpartyMismatch(
                f"{instrument.counterparty_type} {instrument.counterparty_id} "
                f"cannot settle {entry.kind} entry {entry.id} "
                f"of counterparty {entry.counterparty_id}",
                details={
                    "instrument_counterparty_type": instrument.counterparty_type,
                    "instrument_counterparty_id": str(instrument.counterparty_id),
                    "entry_kind": entry.kind,
                    "entry_counterparty_id": str(entry.counterparty_id),
                },
            )

    @classmethod
    def _apply(
        cls,
        instrument_ref: InstrumentRef,
        instrument: Payment | CreditNote,
        entry: LedgerEntry,
        amount_cents: int,
        remaining: int,
    ) -> AllocationRecord:
        """Write one allocation. Caller holds both row locks."""
        entry_field = (
            "receivable_entry" if entry.kind == EntryKind.RECEIVABLE else "payable_entry"
        )
        if instrument_ref.kind == InstrumentType.PAYMENT:
            allocation = PaymentAllocation.objects.create(
                payment=instrument, amount_cents=amount_cents, **{entry_field: entry}
            )
        else:
            allocation = CreditNoteAllocation.objects.create(
                credit_note=instrument, amount_cents=amount_cents, **{entry_field: entry}
            )

        try:
            outstanding = LedgerEntryService.reduce_outstanding(
                entry.id, amount_cents, expected_version=entry.version
            )
        except InsufficientOutstanding as exc:
            raise AllocationExceedsOutstanding(
                entry.id, required=exc.required, available=exc.available
            ) from exc

        cls._consume_instrument(instrument_ref, instrument, amount_cents)

        if outstanding == 0:
            cls._notify_settled(entry)

        cls.get_logger().info(
            f"Allocated {amount_cents} cents from {instrument_ref} to "
            f"{entry.kind} entry {entry.id}; outstanding now {outstanding}"
        )
        return AllocationRecord(
            allocation_id=allocation.id,
            instrument=instrument_ref,
            entry_id=entry.id,
            entry_kind=EntryKind(entry.kind),
            amount_cents=amount_cents,
            entry_outstanding_cents=outstanding,
            instrument_remaining_cents=remaining - amount_cents,
        )

    @staticmethod
    def _consume_instrument(
        instrument_ref: InstrumentRef,
        instrument: Payment | CreditNote,
        amount_cents: int,
    ) -> None:
        model = type(instrument)
        changes = {"version": F("version") + 1, "updated_at": timezone.now()}
        matching = model.objects.filter(pk=instrument.pk, version=instrument.version)
        if instrument_ref.kind == InstrumentType.CREDIT_NOTE:
            matching = matching.filter(remaining_cents__gte=amount_cents)
            changes["remaining_cents"] = F("remaining_cents") - amount_cents

        if matching.update(**changes) == 0:
            raise StaleRecordError(
                f"{model.__name__} {instrument.pk} has been modified "
                f"(expected version {instrument.version})",
                details={"pk": str(instrument.pk), "expected_version": instrument.version},
            )

    @classmethod
    def _notify_settled(cls, entry: LedgerEntry) -> None:
        def send() -> None:
            responses = entry_settled.send_robust(
                sender=LedgerEntry,
                entry_id=entry.id,
                kind=entry.kind,
                reference_type=entry.reference_type,
                reference_id=entry.reference_id,
            )
            for receiver, response in responses:
                if isinstance(response, Exception):
                    cls.get_logger().error(
                        f"entry_settled receiver {receiver!r} failed for entry "
                        f"{entry.id}: {response}"
                    )

        transaction.on_commit(send)


allocations = AllocationService()
