"""
Ledger entry service: posting entries and reducing outstanding balances.

All writes to LedgerEntry go through this service. reduce_outstanding()
is the only code path that changes outstanding_cents.

Usage:
    from finance.services import ledger

    entry = ledger.create_entry(
        kind=EntryKind.RECEIVABLE,
        counterparty_id=customer_id,
        reference_type=ReferenceTypes.SALES_INVOICE,
        reference_id=invoice_id,
        amount_cents=10000,
        posted_at=timezone.now(),
    )
    ledger.get_outstanding(entry.id)  # Money(cents=10000)
"""

from __future__ import annotations

import uuid
from datetime import datetime

from django.db.models import F, QuerySet
from django.utils import timezone

from core.services import BaseService
from finance.exceptions import EntryNotFound, InsufficientOutstanding, StaleRecordError
from finance.models import EntryKind, LedgerEntry
from finance.types import Money
from finance.validators import (
    clean_reference_type,
    require_aware,
    require_positive_cents,
    require_uuid,
)


class LedgerEntryService(BaseService):
    """
    Service class for ledger entry operations.

    Key features:
    - Entries are posted with outstanding equal to amount
    - Outstanding only decreases, via a guarded conditional UPDATE
    - FIFO listing by (posted_at, id) for auto-allocation

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def create_entry(
        cls,
        kind: EntryKind | str,
        counterparty_id: uuid.UUID,
        reference_type: str,
        reference_id: uuid.UUID,
        amount_cents: int,
        posted_at: datetime,
    ) -> LedgerEntry:
        """
        Post a new receivable or payable.

        Args:
            kind: receivable or payable
            counterparty_id: Customer (receivable) or supplier (payable) UUID
            reference_type: Originating document type, 1-64 chars after trim
            reference_id: Originating document UUID
            amount_cents: Amount owed in cents (must be positive)
            posted_at: Timezone-aware posting time

        Returns:
            The created LedgerEntry with outstanding_cents == amount_cents

        Raises:
            InvalidAmount: If amount is not positive, reference_type is blank
                (INVALID_REFERENCE) or posted_at is naive (INVALID_TIMESTAMP)
        """
        require_positive_cents(amount_cents)
        reference_type = clean_reference_type(reference_type)
        require_aware(posted_at, "posted_at")

        with cls.atomic():
            entry = LedgerEntry.objects.create(
                kind=EntryKind(kind),
                counterparty_id=counterparty_id,
                reference_type=reference_type,
                reference_id=reference_id,
                amount_cents=amount_cents,
                outstanding_cents=amount_cents,
                posted_at=posted_at,
            )

        cls.get_logger().info(
            f"Posted {entry.kind} entry {entry.id}: {amount_cents} cents "
            f"for {counterparty_id} ({reference_type} {reference_id})"
        )
        return entry

    @classmethod
    def reduce_outstanding(
        cls,
        entry_id: uuid.UUID,
        amount_cents: int,
        expected_version: int | None = None,
    ) -> int:
        """
        Decrease an entry's outstanding balance.

        Executes a single conditional UPDATE that only matches while the
        outstanding balance still covers the amount, so two concurrent
        reductions can never overdraw an entry even without a row lock.

        Args:
            entry_id: Entry to reduce
            amount_cents: Amount to subtract (must be positive)
            expected_version: When given, the UPDATE also requires this
                version; a mismatch means the row changed after it was read

        Returns:
            The new outstanding balance in cents

        Raises:
            InvalidAmount: If amount is not positive
            EntryNotFound: If the entry does not exist
            StaleRecordError: If expected_version no longer matches
            InsufficientOutstanding: If amount exceeds the outstanding balance
        """
        require_positive_cents(amount_cents)
        entry_id = require_uuid(entry_id, "entry_id")

        with cls.atomic():
            matching = LedgerEntry.objects.filter(
                pk=entry_id,
                outstanding_cents__gte=amount_cents,
            )
            if expected_version is not None:
                matching = matching.filter(version=expected_version)

            rows = matching.update(
                outstanding_cents=F("outstanding_cents") - amount_cents,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )

            current = (
                LedgerEntry.objects.filter(pk=entry_id)
                .values("outstanding_cents", "version")
                .first()
            )
            if current is None:
                raise EntryNotFound(
                    f"Ledger entry {entry_id} not found",
                    details={"entry_id": str(entry_id)},
                )
            if rows == 0:
                if expected_version is not None and current["version"] != expected_version:
                    raise StaleRecordError(
                        f"LedgerEntry {entry_id} has been modified "
                        f"(expected version {expected_version}, "
                        f"current {current['version']})",
                        details={
                            "pk": str(entry_id),
                            "expected_version": expected_version,
                            "current_version": current["version"],
                        },
                    )
                raise InsufficientOutstanding(
                    entry_id,
                    required=amount_cents,
                    available=current["outstanding_cents"],
                )

        return current["outstanding_cents"]

    @staticmethod
    def get_entry(entry_id: uuid.UUID) -> LedgerEntry:
        """
        Get an entry by ID.

        Raises:
            EntryNotFound: If the entry does not exist
        """
        try:
            return LedgerEntry.objects.get(pk=require_uuid(entry_id, "entry_id"))
        except LedgerEntry.DoesNotExist:
            raise EntryNotFound(
                f"Ledger entry {entry_id} not found",
                details={"entry_id": str(entry_id)},
            ) from None

    @classmethod
    def get_outstanding(cls, entry_id: uuid.UUID) -> Money:
        """Current outstanding balance of an entry."""
        return Money(cents=cls.get_entry(entry_id).outstanding_cents)

    @staticmethod
    def list_outstanding(
        kind: EntryKind | str,
        counterparty_id: uuid.UUID,
    ) -> QuerySet[LedgerEntry]:
        """
        Open entries for one counterparty, in allocation order.

        Only entries with outstanding > 0 are returned, oldest first by
        (posted_at, id).
        """
        return LedgerEntry.objects.filter(
            kind=kind,
            counterparty_id=counterparty_id,
            outstanding_cents__gt=0,
        ).order_by("posted_at", "id")

    @staticmethod
    def list_entries(
        kind: EntryKind | str,
        counterparty_id: uuid.UUID | None = None,
        outstanding_only: bool = True,
    ) -> QuerySet[LedgerEntry]:
        """AR/AP listing, newest first."""
        queryset = LedgerEntry.objects.filter(kind=kind)
        if counterparty_id is not None:
            queryset = queryset.filter(counterparty_id=counterparty_id)
        if outstanding_only:
            queryset = queryset.filter(outstanding_cents__gt=0)
        return queryset.order_by("-posted_at", "-id")


ledger = LedgerEntryService()
