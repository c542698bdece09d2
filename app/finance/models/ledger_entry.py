"""
Ledger entry model for receivables and payables.

A LedgerEntry records an amount owed to the business by a customer
(receivable) or owed by the business to a supplier (payable). The
original amount never changes; the outstanding balance only goes down,
and only through LedgerEntryService.reduce_outstanding().

Usage:
    from finance.models import EntryKind, LedgerEntry

    open_items = LedgerEntry.objects.filter(
        kind=EntryKind.RECEIVABLE,
        counterparty_id=customer_id,
        outstanding_cents__gt=0,
    ).order_by("posted_at", "id")
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q, Sum, Value
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel


class EntryKind(models.TextChoices):
    """
    Side of the sub-ledger an entry belongs to.

    Values:
        RECEIVABLE: Owed to the business by a customer (AR)
        PAYABLE: Owed by the business to a supplier (AP)
    """

    RECEIVABLE = "receivable", "Receivable"
    PAYABLE = "payable", "Payable"


class ReferenceTypes:
    """
    Well-known originating document types.

    The ledger treats reference_type as opaque; these constants are the
    values the surrounding ERP posts with.
    """

    SALES_INVOICE = "INV"
    SUPPLIER_INVOICE = "SINV"
    DEBIT_NOTE = "DBN"


class LedgerEntry(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    An amount owed (receivable) or owed-to (payable) a counterparty.

    Fields:
        id: UUID primary key
        kind: receivable or payable
        counterparty_id: Customer (receivable) or supplier (payable) UUID
        reference_type: Originating document type (e.g., 'INV', 'SINV')
        reference_id: Originating document UUID
        amount_cents: Original amount, immutable, always positive
        outstanding_cents: Unsettled portion, 0 <= outstanding <= amount
        posted_at: When the entry was posted (FIFO allocation key)
        version: Optimistic locking version

    Constraints:
        - amount_cents must be positive
        - outstanding_cents must stay within [0, amount_cents]

    Note:
        Entries are financial records and are never deleted. Allocations
        reference them with on_delete=PROTECT.
    """

    kind = models.CharField(
        max_length=20,
        choices=EntryKind.choices,
        help_text="Receivable (customer owes) or payable (we owe supplier)",
    )
    counterparty_id = models.UUIDField(
        db_index=True,
        help_text="Customer ID for receivables, supplier ID for payables",
    )
    reference_type = models.CharField(
        max_length=64,
        help_text="Type of originating document (e.g., 'INV', 'SINV', 'DBN')",
    )
    reference_id = models.UUIDField(
        help_text="UUID of originating document",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Original amount in cents (immutable)",
    )
    outstanding_cents = models.PositiveBigIntegerField(
        help_text="Unsettled amount in cents",
    )
    posted_at = models.DateTimeField(
        help_text="Posting timestamp, used as FIFO allocation order",
    )

    class Meta:
        ordering = ["-posted_at", "-id"]
        indexes = [
            models.Index(
                fields=["kind", "counterparty_id", "posted_at", "id"],
                name="ledger_kind_cp_posted_idx",
            ),
            models.Index(
                fields=["reference_type", "reference_id"],
                name="ledger_reference_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="ledger_entry_amount_cents_positive",
            ),
            models.CheckConstraint(
                condition=Q(outstanding_cents__gte=0)
                & Q(outstanding_cents__lte=F("amount_cents")),
                name="ledger_entry_outstanding_within_amount",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return (
            f"{self.get_kind_display()} {self.reference_type} "
            f"{self.outstanding_cents}/{self.amount_cents} cents"
        )

    @property
    def is_settled(self) -> bool:
        """Whether nothing remains outstanding."""
        return self.outstanding_cents == 0

    def allocated_cents(self) -> int:
        """
        Sum of all allocations targeting this entry, from any instrument.

        Computed from allocation rows rather than the stored outstanding
        balance, so it can be used to verify outstanding_cents.
        """
        from finance.models.instruments import CreditNoteAllocation, PaymentAllocation

        total = 0
        for model in (PaymentAllocation, CreditNoteAllocation):
            total += model.objects.filter(
                Q(receivable_entry=self) | Q(payable_entry=self)
            ).aggregate(
                total=Coalesce(
                    Sum("amount_cents"),
                    Value(0),
                    output_field=models.BigIntegerField(),
                ),
            )["total"]
        return total
