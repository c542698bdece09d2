"""
Settlement instrument models.

Settlement instruments make money or credit available against ledger
entries:

- Payment: money received from a customer or paid to a supplier. Its
  unallocated remainder is always derived from its allocations.
- CreditNote: credit issued to a counterparty. Its remaining amount is
  stored and decremented in the same transaction as each allocation.
- DebitNote: increases what a counterparty owes by posting a new ledger
  entry. It is not allocated against anything.

PaymentAllocation and CreditNoteAllocation link an instrument to exactly
one receivable or payable entry.
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q, Sum, Value
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from .ledger_entry import EntryKind, LedgerEntry


class CounterpartyType(models.TextChoices):
    """Who an instrument pertains to."""

    CUSTOMER = "customer", "Customer"
    SUPPLIER = "supplier", "Supplier"


class PaymentDirection(models.TextChoices):
    """Whether money came in (from a customer) or went out (to a supplier)."""

    INBOUND = "inbound", "Inbound"
    OUTBOUND = "outbound", "Outbound"


class InstrumentType(models.TextChoices):
    """Instruments that can be allocated against ledger entries."""

    PAYMENT = "payment", "Payment"
    CREDIT_NOTE = "credit_note", "Credit Note"


def entry_kind_for(counterparty_type: CounterpartyType | str) -> EntryKind:
    """
    Map a counterparty type to the ledger side it settles.

    Customer instruments settle receivables; supplier instruments settle
    payables.
    """
    if CounterpartyType(counterparty_type) == CounterpartyType.CUSTOMER:
        return EntryKind.RECEIVABLE
    return EntryKind.PAYABLE


def _sum_cents(queryset: models.QuerySet) -> int:
    return queryset.aggregate(
        total=Coalesce(
            Sum("amount_cents"),
            Value(0),
            output_field=models.BigIntegerField(),
        )
    )["total"]


def _allocated_total(instrument: models.Model) -> int:
    """Sum an instrument's allocations, from prefetched rows when loaded."""
    prefetched = getattr(instrument, "_prefetched_objects_cache", {})
    if "allocations" in prefetched:
        return sum(allocation.amount_cents for allocation in prefetched["allocations"])
    return _sum_cents(instrument.allocations.all())


# =============================================================================
# Abstract bases
# =============================================================================


class SettlementDocument(UUIDPrimaryKeyMixin, BaseModel):
    """
    Fields shared by payments, credit notes and debit notes.

    Fields:
        reference_number: Document number from the numbering sequence
        counterparty_type: customer or supplier
        counterparty_id: Customer or supplier UUID
        amount_cents: Face value in cents (immutable, positive)
        notes: Free-text notes
    """

    reference_number = models.CharField(
        max_length=64,
        unique=True,
        help_text="Document number (e.g., 'PAY000001')",
    )
    counterparty_type = models.CharField(
        max_length=20,
        choices=CounterpartyType.choices,
        help_text="Customer or supplier",
    )
    counterparty_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the customer or supplier",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Face value in cents (immutable)",
    )
    notes = models.TextField(
        null=True,
        blank=True,
        help_text="Free-text notes",
    )

    class Meta:
        abstract = True
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="%(app_label)s_%(class)s_amount_cents_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.reference_number} ({self.amount_cents} cents)"

    @property
    def entry_kind(self) -> EntryKind:
        """Ledger side this document targets."""
        return entry_kind_for(self.counterparty_type)


class Allocation(UUIDPrimaryKeyMixin, models.Model):
    """
    A value transfer from an instrument to exactly one ledger entry.

    Exactly one of receivable_entry / payable_entry is set. Allocation rows
    are immutable once written.
    """

    receivable_entry = models.ForeignKey(
        LedgerEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)ss_as_receivable",
        help_text="Receivable entry settled by this allocation",
    )
    payable_entry = models.ForeignKey(
        LedgerEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)ss_as_payable",
        help_text="Payable entry settled by this allocation",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Allocated amount in cents",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this allocation was recorded",
    )

    class Meta:
        abstract = True
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="%(app_label)s_%(class)s_amount_cents_positive",
            ),
            models.CheckConstraint(
                condition=(
                    Q(receivable_entry__isnull=False, payable_entry__isnull=True)
                    | Q(receivable_entry__isnull=True, payable_entry__isnull=False)
                ),
                name="%(app_label)s_%(class)s_exactly_one_entry",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.amount_cents} cents -> {self.target_entry_id}"

    @property
    def target_entry_id(self):
        """ID of whichever entry this allocation settles."""
        return self.receivable_entry_id or self.payable_entry_id


# =============================================================================
# Payment
# =============================================================================


class Payment(VersionedMixin, SettlementDocument):
    """
    Money received from a customer or paid to a supplier.

    Fields:
        direction: inbound or outbound
        paid_at: When the money moved
        version: Bumped on each allocation, serialises concurrent allocators

    Note:
        The unallocated remainder is never stored; see get_remaining_cents().
    """

    direction = models.CharField(
        max_length=20,
        choices=PaymentDirection.choices,
        help_text="Inbound (received) or outbound (paid)",
    )
    paid_at = models.DateTimeField(
        help_text="When the payment was made",
    )

    class Meta(SettlementDocument.Meta):
        ordering = ["-paid_at"]

    def allocated_cents(self) -> int:
        """Sum of this payment's allocations."""
        return _allocated_total(self)

    def get_remaining_cents(self) -> int:
        """Unallocated remainder: amount minus allocations."""
        return self.amount_cents - self.allocated_cents()


class PaymentAllocation(Allocation):
    """Allocation of part of a payment to a ledger entry."""

    payment = models.ForeignKey(
        Payment,
        on_delete=models.PROTECT,
        related_name="allocations",
        help_text="Payment being allocated",
    )

    class Meta(Allocation.Meta):
        pass


# =============================================================================
# Credit Note
# =============================================================================


class CreditNote(VersionedMixin, SettlementDocument):
    """
    Credit issued to a counterparty, consumed by allocations.

    Fields:
        remaining_cents: Unallocated credit, 0 <= remaining <= amount
        issued_at: When the note was issued
        source_reference_type: Optional originating document type
        source_reference_id: Optional originating document UUID
        version: Bumped on each allocation

    Note:
        remaining_cents is a stored copy of amount minus allocations. It is
        only written by the allocation engine.
    """

    remaining_cents = models.PositiveBigIntegerField(
        help_text="Unallocated credit in cents",
    )
    issued_at = models.DateTimeField(
        help_text="When the credit note was issued",
    )
    source_reference_type = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Type of originating document (e.g., a customer return)",
    )
    source_reference_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of originating document",
    )

    class Meta(SettlementDocument.Meta):
        ordering = ["-issued_at"]
        constraints = [
            *SettlementDocument.Meta.constraints,
            models.CheckConstraint(
                condition=Q(remaining_cents__gte=0)
                & Q(remaining_cents__lte=F("amount_cents")),
                name="credit_note_remaining_within_amount",
            ),
        ]

    def allocated_cents(self) -> int:
        """Sum of this credit note's allocations."""
        return _allocated_total(self)

    def get_remaining_cents(self) -> int:
        """Unallocated credit (stored)."""
        return self.remaining_cents


class CreditNoteAllocation(Allocation):
    """Allocation of part of a credit note to a ledger entry."""

    credit_note = models.ForeignKey(
        CreditNote,
        on_delete=models.PROTECT,
        related_name="allocations",
        help_text="Credit note being allocated",
    )

    class Meta(Allocation.Meta):
        pass


# =============================================================================
# Debit Note
# =============================================================================


class DebitNote(SettlementDocument):
    """
    Increases what a counterparty owes.

    Creating a debit note posts a new ledger entry of the matching kind and
    amount in the same transaction. The note itself has no allocations.

    Fields:
        issued_at: When the note was issued
        source_reference_type: Optional originating document type
        source_reference_id: Optional originating document UUID
        ledger_entry: The entry posted for this note
    """

    issued_at = models.DateTimeField(
        help_text="When the debit note was issued",
    )
    source_reference_type = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Type of originating document",
    )
    source_reference_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of originating document",
    )
    ledger_entry = models.OneToOneField(
        LedgerEntry,
        on_delete=models.PROTECT,
        related_name="debit_note",
        help_text="Ledger entry posted by this debit note",
    )

    class Meta(SettlementDocument.Meta):
        ordering = ["-issued_at"]
