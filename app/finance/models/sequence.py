"""
Document number sequences.

One row per document type (payment, credit note, debit note). The row is
locked with select_for_update while a number is drawn, so numbers are
unique and gap-free within a committed transaction.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel


class DocumentType(models.TextChoices):
    """Document types that draw numbers from a sequence."""

    PAYMENT = "payment", "Payment"
    CREDIT_NOTE = "credit_note", "Credit Note"
    DEBIT_NOTE = "debit_note", "Debit Note"


class DocumentSequence(BaseModel):
    """
    Counter for one document type.

    Fields:
        document_type: Sequence key (unique)
        prefix: Prepended to the zero-padded number (e.g., 'PAY')
        next_number: Number the next document will receive
    """

    document_type = models.CharField(
        max_length=64,
        unique=True,
        help_text="Sequence key (e.g., 'payment')",
    )
    prefix = models.CharField(
        max_length=16,
        help_text="Prefix for generated numbers (e.g., 'PAY')",
    )
    next_number = models.PositiveBigIntegerField(
        default=1,
        help_text="Number the next document will receive",
    )

    class Meta:
        ordering = ["document_type"]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.document_type}: {self.prefix} #{self.next_number}"

    def format(self, number: int, padding: int) -> str:
        """Render a number with this sequence's prefix."""
        return f"{self.prefix}{number:0{padding}d}"
