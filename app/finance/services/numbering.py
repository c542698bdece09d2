"""
Document number generation for payments, credit notes and debit notes.

Numbers look like PAY000001, CN000001, DBN000001. The sequence row is
locked for the rest of the caller's transaction, so a rolled-back document
gives its number back.
"""

from __future__ import annotations

from django.conf import settings
from django.db.models import F

from core.services import BaseService
from finance.models import DocumentSequence, DocumentType

DEFAULT_PREFIXES = {
    DocumentType.PAYMENT: "PAY",
    DocumentType.CREDIT_NOTE: "CN",
    DocumentType.DEBIT_NOTE: "DBN",
}


class DocumentNumberService(BaseService):
    """Draws numbers from DocumentSequence rows."""

    @classmethod
    def next_number(cls, document_type: str, prefix: str | None = None) -> str:
        """
        Consume and return the next number for a document type.

        Args:
            document_type: Sequence key (see DocumentType)
            prefix: Prefix used if the sequence has to be created; defaults
                to the well-known prefix for the document type

        Returns:
            Formatted number, e.g. 'PAY000042'
        """
        with cls.atomic():
            sequence = cls._locked_sequence(document_type, prefix)
            number = sequence.next_number
            DocumentSequence.objects.filter(pk=sequence.pk).update(
                next_number=F("next_number") + 1,
            )
        return sequence.format(number, settings.FINANCE_SEQUENCE_PADDING)

    @classmethod
    def _locked_sequence(cls, document_type: str, prefix: str | None) -> DocumentSequence:
        sequence = (
            DocumentSequence.objects.select_for_update()
            .filter(document_type=document_type)
            .first()
        )
        if sequence is not None:
            return sequence

        default_prefix = prefix or DEFAULT_PREFIXES.get(document_type, "")
        created, was_created = DocumentSequence.objects.get_or_create(
            document_type=document_type,
            defaults={"prefix": default_prefix},
        )
        if was_created:
            cls.get_logger().info(
                f"Created document sequence {document_type} with prefix '{default_prefix}'"
            )
        return DocumentSequence.objects.select_for_update().get(pk=created.pk)
