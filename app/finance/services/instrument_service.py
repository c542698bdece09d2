"""
Settlement instrument service: payments, credit notes and debit notes.

Creating a payment or credit note has no ledger side effect. Creating a
debit note posts a new ledger entry in the same transaction.

Usage:
    from finance.services import instruments

    payment = instruments.create_payment(
        direction=PaymentDirection.INBOUND,
        counterparty_type=CounterpartyType.CUSTOMER,
        counterparty_id=customer_id,
        amount_cents=15000,
        paid_at=timezone.now(),
    )
    instruments.remaining_capacity(InstrumentRef.for_payment(payment.id))
"""

from __future__ import annotations

import uuid
from datetime import datetime

from django.db.models import QuerySet

from core.services import BaseService
from finance.exceptions import DuplicateReferenceNumber, InstrumentNotFound, InvalidAmount
from finance.models import (
    CounterpartyType,
    CreditNote,
    DebitNote,
    DocumentType,
    InstrumentType,
    Payment,
    PaymentDirection,
    ReferenceTypes,
    entry_kind_for,
)
from finance.types import InstrumentRef, SourceReference
from finance.validators import (
    clean_notes,
    clean_reference_type,
    require_aware,
    require_positive_cents,
)

from .ledger_service import LedgerEntryService
from .numbering import DocumentNumberService

REFERENCE_NUMBER_MAX_LENGTH = 64

INSTRUMENT_MODELS: dict[InstrumentType, type[Payment] | type[CreditNote]] = {
    InstrumentType.PAYMENT: Payment,
    InstrumentType.CREDIT_NOTE: CreditNote,
}


class InstrumentService(BaseService):
    """
    Service class for settlement instruments.

    All methods are classmethods - no instance state is maintained.
    """

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_payment(
        cls,
        direction: PaymentDirection | str,
        counterparty_type: CounterpartyType | str,
        counterparty_id: uuid.UUID,
        amount_cents: int,
        paid_at: datetime,
        notes: str | None = None,
        reference_number: str | None = None,
    ) -> Payment:
        """
        Record a payment received from a customer or made to a supplier.

        Args:
            direction: inbound or outbound
            counterparty_type: customer or supplier
            counterparty_id: Customer or supplier UUID
            amount_cents: Payment amount (must be positive)
            paid_at: Timezone-aware payment time
            notes: Optional free text
            reference_number: Optional document number; drawn from the
                payment sequence when omitted

        Raises:
            InvalidAmount: Non-positive amount or naive paid_at
            DuplicateReferenceNumber: reference_number already used
        """
        require_positive_cents(amount_cents)
        require_aware(paid_at, "paid_at")

        with cls.atomic():
            number = cls._reference_number(Payment, DocumentType.PAYMENT, reference_number)
            payment = Payment.objects.create(
                reference_number=number,
                direction=PaymentDirection(direction),
                counterparty_type=CounterpartyType(counterparty_type),
                counterparty_id=counterparty_id,
                amount_cents=amount_cents,
                paid_at=paid_at,
                notes=clean_notes(notes),
            )

        cls.get_logger().info(
            f"Created {payment.direction} payment {payment.reference_number} "
            f"({payment.id}): {amount_cents} cents for {counterparty_id}"
        )
        return payment

    @classmethod
    def create_credit_note(
        cls,
        counterparty_type: CounterpartyType | str,
        counterparty_id: uuid.UUID,
        amount_cents: int,
        issued_at: datetime,
        notes: str | None = None,
        source: SourceReference | None = None,
        reference_number: str | None = None,
    ) -> CreditNote:
        """
        Issue credit to a counterparty.

        The whole amount starts out unallocated (remaining == amount).

        Raises:
            InvalidAmount: Non-positive amount, naive issued_at or blank
                source reference type
            DuplicateReferenceNumber: reference_number already used
        """
        require_positive_cents(amount_cents)
        require_aware(issued_at, "issued_at")
        source_fields = cls._source_fields(source)

        with cls.atomic():
            number = cls._reference_number(
                CreditNote, DocumentType.CREDIT_NOTE, reference_number
            )
            credit_note = CreditNote.objects.create(
                reference_number=number,
                counterparty_type=CounterpartyType(counterparty_type),
                counterparty_id=counterparty_id,
                amount_cents=amount_cents,
                remaining_cents=amount_cents,
                issued_at=issued_at,
                notes=clean_notes(notes),
                **source_fields,
            )

        cls.get_logger().info(
            f"Issued credit note {credit_note.reference_number} ({credit_note.id}): "
            f"{amount_cents} cents for {counterparty_id}"
        )
        return credit_note

    @classmethod
    def create_debit_note(
        cls,
        counterparty_type: CounterpartyType | str,
        counterparty_id: uuid.UUID,
        amount_cents: int,
        issued_at: datetime,
        notes: str | None = None,
        source: SourceReference | None = None,
        reference_number: str | None = None,
    ) -> DebitNote:
        """
        Issue a debit note and post the ledger entry it implies.

        A customer debit note posts a receivable; a supplier debit note posts
        a payable. The entry uses reference_type 'DBN', the note's id as
        reference_id, and issued_at as posted_at. Note and entry commit
        together or not at all.

        Raises:
            InvalidAmount: Non-positive amount, naive issued_at or blank
                source reference type
            DuplicateReferenceNumber: reference_number already used
        """
        require_positive_cents(amount_cents)
        require_aware(issued_at, "issued_at")
        source_fields = cls._source_fields(source)
        counterparty_type = CounterpartyType(counterparty_type)
        note_id = uuid.uuid4()

        with cls.atomic():
            number = cls._reference_number(
                DebitNote, DocumentType.DEBIT_NOTE, reference_number
            )
            entry = LedgerEntryService.create_entry(
                kind=entry_kind_for(counterparty_type),
                counterparty_id=counterparty_id,
                reference_type=ReferenceTypes.DEBIT_NOTE,
                reference_id=note_id,
                amount_cents=amount_cents,
                posted_at=issued_at,
            )
            debit_note = DebitNote.objects.create(
                id=note_id,
                reference_number=number,
                counterparty_type=counterparty_type,
                counterparty_id=counterparty_id,
                amount_cents=amount_cents,
                issued_at=issued_at,
                notes=clean_notes(notes),
                ledger_entry=entry,
                **source_fields,
            )

        cls.get_logger().info(
            f"Issued debit note {debit_note.reference_number} ({debit_note.id}), "
            f"posted {entry.kind} entry {entry.id}"
        )
        return debit_note

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def model_for(kind: InstrumentType | str) -> type[Payment] | type[CreditNote]:
        """Model class backing an instrument kind."""
        return INSTRUMENT_MODELS[InstrumentType(kind)]

    @classmethod
    def get_instrument(cls, instrument_ref: InstrumentRef) -> Payment | CreditNote:
        """
        Load the payment or credit note a reference points at.

        Raises:
            InstrumentNotFound: If no such instrument exists
        """
        model = cls.model_for(instrument_ref.kind)
        try:
            return model.objects.get(pk=instrument_ref.id)
        except model.DoesNotExist:
            raise InstrumentNotFound(
                f"{model.__name__} {instrument_ref.id} not found",
                details={
                    "instrument_type": str(instrument_ref.kind),
                    "instrument_id": str(instrument_ref.id),
                },
            ) from None

    @classmethod
    def remaining_capacity(cls, instrument_ref: InstrumentRef) -> int:
        """
        Unallocated amount of an instrument, in cents.

        Payments derive it from their allocations; credit notes return the
        stored remaining_cents.

        Raises:
            InstrumentNotFound: If no such instrument exists
        """
        return cls.get_instrument(instrument_ref).get_remaining_cents()

    @staticmethod
    def list_payments(
        counterparty_type: CounterpartyType | str | None = None,
        counterparty_id: uuid.UUID | None = None,
        direction: PaymentDirection | str | None = None,
    ) -> QuerySet[Payment]:
        queryset = Payment.objects.all()
        if counterparty_type:
            queryset = queryset.filter(counterparty_type=counterparty_type)
        if counterparty_id is not None:
            queryset = queryset.filter(counterparty_id=counterparty_id)
        if direction:
            queryset = queryset.filter(direction=direction)
        return queryset.order_by("-paid_at", "-id")

    @staticmethod
    def list_credit_notes(
        counterparty_type: CounterpartyType | str | None = None,
        counterparty_id: uuid.UUID | None = None,
        remaining_only: bool = False,
    ) -> QuerySet[CreditNote]:
        queryset = CreditNote.objects.all()
        if counterparty_type:
            queryset = queryset.filter(counterparty_type=counterparty_type)
        if counterparty_id is not None:
            queryset = queryset.filter(counterparty_id=counterparty_id)
        if remaining_only:
            queryset = queryset.filter(remaining_cents__gt=0)
        return queryset.order_by("-issued_at", "-id")

    @staticmethod
    def list_debit_notes(
        counterparty_type: CounterpartyType | str | None = None,
        counterparty_id: uuid.UUID | None = None,
    ) -> QuerySet[DebitNote]:
        queryset = DebitNote.objects.select_related("ledger_entry")
        if counterparty_type:
            queryset = queryset.filter(counterparty_type=counterparty_type)
        if counterparty_id is not None:
            queryset = queryset.filter(counterparty_id=counterparty_id)
        return queryset.order_by("-issued_at", "-id")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _reference_number(model, document_type: str, supplied: str | None) -> str:
        if supplied is None:
            return DocumentNumberService.next_number(document_type)

        cleaned = supplied.strip()
        if not cleaned or len(cleaned) > REFERENCE_NUMBER_MAX_LENGTH:
            raise InvalidAmount(
                f"reference_number must be 1-{REFERENCE_NUMBER_MAX_LENGTH} characters",
                error_code="INVALID_REFERENCE",
                details={"reference_number": supplied},
            )
        if model.objects.filter(reference_number=cleaned).exists():
            raise DuplicateReferenceNumber(
                f"{model.__name__} reference number {cleaned} is already in use",
                details={"reference_number": cleaned},
            )
        return cleaned

    @staticmethod
    def _source_fields(source: SourceReference | None) -> dict:
        if source is None:
            return {}
        return {
            "source_reference_type": clean_reference_type(
                source.reference_type, "source_reference_type"
            ),
            "source_reference_id": source.reference_id,
        }


instruments = InstrumentService()
