"""
Views for finance API.

URL Structure:
    /api/v1/finance/ar/                              GET
    /api/v1/finance/ap/                              GET
    /api/v1/finance/entries/                         POST
    /api/v1/finance/entries/{id}/                    GET
    /api/v1/finance/payments/                        GET, POST
    /api/v1/finance/payments/{id}/                   GET
    /api/v1/finance/payments/{id}/allocate/          POST
    /api/v1/finance/payments/{id}/auto-allocate/     POST
    /api/v1/finance/credit-notes/                    GET, POST
    /api/v1/finance/credit-notes/{id}/               GET
    /api/v1/finance/credit-notes/{id}/allocate/      POST
    /api/v1/finance/credit-notes/{id}/auto-allocate/ POST
    /api/v1/finance/debit-notes/                     GET, POST
    /api/v1/finance/debit-notes/{id}/                GET

Design Decisions:
    - All writes go through the finance services
    - Timestamps are taken from the server clock at request time
    - FinanceError subclasses map to 400/404/409 with the error's to_dict()
      body; an auto-allocation stopped by a conflict returns 409 with the
      allocations that did commit
"""

from __future__ import annotations

import logging

from django.utils import timezone
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from finance.exceptions import (
    ConcurrentModification,
    DuplicateReferenceNumber,
    EntryNotFound,
    FinanceError,
    InstrumentNotFound,
)
from finance.models import EntryKind, InstrumentType, LedgerEntry
from finance.serializers import (
    AllocateRequestSerializer,
    AllocationRecordSerializer,
    AutoAllocationResultSerializer,
    CreditNoteCreateSerializer,
    CreditNoteListQuerySerializer,
    CreditNoteSerializer,
    DebitNoteCreateSerializer,
    DebitNoteSerializer,
    EntryListQuerySerializer,
    InstrumentListQuerySerializer,
    LedgerEntryCreateSerializer,
    LedgerEntrySerializer,
    PaymentCreateSerializer,
    PaymentListQuerySerializer,
    PaymentSerializer,
)
from finance.services import AllocationService, InstrumentService, LedgerEntryService
from finance.types import InstrumentRef, SourceReference

logger = logging.getLogger(__name__)

UUID_PATTERN = (
    r"[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}"
)

ERROR_STATUS = [
    (ConcurrentModification, status.HTTP_409_CONFLICT),
    (DuplicateReferenceNumber, status.HTTP_409_CONFLICT),
    (EntryNotFound, status.HTTP_404_NOT_FOUND),
    (InstrumentNotFound, status.HTTP_404_NOT_FOUND),
    (FinanceError, status.HTTP_400_BAD_REQUEST),
]


def error_response(exc: FinanceError) -> Response:
    """Render a finance error with its mapped HTTP status."""
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return Response(exc.to_dict(), status=status_code)
    return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)


def parse_query(request, serializer_class) -> dict:
    serializer = serializer_class(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def source_from(data: dict) -> SourceReference | None:
    if "source_reference_type" not in data:
        return None
    return SourceReference(
        reference_type=data["source_reference_type"],
        reference_id=data["source_reference_id"],
    )


# =============================================================================
# Ledger entries
# =============================================================================


class _EntryListView(generics.ListAPIView):
    """AR/AP listing: newest first, open entries only by default."""

    serializer_class = LedgerEntrySerializer
    entry_kind: EntryKind

    def get_queryset(self):
        params = parse_query(self.request, EntryListQuerySerializer)
        return LedgerEntryService.list_entries(
            self.entry_kind,
            counterparty_id=params.get("counterparty_id"),
            outstanding_only=params["outstanding_only"],
        )


@extend_schema(
    operation_id="list_receivables",
    summary="List receivable entries (AR)",
    parameters=[EntryListQuerySerializer],
    tags=["Finance - Ledger"],
)
class ReceivableListView(_EntryListView):
    entry_kind = EntryKind.RECEIVABLE


@extend_schema(
    operation_id="list_payables",
    summary="List payable entries (AP)",
    parameters=[EntryListQuerySerializer],
    tags=["Finance - Ledger"],
)
class PayableListView(_EntryListView):
    entry_kind = EntryKind.PAYABLE


@extend_schema_view(
    create=extend_schema(
        operation_id="create_ledger_entry",
        summary="Post a receivable or payable",
        request=LedgerEntryCreateSerializer,
        responses={201: LedgerEntrySerializer},
        tags=["Finance - Ledger"],
    ),
    retrieve=extend_schema(
        operation_id="get_ledger_entry",
        summary="Get ledger entry",
        tags=["Finance - Ledger"],
    ),
)
class LedgerEntryViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Ledger entries.

    create:
        Post a new entry with outstanding equal to amount. posted_at is the
        server time of the request.

    retrieve:
        Entry detail including the current outstanding balance.
    """

    serializer_class = LedgerEntrySerializer
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        return LedgerEntry.objects.all()

    def create(self, request):
        serializer = LedgerEntryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            entry = LedgerEntryService.create_entry(
                kind=data["kind"],
                counterparty_id=data["counterparty_id"],
                reference_type=data["reference_type"],
                reference_id=data["reference_id"],
                amount_cents=data["amount_cents"],
                posted_at=timezone.now(),
            )
        except FinanceError as exc:
            return error_response(exc)

        return Response(LedgerEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Allocatable instruments
# =============================================================================


class AllocationActionsMixin:
    """allocate / auto-allocate actions shared by payments and credit notes."""

    instrument_kind: InstrumentType

    def instrument_ref(self) -> InstrumentRef:
        return InstrumentRef(kind=self.instrument_kind, id=self.kwargs["pk"])

    @extend_schema(
        summary="Allocate to one ledger entry",
        request=AllocateRequestSerializer,
        responses={201: AllocationRecordSerializer},
    )
    @action(detail=True, methods=["post"])
    def allocate(self, request, pk=None):
        serializer = AllocateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            record = AllocationService.allocate(
                self.instrument_ref(),
                serializer.validated_data["entry_id"],
                serializer.validated_data["amount_cents"],
            )
        except FinanceError as exc:
            return error_response(exc)

        return Response(
            AllocationRecordSerializer(record).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        summary="Allocate remaining amount to open entries, oldest first",
        request=None,
        responses={200: AutoAllocationResultSerializer},
    )
    @action(detail=True, methods=["post"], url_path="auto-allocate")
    def auto_allocate(self, request, pk=None):
        try:
            result = AllocationService.auto_allocate(self.instrument_ref())
        except FinanceError as exc:
            return error_response(exc)

        if not result.is_complete:
            body = result.error.to_dict()
            body.setdefault("details", {})
            body["details"]["allocations"] = AllocationRecordSerializer(
                result.allocations, many=True
            ).data
            body["details"]["total_allocated_cents"] = result.total_allocated_cents
            return Response(body, status=status.HTTP_409_CONFLICT)

        return Response(AutoAllocationResultSerializer(result).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_payments",
        summary="List payments",
        parameters=[PaymentListQuerySerializer],
        tags=["Finance - Payments"],
    ),
    create=extend_schema(
        operation_id="create_payment",
        summary="Record a payment",
        request=PaymentCreateSerializer,
        responses={201: PaymentSerializer},
        tags=["Finance - Payments"],
    ),
    retrieve=extend_schema(
        operation_id="get_payment",
        summary="Get payment with allocations",
        tags=["Finance - Payments"],
    ),
    allocate=extend_schema(operation_id="allocate_payment", tags=["Finance - Payments"]),
    auto_allocate=extend_schema(
        operation_id="auto_allocate_payment", tags=["Finance - Payments"]
    ),
)
class PaymentViewSet(
    AllocationActionsMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Payments received from customers and made to suppliers.

    remaining_cents is derived from the payment's allocations.
    """

    serializer_class = PaymentSerializer
    instrument_kind = InstrumentType.PAYMENT
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        filters = {}
        if self.action == "list":
            filters = parse_query(self.request, PaymentListQuerySerializer)
        return InstrumentService.list_payments(**filters).prefetch_related("allocations")

    def create(self, request):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment = InstrumentService.create_payment(
                direction=data["direction"],
                counterparty_type=data["counterparty_type"],
                counterparty_id=data["counterparty_id"],
                amount_cents=data["amount_cents"],
                paid_at=timezone.now(),
                notes=data.get("notes"),
                reference_number=data.get("reference_number"),
            )
        except FinanceError as exc:
            return error_response(exc)

        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_credit_notes",
        summary="List credit notes",
        parameters=[CreditNoteListQuerySerializer],
        tags=["Finance - Credit Notes"],
    ),
    create=extend_schema(
        operation_id="create_credit_note",
        summary="Issue a credit note",
        request=CreditNoteCreateSerializer,
        responses={201: CreditNoteSerializer},
        tags=["Finance - Credit Notes"],
    ),
    retrieve=extend_schema(
        operation_id="get_credit_note",
        summary="Get credit note with allocations",
        tags=["Finance - Credit Notes"],
    ),
    allocate=extend_schema(
        operation_id="allocate_credit_note", tags=["Finance - Credit Notes"]
    ),
    auto_allocate=extend_schema(
        operation_id="auto_allocate_credit_note", tags=["Finance - Credit Notes"]
    ),
)
class CreditNoteViewSet(
    AllocationActionsMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Credit notes issued to customers or received from suppliers."""

    serializer_class = CreditNoteSerializer
    instrument_kind = InstrumentType.CREDIT_NOTE
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        filters = {}
        if self.action == "list":
            filters = parse_query(self.request, CreditNoteListQuerySerializer)
        return InstrumentService.list_credit_notes(**filters).prefetch_related(
            "allocations"
        )

    def create(self, request):
        serializer = CreditNoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            credit_note = InstrumentService.create_credit_note(
                counterparty_type=data["counterparty_type"],
                counterparty_id=data["counterparty_id"],
                amount_cents=data["amount_cents"],
                issued_at=timezone.now(),
                notes=data.get("notes"),
                source=source_from(data),
                reference_number=data.get("reference_number"),
            )
        except FinanceError as exc:
            return error_response(exc)

        return Response(
            CreditNoteSerializer(credit_note).data,
            status=status.HTTP_201_CREATED,
        )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_debit_notes",
        summary="List debit notes",
        parameters=[InstrumentListQuerySerializer],
        tags=["Finance - Debit Notes"],
    ),
    create=extend_schema(
        operation_id="create_debit_note",
        summary="Issue a debit note (posts a ledger entry)",
        request=DebitNoteCreateSerializer,
        responses={201: DebitNoteSerializer},
        tags=["Finance - Debit Notes"],
    ),
    retrieve=extend_schema(
        operation_id="get_debit_note",
        summary="Get debit note with its ledger entry",
        tags=["Finance - Debit Notes"],
    ),
)
class DebitNoteViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Debit notes. Each one posted a ledger entry when it was created."""

    serializer_class = DebitNoteSerializer
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        filters = {}
        if self.action == "list":
            filters = parse_query(self.request, InstrumentListQuerySerializer)
        return InstrumentService.list_debit_notes(**filters)

    def create(self, request):
        serializer = DebitNoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            debit_note = InstrumentService.create_debit_note(
                counterparty_type=data["counterparty_type"],
                counterparty_id=data["counterparty_id"],
                amount_cents=data["amount_cents"],
                issued_at=timezone.now(),
                notes=data.get("notes"),
                source=source_from(data),
                reference_number=data.get("reference_number"),
            )
        except FinanceError as exc:
            return error_response(exc)

        logger.info(
            f"Debit note {debit_note.reference_number} created by user {request.user.pk}"
        )
        return Response(
            DebitNoteSerializer(debit_note).data,
            status=status.HTTP_201_CREATED,
        )
