"""
Serializers for finance API.

Serializer Hierarchy:
    LedgerEntrySerializer: Entry with outstanding balance
    LedgerEntryCreateSerializer: Post a receivable or payable

    PaymentSerializer: Payment with remaining_cents and allocations
    PaymentCreateSerializer: Record a payment
    CreditNoteSerializer / CreditNoteCreateSerializer
    DebitNoteSerializer / DebitNoteCreateSerializer

    AllocateRequestSerializer: {entry_id, amount_cents}
    AllocationRecordSerializer: Result of one allocation

Design Decisions:
    - Read and write serializers are separate
    - Write serializers only validate shape; business rules are enforced
      by the services and surface as FinanceError responses
    - Timestamps (posted_at, paid_at, issued_at) are set by the view
"""

from __future__ import annotations

from rest_framework import serializers

from finance.models import (
    CounterpartyType,
    CreditNote,
    CreditNoteAllocation,
    DebitNote,
    EntryKind,
    LedgerEntry,
    Payment,
    PaymentAllocation,
    PaymentDirection,
)

# =============================================================================
# Ledger entries
# =============================================================================


class LedgerEntrySerializer(serializers.ModelSerializer):
    is_settled = serializers.BooleanField(read_only=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "kind",
            "counterparty_id",
            "reference_type",
            "reference_id",
            "amount_cents",
            "outstanding_cents",
            "is_settled",
            "posted_at",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class LedgerEntryCreateSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=EntryKind.choices)
    counterparty_id = serializers.UUIDField()
    reference_type = serializers.CharField(max_length=64)
    reference_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField()


# =============================================================================
# Allocations
# =============================================================================


class _AllocationSerializer(serializers.ModelSerializer):
    entry_id = serializers.UUIDField(source="target_entry_id", read_only=True)
    entry_kind = serializers.SerializerMethodField()

    def get_entry_kind(self, obj) -> str:
        return EntryKind.RECEIVABLE if obj.receivable_entry_id else EntryKind.PAYABLE


class PaymentAllocationSerializer(_AllocationSerializer):
    class Meta:
        model = PaymentAllocation
        fields = ["id", "entry_id", "entry_kind", "amount_cents", "created_at"]
        read_only_fields = fields


class CreditNoteAllocationSerializer(_AllocationSerializer):
    class Meta:
        model = CreditNoteAllocation
        fields = ["id", "entry_id", "entry_kind", "amount_cents", "created_at"]
        read_only_fields = fields


class AllocateRequestSerializer(serializers.Serializer):
    entry_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField()


class AllocationRecordSerializer(serializers.Serializer):
    """Serializes finance.types.AllocationRecord."""

    allocation_id = serializers.UUIDField()
    instrument_type = serializers.CharField(source="instrument.kind")
    instrument_id = serializers.UUIDField(source="instrument.id")
    entry_id = serializers.UUIDField()
    entry_kind = serializers.CharField()
    amount_cents = serializers.IntegerField()
    entry_outstanding_cents = serializers.IntegerField()
    instrument_remaining_cents = serializers.IntegerField()


class AutoAllocationResultSerializer(serializers.Serializer):
    """Serializes finance.types.AutoAllocationResult."""

    allocations = AllocationRecordSerializer(many=True)
    total_allocated_cents = serializers.IntegerField()


# =============================================================================
# Instruments
# =============================================================================


class _InstrumentCreateSerializer(serializers.Serializer):
    counterparty_type = serializers.ChoiceField(choices=CounterpartyType.choices)
    counterparty_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    reference_number = serializers.CharField(
        required=False,
        max_length=64,
        help_text="Defaults to the next number in the document sequence",
    )


class _NoteCreateSerializer(_InstrumentCreateSerializer):
    source_reference_type = serializers.CharField(required=False, max_length=64)
    source_reference_id = serializers.UUIDField(required=False)

    def validate(self, attrs):
        has_type = "source_reference_type" in attrs
        has_id = "source_reference_id" in attrs
        if has_type != has_id:
            raise serializers.ValidationError(
                "source_reference_type and source_reference_id must be given together"
            )
        return attrs


class PaymentSerializer(serializers.ModelSerializer):
    remaining_cents = serializers.SerializerMethodField()
    allocations = PaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "reference_number",
            "direction",
            "counterparty_type",
            "counterparty_id",
            "amount_cents",
            "remaining_cents",
            "paid_at",
            "notes",
            "allocations",
            "created_at",
        ]
        read_only_fields = fields

    def get_remaining_cents(self, obj) -> int:
        return obj.get_remaining_cents()


class PaymentCreateSerializer(_InstrumentCreateSerializer):
    direction = serializers.ChoiceField(choices=PaymentDirection.choices)


class CreditNoteSerializer(serializers.ModelSerializer):
    allocations = CreditNoteAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = CreditNote
        fields = [
            "id",
            "reference_number",
            "counterparty_type",
            "counterparty_id",
            "amount_cents",
            "remaining_cents",
            "issued_at",
            "notes",
            "source_reference_type",
            "source_reference_id",
            "allocations",
            "created_at",
        ]
        read_only_fields = fields


class CreditNoteCreateSerializer(_NoteCreateSerializer):
    pass


class DebitNoteSerializer(serializers.ModelSerializer):
    ledger_entry = LedgerEntrySerializer(read_only=True)

    class Meta:
        model = DebitNote
        fields = [
            "id",
            "reference_number",
            "counterparty_type",
            "counterparty_id",
            "amount_cents",
            "issued_at",
            "notes",
            "source_reference_type",
            "source_reference_id",
            "ledger_entry",
            "created_at",
        ]
        read_only_fields = fields


class DebitNoteCreateSerializer(_NoteCreateSerializer):
    pass


# =============================================================================
# Query parameters
# =============================================================================


class EntryListQuerySerializer(serializers.Serializer):
    counterparty_id = serializers.UUIDField(required=False)
    outstanding_only = serializers.BooleanField(required=False, default=True)


class InstrumentListQuerySerializer(serializers.Serializer):
    counterparty_type = serializers.ChoiceField(
        choices=CounterpartyType.choices, required=False
    )
    counterparty_id = serializers.UUIDField(required=False)


class PaymentListQuerySerializer(InstrumentListQuerySerializer):
    direction = serializers.ChoiceField(choices=PaymentDirection.choices, required=False)


class CreditNoteListQuerySerializer(InstrumentListQuerySerializer):
    remaining_only = serializers.BooleanField(required=False, default=False)
