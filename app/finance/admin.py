"""
Django admin configuration for finance models.

Everything here is a financial record, so the admin is read-only: no add,
change or delete. Writes go through the finance services.

Key features:
- Outstanding / remaining balances shown in list views
- Allocations shown inline on payments and credit notes
- Filters by kind, counterparty type and settlement state
"""

from django.contrib import admin

from .models import (
    CreditNote,
    CreditNoteAllocation,
    DebitNote,
    DocumentSequence,
    LedgerEntry,
    Payment,
    PaymentAllocation,
)


def format_cents(cents: int) -> str:
    return f"{cents / 100:,.2f}"


class ReadOnlyAdminMixin:
    """Disable add, change and delete for immutable financial records."""

    def has_add_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class SettledFilter(admin.SimpleListFilter):
    title = "settlement"
    parameter_name = "settled"

    def lookups(self, request, model_admin):
        return [("open", "Open"), ("settled", "Settled")]

    def queryset(self, request, queryset):
        if self.value() == "open":
            return queryset.filter(outstanding_cents__gt=0)
        if self.value() == "settled":
            return queryset.filter(outstanding_cents=0)
        return queryset


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Receivables and payables with their outstanding balances."""

    list_display = [
        "id",
        "kind",
        "counterparty_id",
        "reference_type",
        "amount_display",
        "outstanding_display",
        "posted_at",
    ]
    list_filter = ["kind", SettledFilter, "reference_type", "posted_at"]
    search_fields = ["id", "counterparty_id", "reference_id"]
    date_hierarchy = "posted_at"
    ordering = ["-posted_at"]

    fieldsets = (
        (
            "Entry Details",
            {"fields": ("id", "kind", "counterparty_id", "posted_at")},
        ),
        (
            "Amounts",
            {"fields": ("amount_cents", "outstanding_cents", "version")},
        ),
        (
            "Reference",
            {"fields": ("reference_type", "reference_id")},
        ),
        (
            "Timestamps",
            {"fields": ("created_at", "updated_at")},
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: LedgerEntry) -> str:
        return format_cents(obj.amount_cents)

    @admin.display(description="Outstanding")
    def outstanding_display(self, obj: LedgerEntry) -> str:
        return format_cents(obj.outstanding_cents)


class PaymentAllocationInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = PaymentAllocation
    fields = ["receivable_entry", "payable_entry", "amount_cents", "created_at"]
    readonly_fields = fields
    extra = 0


class CreditNoteAllocationInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = CreditNoteAllocation
    fields = ["receivable_entry", "payable_entry", "amount_cents", "created_at"]
    readonly_fields = fields
    extra = 0


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Payments with derived remaining amount.

    remaining_display runs an aggregate query per row.
    """

    list_display = [
        "reference_number",
        "direction",
        "counterparty_type",
        "counterparty_id",
        "amount_display",
        "remaining_display",
        "paid_at",
    ]
    list_filter = ["direction", "counterparty_type", "paid_at"]
    search_fields = ["reference_number", "counterparty_id", "id"]
    ordering = ["-paid_at"]
    inlines = [PaymentAllocationInline]

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return format_cents(obj.amount_cents)

    @admin.display(description="Remaining")
    def remaining_display(self, obj: Payment) -> str:
        return format_cents(obj.get_remaining_cents())


@admin.register(CreditNote)
class CreditNoteAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "reference_number",
        "counterparty_type",
        "counterparty_id",
        "amount_display",
        "remaining_display",
        "issued_at",
    ]
    list_filter = ["counterparty_type", "issued_at"]
    search_fields = ["reference_number", "counterparty_id", "id"]
    ordering = ["-issued_at"]
    inlines = [CreditNoteAllocationInline]

    @admin.display(description="Amount")
    def amount_display(self, obj: CreditNote) -> str:
        return format_cents(obj.amount_cents)

    @admin.display(description="Remaining")
    def remaining_display(self, obj: CreditNote) -> str:
        return format_cents(obj.remaining_cents)


@admin.register(DebitNote)
class DebitNoteAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "reference_number",
        "counterparty_type",
        "counterparty_id",
        "amount_display",
        "ledger_entry",
        "issued_at",
    ]
    list_filter = ["counterparty_type", "issued_at"]
    search_fields = ["reference_number", "counterparty_id", "id"]
    list_select_related = ["ledger_entry"]
    ordering = ["-issued_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: DebitNote) -> str:
        return format_cents(obj.amount_cents)


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["document_type", "prefix", "next_number", "updated_at"]
    ordering = ["document_type"]
