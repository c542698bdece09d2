"""
Finance signals.

entry_settled is sent after the transaction commits when an allocation
brings a ledger entry's outstanding balance to zero. Sales and purchase
modules connect to it to mark their documents as paid.

Signal kwargs:
    entry_id: UUID of the settled entry
    kind: EntryKind value
    reference_type: Originating document type (e.g., 'INV')
    reference_id: Originating document UUID

Usage:
    from django.dispatch import receiver
    from finance.models import LedgerEntry
    from finance.signals import entry_settled

    @receiver(entry_settled, sender=LedgerEntry)
    def mark_invoice_paid(sender, entry_id, reference_type, reference_id, **kwargs):
        ...
"""

from django.dispatch import Signal

entry_settled = Signal()
