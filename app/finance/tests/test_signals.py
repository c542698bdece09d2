"""
Tests for the entry_settled signal definition and app wiring.
"""

from django.apps import apps
from django.dispatch import Signal

from finance.models import LedgerEntry
from finance.signals import entry_settled


class TestEntrySettledSignal:
    def test_is_a_signal(self):
        assert isinstance(entry_settled, Signal)

    def test_app_is_registered(self):
        config = apps.get_app_config("finance")

        assert config.verbose_name == "Finance"

    def test_receivers_connect_by_sender(self):
        received = []

        def receiver(sender, entry_id, **kwargs):
            received.append(entry_id)

        entry_settled.connect(receiver, sender=LedgerEntry, weak=False)
        try:
            entry_settled.send(
                sender=LedgerEntry,
                entry_id="e-1",
                kind="receivable",
                reference_type="INV",
                reference_id="r-1",
            )
            entry_settled.send(sender=object, entry_id="ignored")
        finally:
            entry_settled.disconnect(receiver, sender=LedgerEntry)

        assert received == ["e-1"]
