"""
Finance app configuration.

This app provides the receivables/payables sub-ledger:
- Ledger entries for amounts owed by customers and owed to suppliers
- Settlement instruments (payments, credit notes, debit notes)
- The allocation engine and FIFO auto-allocation
"""

from django.apps import AppConfig


class FinanceConfig(AppConfig):
    """Configuration for the finance application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "finance"
    verbose_name = "Finance"

    def ready(self) -> None:
        """Import signal definitions so receivers can connect at startup."""
        from finance import signals  # noqa: F401
