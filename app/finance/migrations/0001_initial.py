import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "document_type",
                    models.CharField(
                        help_text="Sequence key (e.g., 'payment')",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "prefix",
                    models.CharField(
                        help_text="Prefix for generated numbers (e.g., 'PAY')",
                        max_length=16,
                    ),
                ),
                (
                    "next_number",
                    models.PositiveBigIntegerField(
                        default=1,
                        help_text="Number the next document will receive",
                    ),
                ),
            ],
            options={
                "ordering": ["document_type"],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each update",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[("receivable", "Receivable"), ("payable", "Payable")],
                        help_text="Receivable (customer owes) or payable (we owe supplier)",
                        max_length=20,
                    ),
                ),
                (
                    "counterparty_id",
                    models.UUIDField(
                        db_index=True,
                        help_text="Customer ID for receivables, supplier ID for payables",
                    ),
                ),
                (
                    "reference_type",
                    models.CharField(
                        help_text="Type of originating document (e.g., 'INV', 'SINV', 'DBN')",
                        max_length=64,
                    ),
                ),
                (
                    "reference_id",
                    models.UUIDField(help_text="UUID of originating document"),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Original amount in cents (immutable)",
                    ),
                ),
                (
                    "outstanding_cents",
                    models.PositiveBigIntegerField(
                        help_text="Unsettled amount in cents",
                    ),
                ),
                (
                    "posted_at",
                    models.DateTimeField(
                        help_text="Posting timestamp, used as FIFO allocation order",
                    ),
                ),
            ],
            options={
                "ordering": ["-posted_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["kind", "counterparty_id", "posted_at", "id"],
                        name="ledger_kind_cp_posted_idx",
                    ),
                    models.Index(
                        fields=["reference_type", "reference_id"],
                        name="ledger_reference_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="ledger_entry_amount_cents_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("outstanding_cents__gte", 0),
                            ("outstanding_cents__lte", models.F("amount_cents")),
                        ),
                        name="ledger_entry_outstanding_within_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each update",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "reference_number",
                    models.CharField(
                        help_text="Document number (e.g., 'PAY000001')",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "counterparty_type",
                    models.CharField(
                        choices=[("customer", "Customer"), ("supplier", "Supplier")],
                        help_text="Customer or supplier",
                        max_length=20,
                    ),
                ),
                (
                    "counterparty_id",
                    models.UUIDField(
                        db_index=True,
                        help_text="UUID of the customer or supplier",
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Face value in cents (immutable)",
                    ),
                ),
                (
                    "notes",
                    models.TextField(blank=True, help_text="Free-text notes", null=True),
                ),
                (
                    "direction",
                    models.CharField(
                        choices=[("inbound", "Inbound"), ("outbound", "Outbound")],
                        help_text="Inbound (received) or outbound (paid)",
                        max_length=20,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(help_text="When the payment was made"),
                ),
            ],
            options={
                "ordering": ["-paid_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="finance_payment_amount_cents_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditNote",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each update",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "reference_number",
                    models.CharField(
                        help_text="Document number (e.g., 'PAY000001')",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "counterparty_type",
                    models.CharField(
                        choices=[("customer", "Customer"), ("supplier", "Supplier")],
                        help_text="Customer or supplier",
                        max_length=20,
                    ),
                ),
                (
                    "counterparty_id",
                    models.UUIDField(
                        db_index=True,
                        help_text="UUID of the customer or supplier",
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Face value in cents (immutable)",
                    ),
                ),
                (
                    "notes",
                    models.TextField(blank=True, help_text="Free-text notes", null=True),
                ),
                (
                    "remaining_cents",
                    models.PositiveBigIntegerField(
                        help_text="Unallocated credit in cents",
                    ),
                ),
                (
                    "issued_at",
                    models.DateTimeField(help_text="When the credit note was issued"),
                ),
                (
                    "source_reference_type",
                    models.CharField(
                        blank=True,
                        help_text="Type of originating document (e.g., a customer return)",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "source_reference_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of originating document",
                        null=True,
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="finance_creditnote_amount_cents_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("remaining_cents__gte", 0),
                            ("remaining_cents__lte", models.F("amount_cents")),
                        ),
                        name="credit_note_remaining_within_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DebitNote",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "reference_number",
                    models.CharField(
                        help_text="Document number (e.g., 'PAY000001')",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "counterparty_type",
                    models.CharField(
                        choices=[("customer", "Customer"), ("supplier", "Supplier")],
                        help_text="Customer or supplier",
                        max_length=20,
                    ),
                ),
                (
                    "counterparty_id",
                    models.UUIDField(
                        db_index=True,
                        help_text="UUID of the customer or supplier",
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Face value in cents (immutable)",
                    ),
                ),
                (
                    "notes",
                    models.TextField(blank=True, help_text="Free-text notes", null=True),
                ),
                (
                    "issued_at",
                    models.DateTimeField(help_text="When the debit note was issued"),
                ),
                (
                    "source_reference_type",
                    models.CharField(
                        blank=True,
                        help_text="Type of originating document",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "source_reference_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of originating document",
                        null=True,
                    ),
                ),
                (
                    "ledger_entry",
                    models.OneToOneField(
                        help_text="Ledger entry posted by this debit note",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="debit_note",
                        to="finance.ledgerentry",
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="finance_debitnote_amount_cents_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Allocated amount in cents"),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this allocation was recorded",
                    ),
                ),
                (
                    "receivable_entry",
                    models.ForeignKey(
                        blank=True,
                        help_text="Receivable entry settled by this allocation",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="paymentallocations_as_receivable",
                        to="finance.ledgerentry",
                    ),
                ),
                (
                    "payable_entry",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payable entry settled by this allocation",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="paymentallocations_as_payable",
                        to="finance.ledgerentry",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        help_text="Payment being allocated",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="finance.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="finance_paymentallocation_amount_cents_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("payable_entry__isnull", True),
                                ("receivable_entry__isnull", False),
                            ),
                            models.Q(
                                ("payable_entry__isnull", False),
                                ("receivable_entry__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="finance_paymentallocation_exactly_one_entry",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditNoteAllocation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Allocated amount in cents"),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this allocation was recorded",
                    ),
                ),
                (
                    "receivable_entry",
                    models.ForeignKey(
                        blank=True,
                        help_text="Receivable entry settled by this allocation",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="creditnoteallocations_as_receivable",
                        to="finance.ledgerentry",
                    ),
                ),
                (
                    "payable_entry",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payable entry settled by this allocation",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="creditnoteallocations_as_payable",
                        to="finance.ledgerentry",
                    ),
                ),
                (
                    "credit_note",
                    models.ForeignKey(
                        help_text="Credit note being allocated",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="finance.creditnote",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="finance_creditnoteallocation_amount_cents_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("payable_entry__isnull", True),
                                ("receivable_entry__isnull", False),
                            ),
                            models.Q(
                                ("payable_entry__isnull", False),
                                ("receivable_entry__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="finance_creditnoteallocation_exactly_one_entry",
                    ),
                ],
            },
        ),
    ]
