import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Cashbox",
            fields=[
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
                    "branch_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of the branch that owns this cashbox",
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        help_text="Display name of this cashbox",
                        max_length=255,
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Free-text description",
                    ),
                ),
                (
                    "initial_balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Opening balance, fixed at creation",
                        max_digits=15,
                    ),
                ),
                (
                    "current_balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Running balance (maintained by the ledger service)",
                        max_digits=15,
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether this cashbox accepts new transactions",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "cashboxes",
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_balance__gte", 0)),
                        name="treasury_cashbox_current_balance_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("initial_balance__gte", 0)),
                        name="treasury_cashbox_initial_balance_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
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
                    "sequence",
                    models.PositiveIntegerField(
                        help_text="Position of this entry in the cashbox history (1-based)",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("income", "Income"),
                            ("expense", "Expense"),
                            ("reversal", "Reversal"),
                        ],
                        help_text="Direction of this entry",
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount moved (always positive)",
                        max_digits=15,
                    ),
                ),
                (
                    "balance_after",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Cashbox balance immediately after this entry",
                        max_digits=15,
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("payment", "Payment"),
                            ("custody_deposit", "Custody Deposit"),
                            ("custody_return", "Custody Return"),
                            ("custody_forfeiture", "Custody Forfeiture"),
                            ("expense", "Expense"),
                            ("receivable_payment", "Receivable Payment"),
                            ("salary_expense", "Salary Expense"),
                            ("reversal", "Reversal"),
                            ("initial_balance", "Initial Balance"),
                            ("adjustment", "Adjustment"),
                        ],
                        help_text="Business reason for this entry",
                        max_length=32,
                    ),
                ),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Human-readable description of this entry",
                    ),
                ),
                (
                    "reference_kind",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("payment", "Payment"),
                            ("custody", "Custody"),
                            ("expense", "Expense"),
                            ("payroll", "Payroll"),
                            ("receivable", "Receivable"),
                            ("order", "Order"),
                        ],
                        help_text="Kind of the collaborator record that caused this entry",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "reference_id",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of the collaborator record that caused this entry",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Identifier of the user or service that created this entry",
                        max_length=255,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON data for extensibility",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this entry was recorded",
                    ),
                ),
                (
                    "cashbox",
                    models.ForeignKey(
                        help_text="Cashbox this entry belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="treasury.cashbox",
                    ),
                ),
                (
                    "reversed_transaction",
                    models.OneToOneField(
                        blank=True,
                        help_text="Entry cancelled by this reversal",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversal",
                        to="treasury.transaction",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-sequence"],
                "indexes": [
                    models.Index(
                        fields=["cashbox", "created_at"],
                        name="treasury_tr_cashbox_4b0e7d_idx",
                    ),
                    models.Index(
                        fields=["reference_kind", "reference_id"],
                        name="treasury_tr_referen_6f2a1c_idx",
                    ),
                    models.Index(
                        fields=["category"],
                        name="treasury_tr_categor_9d3e52_idx",
                    ),
                    models.Index(
                        fields=["type"],
                        name="treasury_tr_type_1a8c40_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("cashbox", "sequence"),
                        name="treasury_transaction_unique_sequence",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="treasury_transaction_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("balance_after__gte", 0)),
                        name="treasury_transaction_balance_after_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("type", "reversal"),
                                ("reversed_transaction__isnull", False),
                            ),
                            models.Q(
                                models.Q(("type", "reversal"), _negated=True),
                                ("reversed_transaction__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="treasury_transaction_reversal_link",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("reference_kind__isnull", True),
                                ("reference_id__isnull", True),
                            ),
                            models.Q(
                                ("reference_kind__isnull", False),
                                ("reference_id__isnull", False),
                            ),
                            _connector="OR",
                        ),
                        name="treasury_transaction_reference_pair",
                    ),
                ],
            },
        ),
    ]
