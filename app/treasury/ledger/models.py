"""
Ledger models for cash register accounting.

This module defines the core models of the cash ledger:
- Cashbox: A named cash balance (one per branch/register)
- Transaction: An immutable, append-only entry in a cashbox's history

A cashbox's current_balance always equals its initial_balance plus the
signed sum of its transactions. Only LedgerService writes balances and
creates transactions; the model layer refuses anything else.

Usage:
    from treasury.ledger.models import Cashbox, Transaction, TransactionType

    cashbox = Cashbox.objects.active().for_branch(branch_id).get()
    today = cashbox.transactions.created_on(timezone.localdate())
    print(today.income().total(), today.expense().total())
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.db import models
from django.db.models import Case, Exists, OuterRef, Q, Sum, Value, When
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from treasury.ledger.exceptions import Immutable
from treasury.ledger.types import Reference
from treasury.references import ReferenceKind

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
MONEY_DIGITS = 15
MONEY_PLACES = 2


def money_field(**kwargs) -> models.DecimalField:
    return models.DecimalField(
        max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, **kwargs
    )


def day_bounds(day: date) -> tuple[datetime | None, datetime | None]:
    """
    Return the [start, end) aware datetimes of a local calendar day.

    The first and last representable days have an open (None) lower and
    upper bound respectively.
    """
    tz = timezone.get_current_timezone()
    start = end = None
    if day > date.min:
        start = timezone.make_aware(datetime.combine(day, time.min), tz)
    if day < date.max:
        end = timezone.make_aware(datetime.combine(day + timedelta(days=1), time.min), tz)
    return start, end


class TransactionType(models.TextChoices):
    """
    Direction of a transaction.

    Amounts are always positive; the type carries the sign.

    Values:
        INCOME: Money entering the cashbox
        EXPENSE: Money leaving the cashbox
        REVERSAL: Counter-entry cancelling exactly one earlier transaction
    """

    INCOME = "income", "Income"
    EXPENSE = "expense", "Expense"
    REVERSAL = "reversal", "Reversal"


class TransactionCategory(models.TextChoices):
    """
    Business reason for a transaction.

    Closed set shared with the collaborators that post to the ledger.
    REVERSAL is reserved for entries created by reverse_transaction().
    """

    PAYMENT = "payment", "Payment"
    CUSTODY_DEPOSIT = "custody_deposit", "Custody Deposit"
    CUSTODY_RETURN = "custody_return", "Custody Return"
    CUSTODY_FORFEITURE = "custody_forfeiture", "Custody Forfeiture"
    EXPENSE = "expense", "Expense"
    RECEIVABLE_PAYMENT = "receivable_payment", "Receivable Payment"
    SALARY_EXPENSE = "salary_expense", "Salary Expense"
    REVERSAL = "reversal", "Reversal"
    INITIAL_BALANCE = "initial_balance", "Initial Balance"
    ADJUSTMENT = "adjustment", "Adjustment"


# Entries that add to / take from the balance, reversals included
INFLOW = Q(type=TransactionType.INCOME) | Q(
    type=TransactionType.REVERSAL,
    reversed_transaction__type=TransactionType.EXPENSE,
)
OUTFLOW = Q(type=TransactionType.EXPENSE) | Q(
    type=TransactionType.REVERSAL,
    reversed_transaction__type=TransactionType.INCOME,
)


def _sum_where(condition: Q) -> Coalesce:
    return Coalesce(
        Sum(
            Case(
                When(condition, then="amount"),
                default=Value(ZERO),
                output_field=money_field(),
            )
        ),
        Value(ZERO),
        output_field=money_field(),
    )


# =============================================================================
# Cashbox
# =============================================================================


class CashboxQuerySet(models.QuerySet):
    def active(self) -> CashboxQuerySet:
        return self.filter(is_active=True)

    def for_branch(self, branch_id) -> CashboxQuerySet:
        return self.filter(branch_id=branch_id)


class Cashbox(UUIDPrimaryKeyMixin, BaseModel):
    """
    A cash balance aggregate, typically one physical register per branch.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        branch_id: Optional UUID of the owning branch (one cashbox per branch)
        name: Display name
        description: Free text
        initial_balance: Opening float, set once at creation
        current_balance: Running balance, written only by LedgerService
        is_active: Inactive cashboxes reject new writes
        created_at / updated_at: From BaseModel

    Note:
        save() on an existing row never writes initial_balance or
        current_balance, whatever the in-memory values are. Balance changes
        go through LedgerService, which updates the row under a lock.
    """

    BALANCE_FIELDS = frozenset({"initial_balance", "current_balance"})

    branch_id = models.UUIDField(
        null=True,
        blank=True,
        unique=True,
        help_text="UUID of the branch that owns this cashbox",
    )
    name = models.CharField(
        max_length=255,
        help_text="Display name of this cashbox",
    )
    description = models.TextField(
        blank=True,
        default="",
        help_text="Free-text description",
    )
    initial_balance = money_field(
        default=ZERO,
        help_text="Opening balance, fixed at creation",
    )
    current_balance = money_field(
        default=ZERO,
        help_text="Running balance (maintained by the ledger service)",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this cashbox accepts new transactions",
    )

    objects = CashboxQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "cashboxes"
        constraints = [
            models.CheckConstraint(
                condition=Q(current_balance__gte=0),
                name="treasury_cashbox_current_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(initial_balance__gte=0),
                name="treasury_cashbox_initial_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                update_fields = [
                    f.name
                    for f in self._meta.concrete_fields
                    if not f.primary_key and f.name not in self.BALANCE_FIELDS
                ]
            else:
                update_fields = [
                    name for name in update_fields if name not in self.BALANCE_FIELDS
                ]
                if "updated_at" not in update_fields and update_fields:
                    update_fields.append("updated_at")
            kwargs["update_fields"] = update_fields
        super().save(*args, **kwargs)

    def today_income(self) -> Decimal:
        return self.transactions.created_on(timezone.localdate()).income().total()

    def today_expense(self) -> Decimal:
        return self.transactions.created_on(timezone.localdate()).expense().total()


# =============================================================================
# Transaction
# =============================================================================


def _reject_mutation(action: str, **context) -> Immutable:
    logger.error(
        "Attempted to %s a recorded transaction",
        action,
        extra={"action": action, **context},
    )
    return Immutable(
        f"Transactions are immutable and cannot be {action}d; "
        "record a reversal instead",
        details={"action": action, **context},
    )


class TransactionQuerySet(models.QuerySet):
    """
    Read-only query surface for transactions.

    Bulk writes are refused; the only way in is LedgerService.
    """

    # Guards

    def update(self, **kwargs):
        raise _reject_mutation("update", fields=sorted(kwargs))

    def delete(self):
        raise _reject_mutation("delete")

    def bulk_update(self, objs, fields, batch_size=None):
        raise _reject_mutation("update", fields=sorted(fields))

    # Filters

    def for_cashbox(self, cashbox) -> TransactionQuerySet:
        return self.filter(cashbox=cashbox)

    def of_type(self, txn_type: TransactionType | str) -> TransactionQuerySet:
        return self.filter(type=txn_type)

    def income(self) -> TransactionQuerySet:
        return self.of_type(TransactionType.INCOME)

    def expense(self) -> TransactionQuerySet:
        return self.of_type(TransactionType.EXPENSE)

    def reversals(self) -> TransactionQuerySet:
        return self.of_type(TransactionType.REVERSAL)

    def for_category(self, category: TransactionCategory | str) -> TransactionQuerySet:
        return self.filter(category=category)

    def for_reference(self, kind: ReferenceKind | str, reference_id) -> TransactionQuerySet:
        return self.filter(reference_kind=kind, reference_id=str(reference_id))

    def in_range(self, start: datetime | None = None, end: datetime | None = None) -> TransactionQuerySet:
        """Transactions created within [start, end], either bound optional."""
        qs = self
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lte=end)
        return qs

    def created_on(self, day: date) -> TransactionQuerySet:
        start, end = day_bounds(day)
        qs = self
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lt=end)
        return qs

    def with_reversal_flag(self) -> TransactionQuerySet:
        """Annotate has_reversal so is_reversed doesn't cost a query per row."""
        return self.annotate(
            has_reversal=Exists(
                Transaction.objects.filter(reversed_transaction_id=OuterRef("pk"))
            )
        )

    # Aggregates

    def total(self) -> Decimal:
        """Sum of amounts, regardless of direction."""
        return self.aggregate(
            total=Coalesce(Sum("amount"), Value(ZERO), output_field=money_field())
        )["total"]

    def net_effect(self) -> Decimal:
        """
        Signed sum of the transactions' effect on the balance.

        Income adds, expense subtracts; a reversal takes the opposite
        sign of the transaction it reverses.
        """
        result = self.aggregate(inflow=_sum_where(INFLOW), outflow=_sum_where(OUTFLOW))
        return result["inflow"] - result["outflow"]


class Transaction(UUIDPrimaryKeyMixin, models.Model):
    """
    An immutable entry in a cashbox's ledger.

    Transactions are created once by LedgerService, in the same database
    transaction that moves the cashbox balance, and never change afterwards.
    Corrections are new REVERSAL entries linked to the original.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        cashbox: Owning cashbox
        sequence: 1-based position in the cashbox's history
        type: income / expense / reversal
        amount: Always positive; direction comes from type
        balance_after: Cashbox balance right after this entry
        category: Business reason (TransactionCategory)
        description: Human-readable description
        reference_kind / reference_id: Optional pointer to the causing record
        reversed_transaction: The entry this one reverses (reversals only)
        created_by: Identifier of the user or service that posted it
        metadata: Arbitrary JSON data
        created_at: Timestamp when the entry was recorded

    Constraints:
        - amount > 0, balance_after >= 0
        - (cashbox, sequence) unique
        - reversed_transaction is set iff type is reversal, and is unique
        - reference_kind and reference_id are set together
    """

    cashbox = models.ForeignKey(
        Cashbox,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Cashbox this entry belongs to",
    )
    sequence = models.PositiveIntegerField(
        help_text="Position of this entry in the cashbox history (1-based)",
    )
    type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        help_text="Direction of this entry",
    )
    amount = money_field(
        help_text="Amount moved (always positive)",
    )
    balance_after = money_field(
        help_text="Cashbox balance immediately after this entry",
    )
    category = models.CharField(
        max_length=32,
        choices=TransactionCategory.choices,
        help_text="Business reason for this entry",
    )
    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable description of this entry",
    )
    reference_kind = models.CharField(
        max_length=20,
        choices=ReferenceKind.choices,
        null=True,
        blank=True,
        help_text="Kind of the collaborator record that caused this entry",
    )
    reference_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Identifier of the collaborator record that caused this entry",
    )
    reversed_transaction = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
        help_text="Entry cancelled by this reversal",
    )
    created_by = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Identifier of the user or service that created this entry",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    objects = TransactionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-sequence"]
        indexes = [
            models.Index(
                fields=["cashbox", "created_at"],
                name="treasury_tr_cashbox_4b0e7d_idx",
            ),
            models.Index(
                fields=["reference_kind", "reference_id"],
                name="treasury_tr_referen_6f2a1c_idx",
            ),
            models.Index(fields=["category"], name="treasury_tr_categor_9d3e52_idx"),
            models.Index(fields=["type"], name="treasury_tr_type_1a8c40_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["cashbox", "sequence"],
                name="treasury_transaction_unique_sequence",
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="treasury_transaction_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(balance_after__gte=0),
                name="treasury_transaction_balance_after_non_negative",
            ),
            models.CheckConstraint(
                condition=(
                    Q(type=TransactionType.REVERSAL, reversed_transaction__isnull=False)
                    | (
                        ~Q(type=TransactionType.REVERSAL)
                        & Q(reversed_transaction__isnull=True)
                    )
                ),
                name="treasury_transaction_reversal_link",
            ),
            models.CheckConstraint(
                condition=(
                    Q(reference_kind__isnull=True, reference_id__isnull=True)
                    | Q(reference_kind__isnull=False, reference_id__isnull=False)
                ),
                name="treasury_transaction_reference_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} #{self.sequence}: {self.amount}"

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise _reject_mutation("update", transaction_id=str(self.pk))
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise _reject_mutation("delete", transaction_id=str(self.pk))

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    @property
    def is_reversal(self) -> bool:
        return self.type == TransactionType.REVERSAL

    @property
    def is_reversed(self) -> bool:
        """Whether a reversal of this transaction has been recorded."""
        annotated = getattr(self, "has_reversal", None)
        if annotated is not None:
            return bool(annotated)
        return Transaction.objects.filter(reversed_transaction_id=self.pk).exists()

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this entry on the cashbox balance."""
        if self.is_income:
            return self.amount
        if self.is_expense:
            return -self.amount
        # A reversal undoes its original
        return -self.reversed_transaction.signed_amount

    @property
    def reference(self) -> Reference | None:
        if not self.reference_kind:
            return None
        return Reference(self.reference_kind, self.reference_id)
