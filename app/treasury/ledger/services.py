"""
Ledger service layer for cash operations.

This module provides the LedgerService class, the only code allowed to
move a cashbox balance or create a transaction. Every write validates its
input, locks the cashbox row, re-checks the balance under the lock, and
commits the transaction insert together with the balance update.

Usage:
    from treasury.ledger.services import ledger
    from treasury.ledger.models import TransactionCategory

    cashbox = ledger.create_cashbox("Front desk", initial_balance=Decimal("1000"))

    txn = ledger.record_income(
        cashbox,
        Decimal("500.00"),
        TransactionCategory.PAYMENT,
        description="Payment for order #1042",
        actor=request.user,
    )

    reversal = ledger.reverse_transaction(txn, reason="Duplicate entry", actor=request.user)

    summary = ledger.daily_summary(cashbox)
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from core.exceptions import ConflictError
from treasury.ledger.exceptions import (
    AlreadyReversed,
    BalanceLimitExceeded,
    CannotReverseReversal,
    CashboxNotFound,
    InactiveCashbox,
    InsufficientBalance,
    InvalidAmount,
    InvalidCategory,
    TransactionNotFound,
)
from treasury.ledger.models import (
    ZERO,
    Cashbox,
    Transaction,
    TransactionCategory,
    TransactionType,
    day_bounds,
)
from treasury.ledger.types import (
    ChainBreak,
    DailySummary,
    ReconciliationResult,
    Reference,
)
from treasury.locks import cashbox_transaction

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# DecimalField(max_digits=15, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999999.99")

SYSTEM_ACTOR = "system"


def normalize_amount(value: Any, allow_zero: bool = False) -> Decimal:
    """
    Coerce a monetary input to a 2-place Decimal.

    Floats go through str() so that 10.1 stays 10.10 and not
    10.0999999999999996447286321199499070644378662109375.

    Raises:
        InvalidAmount: If the value is not a finite, positive (or zero when
            allowed) amount with at most two decimal places
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}", details={"amount": str(value)})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}", details={"amount": str(value)})

    if not amount.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}", details={"amount": str(value)})
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmount(
            f"Amount must be {'non-negative' if allow_zero else 'positive'}, got {amount}",
            details={"amount": str(amount)},
        )
    if amount > MAX_AMOUNT:
        raise InvalidAmount(
            f"Amount {amount} exceeds the maximum of {MAX_AMOUNT}",
            details={"amount": str(amount)},
        )
    if amount != amount.quantize(CENT):
        raise InvalidAmount(
            f"Amount {amount} has more than two decimal places",
            details={"amount": str(amount)},
        )
    return amount.quantize(CENT)


def normalize_category(value: Any) -> TransactionCategory:
    """
    Validate a category for income/expense entries.

    Raises:
        InvalidCategory: If the value is not a TransactionCategory, or is
            the reserved REVERSAL category
    """
    try:
        category = TransactionCategory(value)
    except ValueError:
        raise InvalidCategory(
            f"Unknown transaction category: {value!r}",
            details={"category": str(value), "allowed": list(TransactionCategory.values)},
        )
    if category == TransactionCategory.REVERSAL:
        raise InvalidCategory(
            "The reversal category is reserved for reverse_transaction()",
            details={"category": category.value},
        )
    return category


def actor_id(actor: Any) -> str:
    """Identifier stored in Transaction.created_by for a user, a service name or None."""
    if actor is None:
        return SYSTEM_ACTOR
    if isinstance(actor, str):
        return actor
    pk = getattr(actor, "pk", None)
    if pk is not None:
        return str(pk)
    return str(actor)


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Atomic transactions (entry insert + balance update commit together)
    - Per-cashbox row lock serializes writers on the same cashbox
    - Balance validation under the lock, never below zero
    - Reversals as the only correction mechanism
    - Read helpers that derive figures from the log instead of storing them

    All methods are static - no instance state is maintained.
    """

    # =========================================================================
    # Cashbox management
    # =========================================================================

    @staticmethod
    def create_cashbox(
        name: str,
        branch_id: uuid.UUID | None = None,
        initial_balance: Any = ZERO,
        description: str = "",
    ) -> Cashbox:
        """
        Create a cashbox whose current balance starts at its initial balance.

        Raises:
            InvalidAmount: If initial_balance is negative or malformed
            ConflictError: If the branch already has a cashbox
        """
        balance = normalize_amount(initial_balance, allow_zero=True)
        if branch_id is not None and Cashbox.objects.for_branch(branch_id).exists():
            raise ConflictError(
                f"Branch {branch_id} already has a cashbox",
                error_code="CASHBOX_EXISTS",
                details={"branch_id": str(branch_id)},
            )

        cashbox = Cashbox.objects.create(
            name=name,
            branch_id=branch_id,
            description=description,
            initial_balance=balance,
            current_balance=balance,
        )
        logger.info(
            "Cashbox created",
            extra={
                "cashbox_id": str(cashbox.id),
                "branch_id": str(branch_id) if branch_id else None,
                "initial_balance": str(balance),
            },
        )
        return cashbox

    @staticmethod
    def get_or_create_branch_cashbox(
        branch_id: uuid.UUID,
        branch_name: str | None = None,
    ) -> Cashbox:
        """
        Return the branch's cashbox, provisioning an empty one on first use.
        """
        label = branch_name or f"Branch {branch_id}"
        cashbox, created = Cashbox.objects.get_or_create(
            branch_id=branch_id,
            defaults={
                "name": f"{label} Cashbox",
                "description": f"Cashbox for branch: {label}",
            },
        )
        if created:
            logger.info(
                "Branch cashbox provisioned",
                extra={"cashbox_id": str(cashbox.id), "branch_id": str(branch_id)},
            )
        return cashbox

    @staticmethod
    def get_cashbox(cashbox_id: uuid.UUID) -> Cashbox:
        """
        Get cashbox by ID.

        Raises:
            CashboxNotFound: If cashbox doesn't exist
        """
        try:
            return Cashbox.objects.get(id=cashbox_id)
        except (Cashbox.DoesNotExist, DjangoValidationError, ValueError):
            raise CashboxNotFound(
                f"Cashbox {cashbox_id} not found",
                details={"cashbox_id": str(cashbox_id)},
            )

    @staticmethod
    def get_transaction(transaction_id: uuid.UUID) -> Transaction:
        """
        Get transaction by ID.

        Raises:
            TransactionNotFound: If transaction doesn't exist
        """
        try:
            return Transaction.objects.select_related("cashbox").get(id=transaction_id)
        except (Transaction.DoesNotExist, DjangoValidationError, ValueError):
            raise TransactionNotFound(
                f"Transaction {transaction_id} not found",
                details={"transaction_id": str(transaction_id)},
            )

    @staticmethod
    def deactivate_cashbox(cashbox_id: uuid.UUID) -> Cashbox:
        """
        Suspend writes to a cashbox. Its history is untouched.

        Raises:
            CashboxNotFound: If cashbox doesn't exist
        """
        cashbox = LedgerService.get_cashbox(cashbox_id)
        cashbox.is_active = False
        cashbox.save(update_fields=["is_active"])
        logger.info("Cashbox deactivated", extra={"cashbox_id": str(cashbox.id)})
        return cashbox

    @staticmethod
    def activate_cashbox(cashbox_id: uuid.UUID) -> Cashbox:
        """
        Re-enable writes to a previously deactivated cashbox.

        Raises:
            CashboxNotFound: If cashbox doesn't exist
        """
        cashbox = LedgerService.get_cashbox(cashbox_id)
        cashbox.is_active = True
        cashbox.save(update_fields=["is_active"])
        logger.info("Cashbox activated", extra={"cashbox_id": str(cashbox.id)})
        return cashbox

    # =========================================================================
    # Writes
    # =========================================================================

    @staticmethod
    def record_income(
        cashbox: Cashbox,
        amount: Any,
        category: TransactionCategory | str,
        description: str = "",
        actor: Any = None,
        reference: Reference | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Record money entering a cashbox.

        Args:
            cashbox: Target cashbox
            amount: Positive amount with at most two decimal places
            category: TransactionCategory other than REVERSAL
            description: Human-readable description
            actor: User, service name, or None for "system"
            reference: Optional pointer to the causing record
            metadata: Optional JSON-serializable context

        Returns:
            The created Transaction

        Raises:
            InvalidAmount: If amount is not valid
            InvalidCategory: If category is not valid
            InactiveCashbox: If the cashbox is inactive
            LockTimeout: If the cashbox lock isn't granted in time
        """
        return LedgerService._record(
            TransactionType.INCOME,
            cashbox,
            amount,
            category,
            description,
            actor,
            reference,
            metadata,
        )

    @staticmethod
    def record_expense(
        cashbox: Cashbox,
        amount: Any,
        category: TransactionCategory | str,
        description: str = "",
        actor: Any = None,
        reference: Reference | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Record money leaving a cashbox.

        Same contract as record_income(), plus:

        Raises:
            InsufficientBalance: If the balance under the lock is below amount.
                Nothing is written.
        """
        return LedgerService._record(
            TransactionType.EXPENSE,
            cashbox,
            amount,
            category,
            description,
            actor,
            reference,
            metadata,
        )

    @staticmethod
    def _record(
        txn_type: TransactionType,
        cashbox: Cashbox,
        amount: Any,
        category: Any,
        description: str,
        actor: Any,
        reference: Reference | None,
        metadata: dict[str, Any] | None,
    ) -> Transaction:
        amount = normalize_amount(amount)
        category = normalize_category(category)
        if not cashbox.is_active:
            raise InactiveCashbox(
                f"Cashbox {cashbox.id} is inactive",
                details={"cashbox_id": str(cashbox.id)},
            )

        with cashbox_transaction(cashbox.pk) as locked:
            LedgerService._ensure_active(locked)
            current = locked.current_balance

            if txn_type == TransactionType.EXPENSE:
                if current < amount:
                    logger.warning(
                        "Expense rejected: insufficient balance",
                        extra={
                            "cashbox_id": str(locked.id),
                            "required": str(amount),
                            "available": str(current),
                        },
                    )
                    raise InsufficientBalance(
                        locked.id, required=amount, available=current
                    )
                new_balance = current - amount
            else:
                new_balance = current + amount

            txn = LedgerService._append(
                locked,
                new_balance,
                type=txn_type,
                amount=amount,
                category=category,
                description=description or "",
                reference=reference,
                created_by=actor_id(actor),
                metadata=metadata or {},
            )

        cashbox.current_balance = new_balance
        logger.info(
            "Ledger %s recorded",
            txn_type.value,
            extra={
                "cashbox_id": str(cashbox.id),
                "transaction_id": str(txn.id),
                "sequence": txn.sequence,
                "amount": str(amount),
                "category": category.value,
                "balance_after": str(new_balance),
            },
        )
        return txn

    @staticmethod
    def reverse_transaction(
        original: Transaction,
        reason: str,
        actor: Any = None,
    ) -> Transaction:
        """
        Cancel a transaction with a linked counter-entry.

        The original stays untouched. Reversing an income takes the money
        back out (and needs the balance to cover it); reversing an expense
        puts it back.

        Args:
            original: Transaction to reverse
            reason: Why it is being reversed (kept in description and metadata)
            actor: User, service name, or None for "system"

        Returns:
            The reversal Transaction

        Raises:
            AlreadyReversed: If the transaction already has a reversal
            CannotReverseReversal: If the transaction is itself a reversal
            InactiveCashbox: If the cashbox is inactive
            InsufficientBalance: If reversing an income would go below zero
            LockTimeout: If the cashbox lock isn't granted in time
        """
        LedgerService._ensure_reversible(original)

        with cashbox_transaction(original.cashbox_id) as locked:
            LedgerService._ensure_reversible(original)
            LedgerService._ensure_active(locked)
            current = locked.current_balance

            if original.type == TransactionType.INCOME:
                if current < original.amount:
                    logger.warning(
                        "Reversal rejected: insufficient balance",
                        extra={
                            "cashbox_id": str(locked.id),
                            "transaction_id": str(original.id),
                            "required": str(original.amount),
                            "available": str(current),
                        },
                    )
                    raise InsufficientBalance(
                        locked.id, required=original.amount, available=current
                    )
                new_balance = current - original.amount
            else:
                new_balance = current + original.amount

            try:
                with transaction.atomic():
                    reversal = LedgerService._append(
                        locked,
                        new_balance,
                        type=TransactionType.REVERSAL,
                        amount=original.amount,
                        category=TransactionCategory.REVERSAL,
                        description=f"REVERSAL: {original.description}. Reason: {reason}",
                        reference=original.reference,
                        reversed_transaction=original,
                        created_by=actor_id(actor),
                        metadata={
                            "original_transaction_id": str(original.id),
                            "original_type": original.type,
                            "original_category": original.category,
                            "reversal_reason": reason,
                        },
                    )
            except IntegrityError:
                # Only the one-reversal-per-transaction constraint maps here
                if not Transaction.objects.filter(
                    reversed_transaction_id=original.pk
                ).exists():
                    raise
                raise AlreadyReversed(
                    f"Transaction {original.id} has already been reversed",
                    details={"transaction_id": str(original.id)},
                )

        if Transaction.cashbox.is_cached(original):
            original.cashbox.current_balance = new_balance
        logger.info(
            "Ledger reversal recorded",
            extra={
                "cashbox_id": str(original.cashbox_id),
                "transaction_id": str(reversal.id),
                "reversed_transaction_id": str(original.id),
                "amount": str(original.amount),
                "balance_after": str(new_balance),
                "reason": reason,
            },
        )
        return reversal

    @staticmethod
    def _ensure_reversible(original: Transaction) -> None:
        if original.type == TransactionType.REVERSAL:
            raise CannotReverseReversal(
                f"Transaction {original.id} is a reversal and cannot be reversed",
                details={"transaction_id": str(original.id)},
            )
        if Transaction.objects.filter(reversed_transaction_id=original.pk).exists():
            raise AlreadyReversed(
                f"Transaction {original.id} has already been reversed",
                details={"transaction_id": str(original.id)},
            )

    @staticmethod
    def _ensure_active(cashbox: Cashbox) -> None:
        if not cashbox.is_active:
            raise InactiveCashbox(
                f"Cashbox {cashbox.id} is inactive",
                details={"cashbox_id": str(cashbox.id)},
            )

    @staticmethod
    def _append(
        locked: Cashbox,
        new_balance: Decimal,
        reference: Reference | None = None,
        **fields: Any,
    ) -> Transaction:
        """
        Insert the next entry and move the balance. Caller holds the row lock.

        Raises:
            BalanceLimitExceeded: If new_balance doesn't fit a balance column.
                Nothing is written.
        """
        if new_balance > MAX_AMOUNT:
            logger.warning(
                "Write rejected: balance limit exceeded",
                extra={
                    "cashbox_id": str(locked.id),
                    "amount": str(fields["amount"]),
                    "available": str(locked.current_balance),
                },
            )
            raise BalanceLimitExceeded(
                locked.id,
                amount=fields["amount"],
                available=locked.current_balance,
                limit=MAX_AMOUNT,
            )
        last = Transaction.objects.filter(cashbox=locked).aggregate(
            last=Max("sequence")
        )["last"]
        txn = Transaction.objects.create(
            cashbox=locked,
            sequence=(last or 0) + 1,
            balance_after=new_balance,
            reference_kind=reference.kind if reference else None,
            reference_id=reference.id if reference else None,
            **fields,
        )
        Cashbox.objects.filter(pk=locked.pk).update(
            current_balance=new_balance,
            updated_at=timezone.now(),
        )
        locked.current_balance = new_balance
        return txn

    # =========================================================================
    # Reads and reconciliation
    # =========================================================================

    @staticmethod
    def balance_at_date(cashbox: Cashbox, as_of: date | datetime) -> Decimal:
        """
        Balance as of an instant, replayed from the log. Never writes.

        A datetime is an inclusive instant (naive values are taken in the
        current time zone); a date means the end of that local day.
        """
        transactions = Transaction.objects.for_cashbox(cashbox)
        if isinstance(as_of, datetime):
            if timezone.is_naive(as_of):
                as_of = timezone.make_aware(as_of)
            transactions = transactions.filter(created_at__lte=as_of)
        else:
            _, end = day_bounds(as_of)
            if end is not None:
                transactions = transactions.filter(created_at__lt=end)
        return cashbox.initial_balance + transactions.net_effect()

    @staticmethod
    def daily_summary(cashbox: Cashbox, day: date | None = None) -> DailySummary:
        """
        Opening, closing and totals for one local day (default today).
        """
        day = day or timezone.localdate()
        start, _ = day_bounds(day)
        history = Transaction.objects.for_cashbox(cashbox)
        opening = cashbox.initial_balance
        if start is not None:
            opening += history.filter(created_at__lt=start).net_effect()
        closing = LedgerService.balance_at_date(cashbox, day)

        on_day = history.created_on(day)
        income = on_day.income()
        expense = on_day.expense()

        return DailySummary(
            cashbox_id=cashbox.id,
            date=day,
            opening_balance=opening,
            total_income=income.total(),
            total_expense=expense.total(),
            net_change=closing - opening,
            closing_balance=closing,
            transaction_count=on_day.count(),
            income_count=income.count(),
            expense_count=expense.count(),
            reversal_count=on_day.reversals().count(),
        )

    @staticmethod
    def reconcile(cashbox: Cashbox, dry_run: bool = False) -> ReconciliationResult:
        """
        Replay the full history and correct the stored balance if it drifted.

        Runs under the same row lock as writes, so the replay and the stored
        value are compared at one consistent point. Idempotent: a second run
        finds no difference.

        Args:
            cashbox: Cashbox to reconcile
            dry_run: Report the difference without correcting it

        Returns:
            ReconciliationResult
        """
        with cashbox_transaction(cashbox.pk) as locked:
            previous = locked.current_balance
            calculated = locked.initial_balance + Transaction.objects.for_cashbox(
                locked
            ).net_effect()
            difference = calculated - previous
            corrected = difference != 0 and not dry_run
            if corrected:
                Cashbox.objects.filter(pk=locked.pk).update(
                    current_balance=calculated,
                    updated_at=timezone.now(),
                )

        if corrected:
            cashbox.current_balance = calculated
            logger.warning(
                "Cashbox balance drift corrected",
                extra={
                    "cashbox_id": str(cashbox.id),
                    "previous_balance": str(previous),
                    "calculated_balance": str(calculated),
                    "difference": str(difference),
                },
            )
        elif difference != 0:
            logger.warning(
                "Cashbox balance drift detected (dry run)",
                extra={"cashbox_id": str(cashbox.id), "difference": str(difference)},
            )

        return ReconciliationResult(
            cashbox_id=cashbox.id,
            previous_balance=previous,
            calculated_balance=calculated,
            difference=difference,
            corrected=corrected,
        )

    @staticmethod
    def verify_chain(cashbox: Cashbox) -> list[ChainBreak]:
        """
        Check that every balance_after follows from the previous one.

        Read-only audit: walks the log in sequence order starting from the
        initial balance. After a break the walk continues from the recorded
        value so that one bad entry is reported once.
        """
        breaks: list[ChainBreak] = []
        expected = cashbox.initial_balance
        entries = (
            Transaction.objects.for_cashbox(cashbox)
            .select_related("reversed_transaction")
            .order_by("sequence")
        )
        for position, txn in enumerate(entries.iterator(), start=1):
            expected = expected + txn.signed_amount
            if txn.balance_after != expected or txn.sequence != position:
                breaks.append(
                    ChainBreak(
                        transaction_id=txn.id,
                        sequence=txn.sequence,
                        expected_balance_after=expected,
                        recorded_balance_after=txn.balance_after,
                        details={"expected_sequence": position},
                    )
                )
                expected = txn.balance_after
        return breaks


# Singleton instance for convenience
# Usage: from treasury.ledger.services import ledger
ledger = LedgerService()
