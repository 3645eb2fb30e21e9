"""
Cash postings for collaborator domain events.

Each method turns one business event (a payment taken at the register, a
custody deposit returned, a salary paid out...) into exactly one ledger
call with the right category, description, reference and metadata. The
ledger itself knows nothing about payments or payroll; this module is the
seam between them.

Usage:
    from treasury.postings import CashPostingService

    txn = CashPostingService.record_payment(
        cashbox,
        amount=Decimal("250.00"),
        payment_id=payment.id,
        order_id=order.id,
        actor=request.user,
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService
from treasury.ledger.models import TransactionCategory
from treasury.ledger.services import ledger, normalize_amount
from treasury.ledger.types import Reference
from treasury.references import ReferenceKind

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any

    from treasury.ledger.models import Cashbox, Transaction


class CashPostingService(BaseService):
    """
    Posts collaborator events to the ledger.

    All methods raise the ledger's exceptions unchanged (InsufficientBalance,
    InactiveCashbox, ...); callers decide how to surface them.
    """

    @classmethod
    def record_payment(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        payment_id: Any,
        order_id: Any,
        actor: Any,
        payment_method: str = "cash",
    ) -> Transaction:
        """Cash received for an order payment."""
        return ledger.record_income(
            cashbox,
            amount,
            TransactionCategory.PAYMENT,
            description=f"Payment #{payment_id} for Order #{order_id} via {payment_method}",
            actor=actor,
            reference=Reference(ReferenceKind.PAYMENT, payment_id),
            metadata={"order_id": str(order_id), "payment_method": payment_method},
        )

    @classmethod
    def record_custody_deposit(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        custody_id: Any,
        order_id: Any,
        actor: Any,
    ) -> Transaction:
        """Cash deposit taken from a customer as custody for a rental."""
        return ledger.record_income(
            cashbox,
            amount,
            TransactionCategory.CUSTODY_DEPOSIT,
            description=f"Custody deposit #{custody_id} for Order #{order_id}",
            actor=actor,
            reference=Reference(ReferenceKind.CUSTODY, custody_id),
            metadata={"order_id": str(order_id)},
        )

    @classmethod
    def record_custody_return(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        custody_id: Any,
        order_id: Any,
        actor: Any,
    ) -> Transaction:
        """Custody deposit handed back to the customer."""
        return ledger.record_expense(
            cashbox,
            amount,
            TransactionCategory.CUSTODY_RETURN,
            description=f"Custody return #{custody_id} for Order #{order_id}",
            actor=actor,
            reference=Reference(ReferenceKind.CUSTODY, custody_id),
            metadata={"order_id": str(order_id)},
        )

    @classmethod
    def record_custody_forfeiture(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        custody_id: Any,
        order_id: Any,
        actor: Any,
        reason: str,
    ) -> None:
        """
        Customer loses their custody deposit.

        No cash moves: the deposit is already in the cashbox, recorded as
        custody_deposit income when it was taken. Forfeiture only changes the
        custody record's status on the collaborator side, so nothing is
        written to the ledger. The event is logged for the audit trail.

        Returns:
            None
        """
        amount = normalize_amount(amount)
        cls.get_logger().info(
            "Custody forfeited, no cash movement recorded",
            extra={
                "cashbox_id": str(cashbox.id),
                "custody_id": str(custody_id),
                "order_id": str(order_id),
                "forfeited_amount": str(amount),
                "reason": reason,
                "actor": str(getattr(actor, "pk", actor)),
            },
        )
        return None

    @classmethod
    def record_expense_payment(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        expense_id: Any,
        actor: Any,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """Approved expense paid out of the cashbox."""
        text = f"Expense #{expense_id}"
        if description:
            text = f"{text}: {description}"
        return ledger.record_expense(
            cashbox,
            amount,
            TransactionCategory.EXPENSE,
            description=text,
            actor=actor,
            reference=Reference(ReferenceKind.EXPENSE, expense_id),
            metadata=metadata or {},
        )

    @classmethod
    def record_salary_payout(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        payroll_id: Any,
        actor: Any,
        period: str,
        employee_name: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """Net salary paid in cash for one payroll period."""
        who = employee_name or f"payroll #{payroll_id}"
        return ledger.record_expense(
            cashbox,
            amount,
            TransactionCategory.SALARY_EXPENSE,
            description=f"Salary payment for {who} - {period}",
            actor=actor,
            reference=Reference(ReferenceKind.PAYROLL, payroll_id),
            metadata={"period": period, **(metadata or {})},
        )

    @classmethod
    def record_receivable_collection(
        cls,
        cashbox: Cashbox,
        amount: Decimal,
        receivable_id: Any,
        actor: Any,
        client_id: Any = None,
        payment_method: str = "cash",
    ) -> Transaction:
        """Outstanding client balance collected in cash."""
        description = f"Receivable payment #{receivable_id}"
        if client_id is not None:
            description = f"{description} from client #{client_id}"
        metadata: dict[str, Any] = {"payment_method": payment_method}
        if client_id is not None:
            metadata["client_id"] = str(client_id)
        return ledger.record_income(
            cashbox,
            amount,
            TransactionCategory.RECEIVABLE_PAYMENT,
            description=description,
            actor=actor,
            reference=Reference(ReferenceKind.RECEIVABLE, receivable_id),
            metadata=metadata,
        )
