"""
Ledger - Cash balances with an immutable transaction log.

This module tracks the cash held in each cashbox (register). Every movement
of money is an append-only Transaction, and the cashbox balance always
equals its initial balance replayed through those transactions.

Public API:
    Models:
        Cashbox - Balance aggregate (one per branch/register)
        Transaction - Immutable ledger entry
        TransactionType - income / expense / reversal
        TransactionCategory - Business reason for an entry

    Service:
        ledger - Singleton instance of LedgerService
        LedgerService - Class with all ledger operations

    Types:
        Reference - (kind, id) pointer to a collaborator record
        DailySummary - Derived per-day figures
        ReconciliationResult - Outcome of a balance replay

    Exceptions:
        LedgerError - Base exception for ledger operations
        InsufficientBalance - Balance validation failures
        AlreadyReversed / CannotReverseReversal - Reversal rule failures
        Immutable - Attempt to edit or delete a transaction

Usage:
    from treasury.ledger import (
        ledger, Reference, TransactionCategory, InsufficientBalance
    )
    from treasury.references import ReferenceKind

    cashbox = ledger.get_or_create_branch_cashbox(branch.id, branch.name)

    txn = ledger.record_income(
        cashbox,
        Decimal("120.00"),
        TransactionCategory.CUSTODY_DEPOSIT,
        description="Custody deposit for order #88",
        actor=request.user,
        reference=Reference(ReferenceKind.CUSTODY, custody.id),
    )

    try:
        ledger.record_expense(cashbox, Decimal("5000"), TransactionCategory.EXPENSE, ...)
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from .exceptions import (
    AlreadyReversed,
    BalanceLimitExceeded,
    CannotReverseReversal,
    CashboxNotFound,
    Immutable,
    InactiveCashbox,
    InsufficientBalance,
    InvalidAmount,
    InvalidCategory,
    LedgerError,
    LockTimeout,
    TransactionNotFound,
)
from .models import Cashbox, Transaction, TransactionCategory, TransactionType
from .services import LedgerService, ledger
from .types import ChainBreak, DailySummary, ReconciliationResult, Reference

__all__ = [
    # Models
    "Cashbox",
    "Transaction",
    "TransactionType",
    "TransactionCategory",
    # Service
    "ledger",
    "LedgerService",
    # Types
    "Reference",
    "DailySummary",
    "ReconciliationResult",
    "ChainBreak",
    # Exceptions
    "LedgerError",
    "InvalidAmount",
    "InvalidCategory",
    "CashboxNotFound",
    "TransactionNotFound",
    "InsufficientBalance",
    "BalanceLimitExceeded",
    "InactiveCashbox",
    "AlreadyReversed",
    "CannotReverseReversal",
    "Immutable",
    "LockTimeout",
]
