"""
Ledger-specific exceptions for cash operations.

This module provides a hierarchy of exceptions for ledger operations,
inheriting from the core exception base class for API consistency.

Exception Hierarchy:
    LedgerError (base)
    ├── InvalidAmount - Amount is not a positive 2-place decimal
    ├── InvalidCategory - Category outside the closed set
    ├── CashboxNotFound - Cashbox lookup failures
    ├── TransactionNotFound - Transaction lookup failures
    ├── InsufficientBalance - Write would take the balance below zero
    ├── BalanceLimitExceeded - Write would take the balance past the column limit
    ├── InactiveCashbox - Write against a deactivated cashbox
    ├── AlreadyReversed - Transaction already has a reversal
    ├── CannotReverseReversal - Reversals are final
    ├── Immutable - Attempt to edit or delete a recorded transaction
    └── LockTimeout - Cashbox row lock not granted in time (retryable)

Usage:
    from treasury.ledger.exceptions import InsufficientBalance, LedgerError

    try:
        ledger.record_expense(cashbox, amount, ...)
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal
    from typing import Any


class LedgerError(BaseApplicationError):
    """
    Base exception for all ledger operations.

    All ledger-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.

    Attributes:
        retryable: Whether the caller may retry the same call unchanged

    Example:
        try:
            ledger.record_income(cashbox, amount, category, ...)
        except LedgerError as e:
            logger.error(f"Ledger operation failed: {e}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "LEDGER_ERROR"
    retryable: bool = False


# =============================================================================
# Input errors
# =============================================================================


class InvalidAmount(LedgerError):
    """
    Raised when an amount is zero, negative, not finite, or carries more
    than two decimal places.

    Direction is encoded by transaction type, never by sign.
    """

    default_error_code: str = "INVALID_AMOUNT"


class InvalidCategory(LedgerError):
    """
    Raised when a category is not one of TransactionCategory, or when the
    reserved "reversal" category is used outside reverse_transaction().
    """

    default_error_code: str = "INVALID_CATEGORY"


# =============================================================================
# Lookup errors
# =============================================================================


class CashboxNotFound(LedgerError):
    """
    Raised when a cashbox cannot be found.

    Example:
        raise CashboxNotFound(
            f"Cashbox {cashbox_id} not found",
            details={"cashbox_id": str(cashbox_id)},
        )
    """

    default_error_code: str = "CASHBOX_NOT_FOUND"


class TransactionNotFound(LedgerError):
    """Raised when a transaction cannot be found."""

    default_error_code: str = "TRANSACTION_NOT_FOUND"


# =============================================================================
# State errors
# =============================================================================


class InsufficientBalance(LedgerError):
    """
    Raised when a cashbox has insufficient funds for an operation.

    Stores the cashbox ID, required amount, and available balance
    for detailed error reporting.

    Attributes:
        cashbox_id: The UUID of the cashbox with insufficient funds
        required: The amount that was required
        available: The balance that was available under the lock

    Example:
        if current_balance < amount:
            raise InsufficientBalance(
                cashbox.id,
                required=amount,
                available=current_balance,
            )
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        cashbox_id: uuid.UUID,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize with cashbox details and amounts.

        Args:
            cashbox_id: UUID of the cashbox with insufficient funds
            required: Amount required
            available: Balance available
            error_code: Optional custom error code
            details: Optional additional error context
        """
        self.cashbox_id = cashbox_id
        self.required = required
        self.available = available

        message = (
            f"Cashbox {cashbox_id} has insufficient balance: "
            f"required {required}, available {available}"
        )

        full_details = {
            "cashbox_id": str(cashbox_id),
            "required": str(required),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class BalanceLimitExceeded(LedgerError):
    """
    Raised when a write would take a cashbox balance past the largest
    amount a balance column can hold.

    Attributes:
        cashbox_id: The UUID of the cashbox
        amount: The amount being added
        available: The balance under the lock
        limit: The largest storable balance
    """

    default_error_code: str = "BALANCE_LIMIT_EXCEEDED"

    def __init__(
        self,
        cashbox_id: uuid.UUID,
        amount: Decimal,
        available: Decimal,
        limit: Decimal,
    ):
        self.cashbox_id = cashbox_id
        self.amount = amount
        self.available = available
        self.limit = limit
        super().__init__(
            message=(
                f"Cashbox {cashbox_id} balance would exceed {limit}: "
                f"available {available}, adding {amount}"
            ),
            details={
                "cashbox_id": str(cashbox_id),
                "amount": str(amount),
                "available": str(available),
                "limit": str(limit),
            },
        )


class InactiveCashbox(LedgerError):
    """
    Raised when attempting to write to an inactive cashbox.

    Cashboxes can be deactivated but their history is preserved.
    Writes against inactive cashboxes are rejected.
    """

    default_error_code: str = "INACTIVE_CASHBOX"


class AlreadyReversed(LedgerError):
    """Raised when the target transaction already has a reversal."""

    default_error_code: str = "ALREADY_REVERSED"


class CannotReverseReversal(LedgerError):
    """Raised when the target transaction is itself a reversal."""

    default_error_code: str = "CANNOT_REVERSE_REVERSAL"


# =============================================================================
# Integrity and infrastructure errors
# =============================================================================


class Immutable(LedgerError):
    """
    Raised on any attempt to update or delete a recorded transaction.

    This always indicates a programming error in the caller: the
    transaction log is append-only and corrections are made with
    reverse_transaction().
    """

    default_error_code: str = "TRANSACTION_IMMUTABLE"


class LockTimeout(LedgerError):
    """
    Raised when the cashbox row lock is not granted within
    TREASURY_LOCK_TIMEOUT_MS.

    The surrounding atomic block is rolled back, so the caller may
    retry with backoff.
    """

    default_error_code: str = "LOCK_TIMEOUT"
    retryable: bool = True


__all__ = [
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
