"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── NotFoundError - Resource not found
    └── ConflictError - State conflicts (duplicates, concurrent modifications)

Usage:
    from core.exceptions import ConflictError, NotFoundError

    # Raise with message only
    raise ConflictError("Cashbox is busy")

    # Raise with error code and details
    raise NotFoundError(
        f"Cashbox {cashbox_id} not found",
        error_code="CASHBOX_NOT_FOUND",
        details={"cashbox_id": str(cashbox_id)},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (amounts, identifiers, etc.)

    Example:
        try:
            ledger.record_expense(cashbox, amount, ...)
        except BaseApplicationError as e:
            logger.warning(f"Ledger write rejected: {e.error_code}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Cashbox ... has insufficient balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"available": "150.00", "required": "200.00"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        cashbox = Cashbox.objects.filter(id=cashbox_id).first()
        if not cashbox:
            raise NotFoundError(
                f"Cashbox {cashbox_id} not found",
                error_code="CASHBOX_NOT_FOUND",
                details={"cashbox_id": str(cashbox_id)}
            )
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Concurrent modification conflicts
    - Lock acquisition failures
    - Invalid state transitions (e.g. reversing twice)

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
