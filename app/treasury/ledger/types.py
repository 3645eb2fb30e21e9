"""
Data types for ledger operations.

This module defines dataclasses used throughout the ledger system
for type-safe data transfer between layers.

Types:
    Reference: Opaque (kind, id) pointer to a collaborator record
    DailySummary: Derived per-day figures for one cashbox
    ReconciliationResult: Outcome of replaying a cashbox's history
    ChainBreak: A transaction whose balance_after does not follow its predecessor

Usage:
    from treasury.ledger.types import Reference
    from treasury.references import ReferenceKind

    ref = Reference(ReferenceKind.PAYMENT, payment.id)
    ledger.record_income(cashbox, amount, category, reference=ref, ...)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from treasury.references import ReferenceKind


@dataclass(frozen=True)
class Reference:
    """
    Pointer from a transaction to the collaborator record that caused it.

    The id is stored as a string so that integer, UUID and string keys
    from any collaborator fit the same column.

    Attributes:
        kind: One of ReferenceKind
        id: Identifier of the collaborator record

    Example:
        ref = Reference(ReferenceKind.CUSTODY, 42)
        print(ref)  # "custody:42"
    """

    kind: ReferenceKind
    id: str

    def __post_init__(self) -> None:
        """Normalize kind and id after initialization."""
        try:
            kind = ReferenceKind(self.kind)
        except ValueError:
            raise ValueError(f"Unknown reference kind: {self.kind!r}") from None
        if self.id is None or str(self.id) == "":
            raise ValueError("Reference id is required")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "id", str(self.id))

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass
class DailySummary:
    """
    Figures for one cashbox over one local calendar day.

    All values are derived from the transaction log; nothing here is stored.
    net_change is closing minus opening, so reversals recorded that day
    are included in it even though they are not counted as income or expense.
    """

    cashbox_id: uuid.UUID
    date: date
    opening_balance: Decimal
    total_income: Decimal
    total_expense: Decimal
    net_change: Decimal
    closing_balance: Decimal
    transaction_count: int
    income_count: int
    expense_count: int
    reversal_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "cashbox_id": str(self.cashbox_id),
            "date": self.date.isoformat(),
            "opening_balance": str(self.opening_balance),
            "total_income": str(self.total_income),
            "total_expense": str(self.total_expense),
            "net_change": str(self.net_change),
            "closing_balance": str(self.closing_balance),
            "transaction_count": self.transaction_count,
            "income_count": self.income_count,
            "expense_count": self.expense_count,
            "reversal_count": self.reversal_count,
        }


@dataclass
class ReconciliationResult:
    """
    Outcome of reconciling one cashbox.

    Attributes:
        cashbox_id: The reconciled cashbox
        previous_balance: Stored balance before reconciliation
        calculated_balance: Balance replayed from the full history
        difference: calculated_balance - previous_balance
        corrected: Whether the stored balance was rewritten
    """

    cashbox_id: uuid.UUID
    previous_balance: Decimal
    calculated_balance: Decimal
    difference: Decimal
    corrected: bool

    @property
    def has_drift(self) -> bool:
        return self.difference != 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cashbox_id": str(self.cashbox_id),
            "previous_balance": str(self.previous_balance),
            "calculated_balance": str(self.calculated_balance),
            "difference": str(self.difference),
            "corrected": self.corrected,
        }


@dataclass
class ChainBreak:
    """A transaction whose balance_after does not follow from its predecessor."""

    transaction_id: uuid.UUID
    sequence: int
    expected_balance_after: Decimal
    recorded_balance_after: Decimal
    details: dict[str, Any] = field(default_factory=dict)
