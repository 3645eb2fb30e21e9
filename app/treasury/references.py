"""
Collaborator references attached to ledger transactions.

A transaction may point back at the record that caused it (a payment, a
custody deposit, a payroll run...). The pointer is a closed (kind, id) pair:
the ledger stores it opaquely and never follows it. Collaborators that need
the live record register a finder per kind and resolve references here.

Usage:
    from treasury.references import ReferenceKind, reference_registry

    reference_registry.register(ReferenceKind.PAYMENT, Payment.objects.get_by_ref)

    txn = Transaction.objects.get(id=txn_id)
    payment = reference_registry.resolve(txn.reference)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import models

from core.exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from treasury.ledger.types import Reference

logger = logging.getLogger(__name__)


class ReferenceKind(models.TextChoices):
    """
    Kinds of collaborator records a transaction can reference.

    Values:
        PAYMENT: Order payment captured at the register
        CUSTODY: Cash custody (deposit held while an item is rented)
        EXPENSE: Approved branch expense
        PAYROLL: Salary payout
        RECEIVABLE: Collected receivable
        ORDER: Order without a dedicated payment record
    """

    PAYMENT = "payment", "Payment"
    CUSTODY = "custody", "Custody"
    EXPENSE = "expense", "Expense"
    PAYROLL = "payroll", "Payroll"
    RECEIVABLE = "receivable", "Receivable"
    ORDER = "order", "Order"


class UnknownReferenceKind(NotFoundError):
    """Raised when resolving a reference whose kind has no registered finder."""

    default_error_code: str = "UNKNOWN_REFERENCE_KIND"


class ReferenceRegistry:
    """
    Lookup table mapping a ReferenceKind to a finder callable.

    A finder takes the opaque reference id (string) and returns the
    collaborator record, or raises its own not-found error.
    """

    def __init__(self) -> None:
        self._finders: dict[str, Callable[[str], Any]] = {}

    def register(self, kind: ReferenceKind | str, finder: Callable[[str], Any]) -> None:
        """Register (or replace) the finder for a kind."""
        kind = ReferenceKind(kind)
        if kind in self._finders:
            logger.debug("Replacing reference finder", extra={"kind": kind.value})
        self._finders[kind] = finder

    def unregister(self, kind: ReferenceKind | str) -> None:
        self._finders.pop(ReferenceKind(kind), None)

    def is_registered(self, kind: ReferenceKind | str) -> bool:
        return ReferenceKind(kind) in self._finders

    def resolve(self, reference: Reference) -> Any:
        """
        Return the collaborator record a reference points at.

        Raises:
            UnknownReferenceKind: If no finder is registered for the kind
        """
        finder = self._finders.get(reference.kind)
        if finder is None:
            raise UnknownReferenceKind(
                f"No finder registered for reference kind '{reference.kind}'",
                details={"kind": str(reference.kind), "id": reference.id},
            )
        return finder(reference.id)


# Process-wide registry; collaborator apps register their finders in AppConfig.ready()
reference_registry = ReferenceRegistry()
