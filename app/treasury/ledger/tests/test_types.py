"""
Tests for ledger value types.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from treasury.ledger.types import DailySummary, ReconciliationResult, Reference
from treasury.references import ReferenceKind


class TestReference:
    """Tests for the Reference value object."""

    def test_normalizes_kind_and_id(self):
        ref = Reference("payment", 42)

        assert ref.kind is ReferenceKind.PAYMENT
        assert ref.id == "42"

    def test_uuid_id_stored_as_string(self):
        custody_id = uuid.uuid4()
        ref = Reference(ReferenceKind.CUSTODY, custody_id)

        assert ref.id == str(custody_id)

    def test_equal_when_kind_and_id_match(self):
        assert Reference("payroll", 7) == Reference(ReferenceKind.PAYROLL, "7")

    def test_str(self):
        assert str(Reference(ReferenceKind.EXPENSE, 3)) == "expense:3"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError, match="Unknown reference kind"):
            Reference("invoice", 1)

    @pytest.mark.parametrize("missing", [None, ""])
    def test_missing_id_rejected(self, missing):
        with pytest.raises(ValueError, match="id is required"):
            Reference(ReferenceKind.ORDER, missing)

    def test_is_frozen(self):
        ref = Reference(ReferenceKind.ORDER, 1)

        with pytest.raises(AttributeError):
            ref.id = "2"


class TestDailySummary:
    """Tests for DailySummary serialization."""

    def test_to_dict_uses_strings_for_money(self):
        cashbox_id = uuid.uuid4()
        summary = DailySummary(
            cashbox_id=cashbox_id,
            date=date(2024, 3, 15),
            opening_balance=Decimal("100.00"),
            total_income=Decimal("50.00"),
            total_expense=Decimal("20.00"),
            net_change=Decimal("30.00"),
            closing_balance=Decimal("130.00"),
            transaction_count=2,
            income_count=1,
            expense_count=1,
            reversal_count=0,
        )

        data = summary.to_dict()

        assert data["cashbox_id"] == str(cashbox_id)
        assert data["date"] == "2024-03-15"
        assert data["closing_balance"] == "130.00"
        assert data["transaction_count"] == 2


class TestReconciliationResult:
    """Tests for ReconciliationResult."""

    def _result(self, difference, corrected=False):
        return ReconciliationResult(
            cashbox_id=uuid.uuid4(),
            previous_balance=Decimal("100.00"),
            calculated_balance=Decimal("100.00") + difference,
            difference=difference,
            corrected=corrected,
        )

    def test_no_drift(self):
        assert self._result(Decimal("0.00")).has_drift is False

    def test_drift(self):
        result = self._result(Decimal("-5.00"), corrected=True)

        assert result.has_drift is True
        assert result.to_dict()["difference"] == "-5.00"
        assert result.to_dict()["corrected"] is True
