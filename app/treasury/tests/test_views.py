"""
API tests for treasury endpoints.

Tests verify HTTP behavior, serialization, authentication and the mapping
of ledger errors to status codes.

Test Classes:
    TestCashboxList: Tests for GET /api/v1/treasury/cashboxes/
    TestCashboxDetail: Tests for GET/PATCH /api/v1/treasury/cashboxes/{id}/
    TestCashboxDailySummary: Tests for GET .../cashboxes/{id}/daily-summary/
    TestCashboxRecalculate: Tests for POST .../cashboxes/{id}/recalculate/
    TestBranchCashbox: Tests for GET .../cashboxes/branch/{branch_id}/
    TestTransactionList: Tests for GET /api/v1/treasury/transactions/
    TestTransactionReverse: Tests for POST .../transactions/{id}/reverse/
    TestTransactionCategories: Tests for GET .../transactions/categories/
"""

import uuid
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from freezegun import freeze_time
from rest_framework import status

from treasury.ledger.models import Cashbox, Transaction, TransactionCategory
from treasury.ledger.services import LedgerService


class TestCashboxList:
    """
    Tests for GET /api/v1/treasury/cashboxes/.

    Verifies:
    - Authentication requirement
    - Pagination envelope
    - Filtering by branch and active status
    """

    def test_requires_authentication(self, api_client, cashbox):
        response = api_client.get(reverse("treasury:cashbox-list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_cashboxes(self, authenticated_client, cashbox, income_txn):
        response = authenticated_client.get(reverse("treasury:cashbox-list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2
        names = [row["name"] for row in response.data["results"]]
        assert names == ["Front Desk", "Main Register"]

        register = response.data["results"][1]
        assert register["current_balance"] == "1500.00"
        assert register["initial_balance"] == "1000.00"
        assert register["today_income"] == "500.00"
        assert register["today_expense"] == "0.00"

    def test_filter_by_branch(self, authenticated_client, cashbox, funded_cashbox):
        url = reverse("treasury:cashbox-list")
        response = authenticated_client.get(url, {"branch_id": str(cashbox.branch_id)})

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(cashbox.id)

    def test_filter_by_branch_rejects_malformed_uuid(self, authenticated_client, cashbox):
        url = reverse("treasury:cashbox-list")
        response = authenticated_client.get(url, {"branch_id": "nope"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_filter_by_active(self, authenticated_client, cashbox, inactive_cashbox):
        url = reverse("treasury:cashbox-list")

        active = authenticated_client.get(url, {"is_active": "true"})
        inactive = authenticated_client.get(url, {"is_active": "false"})

        assert [r["name"] for r in active.data["results"]] == ["Front Desk"]
        assert [r["name"] for r in inactive.data["results"]] == ["Closed Branch"]


class TestCashboxDetail:
    """Tests for GET/PATCH /api/v1/treasury/cashboxes/{id}/."""

    def test_retrieve_includes_summary_and_recent(
        self, authenticated_client, funded_cashbox, income_txn, expense_txn
    ):
        url = reverse("treasury:cashbox-detail", args=[funded_cashbox.id])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["current_balance"] == "1300.00"
        summary = response.data["today_summary"]
        assert summary["opening_balance"] == "1000.00"
        assert summary["closing_balance"] == "1300.00"
        assert summary["transaction_count"] == 2
        recent = response.data["recent_transactions"]
        assert [t["sequence"] for t in recent] == [2, 1]

    def test_retrieve_not_found(self, authenticated_client, db):
        url = reverse("treasury:cashbox-detail", args=[uuid.uuid4()])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_patch_updates_editable_fields(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-detail", args=[funded_cashbox.id])
        response = authenticated_client.patch(
            url, {"name": "Register 2", "is_active": False}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["name"] == "Register 2"
        assert response.data["is_active"] is False
        funded_cashbox.refresh_from_db()
        assert funded_cashbox.name == "Register 2"

    def test_patch_ignores_balance_fields(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-detail", args=[funded_cashbox.id])
        response = authenticated_client.patch(
            url,
            {"current_balance": "999999.00", "initial_balance": "5.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["current_balance"] == "1000.00"
        funded_cashbox.refresh_from_db()
        assert funded_cashbox.current_balance == Decimal("1000.00")
        assert funded_cashbox.initial_balance == Decimal("1000.00")

    def test_put_not_allowed(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-detail", args=[funded_cashbox.id])
        response = authenticated_client.put(url, {"name": "x"}, format="json")

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED

    def test_delete_not_allowed(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-detail", args=[funded_cashbox.id])
        response = authenticated_client.delete(url)

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert Cashbox.objects.filter(pk=funded_cashbox.pk).exists()


class TestCashboxDailySummary:
    """Tests for GET /api/v1/treasury/cashboxes/{id}/daily-summary/."""

    def test_summary_for_date(self, authenticated_client, funded_cashbox):
        with freeze_time("2024-03-14 10:00:00"):
            LedgerService.record_income(funded_cashbox, "200.00", "payment")
            LedgerService.record_expense(funded_cashbox, "50.00", "expense")

        url = reverse("treasury:cashbox-daily-summary", args=[funded_cashbox.id])
        response = authenticated_client.get(url, {"date": "2024-03-14"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["date"] == "2024-03-14"
        assert response.data["opening_balance"] == "1000.00"
        assert response.data["total_income"] == "200.00"
        assert response.data["total_expense"] == "50.00"
        assert response.data["net_change"] == "150.00"
        assert response.data["closing_balance"] == "1150.00"
        assert response.data["transaction_count"] == 2

    def test_defaults_to_today(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-daily-summary", args=[funded_cashbox.id])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["date"] == timezone.localdate().isoformat()

    def test_invalid_date(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-daily-summary", args=[funded_cashbox.id])
        response = authenticated_client.get(url, {"date": "14/03/2024"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "date" in response.data

    def test_first_and_last_representable_days(
        self, authenticated_client, funded_cashbox, income_txn
    ):
        url = reverse("treasury:cashbox-daily-summary", args=[funded_cashbox.id])

        first = authenticated_client.get(url, {"date": "0001-01-01"})
        last = authenticated_client.get(url, {"date": "9999-12-31"})

        assert first.status_code == status.HTTP_200_OK
        assert first.data["opening_balance"] == "1000.00"
        assert first.data["closing_balance"] == "1000.00"
        assert last.status_code == status.HTTP_200_OK
        assert last.data["opening_balance"] == "1500.00"
        assert last.data["closing_balance"] == "1500.00"


class TestCashboxRecalculate:
    """Tests for POST /api/v1/treasury/cashboxes/{id}/recalculate/."""

    def test_corrects_drift(self, authenticated_client, funded_cashbox, income_txn):
        Cashbox.objects.filter(pk=funded_cashbox.pk).update(current_balance=Decimal("10.00"))

        url = reverse("treasury:cashbox-recalculate", args=[funded_cashbox.id])
        response = authenticated_client.post(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["previous_balance"] == "10.00"
        assert response.data["calculated_balance"] == "1500.00"
        assert response.data["difference"] == "1490.00"
        assert response.data["corrected"] is True

    def test_no_drift(self, authenticated_client, funded_cashbox):
        url = reverse("treasury:cashbox-recalculate", args=[funded_cashbox.id])
        response = authenticated_client.post(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["corrected"] is False

    def test_busy_cashbox_returns_conflict(self, authenticated_client, funded_cashbox, mocker):
        from treasury.ledger.exceptions import LockTimeout

        mocker.patch("treasury.views.ledger.reconcile", side_effect=LockTimeout("busy"))

        url = reverse("treasury:cashbox-recalculate", args=[funded_cashbox.id])
        response = authenticated_client.post(url)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "LOCK_TIMEOUT"


class TestBranchCashbox:
    """Tests for GET /api/v1/treasury/cashboxes/branch/{branch_id}/."""

    def test_found(self, authenticated_client, cashbox):
        url = reverse("treasury:cashbox-by-branch", args=[cashbox.branch_id])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(cashbox.id)

    def test_branch_without_cashbox(self, authenticated_client, db):
        url = reverse("treasury:cashbox-by-branch", args=[uuid.uuid4()])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == {"detail": "No cashbox found for this branch."}

    def test_malformed_branch_id(self, authenticated_client, db):
        url = reverse("treasury:cashbox-by-branch", args=["not-a-uuid"])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestTransactionList:
    """
    Tests for GET /api/v1/treasury/transactions/.

    Verifies:
    - Newest first ordering
    - Filters (cashbox, type, category, dates, reference)
    - is_reversed flag
    """

    def test_lists_newest_first(self, authenticated_client, income_txn, expense_txn):
        response = authenticated_client.get(reverse("treasury:transaction-list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2
        assert [r["sequence"] for r in response.data["results"]] == [2, 1]

        first = response.data["results"][1]
        assert first["id"] == str(income_txn.id)
        assert first["amount"] == "500.00"
        assert first["balance_after"] == "1500.00"
        assert first["type"] == "income"
        assert first["type_label"] == "Income"
        assert first["category_label"] == "Payment"
        assert first["cashbox_name"] == "Main Register"
        assert first["is_reversed"] is False

    def test_reports_reversed(self, authenticated_client, income_txn):
        LedgerService.reverse_transaction(income_txn, reason="duplicate")

        url = reverse("treasury:transaction-list")
        response = authenticated_client.get(url, {"type": "income"})

        assert response.data["count"] == 1
        assert response.data["results"][0]["is_reversed"] is True

    def test_filter_by_cashbox(self, authenticated_client, income_txn, cashbox):
        LedgerService.record_income(cashbox, "5.00", "payment")

        url = reverse("treasury:transaction-list")
        response = authenticated_client.get(url, {"cashbox_id": str(cashbox.id)})

        assert response.data["count"] == 1
        assert response.data["results"][0]["amount"] == "5.00"

    def test_filter_by_category(self, authenticated_client, income_txn, expense_txn):
        url = reverse("treasury:transaction-list")
        response = authenticated_client.get(url, {"category": "expense"})

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(expense_txn.id)

    def test_filter_by_date_range(self, authenticated_client, funded_cashbox):
        with freeze_time("2024-03-13 23:59:00"):
            LedgerService.record_income(funded_cashbox, "1.00", "payment")
        with freeze_time("2024-03-14 12:00:00"):
            LedgerService.record_income(funded_cashbox, "2.00", "payment")
        with freeze_time("2024-03-15 00:00:00"):
            LedgerService.record_income(funded_cashbox, "3.00", "payment")

        url = reverse("treasury:transaction-list")
        response = authenticated_client.get(
            url, {"start_date": "2024-03-14", "end_date": "2024-03-14"}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["amount"] == "2.00"

    def test_invalid_date_filter(self, authenticated_client, db):
        url = reverse("treasury:transaction-list")
        response = authenticated_client.get(url, {"start_date": "yesterday"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_open_ended_date_filters(self, authenticated_client, income_txn, expense_txn):
        url = reverse("treasury:transaction-list")

        response = authenticated_client.get(
            url, {"start_date": "0001-01-01", "end_date": "9999-12-31"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2

    def test_filter_by_reference(self, authenticated_client, funded_cashbox):
        from treasury.postings import CashPostingService

        CashPostingService.record_payment(
            funded_cashbox, amount="20.00", payment_id=31, order_id=7, actor=None
        )
        LedgerService.record_income(funded_cashbox, "1.00", "payment")

        url = reverse("treasury:transaction-list")
        response = authenticated_client.get(
            url, {"reference_kind": "payment", "reference_id": "31"}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["reference_id"] == "31"

    def test_retrieve(self, authenticated_client, income_txn):
        url = reverse("treasury:transaction-detail", args=[income_txn.id])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["description"] == "Payment for order #1042"
        assert response.data["created_by"] == "cashier-1"

    def test_no_write_methods(self, authenticated_client, income_txn):
        list_url = reverse("treasury:transaction-list")
        detail_url = reverse("treasury:transaction-detail", args=[income_txn.id])

        assert authenticated_client.post(list_url, {}).status_code == 405
        assert authenticated_client.patch(detail_url, {}).status_code == 405
        assert authenticated_client.delete(detail_url).status_code == 405
        assert Transaction.objects.filter(pk=income_txn.pk).exists()


class TestTransactionReverse:
    """Tests for POST /api/v1/treasury/transactions/{id}/reverse/."""

    def test_reverses_income(self, authenticated_client, income_txn, user):
        url = reverse("treasury:transaction-reverse", args=[income_txn.id])
        response = authenticated_client.post(url, {"reason": "Duplicate entry"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["new_balance"] == "1000.00"
        reversal = response.data["reversal"]
        assert reversal["type"] == "reversal"
        assert reversal["amount"] == "500.00"
        assert reversal["reversed_transaction"] == income_txn.id
        assert reversal["created_by"] == str(user.pk)
        assert reversal["description"] == (
            "REVERSAL: Payment for order #1042. Reason: Duplicate entry"
        )
        assert response.data["original"]["is_reversed"] is True

    def test_reason_required(self, authenticated_client, income_txn):
        url = reverse("treasury:transaction-reverse", args=[income_txn.id])
        response = authenticated_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "reason" in response.data
        assert not Transaction.objects.reversals().exists()

    def test_already_reversed(self, authenticated_client, income_txn):
        url = reverse("treasury:transaction-reverse", args=[income_txn.id])
        authenticated_client.post(url, {"reason": "first"}, format="json")

        response = authenticated_client.post(url, {"reason": "second"}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ALREADY_REVERSED"

    def test_cannot_reverse_reversal(self, authenticated_client, income_txn):
        reversal = LedgerService.reverse_transaction(income_txn, reason="first")

        url = reverse("treasury:transaction-reverse", args=[reversal.id])
        response = authenticated_client.post(url, {"reason": "undo"}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CANNOT_REVERSE_REVERSAL"

    def test_insufficient_balance(self, authenticated_client, income_txn, funded_cashbox):
        LedgerService.record_expense(funded_cashbox, "1500.00", "expense")

        url = reverse("treasury:transaction-reverse", args=[income_txn.id])
        response = authenticated_client.post(url, {"reason": "refund"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INSUFFICIENT_BALANCE"
        assert response.data["details"]["available"] == "0.00"

    def test_inactive_cashbox(self, authenticated_client, income_txn, funded_cashbox):
        LedgerService.deactivate_cashbox(funded_cashbox.id)

        url = reverse("treasury:transaction-reverse", args=[income_txn.id])
        response = authenticated_client.post(url, {"reason": "late"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INACTIVE_CASHBOX"

    def test_not_found(self, authenticated_client, db):
        url = reverse("treasury:transaction-reverse", args=[uuid.uuid4()])
        response = authenticated_client.post(url, {"reason": "x"}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "TRANSACTION_NOT_FOUND"

    def test_requires_authentication(self, api_client, income_txn):
        url = reverse("treasury:transaction-reverse", args=[income_txn.id])
        response = api_client.post(url, {"reason": "x"}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert not Transaction.objects.reversals().exists()


class TestTransactionCategories:
    """Tests for GET /api/v1/treasury/transactions/categories/."""

    def test_lists_every_category(self, authenticated_client, db):
        response = authenticated_client.get(reverse("treasury:transaction-categories"))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == len(TransactionCategory.choices)
        assert {"value": "payment", "label": "Payment"} in response.data
        assert {"value": "reversal", "label": "Reversal"} in response.data
