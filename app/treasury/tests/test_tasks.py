"""
Tests for treasury Celery tasks.

Tasks are executed in-process with apply() so no broker
is needed.
"""

import uuid
from decimal import Decimal

from treasury.exceptions import ReconciliationLockError
from treasury.ledger.models import Cashbox
from treasury.tasks import reconcile_single_cashbox, run_scheduled_reconciliation


class TestRunScheduledReconciliation:
    """Tests for run_scheduled_reconciliation task."""

    def test_completed(self, mock_redis, income_txn, funded_cashbox):
        Cashbox.objects.filter(pk=funded_cashbox.pk).update(current_balance=Decimal("5.00"))

        result = run_scheduled_reconciliation.apply().get()

        assert result["status"] == "completed"
        assert result["cashboxes_checked"] == 1
        assert result["corrected"] == 1
        funded_cashbox.refresh_from_db()
        assert funded_cashbox.current_balance == Decimal("1500.00")

    def test_dry_run(self, mock_redis, income_txn, funded_cashbox):
        Cashbox.objects.filter(pk=funded_cashbox.pk).update(current_balance=Decimal("5.00"))

        result = run_scheduled_reconciliation.apply(kwargs={"dry_run": True}).get()

        assert result["drift_found"] == 1
        assert result["corrected"] == 0

    def test_skipped_when_lock_held(self, mocker):
        mocker.patch(
            "treasury.reconciliation.ReconciliationService.run_reconciliation",
            side_effect=ReconciliationLockError("Another reconciliation run is in progress"),
        )

        result = run_scheduled_reconciliation.apply().get()

        assert result["status"] == "skipped"

    def test_unexpected_error_reported(self, mocker):
        mocker.patch(
            "treasury.reconciliation.ReconciliationService.run_reconciliation",
            side_effect=RuntimeError("redis exploded"),
        )

        result = run_scheduled_reconciliation.apply().get()

        assert result == {
            "status": "failed",
            "error": "redis exploded",
            "error_code": "UNEXPECTED_ERROR",
        }


class TestReconcileSingleCashbox:
    """Tests for reconcile_single_cashbox task."""

    def test_ok(self, income_txn, funded_cashbox):
        result = reconcile_single_cashbox.apply(args=[str(funded_cashbox.id)]).get()

        assert result["status"] == "ok"
        assert result["cashbox_id"] == str(funded_cashbox.id)
        assert result["calculated_balance"] == "1500.00"

    def test_corrected(self, income_txn, funded_cashbox):
        Cashbox.objects.filter(pk=funded_cashbox.pk).update(current_balance=Decimal("5.00"))

        result = reconcile_single_cashbox.apply(args=[str(funded_cashbox.id)]).get()

        assert result["status"] == "corrected"
        assert result["difference"] == "1495.00"

    def test_drift_in_dry_run(self, income_txn, funded_cashbox):
        Cashbox.objects.filter(pk=funded_cashbox.pk).update(current_balance=Decimal("5.00"))

        result = reconcile_single_cashbox.apply(
            args=[str(funded_cashbox.id)], kwargs={"dry_run": True}
        ).get()

        assert result["status"] == "drift"
        funded_cashbox.refresh_from_db()
        assert funded_cashbox.current_balance == Decimal("5.00")

    def test_not_found(self, db):
        missing = str(uuid.uuid4())

        result = reconcile_single_cashbox.apply(args=[missing]).get()

        assert result["status"] == "not_found"
        assert result["cashbox_id"] == missing

    def test_invalid_uuid(self):
        result = reconcile_single_cashbox.apply(args=["not-a-uuid"]).get()

        assert result["status"] == "failed"
        assert result["error"] == "Invalid UUID format"
