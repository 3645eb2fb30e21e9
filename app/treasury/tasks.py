"""
Celery tasks for treasury maintenance.

Tasks:
- run_scheduled_reconciliation: Periodic task that reconciles every cashbox
- reconcile_single_cashbox: On-demand reconciliation for one cashbox

Usage:
    # Typically called via celery-beat schedule
    from treasury.tasks import run_scheduled_reconciliation

    run_scheduled_reconciliation.delay()

    # Reconcile a specific cashbox
    reconcile_single_cashbox.delay(str(cashbox_id))

Celery Beat Schedule:
    run_scheduled_reconciliation runs nightly at 03:00 UTC. The
    PeriodicTask row is created by migration
    0003_add_reconciliation_schedule (DatabaseScheduler).
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task

from treasury.exceptions import ReconciliationLockError

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def run_scheduled_reconciliation(self, dry_run: bool = False) -> dict:
    """
    Reconcile every cashbox.

    Returns:
        Dict with:
        - status: "completed", "skipped" (lock held), or "failed"
        - cashboxes_checked, drift_found, corrected, chain_breaks, failed
        - error: Error message if failed

    Note:
        If another reconciliation run is in progress, this task returns
        immediately with status "skipped" rather than waiting.
    """
    from treasury.reconciliation import ReconciliationService

    logger.info("Starting scheduled cashbox reconciliation", extra={"dry_run": dry_run})

    try:
        result = ReconciliationService.run_reconciliation(dry_run=dry_run)
    except ReconciliationLockError:
        logger.info(
            "Reconciliation run skipped - another run in progress",
            extra={"task_id": self.request.id},
        )
        return {
            "status": "skipped",
            "reason": "Another reconciliation run is in progress",
        }
    except Exception as e:
        logger.exception(
            f"Unexpected error during reconciliation: {e}",
            extra={"error": str(e)},
        )
        return {
            "status": "failed",
            "error": str(e),
            "error_code": "UNEXPECTED_ERROR",
        }

    if not result.success:
        logger.error(
            f"Reconciliation failed: {result.error}",
            extra={"error": result.error, "error_code": result.error_code},
        )
        return {
            "status": "failed",
            "error": result.error,
            "error_code": result.error_code,
        }

    return {"status": "completed", **result.data.to_dict()}


@shared_task(bind=True)
def reconcile_single_cashbox(self, cashbox_id: str, dry_run: bool = False) -> dict:
    """
    Reconcile one cashbox.

    Args:
        cashbox_id: UUID of the cashbox (string, as sent over the broker)

    Returns:
        Dict with:
        - status: "ok" (no drift), "corrected", "drift" (dry run),
          "not_found", or "failed"
        - cashbox_id: The ID processed
        - previous_balance / calculated_balance / difference when reconciled
    """
    from treasury.reconciliation import ReconciliationService

    try:
        cashbox_uuid = UUID(str(cashbox_id))
    except ValueError:
        logger.error(f"Invalid cashbox_id format: {cashbox_id}")
        return {
            "status": "failed",
            "cashbox_id": cashbox_id,
            "error": "Invalid UUID format",
        }

    result = ReconciliationService.reconcile_cashbox(cashbox_uuid, dry_run=dry_run)
    if not result.success:
        return {
            "status": "not_found" if result.error_code == "CASHBOX_NOT_FOUND" else "failed",
            "cashbox_id": cashbox_id,
            "error": result.error,
            "error_code": result.error_code,
        }

    reconciliation = result.data
    if reconciliation.corrected:
        status = "corrected"
    elif reconciliation.has_drift:
        status = "drift"
    else:
        status = "ok"
    return {"status": status, **reconciliation.to_dict()}
