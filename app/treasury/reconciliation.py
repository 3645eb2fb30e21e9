"""
Reconciliation service for detecting and correcting cashbox balance drift.

Every cashbox's stored current_balance must equal its initial balance
replayed through its transaction log. LedgerService keeps the two in step on
every write; this service is the safety net that replays each cashbox and
corrects the stored value when they disagree (a manual SQL fix, a restore
from an older backup, a bug in a past release...).

Detection:
    - Balance drift: stored balance != replayed balance (corrected)
    - Chain breaks: a transaction's balance_after doesn't follow from the
      previous one (reported only; the log is immutable)

Concurrency Safety:
    - A global Redis lock prevents concurrent runs across workers
    - Each cashbox is reconciled under its own row lock, so writers on
      other cashboxes are never blocked

Usage:
    from treasury.reconciliation import ReconciliationService

    result = ReconciliationService.run_reconciliation()
    if result.success:
        run = result.data
        print(f"Checked {run.cashboxes_checked}, corrected {run.corrected}")

    result = ReconciliationService.reconcile_cashbox(cashbox_id)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from core.services import BaseService, ServiceResult
from treasury.exceptions import LockAcquisitionError, ReconciliationLockError
from treasury.ledger.exceptions import CashboxNotFound, LedgerError
from treasury.ledger.models import Cashbox
from treasury.ledger.services import ledger
from treasury.locks import DistributedLock

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from treasury.ledger.types import ReconciliationResult


# =============================================================================
# Constants
# =============================================================================

RUN_LOCK_KEY = "treasury:reconciliation:run"
DEFAULT_RUN_LOCK_TTL = 3600  # 1 hour


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class ReconciliationRunResult:
    """Summary result of a reconciliation run."""

    started_at: datetime
    completed_at: datetime | None
    dry_run: bool
    cashboxes_checked: int = 0
    drift_found: int = 0
    corrected: int = 0
    chain_breaks: int = 0
    failed: int = 0
    results: list[ReconciliationResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "dry_run": self.dry_run,
            "cashboxes_checked": self.cashboxes_checked,
            "drift_found": self.drift_found,
            "corrected": self.corrected,
            "chain_breaks": self.chain_breaks,
            "failed": self.failed,
        }


# =============================================================================
# Reconciliation Service
# =============================================================================


class ReconciliationService(BaseService):
    """
    Service for detecting and correcting cashbox balance drift.

    Usage:
        # Full run over every cashbox
        result = ReconciliationService.run_reconciliation()

        # Report only
        result = ReconciliationService.run_reconciliation(dry_run=True)

        # Single cashbox
        result = ReconciliationService.reconcile_cashbox(cashbox_id)
    """

    @classmethod
    def run_reconciliation(
        cls,
        cashbox_ids: Iterable[uuid.UUID] | None = None,
        dry_run: bool = False,
    ) -> ServiceResult[ReconciliationRunResult]:
        """
        Reconcile every cashbox (or the given ones) in one run.

        Failures on one cashbox (lock timeout, database error) are recorded
        and the run moves on to the next one.

        Args:
            cashbox_ids: Restrict the run to these cashboxes
            dry_run: Report drift without correcting it

        Returns:
            ServiceResult containing ReconciliationRunResult

        Raises:
            ReconciliationLockError: If another run is already in progress
        """
        cls.get_logger().info(
            "Starting cashbox reconciliation run",
            extra={"dry_run": dry_run},
        )

        ttl = getattr(settings, "TREASURY_RECONCILIATION_LOCK_TTL", DEFAULT_RUN_LOCK_TTL)
        lock = DistributedLock(RUN_LOCK_KEY, ttl=ttl, blocking=False)
        try:
            lock.acquire()
        except LockAcquisitionError:
            cls.get_logger().warning(
                "Another reconciliation run is in progress",
                extra={"lock_key": RUN_LOCK_KEY},
            )
            raise ReconciliationLockError(
                "Another reconciliation run is in progress",
                details={"lock_key": RUN_LOCK_KEY},
            )

        try:
            return cls._run_with_lock(lock, cashbox_ids, dry_run)
        finally:
            lock.release()

    @classmethod
    def reconcile_cashbox(
        cls,
        cashbox_id: uuid.UUID,
        dry_run: bool = False,
    ) -> ServiceResult[ReconciliationResult]:
        """
        Reconcile a single cashbox on demand.

        Returns:
            ServiceResult containing the ReconciliationResult, or a failure
            with the ledger error code
        """
        cls.get_logger().info(
            "Reconciling single cashbox",
            extra={"cashbox_id": str(cashbox_id), "dry_run": dry_run},
        )
        try:
            cashbox = ledger.get_cashbox(cashbox_id)
            return ServiceResult.ok(ledger.reconcile(cashbox, dry_run=dry_run))
        except CashboxNotFound as e:
            return ServiceResult.failure(e.message, error_code=e.error_code)
        except LedgerError as e:
            cls.get_logger().warning(
                "Cashbox reconciliation failed",
                extra={"cashbox_id": str(cashbox_id), "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

    # =========================================================================
    # Internal: Run Orchestration
    # =========================================================================

    @classmethod
    def _run_with_lock(
        cls,
        lock: DistributedLock,
        cashbox_ids: Iterable[uuid.UUID] | None,
        dry_run: bool,
    ) -> ServiceResult[ReconciliationRunResult]:
        """Execute the run with the global lock already held."""
        run = ReconciliationRunResult(
            started_at=timezone.now(),
            completed_at=None,
            dry_run=dry_run,
        )

        cashboxes = Cashbox.objects.order_by("id")
        if cashbox_ids is not None:
            cashboxes = cashboxes.filter(id__in=list(cashbox_ids))

        for cashbox in list(cashboxes):
            run.cashboxes_checked += 1
            try:
                result = ledger.reconcile(cashbox, dry_run=dry_run)
                breaks = ledger.verify_chain(cashbox)
            except (LedgerError, DatabaseError) as e:
                run.failed += 1
                run.failures[str(cashbox.id)] = str(e)
                cls.get_logger().error(
                    "Failed to reconcile cashbox",
                    extra={"cashbox_id": str(cashbox.id), "error": str(e)},
                )
                continue
            finally:
                lock.extend()

            run.results.append(result)
            if result.has_drift:
                run.drift_found += 1
            if result.corrected:
                run.corrected += 1
            if breaks:
                run.chain_breaks += len(breaks)
                cls.get_logger().error(
                    "Transaction chain broken",
                    extra={
                        "cashbox_id": str(cashbox.id),
                        "first_break_sequence": breaks[0].sequence,
                        "breaks": len(breaks),
                    },
                )

        run.completed_at = timezone.now()
        cls.get_logger().info(
            "Cashbox reconciliation run completed",
            extra=run.to_dict(),
        )
        return ServiceResult.ok(run)
