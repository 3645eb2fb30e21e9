"""
Treasury infrastructure exceptions.

Ledger business-rule errors (insufficient balance, reversal conflicts, etc.)
live in treasury.ledger.exceptions. This module holds the exceptions raised by
the surrounding infrastructure: distributed locking and scheduled
reconciliation.

Exception Hierarchy:
    ConflictError (core)
    ├── LockAcquisitionError - Redis lock could not be acquired
    └── ReconciliationLockError - Another reconciliation run is in progress

Usage:
    from treasury.exceptions import LockAcquisitionError

    try:
        with DistributedLock("treasury:reconciliation:run", ttl=3600):
            ...
    except LockAcquisitionError:
        logger.info("Skipping run, lock is held elsewhere")
"""

from __future__ import annotations

from core.exceptions import ConflictError


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    This exception indicates that another process holds the lock
    and it couldn't be acquired within the timeout period.

    Attributes:
        details: Contains key and timeout information

    Note:
        This exception inherits from ConflictError (HTTP 409) because
        it represents a resource contention conflict.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class ReconciliationLockError(LockAcquisitionError):
    """
    Raised when a reconciliation run is requested while another one holds
    the cluster-wide run lock.

    Scheduled runs treat this as "skipped", not as a failure.
    """

    default_error_code: str = "RECONCILIATION_IN_PROGRESS"


__all__ = [
    "LockAcquisitionError",
    "ReconciliationLockError",
]
