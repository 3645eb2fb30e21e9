"""
Concurrency control utilities for treasury operations.

This module provides two complementary locking mechanisms:

1. **Cashbox row lock** (cashbox_lock)
   - SELECT ... FOR UPDATE on the cashbox row
   - Serializes every balance write for one cashbox
   - Bounded wait: raises LockTimeout instead of blocking forever
     (lock_timeout on PostgreSQL, the connection busy timeout on SQLite)
   - Use for: record_income, record_expense, reverse_transaction, reconcile

2. **Distributed Locks** (DistributedLock)
   - Redis-based mutual exclusion across processes/servers
   - TTL prevents deadlocks from crashed processes
   - Use for: the scheduled reconciliation run (one at a time cluster-wide)

Usage:

    from treasury.locks import DistributedLock, cashbox_transaction

    with cashbox_transaction(cashbox.id) as locked:
        # locked is a fresh Cashbox row, held until commit
        ...

    with DistributedLock("treasury:reconciliation:run", ttl=3600, blocking=False):
        reconcile_everything()
"""

from __future__ import annotations

import logging
import time
import uuid as uuid_module
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import OperationalError, connections, router, transaction

from django_redis import get_redis_connection

from treasury.exceptions import LockAcquisitionError
from treasury.ledger.exceptions import CashboxNotFound, LockTimeout
from treasury.ledger.models import Cashbox

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import Any

    from redis import Redis

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_MS = 5000

# PostgreSQL SQLSTATE for lock_not_available
LOCK_NOT_AVAILABLE = "55P03"

# SQLite gives up after the connection timeout with one of these
SQLITE_BUSY_MESSAGES = ("database is locked", "database table is locked")


# =============================================================================
# Cashbox row lock
# =============================================================================


def _is_lock_timeout(exc: OperationalError) -> bool:
    cause = exc.__cause__
    code = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if code == LOCK_NOT_AVAILABLE:
        return True
    return any(message in str(exc) for message in SQLITE_BUSY_MESSAGES)


def _lock_timeout(cashbox_id, timeout_ms: int) -> LockTimeout:
    logger.warning(
        "Timed out waiting for cashbox lock",
        extra={"cashbox_id": str(cashbox_id), "timeout_ms": timeout_ms},
    )
    return LockTimeout(
        f"Cashbox {cashbox_id} is busy, lock not granted within {timeout_ms}ms",
        details={"cashbox_id": str(cashbox_id), "timeout_ms": timeout_ms},
    )


def _timeout_ms(timeout_ms: int | None) -> int:
    if timeout_ms is None:
        return getattr(settings, "TREASURY_LOCK_TIMEOUT_MS", DEFAULT_LOCK_TIMEOUT_MS)
    return timeout_ms


@contextmanager
def cashbox_lock(cashbox_id, timeout_ms: int | None = None) -> Iterator[Cashbox]:
    """
    Lock a cashbox row for the rest of the current database transaction.

    Must be used inside transaction.atomic(); the lock is released when the
    outermost atomic block commits or rolls back, not when this context
    manager exits.

    Args:
        cashbox_id: Primary key of the cashbox to lock
        timeout_ms: Maximum wait for the lock (defaults to
            settings.TREASURY_LOCK_TIMEOUT_MS)

    Yields:
        The cashbox as re-read under the lock

    Raises:
        CashboxNotFound: If the cashbox doesn't exist
        LockTimeout: If the lock isn't granted in time
    """
    timeout_ms = _timeout_ms(timeout_ms)
    connection = connections[router.db_for_write(Cashbox)]
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = {int(timeout_ms)}")

    try:
        locked = Cashbox.objects.select_for_update().get(pk=cashbox_id)
    except Cashbox.DoesNotExist:
        raise CashboxNotFound(
            f"Cashbox {cashbox_id} not found",
            details={"cashbox_id": str(cashbox_id)},
        )
    except OperationalError as exc:
        if not _is_lock_timeout(exc):
            raise
        raise _lock_timeout(cashbox_id, timeout_ms) from exc

    yield locked


@contextmanager
def cashbox_transaction(cashbox_id, timeout_ms: int | None = None) -> Iterator[Cashbox]:
    """
    Open a database transaction holding the cashbox row lock.

    On SQLite the whole database is locked when the transaction begins
    (transaction_mode IMMEDIATE), so a busy database surfaces here
    rather than from the row lock, after the connection's busy timeout
    (set to timeout_ms). Both are raised as LockTimeout.

    Raises:
        CashboxNotFound: If the cashbox doesn't exist
        LockTimeout: If the lock isn't granted in time
    """
    timeout_ms = _timeout_ms(timeout_ms)
    connection = connections[router.db_for_write(Cashbox)]
    if connection.vendor == "sqlite" and not connection.in_atomic_block:
        with connection.cursor() as cursor:
            cursor.execute(f"PRAGMA busy_timeout = {int(timeout_ms)}")

    try:
        with transaction.atomic():
            with cashbox_lock(cashbox_id, timeout_ms) as locked:
                yield locked
    except OperationalError as exc:
        if not _is_lock_timeout(exc):
            raise
        raise _lock_timeout(cashbox_id, timeout_ms) from exc


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Provides mutual exclusion across multiple processes/servers
    for long-running treasury jobs.

    Features:
        - Automatic TTL prevents deadlocks from crashed processes
        - Token-based ownership prevents accidental release by other processes
        - Blocking and non-blocking acquisition modes
        - Context manager support for clean usage

    Example:
        lock = DistributedLock("treasury:reconciliation:run", ttl=3600, blocking=False)
        try:
            with lock:
                run_reconciliation()
        except LockAcquisitionError:
            # Another worker is already reconciling
            pass

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)
    """

    # Lua script for atomic check-and-delete (release)
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Lua script for atomic check-and-extend
    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        """Get Redis connection (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Attempt to acquire the lock.

        Returns:
            True if lock was acquired

        Raises:
            LockAcquisitionError: If lock couldn't be acquired
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.time() + self.timeout
            while time.time() < end_time:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        """Try once to acquire the lock."""
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Returns:
            True if lock was released, False if we didn't hold it
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, additional_ttl: int | None = None) -> bool:
        """
        Reset the lock TTL if we hold it.

        Called between cashboxes during a long reconciliation run.
        """
        if self._token is None:
            return False

        ttl = additional_ttl or self.ttl
        redis = self._get_redis()
        result = redis.eval(self.EXTEND_SCRIPT, 1, self.key, self._token, ttl)
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


__all__ = [
    "DistributedLock",
    "cashbox_lock",
    "cashbox_transaction",
]
