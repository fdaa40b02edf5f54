"""
Per-owner scheduling lock.

Conflict check + hearing write + commit run under one lock per owner, so two
overlapping requests for the same attorney cannot both observe "no conflicts"
and both commit.

Two layers:
- threading.RLock per owner (requests handled by threads of one process)
- pg_advisory_xact_lock on PostgreSQL (workers in other processes); released
  automatically when the transaction commits or rolls back

The key is the owner alone. A hearing with no resource scope contends with
every scope, so keying by scope would let such requests interleave.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import InternalError

logger = logging.getLogger(__name__)

LOCK_NAMESPACE = "hearing-schedule"


class SchedulingLock:
    """Registry of per-owner locks."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._locks: Dict[str, threading.RLock] = {}
        self._users: Dict[str, int] = {}
        self._guard = threading.Lock()

    def _checkout(self, owner: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(owner)
            if lock is None:
                lock = threading.RLock()
                self._locks[owner] = lock
            self._users[owner] = self._users.get(owner, 0) + 1
            return lock

    def _checkin(self, owner: str) -> None:
        # Evict once no thread holds or waits on the lock
        with self._guard:
            remaining = self._users.get(owner, 1) - 1
            if remaining > 0:
                self._users[owner] = remaining
            else:
                self._users.pop(owner, None)
                self._locks.pop(owner, None)

    @contextmanager
    def hold(
        self,
        db: Optional[Session],
        owner: str,
        timeout: Optional[float] = None,
    ) -> Generator[None, None, None]:
        """
        Hold the owner's lock for the duration of the block.

        The caller must commit inside the block; the database-level lock lives
        exactly as long as the session's transaction.

        Raises:
            InternalError: lock not acquired within the timeout
        """
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(owner)
        try:
            if not lock.acquire(timeout=wait):
                logger.error("Timed out after %.1fs waiting for scheduling lock (owner=%s)", wait, owner)
                raise InternalError("Timed out waiting for the scheduling lock")

            try:
                if db is not None:
                    _acquire_database_lock(db, owner, wait)
                yield
            finally:
                lock.release()
        finally:
            self._checkin(owner)


def _acquire_database_lock(db: Session, owner: str, wait: float) -> None:
    bind = db.get_bind()
    if bind is None or bind.dialect.name != "postgresql":
        return
    try:
        db.execute(text(f"SET LOCAL lock_timeout = {int(wait * 1000)}"))
        db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"{LOCK_NAMESPACE}:{owner}"},
        )
    except SQLAlchemyError as e:
        logger.error("Advisory lock failed for owner=%s: %s", owner, e)
        db.rollback()
        raise InternalError("Timed out waiting for the scheduling lock")


_scheduling_lock: Optional[SchedulingLock] = None
_singleton_guard = threading.Lock()


def get_scheduling_lock() -> SchedulingLock:
    """Process-wide lock registry (singleton)."""
    global _scheduling_lock
    with _singleton_guard:
        if _scheduling_lock is None:
            from .config import get_settings
            _scheduling_lock = SchedulingLock(timeout=get_settings().scheduling_lock_timeout)
        return _scheduling_lock
