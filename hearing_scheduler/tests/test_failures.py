"""
Tests for INTERNAL_ERROR paths: lock timeouts and persistence failures
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from conftest import OWNER, RecordingSink
from hearing_scheduler.db.models import Hearing
from hearing_scheduler.db.session import new_session
from hearing_scheduler.errors import InternalError
from hearing_scheduler.locking import SchedulingLock
from hearing_scheduler.service import HearingService


def draft(case_id):
    return {
        "case_id": case_id,
        "hearing_date": "2025-06-01",
        "hearing_time": "10:00",
        "timezone": "Asia/Kolkata",
        "duration": 60,
    }


def persisted_hearings():
    db = new_session()
    try:
        return db.query(Hearing).count()
    finally:
        db.close()


def _db_down(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("database is gone"))


# =============================================================================
# Lock timeout
# =============================================================================

def test_lock_timeout_is_internal_error(db, clock, case_id):
    lock = SchedulingLock(timeout=0.1)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with lock.hold(None, OWNER):
            held.set()
            release.wait(timeout=10)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(timeout=5)
        service = HearingService(db, clock=clock, audit=RecordingSink(), lock=lock)

        with pytest.raises(InternalError) as exc:
            service.create_hearing(OWNER, draft(case_id))

        assert exc.value.code == "INTERNAL_ERROR"
        assert exc.value.message == "Timed out waiting for the scheduling lock"
    finally:
        release.set()
        thread.join(timeout=10)

    assert persisted_hearings() == 0


def test_other_owners_are_not_blocked():
    lock = SchedulingLock(timeout=0.1)
    with lock.hold(None, OWNER):
        with lock.hold(None, "U2"):
            pass


def test_locks_are_evicted_when_released():
    lock = SchedulingLock(timeout=1)
    with lock.hold(None, OWNER):
        with lock.hold(None, OWNER):
            assert OWNER in lock._locks
        assert OWNER in lock._locks
    assert lock._locks == {}
    assert lock._users == {}


def test_timed_out_waiter_does_not_leak():
    lock = SchedulingLock(timeout=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with lock.hold(None, OWNER):
            held.set()
            release.wait(timeout=10)

    thread = threading.Thread(target=holder)
    thread.start()
    assert held.wait(timeout=5)
    with pytest.raises(InternalError):
        with lock.hold(None, OWNER):
            pass
    release.set()
    thread.join(timeout=10)

    assert lock._locks == {}


# =============================================================================
# Persistence failures
# =============================================================================

def test_conflict_query_failure_is_internal_error(db, clock, case_id, monkeypatch):
    monkeypatch.setattr("hearing_scheduler.conflicts.apply_query_timeout", _db_down)
    service = HearingService(db, clock=clock, audit=RecordingSink())

    with pytest.raises(InternalError) as exc:
        service.create_hearing(OWNER, draft(case_id))

    assert exc.value.message == "Failed to check conflicts"
    assert persisted_hearings() == 0


def test_commit_failure_rolls_back(db, clock, case_id, monkeypatch):
    audit = RecordingSink()
    service = HearingService(db, clock=clock, audit=audit)
    monkeypatch.setattr(db, "commit", _db_down)

    with pytest.raises(InternalError) as exc:
        service.create_hearing(OWNER, draft(case_id))

    assert exc.value.message == "Failed to create hearing"
    assert exc.value.to_payload() == {"error": "INTERNAL_ERROR", "message": "Failed to create hearing"}
    assert persisted_hearings() == 0
    assert audit.entries == []


def test_update_commit_failure_keeps_old_values(db, clock, case_id, monkeypatch):
    service = HearingService(db, clock=clock, audit=RecordingSink())
    hearing = service.create_hearing(OWNER, draft(case_id))

    monkeypatch.setattr(db, "commit", _db_down)
    with pytest.raises(InternalError):
        service.update_hearing(OWNER, hearing.id, {"hearing_time": "15:00"})
    monkeypatch.undo()

    check = new_session()
    try:
        assert check.query(Hearing).filter(Hearing.id == hearing.id).one().hearing_time == "10:00"
    finally:
        check.close()
