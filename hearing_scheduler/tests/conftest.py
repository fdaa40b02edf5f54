"""
Shared fixtures: fresh SQLite database per test, pinned clock, seeded cases.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


OWNER = "U1"
OTHER_OWNER = "U2"


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from hearing_scheduler.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "hearings.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def clock():
    """Clock pinned to 2025-05-15T00:00Z"""
    from hearing_scheduler.clock import FixedClock
    return FixedClock(datetime(2025, 5, 15, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def db(sqlalchemy_db):
    from hearing_scheduler.db.session import new_session

    session = new_session()
    yield session
    session.close()


class RecordingSink:
    """Activity sink that keeps entries in memory."""

    def __init__(self):
        self.entries = []

    def log(self, owner, activity_type, message, entity_type, entity_id=None, metadata=None):
        self.entries.append({
            "owner": owner,
            "type": activity_type,
            "message": message,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "metadata": metadata or {},
        })

    def of_type(self, activity_type):
        return [e for e in self.entries if e["type"] == activity_type]


@pytest.fixture
def audit():
    return RecordingSink()


@pytest.fixture
def service(db, clock, audit):
    from hearing_scheduler.service import HearingService
    return HearingService(db, clock=clock, audit=audit)


def seed_case(owner=OWNER, case_number="CS-101/2025", client_name="Mehta"):
    from hearing_scheduler.db.session import get_db_session
    from hearing_scheduler.db.models import Case

    with get_db_session() as session:
        case = Case(owner=owner, case_number=case_number, client_name=client_name)
        session.add(case)
        session.flush()
        return case.id


@pytest.fixture
def case_id(sqlalchemy_db):
    return seed_case()
