"""
Activity logging sink.

Audit entries are written in their own session so a failing audit insert can
never roll back (or block) the scheduling write it describes. Logging is
best-effort: failures are logged and swallowed.
"""

import logging
from contextlib import AbstractContextManager
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .db.models import Activity, ActivityType
from .db.session import get_db_session

logger = logging.getLogger(__name__)


class ActivitySink:
    """Destination for activity/audit entries."""

    def log(
        self,
        owner: str,
        activity_type: ActivityType,
        message: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        raise NotImplementedError


class DatabaseActivityLog(ActivitySink):
    """Persists entries to the activities table."""

    def __init__(self, session_factory: Callable[[], AbstractContextManager] = get_db_session):
        self._session_factory = session_factory

    def log(
        self,
        owner: str,
        activity_type: ActivityType,
        message: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            with self._session_factory() as db:
                db.add(Activity(
                    owner=owner,
                    type=activity_type,
                    message=message,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    extra_data=metadata or {},
                ))
        except Exception as e:
            logger.error(
                "Activity logging failed (type=%s entity=%s): %s",
                activity_type.value, entity_id, e,
            )


class BufferedActivityLog(ActivitySink):
    """
    Holds entries until the write they describe has committed.

    Entries produced inside the scheduling lock are replayed to the real sink
    once the transaction is done, so an uncommitted write leaves no audit trail.
    """

    def __init__(self):
        self.entries: List[tuple] = []

    def log(
        self,
        owner: str,
        activity_type: ActivityType,
        message: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.entries.append((owner, activity_type, message, entity_type, entity_id, metadata))

    def flush_to(self, sink: Optional[ActivitySink]) -> None:
        entries, self.entries = self.entries, []
        for entry in entries:
            record_activity(sink, *entry)


def record_activity(
    sink: Optional[ActivitySink],
    owner: str,
    activity_type: ActivityType,
    message: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Send an entry to the sink; never raises."""
    if sink is None:
        return
    try:
        sink.log(owner, activity_type, message, entity_type, entity_id, metadata)
    except Exception as e:
        logger.error("Activity sink %s failed: %s", type(sink).__name__, e)


def list_activities(
    db: Session,
    owner: str,
    activity_type: Optional[ActivityType] = None,
    limit: int = 50,
) -> List[Activity]:
    query = db.query(Activity).filter(Activity.owner == owner)
    if activity_type is not None:
        query = query.filter(Activity.type == activity_type)
    return query.order_by(Activity.created_at.desc()).limit(limit).all()
