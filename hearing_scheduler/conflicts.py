"""
Conflict Detector
=================

Finds the owner's scheduled hearings whose [start_at, end_at) interval
intersects a proposed one, optionally narrowed by resource scope.

Overlap rule (half-open): candidate.start_at < end_at AND start_at < candidate.end_at.
Touching intervals (one ends exactly when the other starts) do not conflict.

Resource scope is an opaque key/value map (court, judge, ...). When both sides
carry a non-empty scope, a candidate only conflicts if the matcher finds a
shared attribute; if either side has none, time overlap alone is enough.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .clock import as_utc, isoformat_utc, to_storage
from .db.models import Case, Hearing, HearingStatus
from .errors import InternalError

logger = logging.getLogger(__name__)

REASON_TIME_OVERLAP = "direct time overlap"
REASON_RESOURCE = "same resource double-booking"


@dataclass
class ConflictRecord:
    """One existing hearing that collides with a proposed interval"""
    hearing_id: str
    case_number: Optional[str]
    start_at: datetime
    end_at: datetime
    conflict_reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hearingId": self.hearing_id,
            "caseNumber": self.case_number,
            "startAt": isoformat_utc(self.start_at),
            "endAt": isoformat_utc(self.end_at),
            "conflictReason": self.conflict_reason,
        }


# =============================================================================
# RESOURCE MATCHING
# =============================================================================

class ResourceMatcher:
    """Decides whether two non-empty resource scopes contend for the same resource."""

    def shared_attributes(self, proposed: Dict[str, Any], candidate: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def matches(self, proposed: Dict[str, Any], candidate: Dict[str, Any]) -> bool:
        return bool(self.shared_attributes(proposed, candidate))


def _normalize(value: Any) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip().lower()
    return normalized or None


class SharedAttributeMatcher(ResourceMatcher):
    """
    Default matcher: any key present on both sides with an equal value.

    Values compare as trimmed, case-insensitive strings, so
    {"court": "High Court "} matches {"court": "high court"}.
    """

    def shared_attributes(self, proposed: Dict[str, Any], candidate: Dict[str, Any]) -> Dict[str, Any]:
        shared = {}
        for key, value in proposed.items():
            if key not in candidate:
                continue
            left = _normalize(value)
            if left is not None and left == _normalize(candidate[key]):
                shared[key] = value
        return shared


DEFAULT_MATCHER = SharedAttributeMatcher()


def has_scope(scope: Optional[Dict[str, Any]]) -> bool:
    """True if the scope carries at least one non-blank attribute."""
    if not scope:
        return False
    return any(_normalize(v) is not None for v in scope.values())


def classify(
    proposed_scope: Optional[Dict[str, Any]],
    candidate_scope: Optional[Dict[str, Any]],
    matcher: ResourceMatcher = DEFAULT_MATCHER,
) -> Optional[str]:
    """
    Conflict reason for two time-overlapping hearings, or None if the
    resource scopes say they do not contend.
    """
    if has_scope(proposed_scope) and has_scope(candidate_scope):
        if matcher.matches(proposed_scope, candidate_scope):
            return REASON_RESOURCE
        return None
    return REASON_TIME_OVERLAP


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return as_utc(a_start) < as_utc(b_end) and as_utc(b_start) < as_utc(a_end)


# =============================================================================
# DETECTION
# =============================================================================

def apply_query_timeout(db: Session, timeout_ms: Optional[int]) -> None:
    """
    Bound conflict queries on PostgreSQL (SET LOCAL lasts until commit/rollback).
    SQLite relies on its busy timeout instead.
    """
    if not timeout_ms:
        return
    bind = db.get_bind()
    if bind is None or bind.dialect.name != "postgresql":
        return
    ms = int(timeout_ms)
    db.execute(text(f"SET LOCAL statement_timeout = {ms}"))
    db.execute(text(f"SET LOCAL lock_timeout = {ms}"))


def find_conflicts(
    db: Session,
    owner: str,
    start_at: datetime,
    end_at: datetime,
    resource_scope: Optional[Dict[str, Any]] = None,
    exclude_hearing_id: Optional[str] = None,
    matcher: Optional[ResourceMatcher] = None,
    timeout_ms: Optional[int] = None,
) -> List[ConflictRecord]:
    """
    Return the owner's scheduled hearings that collide with [start_at, end_at).

    Args:
        db: Session (read-only use)
        owner: Attorney whose calendar is checked
        start_at, end_at: Proposed interval, start_at < end_at
        resource_scope: Optional key/value map narrowing what counts as contention
        exclude_hearing_id: Hearing being edited (never conflicts with itself)
        matcher: Resource matcher (defaults to SharedAttributeMatcher)
        timeout_ms: Statement timeout for the query (PostgreSQL)

    Returns:
        ConflictRecords ordered by candidate start_at

    Raises:
        InternalError: on persistence failure or timeout
    """
    matcher = matcher or DEFAULT_MATCHER

    try:
        apply_query_timeout(db, timeout_ms)

        query = (
            db.query(Hearing, Case.case_number)
            .outerjoin(Case, Case.id == Hearing.case_id)
            .filter(
                Hearing.owner == owner,
                Hearing.status == HearingStatus.SCHEDULED,
                Hearing.start_at < to_storage(end_at),
                Hearing.end_at > to_storage(start_at),
            )
        )
        if exclude_hearing_id:
            query = query.filter(Hearing.id != exclude_hearing_id)

        rows = query.order_by(Hearing.start_at.asc(), Hearing.id.asc()).all()
    except SQLAlchemyError as e:
        logger.error("Conflict query failed for owner=%s: %s", owner, e, exc_info=True)
        raise InternalError("Failed to check conflicts")

    conflicts: List[ConflictRecord] = []
    for hearing, case_number in rows:
        if not intervals_overlap(hearing.start_at, hearing.end_at, start_at, end_at):
            continue
        reason = classify(resource_scope, hearing.resource_scope, matcher)
        if reason is None:
            continue
        conflicts.append(ConflictRecord(
            hearing_id=hearing.id,
            case_number=case_number,
            start_at=as_utc(hearing.start_at),
            end_at=as_utc(hearing.end_at),
            conflict_reason=reason,
        ))

    if conflicts:
        logger.info(
            "Found %d conflict(s) for owner=%s in [%s, %s)",
            len(conflicts), owner, isoformat_utc(start_at), isoformat_utc(end_at),
        )
    return conflicts


def check_conflict(
    db: Session,
    owner: str,
    start_at: datetime,
    end_at: datetime,
    resource_scope: Optional[Dict[str, Any]] = None,
    exclude_hearing_id: Optional[str] = None,
    **kwargs,
) -> Dict[str, Any]:
    """Boundary form: {"hasConflict": bool, "conflicts": [ConflictRecord, ...]}"""
    conflicts = find_conflicts(
        db, owner, start_at, end_at,
        resource_scope=resource_scope,
        exclude_hearing_id=exclude_hearing_id,
        **kwargs,
    )
    return {"hasConflict": bool(conflicts), "conflicts": conflicts}
