"""
Override & Audit Recorder
=========================

The only path by which a hearing may be written while conflicts exist: the
caller gives a reason, we stamp conflict_override on the hearing and emit one
audit entry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .activity import ActivitySink, record_activity
from .clock import Clock, SystemClock, isoformat_utc
from .conflicts import ConflictRecord
from .db.models import ActivityType, Hearing
from .errors import ValidationError

logger = logging.getLogger(__name__)

OVERRIDE_REASON_REQUIRED = "Override reason is required"


@dataclass
class OverrideMetadata:
    """Stamped onto Hearing.conflict_override"""
    reason: str
    overridden_by: str
    overridden_at: datetime
    conflicting_hearings: List[str] = field(default_factory=list)
    allowed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "overriddenBy": self.overridden_by,
            "overriddenAt": isoformat_utc(self.overridden_at),
            "conflictingHearings": list(self.conflicting_hearings),
        }


def normalize_reason(reason: Optional[str]) -> str:
    """Trimmed override reason; VALIDATION_ERROR if empty."""
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError(OVERRIDE_REASON_REQUIRED, {"field": "override.reason"})
    return reason.strip()


def apply_override(
    hearing: Hearing,
    conflicts: Sequence[ConflictRecord],
    reason: Optional[str],
    actor_id: str,
    audit: Optional[ActivitySink] = None,
    clock: Optional[Clock] = None,
    updating: bool = False,
) -> OverrideMetadata:
    """
    Validate an override and attach it to the hearing being written.

    Args:
        hearing: Hearing about to be inserted/updated (id must already be set)
        conflicts: Detected conflicts - must be non-empty
        reason: Caller-supplied justification (trimmed, required)
        actor_id: Who overrode
        audit: Activity sink for the audit entry (best-effort)
        clock: Source of overridden_at
        updating: Wording of the audit message (update vs. create)

    Raises:
        ValidationError: missing/blank reason
        ValueError: called without conflicts (programming error)
    """
    if not conflicts:
        raise ValueError("apply_override called without conflicts")

    trimmed = normalize_reason(reason)
    clock = clock or SystemClock()

    metadata = OverrideMetadata(
        reason=trimmed,
        overridden_by=actor_id,
        overridden_at=clock.now(),
        conflicting_hearings=[c.hearing_id for c in conflicts],
    )
    hearing.conflict_override = metadata.to_dict()

    verb = "updated" if updating else "scheduled"
    logger.info(
        "Conflict override by %s on hearing %s (%d conflict(s))",
        actor_id, hearing.id, len(conflicts),
    )
    record_activity(
        audit,
        owner=actor_id,
        activity_type=ActivityType.HEARING_CONFLICT_OVERRIDE,
        message=f"Hearing {verb} despite {len(conflicts)} conflict(s): {trimmed}",
        entity_type="hearing",
        entity_id=hearing.id,
        metadata={
            "conflicts": len(conflicts),
            "reason": trimmed,
            "conflictingHearings": metadata.conflicting_hearings,
        },
    )
    return metadata
