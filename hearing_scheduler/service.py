"""
Hearing Service
===============

Create/update/delete hearings through the scheduling pipeline:

    resolve local time -> [owner lock] -> detect conflicts -> override? -> write + commit
    -> [release] -> activity log -> recompute Case.next_hearing

The lock spans detection and commit, so of two concurrent overlapping requests
for one owner only the first commits; the second sees the winner and gets
CONFLICT.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .activity import ActivitySink, BufferedActivityLog, DatabaseActivityLog, record_activity
from .clock import Clock, SystemClock, as_utc, to_storage
from .config import Settings, get_settings
from .conflicts import ConflictRecord, ResourceMatcher, check_conflict, find_conflicts
from .db.models import (
    ActivityType, Case, Hearing, HearingStatus, HearingType, generate_uuid
)
from .errors import (
    ConflictError, ForbiddenError, InternalError, NotFoundError, SchedulingError, ValidationError
)
from .locking import SchedulingLock, get_scheduling_lock
from .overrides import apply_override
from .propagation import propagate_after_mutation
from .schemas import OverrideRequest
from .time_resolver import get_zone, local_today, parse_date, parse_local_time, resolve

logger = logging.getLogger(__name__)

TIME_FIELDS = ("hearing_date", "hearing_time", "timezone", "duration")

DESCRIPTIVE_FIELDS = (
    "court_name", "judge_name", "purpose", "court_instructions",
    "proceedings", "adjournment_reason", "notes",
)


def _coerce_enum(enum_cls, value, field_name: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}", {"field": field_name})


def _validate_scope(scope: Any) -> Dict[str, Any]:
    if scope is None:
        return {}
    if not isinstance(scope, dict):
        raise ValidationError("resourceScope must be an object", {"field": "resourceScope"})
    for key, value in scope.items():
        if isinstance(value, (dict, list)):
            raise ValidationError(
                f"resourceScope.{key} must be a scalar value", {"field": "resourceScope"}
            )
    return dict(scope)


class HearingService:
    """
    Scheduling operations for one request/session.

    Args:
        db: Session used for reads and the scheduling write
        clock: Source of "now" (past-date checks, override stamps, next hearing)
        audit: Activity sink (default: activities table, own session)
        lock: Per-owner lock registry
        matcher: Resource scope matcher for conflict detection
        settings: Defaults and timeouts
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        audit: Optional[ActivitySink] = None,
        lock: Optional[SchedulingLock] = None,
        matcher: Optional[ResourceMatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = audit if audit is not None else DatabaseActivityLog()
        self.lock = lock or get_scheduling_lock()
        self.matcher = matcher
        self.settings = settings or get_settings()

    # =========================================================================
    # Conflict check
    # =========================================================================

    def check_conflict(
        self,
        owner: str,
        start_at: datetime,
        end_at: datetime,
        resource_scope: Optional[Dict[str, Any]] = None,
        exclude_hearing_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """{"hasConflict": bool, "conflicts": [ConflictRecord, ...]} for a proposed interval."""
        if start_at is None or end_at is None:
            raise ValidationError("startAt and endAt are required")
        if not start_at < end_at:
            raise ValidationError("endAt must be after startAt")

        return check_conflict(
            self.db, owner, start_at, end_at,
            resource_scope=_validate_scope(resource_scope),
            exclude_hearing_id=exclude_hearing_id,
            matcher=self.matcher,
            timeout_ms=self.settings.conflict_query_timeout_ms,
        )

    def resolve_interval(
        self,
        hearing_date: Any,
        hearing_time: Optional[str] = None,
        timezone_name: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> Tuple[datetime, datetime]:
        """Local fields (with configured defaults) -> (start_at, end_at)."""
        if hearing_date is None:
            raise ValidationError("Valid hearing date is required", {"field": "hearingDate"})
        return resolve(
            hearing_date,
            hearing_time or self.settings.default_hearing_time,
            timezone_name or self.settings.default_timezone,
            self.settings.default_duration_minutes if duration is None else duration,
        )

    # =========================================================================
    # Create / update / delete
    # =========================================================================

    def create_hearing(
        self,
        owner: str,
        draft: Dict[str, Any],
        override: Optional[OverrideRequest] = None,
    ) -> Hearing:
        """
        Schedule a new hearing.

        Raises:
            ValidationError: bad date/time/zone/duration, past date, missing override reason
            NotFoundError: case missing or not owned by owner
            ConflictError: conflicts exist and no override was supplied
            InternalError: persistence failure or lock/query timeout
        """
        case_id = draft.get("case_id")
        if not case_id:
            raise ValidationError("caseId is required", {"field": "caseId"})

        status = _coerce_enum(HearingStatus, draft.get("status"), "status") or HearingStatus.SCHEDULED
        hearing_type = (
            _coerce_enum(HearingType, draft.get("hearing_type"), "hearingType")
            or HearingType.INTERIM_HEARING
        )

        hearing_date = draft.get("hearing_date")
        if hearing_date is None:
            raise ValidationError("Valid hearing date is required", {"field": "hearingDate"})
        hearing_date = parse_date(hearing_date)
        hearing_time = draft.get("hearing_time") or self.settings.default_hearing_time
        timezone_name = draft.get("timezone") or self.settings.default_timezone
        duration = draft.get("duration")
        if duration is None:
            duration = self.settings.default_duration_minutes

        start_at, end_at = resolve(hearing_date, hearing_time, timezone_name, duration)
        if status == HearingStatus.SCHEDULED:
            self._reject_past(hearing_date, timezone_name, "Hearing date cannot be in the past for scheduled hearings")

        next_date, next_time = self._follow_up(
            draft.get("next_hearing_date"), draft.get("next_hearing_time"), timezone_name
        )
        scope = _validate_scope(draft.get("resource_scope"))

        hearing = Hearing(
            id=generate_uuid(),
            case_id=case_id,
            owner=owner,
            hearing_date=hearing_date,
            hearing_time=hearing_time,
            timezone=timezone_name,
            duration=duration,
            start_at=to_storage(start_at),
            end_at=to_storage(end_at),
            status=status,
            resource_scope=scope,
            next_hearing_date=next_date,
            next_hearing_time=next_time,
            hearing_type=hearing_type,
            **{f: draft.get(f) for f in DESCRIPTIVE_FIELDS},
        )

        pending = BufferedActivityLog()
        with self.lock.hold(self.db, owner):
            try:
                case = self._owned_case(owner, case_id)

                conflicts: List[ConflictRecord] = []
                if status == HearingStatus.SCHEDULED:
                    conflicts = self._detect(owner, start_at, end_at, scope, None)
                self._resolve_conflicts(hearing, conflicts, override, owner, pending, updating=False)

                self.db.add(hearing)
                self.db.commit()
            except SchedulingError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Create hearing failed: %s", e, exc_info=True)
                raise InternalError("Failed to create hearing")

        logger.info("Hearing %s created for case %s (owner=%s)", hearing.id, case_id, owner)
        pending.flush_to(self.audit)
        record_activity(
            self.audit,
            owner=owner,
            activity_type=ActivityType.HEARING_CREATED,
            message=f"New hearing scheduled for case {case.case_number} on {hearing_date.isoformat()}",
            entity_type="hearing",
            entity_id=hearing.id,
            metadata={
                "caseId": case_id,
                "hearingDate": hearing_date.isoformat(),
                "hearingType": hearing_type.value,
                "status": status.value,
                "hasConflictOverride": hearing.conflict_override is not None,
            },
        )
        propagate_after_mutation(case_id, owner, self.clock)
        return hearing

    def update_hearing(
        self,
        owner: str,
        hearing_id: str,
        changes: Dict[str, Any],
        override: Optional[OverrideRequest] = None,
    ) -> Hearing:
        """
        Apply a partial update. Time fields trigger re-resolution and a fresh
        conflict check that excludes the hearing itself.
        """
        pending = BufferedActivityLog()
        with self.lock.hold(self.db, owner):
            try:
                hearing = self._owned_hearing(owner, hearing_id)
                self._apply_update(owner, hearing, changes, override, pending)
                self.db.commit()
            except SchedulingError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Update hearing %s failed: %s", hearing_id, e, exc_info=True)
                raise InternalError("Failed to update hearing")

        pending.flush_to(self.audit)
        case = self.db.query(Case).filter(Case.id == hearing.case_id).first()
        case_label = case.case_number if case else hearing.case_id
        record_activity(
            self.audit,
            owner=owner,
            activity_type=ActivityType.HEARING_UPDATED,
            message=f"Hearing updated for case {case_label} on {hearing.hearing_date.isoformat()}",
            entity_type="hearing",
            entity_id=hearing.id,
            metadata={
                "caseId": hearing.case_id,
                "hearingDate": hearing.hearing_date.isoformat(),
                "hearingType": hearing.hearing_type.value,
                "status": hearing.status.value,
                "changedFields": sorted(changes.keys()),
            },
        )
        propagate_after_mutation(hearing.case_id, owner, self.clock)
        return hearing

    def _apply_update(
        self,
        owner: str,
        hearing: Hearing,
        changes: Dict[str, Any],
        override: Optional[OverrideRequest],
        pending: ActivitySink,
    ) -> None:
        if "case_id" in changes and changes["case_id"] != hearing.case_id:
            raise ValidationError("A hearing cannot be moved to another case", {"field": "caseId"})

        new_status = _coerce_enum(HearingStatus, changes.get("status"), "status") or hearing.status
        if new_status == HearingStatus.SCHEDULED and hearing.status != HearingStatus.SCHEDULED:
            raise ValidationError(
                f"A {hearing.status.value} hearing cannot return to scheduled; create a new hearing instead",
                {"field": "status"},
            )

        time_changed = any(changes.get(f) is not None for f in TIME_FIELDS)
        hearing_date = parse_date(changes["hearing_date"]) if changes.get("hearing_date") is not None else hearing.hearing_date
        hearing_time = changes.get("hearing_time") or hearing.hearing_time
        timezone_name = changes.get("timezone") or hearing.timezone
        duration = changes["duration"] if changes.get("duration") is not None else hearing.duration

        start_at = end_at = None
        if time_changed:
            start_at, end_at = resolve(hearing_date, hearing_time, timezone_name, duration)
            if new_status == HearingStatus.SCHEDULED and changes.get("hearing_date") is not None:
                self._reject_past(hearing_date, timezone_name, "Hearing date cannot be in the past while scheduled")

        scope_changed = "resource_scope" in changes
        scope = _validate_scope(changes["resource_scope"]) if scope_changed else (hearing.resource_scope or {})

        if "next_hearing_date" in changes or "next_hearing_time" in changes:
            next_date_input = changes.get("next_hearing_date", hearing.next_hearing_date)
            next_time_input = changes.get("next_hearing_time", hearing.next_hearing_time)
            hearing.next_hearing_date, hearing.next_hearing_time = self._follow_up(
                next_date_input, next_time_input, timezone_name,
                check_past="next_hearing_date" in changes,
            )

        if new_status == HearingStatus.SCHEDULED and (time_changed or scope_changed):
            if start_at is None:
                start_at, end_at = as_utc(hearing.start_at), as_utc(hearing.end_at)
            conflicts = self._detect(owner, start_at, end_at, scope, hearing.id)
            self._resolve_conflicts(hearing, conflicts, override, owner, pending, updating=True)

        if time_changed:
            hearing.hearing_date = hearing_date
            hearing.hearing_time = hearing_time
            hearing.timezone = timezone_name
            hearing.duration = duration
            hearing.start_at = to_storage(start_at)
            hearing.end_at = to_storage(end_at)

        if scope_changed:
            hearing.resource_scope = scope
        hearing.status = new_status
        if changes.get("hearing_type") is not None:
            hearing.hearing_type = _coerce_enum(HearingType, changes["hearing_type"], "hearingType")
        for f in DESCRIPTIVE_FIELDS:
            if f in changes:
                setattr(hearing, f, changes[f])

    def delete_hearing(self, owner: str, hearing_id: str) -> Hearing:
        """Hard-delete a hearing, then refresh its case's next hearing."""
        with self.lock.hold(self.db, owner):
            try:
                hearing = self._owned_hearing(owner, hearing_id)
                self.db.delete(hearing)
                self.db.commit()
            except SchedulingError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Delete hearing %s failed: %s", hearing_id, e, exc_info=True)
                raise InternalError("Failed to delete hearing")

        record_activity(
            self.audit,
            owner=owner,
            activity_type=ActivityType.HEARING_DELETED,
            message=f"Hearing deleted for case {hearing.case_id} on {hearing.hearing_date.isoformat()}",
            entity_type="hearing",
            entity_id=hearing.id,
            metadata={
                "caseId": hearing.case_id,
                "hearingDate": hearing.hearing_date.isoformat(),
                "hearingType": hearing.hearing_type.value,
            },
        )
        propagate_after_mutation(hearing.case_id, owner, self.clock)
        return hearing

    # =========================================================================
    # Reads
    # =========================================================================

    def get_hearing(self, owner: str, hearing_id: str) -> Hearing:
        return self._owned_hearing(owner, hearing_id)

    def list_hearings(self, owner: str) -> List[Hearing]:
        return (
            self.db.query(Hearing)
            .filter(Hearing.owner == owner)
            .order_by(Hearing.start_at.desc())
            .all()
        )

    def list_case_hearings(self, owner: str, case_id: str) -> List[Hearing]:
        return (
            self.db.query(Hearing)
            .filter(Hearing.case_id == case_id, Hearing.owner == owner)
            .order_by(Hearing.start_at.desc())
            .all()
        )

    def list_today(self, owner: str, timezone_name: Optional[str] = None) -> List[Hearing]:
        """Hearings starting today (in the given zone), earliest first."""
        zone_name = timezone_name or self.settings.default_timezone
        zone = get_zone(zone_name)
        today = local_today(self.clock, zone_name)
        day_start = datetime.combine(today, time(0, 0)).replace(tzinfo=zone)
        day_end = datetime.combine(today + timedelta(days=1), time(0, 0)).replace(tzinfo=zone)
        return (
            self.db.query(Hearing)
            .filter(
                Hearing.owner == owner,
                Hearing.start_at >= to_storage(day_start),
                Hearing.start_at < to_storage(day_end),
            )
            .order_by(Hearing.start_at.asc())
            .all()
        )

    def cases_by_id(self, hearings: List[Hearing]) -> Dict[str, Case]:
        case_ids = {h.case_id for h in hearings}
        if not case_ids:
            return {}
        return {c.id: c for c in self.db.query(Case).filter(Case.id.in_(case_ids)).all()}

    # =========================================================================
    # Helpers
    # =========================================================================

    def _detect(
        self,
        owner: str,
        start_at: datetime,
        end_at: datetime,
        scope: Dict[str, Any],
        exclude_hearing_id: Optional[str],
    ) -> List[ConflictRecord]:
        return find_conflicts(
            self.db, owner, start_at, end_at,
            resource_scope=scope,
            exclude_hearing_id=exclude_hearing_id,
            matcher=self.matcher,
            timeout_ms=self.settings.conflict_query_timeout_ms,
        )

    def _resolve_conflicts(
        self,
        hearing: Hearing,
        conflicts: List[ConflictRecord],
        override: Optional[OverrideRequest],
        owner: str,
        pending: ActivitySink,
        updating: bool,
    ) -> None:
        if not conflicts:
            return
        if override is None:
            message = (
                "Hearing update conflicts with existing schedules"
                if updating else "Hearing conflicts with existing schedules"
            )
            raise ConflictError(conflicts, message)
        apply_override(
            hearing, conflicts, override.reason, owner,
            audit=pending, clock=self.clock, updating=updating,
        )

    def _reject_past(self, hearing_date: date, timezone_name: str, message: str) -> None:
        if not self.settings.reject_past_hearings:
            return
        if hearing_date < local_today(self.clock, timezone_name):
            raise ValidationError(message, {"field": "hearingDate"})

    def _follow_up(
        self,
        next_date: Any,
        next_time: Optional[str],
        timezone_name: str,
        check_past: bool = True,
    ) -> Tuple[Optional[date], Optional[str]]:
        if next_date is None or next_date == "":
            return None, None
        try:
            parsed = parse_date(next_date)
        except ValidationError:
            raise ValidationError("Invalid next hearing date", {"field": "nextHearingDate"})
        if next_time:
            parse_local_time(next_time)
        if check_past and parsed < local_today(self.clock, timezone_name):
            raise ValidationError("Next hearing date cannot be in the past", {"field": "nextHearingDate"})
        return parsed, next_time or None

    def _owned_case(self, owner: str, case_id: str) -> Case:
        case = self.db.query(Case).filter(Case.id == case_id).first()
        if not case or case.owner != owner:
            raise NotFoundError("Case not found")
        return case

    def _owned_hearing(self, owner: str, hearing_id: str) -> Hearing:
        hearing = self.db.query(Hearing).filter(Hearing.id == hearing_id).first()
        if not hearing:
            raise NotFoundError("Hearing not found")
        if str(hearing.owner) != str(owner):
            raise ForbiddenError("Forbidden")
        return hearing
