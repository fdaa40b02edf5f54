"""
Tests for the conflict detector
"""

from datetime import date, datetime, timezone

import pytest

from conftest import OTHER_OWNER, OWNER, seed_case
from hearing_scheduler.clock import to_storage
from hearing_scheduler.conflicts import (
    REASON_RESOURCE,
    REASON_TIME_OVERLAP,
    SharedAttributeMatcher,
    check_conflict,
    classify,
    find_conflicts,
    intervals_overlap,
)
from hearing_scheduler.db.models import Hearing, HearingStatus


def utc(hour, minute=0, day=1):
    return datetime(2025, 6, day, hour, minute, tzinfo=timezone.utc)


def add_hearing(db, case_id, start_at, end_at, owner=OWNER, scope=None, status=HearingStatus.SCHEDULED):
    hearing = Hearing(
        case_id=case_id,
        owner=owner,
        hearing_date=date(2025, 6, start_at.day),
        hearing_time=start_at.strftime("%H:%M"),
        timezone="UTC",
        duration=int((end_at - start_at).total_seconds() // 60),
        start_at=to_storage(start_at),
        end_at=to_storage(end_at),
        status=status,
        resource_scope=scope or {},
    )
    db.add(hearing)
    db.commit()
    return hearing


# =============================================================================
# Pure rules
# =============================================================================

class TestRules:

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap(utc(10), utc(11), utc(11), utc(12))
        assert not intervals_overlap(utc(11), utc(12), utc(10), utc(11))

    def test_overlap_is_symmetric(self):
        assert intervals_overlap(utc(10), utc(11), utc(10, 30), utc(11, 30))
        assert intervals_overlap(utc(10, 30), utc(11, 30), utc(10), utc(11))

    def test_containment_overlaps(self):
        assert intervals_overlap(utc(9), utc(12), utc(10), utc(11))

    def test_classify_without_scope_is_time_overlap(self):
        assert classify({}, {"court": "HC"}) == REASON_TIME_OVERLAP
        assert classify({"court": "HC"}, None) == REASON_TIME_OVERLAP
        assert classify({"court": "  "}, {"court": "HC"}) == REASON_TIME_OVERLAP

    def test_classify_shared_attribute(self):
        assert classify({"court": "High Court "}, {"court": "high court"}) == REASON_RESOURCE

    def test_classify_disjoint_scopes_do_not_conflict(self):
        assert classify({"court": "HC", "judge": "Rao"}, {"court": "DC", "judge": "Iyer"}) is None

    def test_shared_attributes(self):
        matcher = SharedAttributeMatcher()
        shared = matcher.shared_attributes(
            {"court": "HC", "judge": "Rao"}, {"court": "HC", "judge": "Iyer"}
        )
        assert shared == {"court": "HC"}


# =============================================================================
# Detection against the database
# =============================================================================

class TestFindConflicts:

    def test_overlap_symmetry(self, db, case_id):
        a = add_hearing(db, case_id, utc(10), utc(11))
        b = add_hearing(db, case_id, utc(10, 30), utc(11, 30))

        from_a = find_conflicts(db, OWNER, utc(10), utc(11), exclude_hearing_id=a.id)
        from_b = find_conflicts(db, OWNER, utc(10, 30), utc(11, 30), exclude_hearing_id=b.id)

        assert [c.hearing_id for c in from_a] == [b.id]
        assert [c.hearing_id for c in from_b] == [a.id]

    def test_touching_hearing_is_not_a_conflict(self, db, case_id):
        add_hearing(db, case_id, utc(10), utc(11))
        assert find_conflicts(db, OWNER, utc(11), utc(12)) == []

    def test_only_scheduled_hearings_count(self, db, case_id):
        add_hearing(db, case_id, utc(10), utc(11), status=HearingStatus.CANCELLED)
        add_hearing(db, case_id, utc(10), utc(11), status=HearingStatus.ADJOURNED)
        assert find_conflicts(db, OWNER, utc(10), utc(11)) == []

    def test_other_owners_are_invisible(self, db, case_id):
        other_case = seed_case(owner=OTHER_OWNER, case_number="OTHER-1")
        add_hearing(db, other_case, utc(10), utc(11), owner=OTHER_OWNER)
        assert find_conflicts(db, OWNER, utc(10), utc(11)) == []

    def test_record_fields(self, db, case_id):
        a = add_hearing(db, case_id, utc(10), utc(11))
        [record] = find_conflicts(db, OWNER, utc(10, 30), utc(11, 30))

        assert record.to_dict() == {
            "hearingId": a.id,
            "caseNumber": "CS-101/2025",
            "startAt": "2025-06-01T10:00:00Z",
            "endAt": "2025-06-01T11:00:00Z",
            "conflictReason": REASON_TIME_OVERLAP,
        }

    def test_ordered_by_start(self, db, case_id):
        late = add_hearing(db, case_id, utc(11), utc(12))
        early = add_hearing(db, case_id, utc(9), utc(10, 30))
        conflicts = find_conflicts(db, OWNER, utc(10), utc(11, 30))
        assert [c.hearing_id for c in conflicts] == [early.id, late.id]

    def test_resource_scope_narrows(self, db, case_id):
        rao = add_hearing(db, case_id, utc(10), utc(11), scope={"judge": "Rao"})
        add_hearing(db, case_id, utc(10), utc(11), scope={"judge": "Iyer"})
        unscoped = add_hearing(db, case_id, utc(10), utc(11))

        conflicts = find_conflicts(db, OWNER, utc(10), utc(11), resource_scope={"judge": "rao"})
        by_id = {c.hearing_id: c.conflict_reason for c in conflicts}

        assert by_id == {rao.id: REASON_RESOURCE, unscoped.id: REASON_TIME_OVERLAP}

    def test_check_conflict_boundary_shape(self, db, case_id):
        add_hearing(db, case_id, utc(10), utc(11))
        result = check_conflict(db, OWNER, utc(10, 59), utc(12))
        assert result["hasConflict"] is True
        assert len(result["conflicts"]) == 1

        result = check_conflict(db, OWNER, utc(11), utc(12))
        assert result == {"hasConflict": False, "conflicts": []}
