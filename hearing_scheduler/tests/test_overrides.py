"""
Tests for conflict overrides and the activity sink
"""

from datetime import datetime, timezone

import pytest

from hearing_scheduler.activity import BufferedActivityLog, DatabaseActivityLog, record_activity
from hearing_scheduler.clock import FixedClock
from hearing_scheduler.conflicts import REASON_TIME_OVERLAP, ConflictRecord
from hearing_scheduler.db.models import ActivityType, Hearing
from hearing_scheduler.errors import ValidationError
from hearing_scheduler.overrides import OVERRIDE_REASON_REQUIRED, apply_override, normalize_reason


NOW = datetime(2025, 5, 15, 9, 0, tzinfo=timezone.utc)


def conflict(hearing_id):
    return ConflictRecord(
        hearing_id=hearing_id,
        case_number="CS-1",
        start_at=datetime(2025, 6, 1, 4, 30, tzinfo=timezone.utc),
        end_at=datetime(2025, 6, 1, 5, 30, tzinfo=timezone.utc),
        conflict_reason=REASON_TIME_OVERLAP,
    )


class ExplodingSink:
    def log(self, *args, **kwargs):
        raise RuntimeError("audit store down")


class TestApplyOverride:

    @pytest.mark.parametrize("reason", [None, "", "   ", "\t\n"])
    def test_reason_required(self, reason, audit):
        hearing = Hearing(id="h-new")
        with pytest.raises(ValidationError) as exc:
            apply_override(hearing, [conflict("h-a")], reason, "U1", audit=audit)

        assert exc.value.message == OVERRIDE_REASON_REQUIRED
        assert hearing.conflict_override is None
        assert audit.entries == []

    def test_trimmed_reason_stored_exactly(self, audit):
        hearing = Hearing(id="h-new")
        apply_override(
            hearing, [conflict("h-a"), conflict("h-b")], "  Emergency hearing \n", "U1",
            audit=audit, clock=FixedClock(NOW),
        )

        assert hearing.conflict_override == {
            "allowed": True,
            "reason": "Emergency hearing",
            "overriddenBy": "U1",
            "overriddenAt": "2025-05-15T09:00:00Z",
            "conflictingHearings": ["h-a", "h-b"],
        }

    def test_emits_one_audit_entry(self, audit):
        hearing = Hearing(id="h-new")
        apply_override(hearing, [conflict("h-a")], "Emergency hearing", "U1", audit=audit)

        [entry] = audit.entries
        assert entry["type"] == ActivityType.HEARING_CONFLICT_OVERRIDE
        assert entry["entity_id"] == "h-new"
        assert entry["message"] == "Hearing scheduled despite 1 conflict(s): Emergency hearing"
        assert entry["metadata"]["conflicts"] == 1
        assert entry["metadata"]["reason"] == "Emergency hearing"

    def test_update_wording(self, audit):
        apply_override(Hearing(id="h"), [conflict("h-a")], "moved", "U1", audit=audit, updating=True)
        assert audit.entries[0]["message"].startswith("Hearing updated despite")

    def test_failing_sink_does_not_block(self):
        hearing = Hearing(id="h-new")
        apply_override(hearing, [conflict("h-a")], "Emergency hearing", "U1", audit=ExplodingSink())
        assert hearing.conflict_override["reason"] == "Emergency hearing"

    def test_requires_conflicts(self):
        with pytest.raises(ValueError):
            apply_override(Hearing(id="h"), [], "reason", "U1")


def test_normalize_reason():
    assert normalize_reason(" ok ") == "ok"
    with pytest.raises(ValidationError):
        normalize_reason(42)


class TestSinks:

    def test_record_activity_swallows_errors(self):
        record_activity(ExplodingSink(), "U1", ActivityType.HEARING_CREATED, "msg", "hearing")

    def test_buffer_replays_after_flush(self, audit):
        buffer = BufferedActivityLog()
        buffer.log("U1", ActivityType.HEARING_CREATED, "one", "hearing", "h1")
        assert audit.entries == []

        buffer.flush_to(audit)
        assert [e["message"] for e in audit.entries] == ["one"]
        assert buffer.entries == []

    def test_database_log_persists(self, db):
        from hearing_scheduler.activity import list_activities

        DatabaseActivityLog().log(
            "U1", ActivityType.HEARING_CONFLICT_OVERRIDE, "overridden", "hearing", "h1",
            {"reason": "Emergency hearing"},
        )
        [row] = list_activities(db, "U1")
        assert row.type == ActivityType.HEARING_CONFLICT_OVERRIDE
        assert row.extra_data == {"reason": "Emergency hearing"}

    def test_database_log_failure_is_swallowed(self):
        def broken_factory():
            raise RuntimeError("no database")

        DatabaseActivityLog(session_factory=broken_factory).log(
            "U1", ActivityType.HEARING_CREATED, "msg", "hearing"
        )
