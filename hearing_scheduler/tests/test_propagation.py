"""
Tests for Case.next_hearing derivation
"""

from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from conftest import OTHER_OWNER, OWNER
from hearing_scheduler.clock import FixedClock, as_utc, to_storage
from hearing_scheduler.config import PropagationMode
from hearing_scheduler.db.models import Case, Hearing, HearingStatus
from hearing_scheduler.errors import NotFoundError
from hearing_scheduler.propagation import (
    compute_next_hearing,
    effective_future_date,
    propagate_after_mutation,
    recompute_next_hearing,
    run_recompute,
)


NOW = datetime(2025, 5, 15, tzinfo=timezone.utc)
JUNE_1 = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)
MAY_1 = datetime(2025, 5, 1, 10, 0, tzinfo=timezone.utc)


def hearing(start_at, status=HearingStatus.SCHEDULED, next_date=None, next_time=None, tz="UTC"):
    return Hearing(
        start_at=to_storage(start_at),
        status=status,
        timezone=tz,
        next_hearing_date=next_date,
        next_hearing_time=next_time,
    )


class TestCompute:

    def test_future_scheduled_wins_over_past(self):
        assert compute_next_hearing([hearing(JUNE_1), hearing(MAY_1)], NOW) == JUNE_1

    def test_no_future_hearings(self):
        assert compute_next_hearing([hearing(MAY_1)], NOW) is None
        assert compute_next_hearing([], NOW) is None

    def test_non_scheduled_start_ignored(self):
        assert compute_next_hearing([hearing(JUNE_1, status=HearingStatus.ADJOURNED)], NOW) is None

    def test_follow_up_hint_counts_even_when_adjourned(self):
        h = hearing(MAY_1, status=HearingStatus.ADJOURNED, next_date=date(2025, 5, 20), next_time="10:00")
        assert compute_next_hearing([h, hearing(JUNE_1)], NOW) == datetime(2025, 5, 20, 10, 0, tzinfo=timezone.utc)

    def test_follow_up_resolved_in_hearing_zone(self):
        h = hearing(MAY_1, next_date=date(2025, 5, 20), next_time="10:00", tz="Asia/Kolkata")
        assert effective_future_date(h, NOW) == datetime(2025, 5, 20, 4, 30, tzinfo=timezone.utc)

    def test_past_follow_up_falls_back_to_start(self):
        h = hearing(JUNE_1, next_date=date(2025, 5, 1))
        assert effective_future_date(h, NOW) == JUNE_1

    def test_start_exactly_now_counts(self):
        assert compute_next_hearing([hearing(NOW)], NOW) == NOW


class TestRecompute:

    def _seed(self, db, case_id, *starts):
        for start_at in starts:
            db.add(Hearing(
                case_id=case_id,
                owner=OWNER,
                hearing_date=start_at.date(),
                hearing_time=start_at.strftime("%H:%M"),
                timezone="UTC",
                duration=60,
                start_at=to_storage(start_at),
                end_at=to_storage(start_at.replace(hour=start_at.hour + 1)),
                status=HearingStatus.SCHEDULED,
            ))
        db.commit()

    def test_correctness_and_idempotence(self, db, case_id):
        self._seed(db, case_id, JUNE_1, MAY_1)
        clock = FixedClock(NOW)

        first = recompute_next_hearing(db, case_id, OWNER, clock)
        db.commit()
        second = recompute_next_hearing(db, case_id, OWNER, clock)
        db.commit()

        assert first == JUNE_1
        assert second == first
        case = db.query(Case).filter(Case.id == case_id).one()
        assert as_utc(case.next_hearing) == JUNE_1

    def test_missing_or_foreign_case(self, db, case_id):
        with pytest.raises(NotFoundError):
            recompute_next_hearing(db, "nope", OWNER, FixedClock(NOW))
        with pytest.raises(NotFoundError):
            recompute_next_hearing(db, case_id, OTHER_OWNER, FixedClock(NOW))

    def test_run_recompute_commits(self, db, case_id):
        self._seed(db, case_id, JUNE_1)
        assert run_recompute(case_id, OWNER, FixedClock(NOW)) == JUNE_1

        db.expire_all()
        case = db.query(Case).filter(Case.id == case_id).one()
        assert as_utc(case.next_hearing) == JUNE_1


class TestPropagateAfterMutation:

    def test_failures_are_swallowed(self, sqlalchemy_db):
        propagate_after_mutation("missing-case", OWNER, FixedClock(NOW), mode=PropagationMode.INLINE)

    def test_rq_mode_enqueues(self, sqlalchemy_db, monkeypatch):
        from hearing_scheduler.config import get_settings

        settings = get_settings()
        monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")

        with patch("hearing_scheduler.jobs.queue.enqueue_job") as enqueue:
            enqueue.return_value = {"job_id": "j1", "status": "queued"}
            propagate_after_mutation("case-1", OWNER, mode=PropagationMode.RQ)

        args, kwargs = enqueue.call_args
        assert args[1:] == ("case-1", OWNER)
        assert kwargs["queue_name"] == settings.propagation_queue

    def test_no_case_id_is_noop(self):
        propagate_after_mutation(None, OWNER)
