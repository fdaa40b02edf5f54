"""
Derived-Field Propagator
========================

Case.next_hearing is a materialized view over the case's hearings:

    min(effective future date of each hearing), or None

where a hearing's effective future date is its follow-up hint
(next_hearing_date/time, in the hearing's timezone) if that is >= now,
otherwise its start_at if it is still scheduled and start_at >= now.

Recomputation always re-reads the full hearing set, so it is idempotent and
the order of concurrent runs does not matter. It runs after the hearing write
has committed; a failure here is logged and never undoes that write
(next_hearing is an eventually-consistent projection).
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .clock import Clock, SystemClock, as_utc, isoformat_utc, to_storage
from .config import PropagationMode, get_settings
from .db.models import Case, Hearing, HearingStatus
from .db.session import new_session
from .errors import NotFoundError
from .locking import get_scheduling_lock
from .time_resolver import resolve_local_date

logger = logging.getLogger(__name__)


def effective_future_date(hearing: Hearing, now: datetime) -> Optional[datetime]:
    """The date this hearing contributes to its case's next_hearing, if any."""
    if hearing.next_hearing_date is not None:
        follow_up = resolve_local_date(
            hearing.next_hearing_date,
            hearing.next_hearing_time,
            hearing.timezone,
        )
        if follow_up >= now:
            return follow_up

    if hearing.status == HearingStatus.SCHEDULED and hearing.start_at is not None:
        start_at = as_utc(hearing.start_at)
        if start_at >= now:
            return start_at

    return None


def compute_next_hearing(hearings: Iterable[Hearing], now: datetime) -> Optional[datetime]:
    """Earliest effective future date across hearings (pure)."""
    now = as_utc(now)
    candidates = [
        d for d in (effective_future_date(h, now) for h in hearings)
        if d is not None
    ]
    return min(candidates) if candidates else None


def recompute_next_hearing(
    db: Session,
    case_id: str,
    owner: str,
    clock: Optional[Clock] = None,
) -> Optional[datetime]:
    """
    Recompute and store Case.next_hearing (caller commits).

    Raises:
        NotFoundError: case missing or owned by someone else
    """
    clock = clock or SystemClock()

    case = db.query(Case).filter(Case.id == case_id, Case.owner == owner).first()
    if not case:
        raise NotFoundError(f"Case {case_id} not found")

    hearings = (
        db.query(Hearing)
        .filter(Hearing.case_id == case_id, Hearing.owner == owner)
        .all()
    )
    next_hearing = compute_next_hearing(hearings, clock.now())

    case.next_hearing = to_storage(next_hearing)
    db.flush()

    logger.info("Calculated next_hearing for case %s: %s", case_id, isoformat_utc(next_hearing))
    return next_hearing


def run_recompute(case_id: str, owner: str, clock: Optional[Clock] = None) -> Optional[datetime]:
    """
    Recompute in a fresh session under the owner's scheduling lock and commit.

    Serializing with scheduling writes means a run can never commit a value
    computed from a hearing set older than one already committed.
    """
    db = new_session()
    try:
        with get_scheduling_lock().hold(db, owner):
            result = recompute_next_hearing(db, case_id, owner, clock)
            db.commit()
        return result
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def propagate_after_mutation(
    case_id: Optional[str],
    owner: str,
    clock: Optional[Clock] = None,
    mode: Optional[PropagationMode] = None,
) -> None:
    """
    Trigger next_hearing recomputation after a hearing create/update/delete.

    Never raises: the hearing mutation has already committed.
    """
    if not case_id:
        return

    settings = get_settings()
    mode = mode or settings.propagation_mode

    if mode == PropagationMode.RQ and settings.redis_url:
        from .jobs.queue import enqueue_job
        from .jobs.tasks import task_recompute_next_hearing

        result = enqueue_job(
            task_recompute_next_hearing,
            case_id,
            owner,
            queue_name=settings.propagation_queue,
            description=f"next_hearing:{case_id}",
        )
        if result.get("status") == "failed":
            logger.error("Failed to update case next_hearing for %s: %s", case_id, result.get("error"))
        return

    try:
        run_recompute(case_id, owner, clock)
    except Exception as e:
        logger.error("Failed to update case next_hearing for %s: %s", case_id, e, exc_info=True)
