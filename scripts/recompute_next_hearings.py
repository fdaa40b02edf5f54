#!/usr/bin/env python3
"""
Backfill Case.next_hearing for every case.

Safe by default (dry-run). Use --apply to persist changes.
"""

import argparse
from typing import List, Tuple


def main() -> int:
    parser = argparse.ArgumentParser(description="Recompute next hearing dates safely.")
    parser.add_argument("--apply", action="store_true", help="Persist changes (default: dry-run)")
    parser.add_argument("--owner", default=None, help="Only cases of this owner")
    args = parser.parse_args()

    from hearing_scheduler.activity import DatabaseActivityLog, record_activity
    from hearing_scheduler.clock import SystemClock, as_utc, isoformat_utc
    from hearing_scheduler.db.models import ActivityType, Case, Hearing
    from hearing_scheduler.db.session import get_db_session, init_db
    from hearing_scheduler.propagation import compute_next_hearing, run_recompute

    init_db()
    clock = SystemClock()
    now = clock.now()

    scanned = 0
    changed: List[Tuple[str, str, object, object]] = []

    with get_db_session() as db:
        query = db.query(Case)
        if args.owner:
            query = query.filter(Case.owner == args.owner)
        for case in query.all():
            scanned += 1
            hearings = (
                db.query(Hearing)
                .filter(Hearing.case_id == case.id, Hearing.owner == case.owner)
                .all()
            )
            expected = compute_next_hearing(hearings, now)
            current = as_utc(case.next_hearing)
            if expected != current:
                changed.append((case.id, case.owner, current, expected))

    mode = "APPLY" if args.apply else "DRY-RUN"
    for case_id, owner, current, expected in changed:
        print(f"[{mode}] {case_id}: {isoformat_utc(current)} -> {isoformat_utc(expected)}")

    if args.apply:
        audit = DatabaseActivityLog()
        for case_id, owner, current, _ in changed:
            stored = run_recompute(case_id, owner, clock)
            record_activity(
                audit,
                owner=owner,
                activity_type=ActivityType.NEXT_HEARING_RECOMPUTED,
                message=f"Next hearing recomputed: {isoformat_utc(current)} -> {isoformat_utc(stored)}",
                entity_type="case",
                entity_id=case_id,
                metadata={"previous": isoformat_utc(current), "nextHearing": isoformat_utc(stored)},
            )

    print(f"[{mode}] Cases scanned: {scanned}")
    print(f"[{mode}] Cases out of date: {len(changed)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
