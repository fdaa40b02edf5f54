"""
Job Tasks
=========

Functions executed by RQ workers. Keep them importable by dotted path and
argument-only (no sessions or clocks cross the queue).
"""

import logging
from typing import Optional

from ..clock import isoformat_utc

logger = logging.getLogger(__name__)


def task_recompute_next_hearing(case_id: str, owner: str) -> Optional[str]:
    """
    Recompute Case.next_hearing for one case.

    Returns:
        ISO-8601 next hearing instant, or None
    """
    from ..propagation import run_recompute

    logger.info("Recomputing next_hearing for case %s (owner=%s)", case_id, owner)
    return isoformat_utc(run_recompute(case_id, owner))
