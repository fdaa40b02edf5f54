"""
Job Queue Package
=================

Async next-hearing recomputation with Redis Queue (RQ).
"""

from .queue import enqueue_job, get_queue
from .tasks import task_recompute_next_hearing

__all__ = [
    # Queue management
    "enqueue_job", "get_queue",
    # Tasks
    "task_recompute_next_hearing",
]
