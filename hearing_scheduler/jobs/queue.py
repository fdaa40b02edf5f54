"""
Job Queue Management
====================

Redis Queue (RQ) integration for async jobs. If Redis cannot take the job, it
runs synchronously so the derived field is still refreshed.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from redis import Redis
from rq import Queue, Retry

from ..config import get_settings

logger = logging.getLogger(__name__)

# Queue names
QUEUE_DEFAULT = "default"


def get_redis_connection(redis_url: Optional[str] = None) -> Redis:
    """Get Redis connection"""
    return Redis.from_url(redis_url or get_settings().redis_url or "redis://localhost:6379/0")


def get_queue(queue_name: str = QUEUE_DEFAULT, connection: Optional[Redis] = None) -> Queue:
    """Get RQ queue by name"""
    return Queue(queue_name, connection=connection or get_redis_connection())


def enqueue_job(
    func: Callable,
    *args,
    queue_name: str = QUEUE_DEFAULT,
    job_id: str = None,
    timeout: int = 60,
    retry: int = 3,
    description: str = None,
    queue: Optional[Queue] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Enqueue a job for async processing.

    Args:
        func: Function to execute
        *args: Positional arguments for function
        queue_name: Queue to use
        job_id: Optional custom job ID
        timeout: Job timeout in seconds
        retry: Number of retries on failure
        description: Human readable job description
        queue: Pre-built queue (tests)
        **kwargs: Keyword arguments for function

    Returns:
        Dict with job_id and status
    """
    def _run_sync(reason: str) -> Dict[str, Any]:
        logger.warning(f"Running job synchronously ({reason})")
        try:
            result = func(*args, **kwargs)
            return {
                "job_id": job_id or "sync",
                "status": "done",
                "result": result
            }
        except Exception as e:
            return {
                "job_id": job_id or "sync",
                "status": "failed",
                "error": str(e)
            }

    retry_policy = Retry(max=retry, interval=[5, 15, 30]) if retry > 0 else None

    try:
        queue = queue or get_queue(queue_name)
        job = queue.enqueue(
            func,
            *args,
            job_id=job_id,
            job_timeout=timeout,
            retry=retry_policy,
            description=description,
            **kwargs
        )
    except Exception as e:
        return _run_sync(f"RQ enqueue failed: {e}")

    return {
        "job_id": job.id,
        "status": "queued",
        "queue": queue.name,
        "enqueued_at": datetime.utcnow().isoformat()
    }
