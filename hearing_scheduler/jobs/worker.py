"""
RQ Worker
=========

Worker process for executing async jobs.

Usage:
    python -m hearing_scheduler.jobs.worker --queues default
"""

import argparse
import logging

from redis import Redis
from rq import Worker

from ..config import get_settings
from ..db.session import init_db

logger = logging.getLogger(__name__)


def start_worker(
    queues: list = None,
    burst: bool = False,
    logging_level: str = "INFO"
):
    """
    Start an RQ worker.

    Args:
        queues: List of queue names to listen to
        burst: Run in burst mode (exit when queues are empty)
        logging_level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, logging_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    settings = get_settings()
    if queues is None:
        queues = [settings.propagation_queue]

    init_db()
    conn = Redis.from_url(settings.redis_url or "redis://localhost:6379/0")

    worker = Worker(queues, connection=conn)

    logger.info(f"Starting worker on queues: {queues}")
    worker.work(burst=burst)


def run_worker_cli():
    """CLI entry point for worker"""
    parser = argparse.ArgumentParser(description="RQ worker for hearing scheduler jobs")
    parser.add_argument(
        "--queues", "-q",
        nargs="+",
        default=None,
        help="Queues to listen to (default: PROPAGATION_QUEUE)"
    )
    parser.add_argument(
        "--burst", "-b",
        action="store_true",
        help="Run in burst mode"
    )
    parser.add_argument(
        "--log-level", "-l",
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()
    start_worker(
        queues=args.queues,
        burst=args.burst,
        logging_level=args.log_level
    )


if __name__ == "__main__":
    run_worker_cli()
