"""
Tests for the RQ job layer
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from conftest import OWNER
from hearing_scheduler.jobs.queue import enqueue_job
from hearing_scheduler.jobs.tasks import task_recompute_next_hearing


def _double(x):
    return x * 2


def _boom():
    raise RuntimeError("boom")


class TestEnqueue:

    def test_enqueues_on_queue(self):
        queue = MagicMock()
        queue.name = "default"
        queue.enqueue.return_value.id = "job-1"

        result = enqueue_job(_double, 21, queue=queue, description="double")

        assert result["status"] == "queued"
        assert result["job_id"] == "job-1"
        _, kwargs = queue.enqueue.call_args
        assert kwargs["description"] == "double"
        assert kwargs["job_timeout"] == 60

    def test_falls_back_to_sync_when_enqueue_fails(self):
        queue = MagicMock()
        queue.enqueue.side_effect = ConnectionError("redis down")

        result = enqueue_job(_double, 21, queue=queue)

        assert result == {"job_id": "sync", "status": "done", "result": 42}

    def test_sync_failure_is_reported(self):
        queue = MagicMock()
        queue.enqueue.side_effect = ConnectionError("redis down")

        result = enqueue_job(_boom, queue=queue)

        assert result["status"] == "failed"
        assert "boom" in result["error"]


def test_task_recompute_returns_iso(sqlalchemy_db, case_id):
    june = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)
    with patch("hearing_scheduler.propagation.run_recompute", return_value=june) as run:
        assert task_recompute_next_hearing(case_id, OWNER) == "2025-06-01T10:00:00Z"
    run.assert_called_once_with(case_id, OWNER)


def test_task_recompute_without_hearings(sqlalchemy_db, case_id):
    assert task_recompute_next_hearing(case_id, OWNER) is None
