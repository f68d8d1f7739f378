"""Tests for Celery task routing and queue operations."""

from unittest.mock import MagicMock, patch

import pytest

from jobrunner.celery import celery_app
from jobs import queue, tasks
from jobs.messages import MESSAGE_TYPES, CpuStressMessage, DataTransferMessage, IdleWaitMessage


class TestRouting:
    def test_every_message_type_has_a_task(self):
        assert set(tasks.TASKS_BY_MESSAGE) == set(MESSAGE_TYPES.values())

    @pytest.mark.parametrize("job_type, message_cls", list(MESSAGE_TYPES.items()))
    def test_task_named_after_job_type(self, job_type, message_cls):
        assert tasks.TASKS_BY_MESSAGE[message_cls].name == f"jobs.{job_type.value}"

    def test_tasks_ack_late_without_retries(self):
        for task in tasks.TASKS_BY_MESSAGE.values():
            assert task.acks_late is True
            assert task.max_retries == 0


class TestQueue:
    def test_enqueue_uses_job_uuid_as_task_id(self):
        message = IdleWaitMessage(job_uuid="0b7c3c1e-8f0d-4a35-9d8e-2b6a8d2f3c11", duration_seconds=60)

        task = MagicMock()
        with patch.dict(queue.TASKS_BY_MESSAGE, {IdleWaitMessage: task}):
            queue.enqueue(message)

        task.apply_async.assert_called_once_with(
            kwargs={"payload": {
                "job_uuid": "0b7c3c1e-8f0d-4a35-9d8e-2b6a8d2f3c11",
                "duration_seconds": 60,
                "check_interval_seconds": 10,
            }},
            task_id="0b7c3c1e-8f0d-4a35-9d8e-2b6a8d2f3c11",
        )

    def test_enqueue_rejects_unknown_message(self):
        with pytest.raises(TypeError):
            queue.enqueue({"job_uuid": "x"})

    def test_purge_revokes_task_for_uuid(self):
        with patch.object(celery_app.control, "revoke") as revoke:
            queue.purge("0b7c3c1e-8f0d-4a35-9d8e-2b6a8d2f3c11")

        revoke.assert_called_once_with("0b7c3c1e-8f0d-4a35-9d8e-2b6a8d2f3c11")


class TestTaskBodies:
    def test_task_rebuilds_message_and_executes(self):
        payload = {"job_uuid": "u-1", "duration_seconds": 5, "algorithm": "pi"}

        with patch("jobs.handlers.execute") as execute:
            tasks.run_cpu_stress(payload)

        execute.assert_called_once_with(CpuStressMessage(job_uuid="u-1", duration_seconds=5, algorithm="pi"))

    def test_unknown_payload_keys_are_ignored(self):
        message = DataTransferMessage.from_payload(
            {"job_uuid": "u-1", "bucket_name": "b", "added_later": True}
        )

        assert message == DataTransferMessage(job_uuid="u-1", bucket_name="b")

    def test_failure_receiver_logs_without_raising(self):
        tasks.log_task_failure(sender=tasks.run_idle_wait, task_id="t-1", exception=RuntimeError("boom"))
