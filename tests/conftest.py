"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock

import pytest

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")


@pytest.fixture
def make_job(db):
    """Factory for job rows in any state."""
    from jobs.models import Job, JobStatus, JobType

    def _make(job_type=JobType.IDLE_WAIT, status=JobStatus.PENDING, **fields):
        return Job.objects.create(type=job_type, status=status, **fields)

    return _make


@pytest.fixture
def pending_job(make_job):
    return make_job()


@pytest.fixture
def processing_job(pending_job):
    from jobs import tracker

    admission = tracker.mark_processing(pending_job.uuid)
    assert admission
    return admission.job


@pytest.fixture
def fake_queue(monkeypatch):
    """Record enqueue/purge calls instead of talking to a broker."""
    from jobs import queue

    fake = MagicMock()
    monkeypatch.setattr(queue, "enqueue", fake.enqueue)
    monkeypatch.setattr(queue, "purge", fake.purge)
    return fake


@pytest.fixture
def work_dir(settings, tmp_path):
    settings.JOBS_WORK_DIR = tmp_path
    return tmp_path
