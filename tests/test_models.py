"""Tests for the job model and its queryset."""

import re
import uuid

import pytest
from django.db import IntegrityError, transaction

from jobs.models import Job, JobStatus, JobType, clamp_progress, format_log_entry


class TestClampProgress:
    @pytest.mark.parametrize(
        "value, expected",
        [(-5, 0), (0, 0), (42, 42), (100, 100), (150, 100), ("70", 70), (33.9, 33)],
    )
    def test_clamps_into_percentage_range(self, value, expected):
        assert clamp_progress(value) == expected


class TestJobLog:
    def test_entry_is_timestamped_line(self):
        assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] hello\n", format_log_entry("hello"))

    def test_append_keeps_previous_lines(self, pending_job):
        pending_job.append_log("first")
        pending_job.append_log("second")

        assert [line[11:] for line in pending_job.log_lines] == ["first", "second"]


@pytest.mark.django_db
class TestJobRecord:
    def test_defaults_for_new_job(self):
        job = Job.objects.create(type=JobType.CPU_STRESS)

        assert job.status == JobStatus.PENDING
        assert job.progress == 0
        assert job.log == ""
        assert job.result is None
        assert job.created_at is not None
        assert job.started_at is None
        assert job.completed_at is None
        assert isinstance(job.uuid, uuid.UUID)

    def test_uuid_is_unique(self, make_job):
        job = make_job()
        with pytest.raises(IntegrityError), transaction.atomic():
            Job.objects.create(type=JobType.IDLE_WAIT, uuid=job.uuid)

    @pytest.mark.parametrize(
        "status, terminal",
        [
            (JobStatus.PENDING, False),
            (JobStatus.PROCESSING, False),
            (JobStatus.COMPLETED, True),
            (JobStatus.FAILED, True),
            (JobStatus.CANCELLED, True),
        ],
    )
    def test_is_terminal(self, make_job, status, terminal):
        job = make_job(status=status)
        job.refresh_from_db()
        assert job.is_terminal is terminal


@pytest.mark.django_db
class TestJobQuerySet:
    def test_by_uuid_accepts_string_and_uuid(self, pending_job):
        assert Job.objects.by_uuid(str(pending_job.uuid)) == pending_job
        assert Job.objects.by_uuid(pending_job.uuid) == pending_job

    def test_by_uuid_unknown_or_malformed_returns_none(self, pending_job):
        assert Job.objects.by_uuid(str(uuid.uuid4())) is None
        assert Job.objects.by_uuid("not-a-uuid") is None
        assert Job.objects.by_uuid(None) is None

    def test_recent_is_newest_first_and_limited(self, make_job):
        jobs = [make_job() for _ in range(5)]

        recent = list(Job.objects.recent(3))

        assert recent == [jobs[4], jobs[3], jobs[2]]

    def test_with_status(self, make_job):
        make_job(status=JobStatus.PENDING)
        failed = make_job(status=JobStatus.FAILED)

        assert list(Job.objects.with_status(JobStatus.FAILED)) == [failed]
