"""Tests for job admission and state bookkeeping."""

import uuid

import pytest

from jobs import tracker
from jobs.exceptions import InvalidTransition
from jobs.models import Job, JobStatus


def _snapshot(job):
    job.refresh_from_db()
    return {
        f.attname: getattr(job, f.attname)
        for f in Job._meta.concrete_fields
    }


class TestMarkProcessing:
    def test_admits_pending_job(self, pending_job):
        admission = tracker.mark_processing(str(pending_job.uuid))

        assert admission
        assert isinstance(admission, tracker.Admitted)
        job = admission.job
        assert job.pk == pending_job.pk
        assert job.status == JobStatus.PROCESSING
        assert job.started_at is not None

        pending_job.refresh_from_db()
        assert pending_job.status == JobStatus.PROCESSING

    @pytest.mark.django_db
    def test_unknown_uuid_is_not_admitted(self):
        admission = tracker.mark_processing(str(uuid.uuid4()))

        assert not admission
        assert isinstance(admission, tracker.NotAdmitted)
        assert admission.reason == "not found"
        assert not hasattr(admission, "job")

    @pytest.mark.django_db
    def test_malformed_uuid_is_not_admitted(self):
        assert not tracker.mark_processing("definitely-not-a-uuid")

    def test_cancelled_job_is_not_admitted_and_unchanged(self, make_job):
        job = make_job(status=JobStatus.CANCELLED)
        before = _snapshot(job)

        admission = tracker.mark_processing(str(job.uuid))

        assert not admission
        assert admission.reason == "status is cancelled"
        assert _snapshot(job) == before

    def test_second_delivery_is_not_admitted(self, pending_job):
        first = tracker.mark_processing(pending_job.uuid)
        second = tracker.mark_processing(pending_job.uuid)

        assert first
        assert not second
        assert second.reason == "status is processing"
        assert second.status == JobStatus.PROCESSING

    @pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_finished_job_is_not_readmitted(self, make_job, status):
        job = make_job(status=status)
        before = _snapshot(job)

        assert not tracker.mark_processing(job.uuid)
        assert _snapshot(job) == before


class TestUpdateProgress:
    @pytest.mark.parametrize("percent, stored", [(150, 100), (-5, 0), (45, 45)])
    def test_progress_is_clamped(self, processing_job, percent, stored):
        tracker.update_progress(processing_job, percent, "x")

        processing_job.refresh_from_db()
        assert processing_job.progress == stored

    def test_log_line_is_appended(self, processing_job):
        tracker.update_progress(processing_job, 10, "step one")
        tracker.update_progress(processing_job, 20, "step two")

        processing_job.refresh_from_db()
        assert [line[11:] for line in processing_job.log_lines] == ["step one", "step two"]

    def test_empty_log_line_is_not_appended(self, processing_job):
        tracker.update_progress(processing_job, 30)

        processing_job.refresh_from_db()
        assert processing_job.progress == 30
        assert processing_job.log == ""


class TestMarkCompleted:
    def test_sets_completed_and_full_progress(self, processing_job):
        tracker.update_progress(processing_job, 37, "partway")

        tracker.mark_completed(processing_job, "all done")

        processing_job.refresh_from_db()
        assert processing_job.status == JobStatus.COMPLETED
        assert processing_job.progress == 100
        assert processing_job.result == "all done"
        assert processing_job.completed_at is not None
        assert processing_job.log_lines[-1].endswith("Job completed successfully.")

    def test_terminal_job_cannot_complete_again(self, processing_job):
        tracker.mark_failed(processing_job, "boom")

        with pytest.raises(InvalidTransition):
            tracker.mark_completed(processing_job, "late result")

        processing_job.refresh_from_db()
        assert processing_job.status == JobStatus.FAILED
        assert processing_job.result == "ERROR: boom"


class TestMarkFailed:
    def test_records_error(self, processing_job):
        tracker.update_progress(processing_job, 40)

        tracker.mark_failed(processing_job, "boom")

        processing_job.refresh_from_db()
        assert processing_job.status == JobStatus.FAILED
        assert processing_job.result == "ERROR: boom"
        assert processing_job.progress == 40
        assert processing_job.completed_at is not None
        assert processing_job.log_lines[-1].endswith("Job FAILED: boom")

    def test_completed_job_cannot_fail(self, processing_job):
        tracker.mark_completed(processing_job, "ok")

        with pytest.raises(InvalidTransition):
            tracker.mark_failed(processing_job, "boom")
