"""
Admission and bookkeeping for job records.

Every status change a worker makes goes through the four functions here:
``mark_processing`` claims a pending job, ``update_progress`` records progress
and log lines, ``mark_completed`` / ``mark_failed`` close it out.
"""
from dataclasses import dataclass

import structlog
from django.db import transaction
from django.utils import timezone

from .exceptions import InvalidTransition
from .models import Job, JobStatus, clamp_progress

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Admitted:
    job: Job

    def __bool__(self):
        return True


@dataclass(frozen=True)
class NotAdmitted:
    job_uuid: str
    reason: str
    status: str | None = None  # current status when the row exists

    def __bool__(self):
        return False


def mark_processing(job_uuid) -> Admitted | NotAdmitted:
    """Claim a pending job for the calling worker.

    The claim is a conditional UPDATE on ``status = pending``, so when the
    same message is delivered twice only one worker is admitted.
    """
    job = Job.objects.by_uuid(job_uuid)
    if job is None:
        return NotAdmitted(str(job_uuid), "not found")

    now = timezone.now()
    with transaction.atomic():
        claimed = Job.objects.filter(pk=job.pk, status=JobStatus.PENDING).update(
            status=JobStatus.PROCESSING, started_at=now, updated_at=now
        )
    if not claimed:
        job.refresh_from_db(fields=["status"])
        return NotAdmitted(str(job.uuid), f"status is {job.status}", job.status)

    job.refresh_from_db()
    logger.info("job_admitted", job_uuid=str(job.uuid), job_type=job.type)
    return Admitted(job)


def update_progress(job: Job, percent, log_line: str = "") -> None:
    job.progress = clamp_progress(percent)
    if log_line:
        job.append_log(log_line)
    job.save(update_fields=["progress", "log", "updated_at"])


def mark_completed(job: Job, result: str = "") -> None:
    _ensure_open(job, JobStatus.COMPLETED)
    job.status = JobStatus.COMPLETED
    job.progress = 100
    job.completed_at = timezone.now()
    job.result = result
    job.append_log("Job completed successfully.")
    job.save(update_fields=["status", "progress", "completed_at", "result", "log", "updated_at"])
    logger.info("job_completed", job_uuid=str(job.uuid), job_type=job.type)


def mark_failed(job: Job, error: str) -> None:
    _ensure_open(job, JobStatus.FAILED)
    job.status = JobStatus.FAILED
    job.completed_at = timezone.now()
    job.result = f"ERROR: {error}"
    job.append_log(f"Job FAILED: {error}")
    job.save(update_fields=["status", "completed_at", "result", "log", "updated_at"])
    logger.warning("job_failed", job_uuid=str(job.uuid), job_type=job.type, error=error)


def _ensure_open(job: Job, target) -> None:
    if job.is_terminal:
        raise InvalidTransition(job.uuid, job.status, target)
