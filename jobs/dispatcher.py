"""
Creating, cancelling and deleting jobs.

``create_jobs`` commits every job row before its message is published
(``transaction.on_commit``), so a worker can never receive a message whose job
is not visible yet.
"""
import posixpath
import uuid
from functools import partial

import structlog
from django.conf import settings
from django.db import models, transaction
from django.db.models.functions import Concat
from django.utils import timezone

from . import queue
from .messages import CpuStressMessage, DataTransferMessage, IdleWaitMessage, RemoteCommandMessage
from .models import Job, JobStatus, JobType, format_log_entry

logger = structlog.get_logger(__name__)

MAX_BATCH_SIZE = 100
DEFAULT_S3_KEY = "backups/demo.zip"


def clamp_batch_size(count) -> int:
    try:
        count = int(count)
    except (TypeError, ValueError):
        count = 1
    return max(1, min(MAX_BATCH_SIZE, count))


def batch_key(base_key: str, index: int) -> str:
    """
    Destination key for the ``index``-th (zero-based) job of a batch.

    The first job keeps ``base_key``; later ones get ``-{index}`` spliced in
    before the extension, e.g. ``backups/demo.zip`` -> ``backups/demo-2.zip``.
    """
    if index <= 0:
        return base_key
    head, name = posixpath.split(base_key)
    stem, ext = posixpath.splitext(name)
    return posixpath.join(head, f"{stem}-{index}{ext}")


def _int_param(params: dict, name: str, default: int, minimum: int = 1) -> int:
    value = params.get(name)
    if value in (None, ""):
        return default
    return max(minimum, int(value))


def _str_param(params: dict, name: str, default: str) -> str:
    value = params.get(name)
    return str(value) if value not in (None, "") else default


# -----------------------------------------------------
# Message builders
# -----------------------------------------------------
def build_cpu_stress(job_uuid: str, params: dict, index: int) -> CpuStressMessage:
    return CpuStressMessage(
        job_uuid=job_uuid,
        duration_seconds=_int_param(params, "duration", 30),
        algorithm=_str_param(params, "algorithm", "primes"),
    )


def build_data_transfer(job_uuid: str, params: dict, index: int) -> DataTransferMessage:
    return DataTransferMessage(
        job_uuid=job_uuid,
        bucket_name=_str_param(params, "bucket", settings.S3_BUCKET),
        s3_key=batch_key(_str_param(params, "s3_key", DEFAULT_S3_KEY), index),
    )


def build_remote_command(job_uuid: str, params: dict, index: int) -> RemoteCommandMessage:
    # The password is deployment configuration, never a request field.
    return RemoteCommandMessage(
        job_uuid=job_uuid,
        host=_str_param(params, "ssh_host", settings.SSH_DEFAULT_HOST),
        username=_str_param(params, "ssh_user", settings.SSH_DEFAULT_USER),
        password=settings.SSH_DEFAULT_PASSWORD,
        command=_str_param(params, "ssh_command", "uptime"),
        port=_int_param(params, "ssh_port", 22),
        timeout=_int_param(params, "ssh_timeout", 30),
    )


def build_idle_wait(job_uuid: str, params: dict, index: int) -> IdleWaitMessage:
    return IdleWaitMessage(
        job_uuid=job_uuid,
        duration_seconds=_int_param(params, "idle_duration", 300),
        check_interval_seconds=_int_param(params, "idle_interval", 10),
    )


MESSAGE_BUILDERS = {
    JobType.CPU_STRESS: build_cpu_stress,
    JobType.S3_BACKUP: build_data_transfer,
    JobType.SSH_COMMAND: build_remote_command,
    JobType.IDLE_WAIT: build_idle_wait,
}


def build_message(job_type, job_uuid: str, params: dict, index: int = 0):
    return MESSAGE_BUILDERS[JobType(job_type)](job_uuid, params, index)


# -----------------------------------------------------
# Operations
# -----------------------------------------------------
def create_jobs(job_type, count=1, raw_params: dict | None = None) -> list[Job]:
    """
    Persist ``count`` pending jobs of ``job_type`` and enqueue one message each.

    Every job stores ``raw_params`` plus ``batch_index`` (1-based) and
    ``batch_total``. Raises ``ValueError`` for an unknown job type or a
    non-numeric type-specific field.
    """
    job_type = JobType(job_type)
    count = clamp_batch_size(count)
    raw_params = dict(raw_params or {})

    jobs = []
    for index in range(count):
        job_uuid = uuid.uuid4()
        message = build_message(job_type, str(job_uuid), raw_params, index)
        with transaction.atomic():
            job = Job.objects.create(
                uuid=job_uuid,
                type=job_type,
                status=JobStatus.PENDING,
                parameters={**raw_params, "batch_index": index + 1, "batch_total": count},
            )
            transaction.on_commit(partial(queue.enqueue, message))
        jobs.append(job)

    logger.info("jobs_created", job_type=job_type.value, count=count)
    return jobs


def cancel_job(job: Job) -> bool:
    """
    Cancel a pending job and purge its undelivered message.

    Returns False, leaving the job untouched, if it is no longer pending.
    """
    now = timezone.now()
    with transaction.atomic():
        cancelled = Job.objects.filter(pk=job.pk, status=JobStatus.PENDING).update(
            status=JobStatus.CANCELLED,
            log=Concat(
                models.F("log"),
                models.Value(format_log_entry("Job cancelled by user.", now)),
                output_field=models.TextField(),
            ),
            updated_at=now,
        )
    job.refresh_from_db()
    if not cancelled:
        logger.info("job_cancel_rejected", job_uuid=str(job.uuid), status=job.status)
        return False

    queue.purge(job.uuid)
    logger.info("job_cancelled", job_uuid=str(job.uuid))
    return True


def delete_job(job: Job) -> None:
    queue.purge(job.uuid)
    job_uuid = str(job.uuid)
    job.delete()
    logger.info("job_deleted", job_uuid=job_uuid)
