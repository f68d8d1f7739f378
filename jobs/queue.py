"""
Queue operations on top of Celery.

Each message is published with its job uuid as the Celery task id, which is
what lets ``purge`` find an undelivered message again by uuid.
"""
import structlog

from jobrunner.celery import celery_app

from .tasks import TASKS_BY_MESSAGE

logger = structlog.get_logger(__name__)


def enqueue(message):
    try:
        task = TASKS_BY_MESSAGE[type(message)]
    except KeyError:
        raise TypeError(f"No task registered for {type(message).__name__}") from None
    result = task.apply_async(kwargs={"payload": message.to_payload()}, task_id=str(message.job_uuid))
    logger.info("job_enqueued", job_uuid=str(message.job_uuid), task=task.name)
    return result


def purge(job_uuid) -> None:
    """Drop any not-yet-executed delivery for this job.

    Workers keep the revoked id and discard the message when it arrives.
    A running task is left alone.
    """
    celery_app.control.revoke(str(job_uuid))
    logger.info("job_purged", job_uuid=str(job_uuid))
