import structlog
from celery import shared_task
from celery.signals import task_failure
from django.core.exceptions import ImproperlyConfigured

from . import handlers
from .messages import (
    MESSAGE_TYPES,
    CpuStressMessage,
    DataTransferMessage,
    IdleWaitMessage,
    RemoteCommandMessage,
)

logger = structlog.get_logger(__name__)

# Retries belong to whoever consumes the queue; a failed job stays failed.
TASK_OPTIONS = {"bind": True, "acks_late": True, "reject_on_worker_lost": True, "max_retries": 0}


def _execute(task, message):
    with structlog.contextvars.bound_contextvars(job_uuid=message.job_uuid, task_id=task.request.id):
        handlers.execute(message)


@shared_task(name="jobs.cpu_stress", **TASK_OPTIONS)
def run_cpu_stress(self, payload: dict):
    _execute(self, CpuStressMessage.from_payload(payload))


@shared_task(name="jobs.s3_backup", **TASK_OPTIONS)
def run_data_transfer(self, payload: dict):
    _execute(self, DataTransferMessage.from_payload(payload))


@shared_task(name="jobs.ssh_command", **TASK_OPTIONS)
def run_remote_command(self, payload: dict):
    _execute(self, RemoteCommandMessage.from_payload(payload))


@shared_task(name="jobs.idle_wait", **TASK_OPTIONS)
def run_idle_wait(self, payload: dict):
    _execute(self, IdleWaitMessage.from_payload(payload))


TASKS_BY_MESSAGE = {
    CpuStressMessage: run_cpu_stress,
    DataTransferMessage: run_data_transfer,
    RemoteCommandMessage: run_remote_command,
    IdleWaitMessage: run_idle_wait,
}

_unrouted = set(MESSAGE_TYPES.values()) - set(TASKS_BY_MESSAGE)
if _unrouted:
    raise ImproperlyConfigured(f"No task for messages: {sorted(c.__name__ for c in _unrouted)}")


@task_failure.connect
def log_task_failure(sender=None, task_id=None, exception=None, **kwargs):
    logger.error(
        "job_task_failed",
        task=getattr(sender, "name", None),
        task_id=task_id,
        error=str(exception),
        error_type=type(exception).__name__,
    )
