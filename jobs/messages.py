"""
Work descriptions sent through the queue, one per job type.

A message only carries the job uuid and what to do; job state lives in the
database and is changed through ``jobs.tracker``.
"""
from dataclasses import asdict, dataclass, field, fields
from typing import ClassVar

from django.core.exceptions import ImproperlyConfigured

from .models import JobType


@dataclass(frozen=True)
class JobMessage:
    job_type: ClassVar[JobType]

    job_uuid: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict):
        # Ignore unknown keys so older/newer producers can share a queue.
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in payload.items() if k in known})


@dataclass(frozen=True)
class CpuStressMessage(JobMessage):
    job_type: ClassVar[JobType] = JobType.CPU_STRESS

    duration_seconds: int = 30
    algorithm: str = "primes"


@dataclass(frozen=True)
class DataTransferMessage(JobMessage):
    job_type: ClassVar[JobType] = JobType.S3_BACKUP

    bucket_name: str
    s3_key: str = "backups/demo-backup.zip"
    source_dir: str = "dummy_data"


@dataclass(frozen=True)
class RemoteCommandMessage(JobMessage):
    job_type: ClassVar[JobType] = JobType.SSH_COMMAND

    host: str
    username: str
    password: str = field(repr=False)
    command: str
    port: int = 22
    timeout: int = 30


@dataclass(frozen=True)
class IdleWaitMessage(JobMessage):
    job_type: ClassVar[JobType] = JobType.IDLE_WAIT

    duration_seconds: int = 300
    check_interval_seconds: int = 10


MESSAGE_TYPES: dict[JobType, type[JobMessage]] = {
    cls.job_type: cls
    for cls in (CpuStressMessage, DataTransferMessage, RemoteCommandMessage, IdleWaitMessage)
}

_missing = set(JobType) - set(MESSAGE_TYPES)
if _missing:
    raise ImproperlyConfigured(f"No message class for job types: {sorted(_missing)}")
