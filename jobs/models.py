import uuid

from django.db import models
from django.utils import timezone


class JobType(models.TextChoices):
    CPU_STRESS = "cpu_stress", "CPU Stress Test"
    S3_BACKUP = "s3_backup", "S3 Backup (Data Transfer)"
    SSH_COMMAND = "ssh_command", "Remote SSH Command"
    IDLE_WAIT = "idle_wait", "Idle Wait (Keep-Alive)"


class JobStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED.value, JobStatus.FAILED.value, JobStatus.CANCELLED.value})


def clamp_progress(value) -> int:
    return max(0, min(100, int(value)))


def format_log_entry(line: str, when=None) -> str:
    """Render one log line as ``[HH:MM:SS] line`` followed by a newline."""
    when = when or timezone.now()
    return f"[{when:%H:%M:%S}] {line}\n"


class JobQuerySet(models.QuerySet):
    def by_uuid(self, value):
        """Return the job with this uuid, or None if it is unknown or malformed."""
        try:
            key = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        except (TypeError, ValueError):
            return None
        return self.filter(uuid=key).first()

    def recent(self, limit: int = 50):
        return self.order_by("-created_at", "-id")[:limit]

    def with_status(self, status):
        return self.filter(status=status).order_by("-created_at")


class Job(models.Model):
    uuid = models.UUIDField(unique=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=32, choices=JobType.choices)
    status = models.CharField(
        max_length=16, choices=JobStatus.choices, default=JobStatus.PENDING, db_index=True
    )
    parameters = models.JSONField(default=dict, blank=True)  # request inputs + batch_index/batch_total
    progress = models.PositiveSmallIntegerField(default=0)   # 0..100
    log = models.TextField(blank=True, default="")           # append-only, one timestamped line per entry
    result = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = JobQuerySet.as_manager()

    class Meta:
        db_table = "jobs"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Job {self.uuid} ({self.type}) - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def log_lines(self) -> list[str]:
        return self.log.splitlines()

    def append_log(self, line: str) -> None:
        self.log = (self.log or "") + format_log_entry(line)
