"""
Workloads for each job type.

Every handler follows the same contract: claim the job with
``tracker.mark_processing`` and return quietly if it is not admitted, run the
workload while reporting progress, finish with ``mark_completed``. Any
exception raised by the workload is recorded with ``mark_failed`` and then
re-raised so the queue consumer sees the failure. Handlers never retry.

Every handler takes an optional ``stop`` event. CPU stress and idle wait
check it while they run and end with ``JobInterrupted`` once it is set; the
transfer and SSH workloads are bounded by their own I/O timeouts instead.
"""
import threading
import time
import zipfile
from contextlib import closing, contextmanager
from pathlib import Path

import structlog
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from . import s3, ssh, tracker
from .exceptions import ArchiveError, JobInterrupted
from .messages import (
    MESSAGE_TYPES,
    CpuStressMessage,
    DataTransferMessage,
    IdleWaitMessage,
    RemoteCommandMessage,
)
from .models import JobStatus

logger = structlog.get_logger(__name__)

PI_BATCH_TERMS = 100_000
DATASET_FILES = 5
DATASET_LINES = 1000


def _run_tracked(message, workload, *args):
    admission = tracker.mark_processing(message.job_uuid)
    if not admission:
        # A processing job seen again here was redelivered after its worker died.
        log = logger.warning if admission.status == JobStatus.PROCESSING else logger.info
        log(
            "job_not_admitted",
            job_uuid=admission.job_uuid,
            job_type=message.job_type.value,
            reason=admission.reason,
        )
        return

    job = admission.job
    try:
        workload(job, message, *args)
    except Exception as e:
        # The in-memory status may be ahead of the row if a terminal save failed.
        job.refresh_from_db()
        if not job.is_terminal:
            tracker.mark_failed(job, str(e) or type(e).__name__)
        raise


# -----------------------------------------------------
# CPU stress
# -----------------------------------------------------
def is_prime(n: int) -> bool:
    if n < 2:
        return False
    i = 2
    while i * i <= n:
        if n % i == 0:
            return False
        i += 1
    return True


def leibniz_partial_sum(start: int, count: int) -> float:
    """Sum of (-1)^i / (2i + 1) for i in [start, start + count)."""
    total = 0.0
    for i in range(start, start + count):
        total += (-1.0 if i % 2 else 1.0) / (2 * i + 1)
    return total


def handle_cpu_stress(message: CpuStressMessage, stop: threading.Event | None = None, clock=time.monotonic):
    _run_tracked(message, _cpu_stress, stop or threading.Event(), clock)


def _cpu_stress(job, message: CpuStressMessage, stop, clock):
    duration = message.duration_seconds
    use_primes = message.algorithm == "primes"
    tracker.update_progress(job, 0, f"Starting CPU stress ({message.algorithm}) for {duration}s")

    primes_found = 0
    n = 2           # next candidate (primes)
    terms = 0       # Leibniz terms summed so far (pi)
    pi_sum = 0.0
    last_milestone = 0

    start = clock()
    while True:
        elapsed = clock() - start
        pct = min(100, int(elapsed / duration * 100))
        milestone = min(90, pct - pct % 10)
        if milestone > last_milestone:
            if use_primes:
                detail = f"primes found so far: {primes_found}"
            else:
                detail = f"pi approximation: {pi_sum * 4:.10f}"
            # one line per multiple of 10, even when a slow step jumps several
            for mark in range(last_milestone + 10, milestone + 1, 10):
                tracker.update_progress(job, pct, f"Progress: {mark}% - {detail}")
            last_milestone = milestone

        if elapsed >= duration:
            break
        if stop.is_set():
            raise JobInterrupted(f"CPU stress interrupted after {elapsed:.1f}s")

        if use_primes:
            if is_prime(n):
                primes_found += 1
            n += 1
        else:
            pi_sum += leibniz_partial_sum(terms, PI_BATCH_TERMS)
            terms += PI_BATCH_TERMS

    if use_primes:
        result = f"Found {primes_found} primes up to {n}"
    else:
        result = f"Pi approximated to {pi_sum * 4:.15f} after {terms} iterations"
    tracker.mark_completed(job, result)


# -----------------------------------------------------
# Data transfer (archive + S3 upload)
# -----------------------------------------------------
def ensure_dataset(directory: Path) -> Path:
    """Create the demo dataset; existing files are left untouched."""
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(1, DATASET_FILES + 1):
        path = directory / f"file_{i}.txt"
        if not path.exists():
            path.write_text(f"Dummy data line {i}\n" * DATASET_LINES)
    return directory


def build_archive(source: Path, archive: Path) -> int:
    """Zip every file under ``source`` into ``archive``; return its size in bytes."""
    files = sorted(p for p in source.rglob("*") if p.is_file())
    if not files:
        raise ArchiveError(f"Nothing to archive in {source}")
    try:
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in files:
                zf.write(path, path.relative_to(source).as_posix())
    except OSError as e:
        raise ArchiveError(f"Cannot create ZIP file: {archive}") from e
    return archive.stat().st_size


@contextmanager
def scratch_archive(path: Path):
    """Yield ``path`` and remove whatever is there on exit, success or not."""
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("archive_cleanup_failed", path=str(path), error=str(e))


def _resolve_source(work_dir: Path, source_dir: str) -> Path:
    root = work_dir.resolve()
    source = (root / source_dir).resolve()
    if source != root and root not in source.parents:
        raise ArchiveError(f"Source directory {source_dir!r} is outside the job workspace")
    return source


def handle_data_transfer(message: DataTransferMessage, stop: threading.Event | None = None):
    _run_tracked(message, _data_transfer)


def _data_transfer(job, message: DataTransferMessage):
    work_dir = Path(settings.JOBS_WORK_DIR)
    bucket, key = message.bucket_name, message.s3_key

    tracker.update_progress(job, 10, "Preparing dataset directory...")
    source = ensure_dataset(_resolve_source(work_dir, message.source_dir))

    tracker.update_progress(job, 30, "Creating ZIP archive...")
    with scratch_archive(work_dir / f"backup-{message.job_uuid}.zip") as archive:
        size = build_archive(source, archive)

        tracker.update_progress(job, 60, f"Uploading to s3://{bucket}/{key} ({size} bytes)")
        with archive.open("rb") as stream:
            s3.upload_stream(stream, bucket, key, content_type="application/zip")

        tracker.update_progress(job, 90, "Upload complete. Cleaning up...")

    tracker.mark_completed(job, f"Uploaded {key} to bucket {bucket} ({size} bytes)")


# -----------------------------------------------------
# Remote command (SSH)
# -----------------------------------------------------
def handle_remote_command(message: RemoteCommandMessage, stop: threading.Event | None = None):
    _run_tracked(message, _remote_command)


def _remote_command(job, message: RemoteCommandMessage):
    tracker.update_progress(job, 10, f"Connecting to {message.host}:{message.port}...")
    client = ssh.open_session(
        message.host, message.port, message.username, message.password, message.timeout
    )
    with closing(client):
        tracker.update_progress(job, 40, "Connected. Running remote command...")
        outcome = ssh.run_command(client, message.command, message.timeout)

    code = "unknown" if outcome.exit_code is None else outcome.exit_code
    tracker.update_progress(job, 80, f"Command finished with exit code: {code}")

    # A non-zero exit is a job outcome, not an exception.
    if outcome.exit_code not in (0, None):
        tracker.mark_failed(job, f"Exit code {code}. Stderr: {outcome.stderr}\nStdout: {outcome.stdout}")
    else:
        tracker.mark_completed(job, outcome.stdout or "(no output)")


# -----------------------------------------------------
# Idle wait
# -----------------------------------------------------
def handle_idle_wait(message: IdleWaitMessage, stop: threading.Event | None = None):
    _run_tracked(message, _idle_wait, stop or threading.Event())


def _idle_wait(job, message: IdleWaitMessage, stop):
    duration = message.duration_seconds
    interval = max(1, message.check_interval_seconds)
    elapsed = 0

    while elapsed < duration:
        step = min(interval, duration - elapsed)
        if stop.wait(step):
            raise JobInterrupted(f"Idle wait interrupted after {elapsed}s")
        elapsed += step
        percent = round(elapsed / duration * 100)
        tracker.update_progress(
            job, percent, f"Elapsed {elapsed}s / {duration}s (interval {interval}s) - idle, no resources consumed."
        )

    tracker.mark_completed(job, f"Idle wait completed after {elapsed} seconds.")


HANDLERS = {
    CpuStressMessage: handle_cpu_stress,
    DataTransferMessage: handle_data_transfer,
    RemoteCommandMessage: handle_remote_command,
    IdleWaitMessage: handle_idle_wait,
}

_unhandled = set(MESSAGE_TYPES.values()) - set(HANDLERS)
if _unhandled:
    raise ImproperlyConfigured(f"No handler for messages: {sorted(c.__name__ for c in _unhandled)}")


def execute(message, stop: threading.Event | None = None) -> None:
    """Run the handler registered for ``type(message)``."""
    try:
        handler = HANDLERS[type(message)]
    except KeyError:
        raise TypeError(f"No handler registered for {type(message).__name__}") from None
    handler(message, stop)
