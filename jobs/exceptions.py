class JobError(Exception):
    """Base class for errors raised by the job engine."""


class InvalidTransition(JobError):
    """A status change that the job state machine does not allow."""

    def __init__(self, job_uuid, current, target):
        self.job_uuid = str(job_uuid)
        self.current = current
        self.target = target
        super().__init__(f"Job {self.job_uuid} cannot move from {current} to {target}")


class JobInterrupted(JobError):
    """The worker asked a running workload to stop."""


class ArchiveError(JobError):
    pass


class RemoteCommandError(JobError):
    pass
