"""Errors raised by JobService to its callers (the API layer maps them to HTTP codes)."""


class JobQueueError(Exception):
    """Base class for job service errors."""


class InvalidJobError(JobQueueError, ValueError):
    """Submission rejected before anything was persisted."""


class JobNotFoundError(JobQueueError):

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobStateConflictError(JobQueueError):
    """The requested operation is not allowed in the job's current state."""

    def __init__(self, job_id: str, status: str, message: str):
        super().__init__(message)
        self.job_id = job_id
        self.status = status
