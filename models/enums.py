"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str) means:
- They serialize to JSON automatically ("PENDING", not "JobStatus.PENDING")
- They work as SQLAlchemy column values
- They work as FastAPI query parameters
- Typos become immediate errors instead of silent bugs
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"          # persisted and published, waiting for a consumer
    PROCESSING = "PROCESSING"    # a consumer won the PENDING → PROCESSING transition
    COMPLETED = "COMPLETED"      # terminal: handler succeeded
    FAILED = "FAILED"            # terminal: retries exhausted, cancelled, or never queued

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class ConsumeOutcome(str, enum.Enum):
    """What happened to one delivered message. Never persisted."""

    COMPLETED = "COMPLETED"
    RETRYING = "RETRYING"        # sent back to PENDING and re-published
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"          # transition rejected: another actor owns the job
    MALFORMED = "MALFORMED"      # body could not be parsed, dropped
    ERROR = "ERROR"              # unexpected infrastructure error, contained


class JobType(str, enum.Enum):
    """Job types with a built-in handler. Any other tag can be submitted but fails on execution."""

    TEST = "test-job"
    EMAIL = "email-job"
    DATA_PROCESSING = "data-processing"
    FILE_PROCESSING = "file-processing"


class SortField(str, enum.Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    PRIORITY = "priority"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"
