"""
Wire format for jobs travelling over the delivery channel.

Only what a consumer needs to run the job is sent. The authoritative state
(status, timestamps) stays in the job store, so retry_count here is
informational and the consumer never trusts it for decisions.
"""

from pydantic import BaseModel, Field

from models.job import Job


class JobMessage(BaseModel):
    id: int                    # internal id, used for every transition
    job_id: str = Field(min_length=1)
    job_type: str = Field(min_length=1)
    payload: dict = Field(default_factory=dict)
    priority: int = 0
    retry_count: int = 0
    max_retries: int = 0

    @classmethod
    def from_job(cls, job: Job) -> "JobMessage":
        return cls(
            id=job.id,
            job_id=job.job_id,
            job_type=job.job_type,
            payload=job.payload or {},
            priority=job.priority,
            retry_count=job.retry_count,
            max_retries=job.max_retries,
        )
