"""
Pydantic schemas for the /jobs and /metrics endpoints.

These are NOT database models — they define the HTTP API contract:
- JobCreate: what the user sends when submitting a job (request body)
- JobResponse: what we send back for a single job (response body)
- JobListResponse: paginated list of jobs
- JobStats: counts per status
- JobResultResponse: one execution attempt of a job
- QueueMetricsResponse: the /metrics/job-queue document

FastAPI validates incoming data against these automatically.
If someone sends max_retries=99, FastAPI returns a 422 error before our code even runs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class JobCreate(BaseModel):
    """Request body for POST /jobs/ — what the user provides to submit a job."""

    job_type: str = Field(
        ...,  # ... means required, no default
        min_length=1,
        max_length=100,
        examples=["test-job"],
        description="Handler tag, e.g. test-job, email-job, data-processing, file-processing",
    )
    payload: dict = Field(
        ...,
        examples=[{"message": "Hello World", "number": 42}],
    )
    priority: Optional[int] = Field(
        default=None,
        description="Higher = more urgent. Defaults to DEFAULT_PRIORITY.",
    )
    max_retries: Optional[int] = Field(
        default=None,
        ge=0,
        le=10,
        description="Defaults to MAX_RETRIES.",
    )


class JobResponse(BaseModel):
    """Response body for a single job — returned by GET /jobs/{job_id} and POST /jobs/."""

    job_id: str
    job_type: str
    status: str
    priority: int
    payload: dict
    error_message: Optional[str] = None
    worker_id: Optional[str] = None
    retry_count: int
    max_retries: int
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # from_attributes=True tells Pydantic to read from SQLAlchemy model attributes
    # (e.g., job.job_type) instead of requiring a dict
    model_config = {"from_attributes": True}


class JobListResponse(BaseModel):
    """Paginated list of jobs — returned by GET /jobs/."""

    jobs: list[JobResponse]
    total: int       # total matching jobs (ignoring pagination)
    page: int        # current page number
    page_size: int   # jobs per page


class JobStats(BaseModel):
    """Counts per status — returned by GET /jobs/stats."""

    total_jobs: int
    pending: int
    processing: int
    completed: int
    failed: int


class JobResultResponse(BaseModel):
    """One execution attempt — returned by GET /jobs/{job_id}/results."""

    succeeded: bool
    result: Optional[dict] = None
    execution_time_ms: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class QueueSection(BaseModel):
    size: int
    pending: int
    processing: int


class ProcessingSection(BaseModel):
    jobs_created: int
    jobs_completed: int
    jobs_failed: int
    jobs_retried: int
    processed_by_type: dict[str, int]


class PerformanceSection(BaseModel):
    success_rate: float
    avg_processing_time_ms: Optional[float] = None
    max_processing_time_ms: float


class QueueMetricsResponse(BaseModel):
    """Returned by GET /metrics/job-queue."""

    queue: QueueSection
    processing: ProcessingSection
    performance: PerformanceSection
