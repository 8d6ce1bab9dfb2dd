"""
Job CRUD endpoints.

POST   /jobs/                  → Submit a new job (persist + publish)
GET    /jobs/                  → List jobs with filtering, sorting + pagination
GET    /jobs/stats             → How many jobs are in each state
GET    /jobs/{job_id}          → Get a single job by its job_id
GET    /jobs/{job_id}/results  → Every execution attempt of a job
DELETE /jobs/{job_id}          → Cancel a PENDING job

The API layer is intentionally thin:
- Validate input (Pydantic does this automatically)
- Call JobService
- Translate service errors into HTTP status codes

The endpoints are plain `def` functions. JobService and the store are
synchronous, so FastAPI runs these in its threadpool instead of the event loop.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_job_service, get_reporter
from api.schemas.job import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobResultResponse,
    JobStats,
)
from models.enums import JobStatus, SortDirection, SortField
from service.exceptions import InvalidJobError, JobNotFoundError, JobStateConflictError
from service.job_service import JobService
from service.statistics import JobStatisticsReporter

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=JobResponse, status_code=201)
def create_job(
    job_in: JobCreate,
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    """
    Submit a new job.

    The job is saved with status=PENDING and handed to the delivery channel.
    The response does not wait for the publish: if it later fails, the job
    moves to FAILED with "Failed to queue job for processing".
    """
    try:
        job = service.create_job(
            job_type=job_in.job_type,
            payload=job_in.payload,
            priority=job_in.priority,
            max_retries=job_in.max_retries,
        )
    except InvalidJobError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return JobResponse.model_validate(job)


@router.get("/", response_model=JobListResponse)
def list_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by job status"),
    job_type: Optional[str] = Query(None, description="Filter by job type"),
    sort_by: SortField = Query(SortField.CREATED_AT, description="Column to sort on"),
    sort_dir: SortDirection = Query(SortDirection.DESC, description="asc or desc"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Jobs per page"),
    service: JobService = Depends(get_job_service),
) -> JobListResponse:
    """
    List jobs with optional filtering, sorting and pagination.

    Pagination works with OFFSET/LIMIT:
    - page=1, page_size=20 → rows 0-19
    - page=2, page_size=20 → rows 20-39
    """
    jobs, total = service.list_jobs(
        status=status,
        job_type=job_type,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )
    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=JobStats)
def get_job_stats(
    reporter: JobStatisticsReporter = Depends(get_reporter),
) -> JobStats:
    """Counts per status, from a single GROUP BY query."""
    stats = reporter.snapshot()
    return JobStats(
        total_jobs=stats.total,
        pending=stats.pending,
        processing=stats.processing,
        completed=stats.completed,
        failed=stats.failed,
    )


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    """Get a single job by its job_id."""
    try:
        job = service.get_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobResponse.model_validate(job)


@router.get("/{job_id}/results", response_model=list[JobResultResponse])
def get_job_results(
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> list[JobResultResponse]:
    """Every recorded attempt, oldest first. Retried jobs have one row per attempt."""
    try:
        results = service.get_results(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [JobResultResponse.model_validate(r) for r in results]


@router.delete("/{job_id}", status_code=204)
def cancel_job(
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> None:
    """
    Cancel a job.

    Only PENDING jobs can be cancelled — once a consumer has moved it to
    PROCESSING, it's too late.

    We don't delete the row — we set status to FAILED so it shows up
    in stats and history.
    """
    try:
        service.cancel_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except JobStateConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
