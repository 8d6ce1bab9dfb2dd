"""
Queue metrics endpoint.

GET /metrics/job-queue returns three sections:
- queue: how much work is waiting or running right now (from the database)
- processing: lifecycle counters, shared by the API and every worker
- performance: success rate and processing times
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_reporter
from api.schemas.job import (
    PerformanceSection,
    ProcessingSection,
    QueueMetricsResponse,
    QueueSection,
)
from service.statistics import JobStatisticsReporter

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/job-queue", response_model=QueueMetricsResponse)
def job_queue_metrics(
    reporter: JobStatisticsReporter = Depends(get_reporter),
) -> QueueMetricsResponse:
    stats = reporter.snapshot()
    avg = stats.average_processing_seconds

    return QueueMetricsResponse(
        queue=QueueSection(
            size=stats.queue_size,
            pending=stats.pending,
            processing=stats.processing,
        ),
        processing=ProcessingSection(
            jobs_created=stats.jobs_created,
            jobs_completed=stats.jobs_completed,
            jobs_failed=stats.jobs_failed,
            jobs_retried=stats.jobs_retried,
            processed_by_type=stats.processed_by_type,
        ),
        performance=PerformanceSection(
            success_rate=round(stats.success_rate, 4),
            avg_processing_time_ms=round(avg * 1000, 2) if avg is not None else None,
            max_processing_time_ms=round(stats.max_processing_seconds * 1000, 2),
        ),
    )
