"""
Statistics reporter — one read-only view over the store and the metrics.

State counts come from the database (a single GROUP BY), counters and timings
come from the metrics object (shared through Redis in production). The two
are read at slightly different moments, so the snapshot is eventually
consistent: good enough for a dashboard, not something to make decisions on.

Side effect: the queue-size gauge is refreshed (pending + processing) every
time a snapshot is taken, so /metrics/job-queue always reports the value seen
by the most recent stats call.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from models.enums import JobStatus
from service.metrics import JobMetrics
from store.job_store import JobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobStatistics:
    pending: int
    processing: int
    completed: int
    failed: int
    total: int
    queue_size: int
    jobs_created: int
    jobs_completed: int
    jobs_failed: int
    jobs_retried: int
    processed_by_type: dict[str, int] = field(default_factory=dict)
    average_processing_seconds: Optional[float] = None
    max_processing_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        """completed / (completed + failed) from the counters, 0.0 if nothing finished."""
        finished = self.jobs_completed + self.jobs_failed
        if finished == 0:
            return 0.0
        return self.jobs_completed / finished


class JobStatisticsReporter:

    def __init__(self, store: JobStore, metrics: JobMetrics):
        self._store = store
        self._metrics = metrics

    def snapshot(self) -> JobStatistics:
        counts = self._store.count_by_status()
        pending = counts[JobStatus.PENDING]
        processing = counts[JobStatus.PROCESSING]

        self._metrics.update_queue_size(pending + processing)
        metrics = self._metrics.snapshot()

        stats = JobStatistics(
            pending=pending,
            processing=processing,
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            total=sum(counts.values()),
            queue_size=metrics.queue_size,
            jobs_created=metrics.jobs_created,
            jobs_completed=metrics.jobs_completed,
            jobs_failed=metrics.jobs_failed,
            jobs_retried=metrics.jobs_retried,
            processed_by_type=metrics.processed_by_type,
            average_processing_seconds=metrics.processing_avg_seconds,
            max_processing_seconds=metrics.processing_max_seconds,
        )
        logger.debug(f"Statistics snapshot: total={stats.total} queue_size={stats.queue_size}")
        return stats
