"""
Job service — the job lifecycle state machine.

    (submit) ──> PENDING ──start──> PROCESSING ──complete──> COMPLETED
                   ^  │                  │
                   │  │ cancel /         │ retry (retry_count < max_retries)
                   │  │ queue failure    │   → back to PENDING and re-published
                   │  v                  │
                   └─ FAILED <───fail────┘ (retries exhausted)

Every arrow is one JobStore.conditional_transition() call. Each method returns
True when its transition was applied and False when it was rejected, which
only ever means another actor (a duplicate delivery, the reconciler, a
cancellation) moved the job first. Counters are bumped only for applied
transitions, so a redelivered message can never double-count.

Submission is split in two:
1. create_job() persists the job as PENDING and returns it immediately
2. dispatch() publishes it on the delivery channel in the background; if the
   publish fails the job is failed out of band ("Failed to queue job for
   processing") so it never sits in PENDING with nothing in flight
"""

import logging
import uuid
from collections.abc import Mapping, Sequence
from concurrent.futures import Future
from typing import Any, Optional

from channel.base import DeliveryChannel
from channel.message import JobMessage
from config.settings import settings
from models.enums import ConsumeOutcome, JobStatus, SortDirection, SortField
from models.job import Job, utcnow
from models.job_result import JobResult
from service.exceptions import InvalidJobError, JobNotFoundError, JobStateConflictError
from service.metrics import JobMetrics
from store.job_store import JobStore

logger = logging.getLogger(__name__)

QUEUE_FAILURE_MESSAGE = "Failed to queue job for processing"
CANCELLED_MESSAGE = "Job cancelled by user"


class JobService:

    def __init__(
        self,
        store: JobStore,
        channel: DeliveryChannel,
        metrics: JobMetrics,
        max_retries: Optional[int] = None,
        default_priority: Optional[int] = None,
        republish_on_retry: Optional[bool] = None,
    ):
        self._store = store
        self._channel = channel
        self._metrics = metrics
        self._max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self._default_priority = (
            settings.DEFAULT_PRIORITY if default_priority is None else default_priority
        )
        self._republish_on_retry = (
            settings.REPUBLISH_ON_RETRY if republish_on_retry is None else republish_on_retry
        )

    @property
    def store(self) -> JobStore:
        return self._store

    # ── Submission ──────────────────────────────────────────────

    def create_job(
        self,
        job_type: str,
        payload: Optional[Mapping[str, Any]],
        priority: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> Job:
        """
        Persist a new PENDING job and hand it to the delivery channel.

        The returned job is always PENDING: publishing happens in the
        background and its outcome is applied to the store later.
        """
        if not job_type or not job_type.strip():
            raise InvalidJobError("job_type is required")
        if payload is None or not isinstance(payload, Mapping):
            raise InvalidJobError("payload must be an object")
        max_retries = self._max_retries if max_retries is None else max_retries
        if max_retries < 0:
            raise InvalidJobError("max_retries cannot be negative")

        job = Job(
            job_id=str(uuid.uuid4()),
            job_type=job_type.strip(),
            payload=dict(payload),
            status=JobStatus.PENDING.value,
            priority=self._default_priority if priority is None else priority,
            retry_count=0,
            max_retries=max_retries,
        )
        saved = self._store.create(job)
        logger.info(f"Created job {saved.job_id} [{saved.job_type}] priority={saved.priority}")

        self._metrics.increment_jobs_created()
        self.dispatch(saved)
        return saved

    def dispatch(self, job: Job) -> "Future[bool]":
        """
        Publish a job keyed by its job_id.

        Returns a future that resolves once the publish outcome has been
        applied: True if the message is on the channel, False if the job was
        failed because it could not be queued.
        """
        outcome: Future = Future()

        try:
            body = JobMessage.from_job(job).model_dump_json()
            publish_future = self._channel.publish(job.job_id, body)
        except Exception as e:
            logger.error(f"Error sending job {job.job_id} to channel: {e}")
            self._fail_undispatched(job)
            outcome.set_result(False)
            return outcome

        def on_published(future: Future) -> None:
            try:
                error = "publish cancelled" if future.cancelled() else future.exception()
                if error is None:
                    ack = future.result()
                    logger.info(
                        f"Job {job.job_id} queued on partition {ack.partition} "
                        f"at offset {ack.offset}"
                    )
                    outcome.set_result(True)
                else:
                    logger.error(f"Failed to send job {job.job_id} to channel: {error}")
                    self._fail_undispatched(job)
                    outcome.set_result(False)
            except Exception as e:
                logger.error(f"Could not record publish outcome for {job.job_id}: {e}", exc_info=True)
                outcome.set_exception(e)

        publish_future.add_done_callback(on_published)
        return outcome

    def _fail_undispatched(self, job: Job) -> None:
        # Only from PENDING: if a duplicate delivery already picked the job up, leave it alone
        self.fail_job(job.id, QUEUE_FAILURE_MESSAGE, expected=(JobStatus.PENDING,))

    # ── Transitions ─────────────────────────────────────────────

    def start_processing(self, job_pk: int, worker_id: str) -> bool:
        """PENDING → PROCESSING. The duplicate-delivery guard: only one consumer wins."""
        updated = self._store.conditional_transition(
            job_pk,
            JobStatus.PENDING,
            JobStatus.PROCESSING,
            {"started_at": utcnow(), "worker_id": worker_id},
        )
        if updated:
            logger.info(f"Started processing job pk={job_pk} with {worker_id}")
        return bool(updated)

    def complete_job(self, job_pk: int, conditions: Sequence[Any] = ()) -> bool:
        """PROCESSING → COMPLETED."""
        updated = self._store.conditional_transition(
            job_pk,
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
            {"completed_at": utcnow()},
            conditions,
        )
        if updated:
            self._metrics.increment_jobs_completed()
            logger.info(f"Completed job pk={job_pk}")
        return bool(updated)

    def fail_job(
        self,
        job_pk: int,
        error_message: str,
        expected: Sequence[JobStatus] = (JobStatus.PENDING, JobStatus.PROCESSING),
        conditions: Sequence[Any] = (),
    ) -> bool:
        """PENDING/PROCESSING → FAILED (terminal). Never applies to COMPLETED or FAILED jobs."""
        updated = self._store.conditional_transition(
            job_pk,
            expected,
            JobStatus.FAILED,
            {"error_message": error_message, "completed_at": utcnow()},
            conditions,
        )
        if updated:
            self._metrics.increment_jobs_failed()
            logger.warning(f"Failed job pk={job_pk}: {error_message}")
        return bool(updated)

    def retry_job(
        self,
        job_pk: int,
        error_message: Optional[str] = None,
        conditions: Sequence[Any] = (),
    ) -> bool:
        """
        PROCESSING → PENDING with retry_count + 1, then re-publish.

        The `retry_count < max_retries` check is part of the UPDATE itself, so
        retry_count can never pass max_retries even with concurrent callers.
        """
        extra: dict[str, Any] = {"retry_count": Job.retry_count + 1, "worker_id": None}
        if error_message is not None:
            extra["error_message"] = error_message

        updated = self._store.conditional_transition(
            job_pk,
            JobStatus.PROCESSING,
            JobStatus.PENDING,
            extra,
            (Job.retry_count < Job.max_retries, *conditions),
        )
        if not updated:
            return False

        self._metrics.increment_jobs_retried()
        job = self._store.find_by_pk(job_pk)
        logger.info(
            f"Retrying job {job.job_id} (attempt {job.retry_count}/{job.max_retries})"
        )

        if self._republish_on_retry:
            self.dispatch(job)
        return True

    def retry_or_fail(
        self,
        job_pk: int,
        error_message: str,
        conditions: Sequence[Any] = (),
    ) -> ConsumeOutcome:
        """
        Apply the retry policy after a failed attempt.

        RETRYING if the job went back to PENDING, FAILED if retries were
        exhausted, SKIPPED if neither transition applied (the job is no longer
        PROCESSING, e.g. the reconciler already handled it).
        """
        if self.retry_job(job_pk, error_message, conditions):
            return ConsumeOutcome.RETRYING
        if self.fail_job(job_pk, error_message, expected=(JobStatus.PROCESSING,), conditions=conditions):
            return ConsumeOutcome.FAILED
        logger.debug(f"Job pk={job_pk} left PROCESSING before its failure could be applied")
        return ConsumeOutcome.SKIPPED

    def cancel_job(self, job_id: str) -> Job:
        """
        Cancel a job that has not been picked up yet.

        Cancellation is a PENDING → FAILED transition; the row is kept so the
        job still shows up in history and statistics.
        """
        job = self.get_job(job_id)
        if not self.fail_job(job.id, CANCELLED_MESSAGE, expected=(JobStatus.PENDING,)):
            current = self._store.find_by_pk(job.id)
            status = current.status if current else job.status
            raise JobStateConflictError(
                job_id,
                status,
                f"Cannot cancel job in {status} state. Only PENDING jobs can be cancelled.",
            )
        logger.info(f"Cancelled job {job_id}")
        return self._store.find_by_pk(job.id)

    # ── Reads ───────────────────────────────────────────────────

    def get_job(self, job_id: str) -> Job:
        job = self._store.find_by_job_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[str] = None,
        sort_by: SortField = SortField.CREATED_AT,
        sort_dir: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Job], int]:
        offset = (page - 1) * page_size
        return self._store.list_jobs(status, job_type, sort_by, sort_dir, offset, page_size)

    def get_results(self, job_id: str) -> list[JobResult]:
        job = self.get_job(job_id)
        return self._store.results_for(job.id)
