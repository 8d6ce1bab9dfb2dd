"""
Stuck-job reconciler — recovers jobs whose consumer disappeared mid-attempt.

A consumer that crashes (or hangs) after PENDING → PROCESSING leaves the job
in PROCESSING forever: its message was acknowledged or will be replayed to a
consumer that then skips it. Every RECONCILE_INTERVAL_SECONDS this thread
looks for PROCESSING jobs whose started_at is older than
WORKER_TIMEOUT_MINUTES and applies the normal retry policy to them.

Racing a slow consumer is safe: every transition here carries the extra guard
`started_at < cutoff`, on top of the usual status guard. A job that completed,
failed, or was restarted since the sweep read it no longer matches and is
counted as skipped.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from config.settings import settings
from models.enums import ConsumeOutcome
from models.job import Job, utcnow
from service.job_service import JobService

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    retried: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def examined(self) -> int:
        return self.retried + self.failed + self.skipped


class StuckJobReconciler:

    def __init__(
        self,
        service: JobService,
        timeout_minutes: Optional[float] = None,
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
    ):
        self._service = service
        self._store = service.store
        self._timeout = timedelta(
            minutes=settings.WORKER_TIMEOUT_MINUTES if timeout_minutes is None else timeout_minutes
        )
        self._interval = (
            settings.RECONCILE_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self._batch_size = batch_size or settings.RECONCILE_BATCH_SIZE
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the background sweep thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="stuck-job-reconciler", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Reconciler started (timeout={self._timeout}, every {self._interval}s)"
        )

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
        logger.info("Reconciler stopped")

    def _run_loop(self) -> None:
        # wait() returns True once stop() is called
        while not self._stop_event.wait(self._interval):
            try:
                self.reconcile_once()
            except Exception as e:
                logger.error(f"Reconciler pass failed: {e}", exc_info=True)

    def reconcile_once(self, now: Optional[datetime] = None) -> ReconcileReport:
        """
        Run a single sweep.

        Args:
            now: reference time, defaults to the current UTC time

        Returns:
            ReconcileReport with how many stale jobs were retried, failed, or
            left alone because another actor moved them first
        """
        cutoff = (now or utcnow()) - self._timeout
        report = ReconcileReport()

        for job in self._store.find_stuck(cutoff, self._batch_size):
            error = (
                f"Job timed out after {self._timeout.total_seconds() / 60:g} minutes "
                f"in PROCESSING (worker {job.worker_id})"
            )
            logger.warning(
                f"Job {job.job_id} stuck in PROCESSING since {job.started_at}, "
                f"{'retrying' if job.can_retry() else 'retries exhausted'}"
            )
            outcome = self._service.retry_or_fail(
                job.id, error, conditions=(Job.started_at < cutoff,)
            )

            if outcome == ConsumeOutcome.RETRYING:
                report.retried += 1
            elif outcome == ConsumeOutcome.FAILED:
                report.failed += 1
            else:
                report.skipped += 1

        if report.examined:
            logger.warning(
                f"Reconciled stuck jobs: retried={report.retried} "
                f"failed={report.failed} skipped={report.skipped}"
            )
        return report
