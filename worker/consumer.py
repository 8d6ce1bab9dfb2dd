"""
Job consumer — turns one delivered message into guarded state transitions.

This is the code that actually DOES THE WORK. The channel calls
consumer.handle(delivery) from a partition thread, and it runs the whole
attempt:

    1. Parse the JobMessage (malformed → dropped)
    2. PENDING → PROCESSING under a fresh worker id (rejected → duplicate, skipped)
    3. Find the handler for job_type and call handler.run(payload)
    4. Record the attempt (job_results row, duration, per-type counter)
    5. Success → PROCESSING → COMPLETED
       Failure → retry (back to PENDING, re-published) or FAILED if exhausted
    6. Acknowledge the message, whatever happened above

Idempotency:
Delivery is at-least-once, so the same message can arrive twice. Step 2 is
the guard: only one delivery can move a job out of PENDING, every other copy
finds the job in another state and is acknowledged without side effects.

Thread safety:
The consumer holds no per-message state. The store opens a session per call
and handlers are stateless, so one instance serves every partition thread.
"""

import logging
import time
import uuid

from pydantic import ValidationError

from channel.base import Delivery
from channel.message import JobMessage
from jobs.registry import JobHandlerRegistry
from models.enums import ConsumeOutcome
from models.job import Job
from service.job_service import JobService
from service.metrics import JobMetrics

logger = logging.getLogger(__name__)


def new_worker_id() -> str:
    return f"worker-{uuid.uuid4().hex[:8]}"


class JobConsumer:

    def __init__(self, service: JobService, registry: JobHandlerRegistry, metrics: JobMetrics):
        self._service = service
        self._store = service.store
        self._registry = registry
        self._metrics = metrics

    def __call__(self, delivery: Delivery) -> ConsumeOutcome:
        return self.handle(delivery)

    def handle(self, delivery: Delivery) -> ConsumeOutcome:
        """
        Process one delivered message and acknowledge it.

        Never raises: store or channel errors are logged and reported as
        ConsumeOutcome.ERROR. A job left in PROCESSING that way is picked up
        later by the stuck-job reconciler.
        """
        try:
            return self._process(delivery)
        except Exception as e:
            logger.error(
                f"Error processing message {delivery.offset} "
                f"(partition {delivery.partition}): {e}",
                exc_info=True,
            )
            return ConsumeOutcome.ERROR
        finally:
            delivery.acknowledge()

    def _process(self, delivery: Delivery) -> ConsumeOutcome:
        # ── Step 1: Parse ───────────────────────────────────────
        try:
            message = JobMessage.model_validate_json(delivery.value)
        except ValidationError as e:
            logger.error(
                f"Dropping malformed message {delivery.offset} "
                f"(key={delivery.key}): {e.error_count()} validation error(s)"
            )
            return ConsumeOutcome.MALFORMED

        # ── Step 2: Claim ───────────────────────────────────────
        worker_id = new_worker_id()
        if not self._service.start_processing(message.id, worker_id):
            logger.info(f"Job {message.job_id} is no longer PENDING, skipping duplicate delivery")
            return ConsumeOutcome.SKIPPED

        # ── Step 3: Execute ─────────────────────────────────────
        start_time = time.monotonic()
        try:
            handler = self._registry.get(message.job_type)
            result = handler.run(dict(message.payload))
            error = None
        except Exception as e:
            result = None
            error = str(e) or type(e).__name__
        elapsed = time.monotonic() - start_time

        # ── Step 4: Record the attempt ──────────────────────────
        self._metrics.record_processing_duration(elapsed)
        self._metrics.increment_job_type_processed(message.job_type)
        self._store.add_result(
            message.id,
            succeeded=error is None,
            result=result if error is None else {"error": error},
            execution_time_ms=int(elapsed * 1000),
        )

        # ── Step 5: Transition ──────────────────────────────────
        # Only while the job is still this attempt's: the reconciler may have
        # handed it to another consumer in the meantime
        owned = (Job.worker_id == worker_id,)
        if error is None:
            if self._service.complete_job(message.id, owned):
                logger.info(
                    f"Job {message.job_id} [{message.job_type}] completed "
                    f"by {worker_id} in {elapsed:.3f}s"
                )
                return ConsumeOutcome.COMPLETED
            return ConsumeOutcome.SKIPPED

        logger.error(f"Job {message.job_id} [{message.job_type}] failed: {error}")
        return self._service.retry_or_fail(message.id, error, owned)
