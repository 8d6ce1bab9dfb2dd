"""
Worker process entry point.

This is a SEPARATE process from the FastAPI API server.
It runs two components in the same process:

    1. ConsumerPool — one thread per channel partition, each feeding
       delivered messages to the JobConsumer
    2. StuckJobReconciler — periodically returns stale PROCESSING jobs
       to PENDING (or fails them once retries are exhausted)

Both run as background threads. The main thread just waits for
Ctrl+C (SIGINT) or a kill signal (SIGTERM) to shut down gracefully.

To run:
    python -m worker.main

Run as many worker processes as you like: they join the same consumer group
and Redis spreads new messages between them. Give each one its own
CONSUMER_NAME so their pending entries do not get mixed up.
"""

import logging
import signal
import threading

from redis import Redis

from channel.redis_streams import RedisStreamChannel
from config.settings import settings
from jobs.registry import default_registry
from models.base import Base, SessionLocal, engine
from service.job_service import JobService
from service.metrics import RedisJobMetrics
from store.job_store import JobStore
from worker.consumer import JobConsumer
from worker.pool import ConsumerPool
from worker.reconciler import StuckJobReconciler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    # Safe to call multiple times: if the API already created the tables,
    # this is a no-op.
    logger.info("Ensuring database tables exist...")
    Base.metadata.create_all(engine)

    redis_client = Redis.from_url(settings.redis_url)
    channel = RedisStreamChannel(redis_client)
    channel.ensure_topology()

    metrics = RedisJobMetrics(redis_client)
    store = JobStore(SessionLocal)
    service = JobService(store, channel, metrics)
    consumer = JobConsumer(service, default_registry(), metrics)

    pool = ConsumerPool(channel, consumer)
    pool.start()

    reconciler = StuckJobReconciler(service)
    reconciler.start()

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = threading.Event()

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info(f"Worker {settings.CONSUMER_NAME} running. Press Ctrl+C to stop.")

    # Event.wait() instead of signal.pause() for Windows compatibility
    shutdown_event.wait()

    reconciler.stop()
    pool.stop()
    channel.close()
    logger.info("Worker process exited")


if __name__ == "__main__":
    main()
