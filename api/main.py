"""
FastAPI application factory.

This file:
1. Creates the FastAPI app
2. Runs startup logic (create DB tables, connect to Redis, wire the services)
3. Registers all routers (jobs, metrics, health)
4. Runs shutdown logic (flush pending publishes, close connections)

The `lifespan` context manager is FastAPI's way of handling startup/shutdown.
It replaces the older @app.on_event("startup") pattern.

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis import Redis

from api.routers import health, jobs, metrics
from channel.redis_streams import RedisStreamChannel
from config.settings import settings
from models.base import Base, SessionLocal, engine
from service.job_service import JobService
from service.metrics import RedisJobMetrics
from service.statistics import JobStatisticsReporter
from store.job_store import JobStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on startup (before yield) and shutdown (after yield).

    Startup:
    - Creates all DB tables if they don't exist (safe to run multiple times)
    - Connects to Redis and makes sure the partition streams and group exist
    - Builds the JobService / reporter the endpoints depend on

    Shutdown:
    - Waits for in-flight publishes, closes Redis
    - Disposes the DB engine (closes connection pool)
    """
    # ── Startup ─────────────────────────────────────────────────
    logger.info("Creating database tables...")
    Base.metadata.create_all(engine)

    redis_client = Redis.from_url(settings.redis_url)
    channel = RedisStreamChannel(redis_client)
    channel.ensure_topology()

    job_metrics = RedisJobMetrics(redis_client)
    store = JobStore(SessionLocal)

    app.state.store = store
    app.state.channel = channel
    app.state.metrics = job_metrics
    app.state.job_service = JobService(store, channel, job_metrics)
    app.state.reporter = JobStatisticsReporter(store, job_metrics)
    logger.info(
        f"API ready — publishing to {settings.CHANNEL_TOPIC} "
        f"({settings.CHANNEL_PARTITIONS} partitions)"
    )

    yield  # app is running and serving requests between startup and shutdown

    # ── Shutdown ────────────────────────────────────────────────
    channel.close()
    redis_client.close()
    engine.dispose()
    logger.info("API shut down")


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="Job Queue",
        description="A distributed job queue with guarded state transitions and at-least-once delivery over Redis Streams",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Register routers: each one adds its endpoints to the app
    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(metrics.router)

    return app


# This is what uvicorn imports: `uvicorn api.main:app`
app = create_app()
