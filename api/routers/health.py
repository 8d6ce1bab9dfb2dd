"""
Health check endpoint.

This is the first thing you hit to verify the system is running.
It checks both the job store (Postgres) and the delivery channel (Redis).

Load balancers and container orchestrators use it to decide whether the
service is ready to receive traffic, so an unreachable dependency returns 503
instead of raising.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_channel, get_store
from channel.base import DeliveryChannel
from store.job_store import JobStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(
    store: JobStore = Depends(get_store),
    channel: DeliveryChannel = Depends(get_channel),
):
    """Check that Postgres and Redis are reachable."""
    checks = {"postgres": "ok", "redis": "ok"}

    try:
        store.ping()
    except Exception as e:
        logger.error(f"Health check: database unreachable: {e}")
        checks["postgres"] = "unreachable"

    try:
        channel.ping()
    except Exception as e:
        logger.error(f"Health check: channel unreachable: {e}")
        checks["redis"] = "unreachable"

    if all(value == "ok" for value in checks.values()):
        return {"status": "healthy", **checks}
    return JSONResponse(status_code=503, content={"status": "unhealthy", **checks})
