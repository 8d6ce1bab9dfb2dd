"""
FastAPI dependency injection.

How this works:
- The lifespan in api/main.py builds one JobService, one stats reporter, etc.
  and stores them on app.state
- An endpoint declares `service: JobService = Depends(get_job_service)`
- FastAPI calls get_job_service() before the endpoint runs and passes the result in

Tests replace these functions through app.dependency_overrides, so endpoints
can run against SQLite and fakeredis without the lifespan ever starting.
"""

from fastapi import Request

from channel.base import DeliveryChannel
from service.job_service import JobService
from service.statistics import JobStatisticsReporter
from store.job_store import JobStore


def get_job_service(request: Request) -> JobService:
    return request.app.state.job_service


def get_reporter(request: Request) -> JobStatisticsReporter:
    return request.app.state.reporter


def get_store(request: Request) -> JobStore:
    return request.app.state.store


def get_channel(request: Request) -> DeliveryChannel:
    return request.app.state.channel
