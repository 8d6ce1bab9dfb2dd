"""Tests for JobMetrics, RedisJobMetrics and the statistics reporter."""

import threading

import pytest

from models.enums import JobStatus
from service.job_service import JobService
from service.metrics import JobMetrics, RedisJobMetrics
from service.statistics import JobStatisticsReporter
from worker.consumer import JobConsumer


def test_metrics_start_at_zero():
    snapshot = JobMetrics().snapshot()

    assert snapshot.jobs_created == 0
    assert snapshot.jobs_completed == 0
    assert snapshot.jobs_failed == 0
    assert snapshot.jobs_retried == 0
    assert snapshot.queue_size == 0
    assert snapshot.processed_by_type == {}
    assert snapshot.processing_avg_seconds is None


def test_metrics_counters_under_concurrency():
    metrics = JobMetrics()

    def bump():
        for _ in range(1000):
            metrics.increment_jobs_created()
            metrics.increment_job_type_processed("test-job")

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert metrics.jobs_created == 4000
    assert metrics.snapshot().processed_by_type == {"test-job": 4000}


def test_metrics_processing_durations():
    metrics = JobMetrics()
    metrics.record_processing_duration(0.5)
    metrics.record_processing_duration(1.5)

    snapshot = metrics.snapshot()
    assert snapshot.processing_count == 2
    assert snapshot.processing_avg_seconds == pytest.approx(1.0)
    assert snapshot.processing_max_seconds == pytest.approx(1.5)


def test_snapshot_is_a_copy():
    metrics = JobMetrics()
    metrics.increment_job_type_processed("email-job")
    snapshot = metrics.snapshot()

    metrics.increment_job_type_processed("email-job")

    assert snapshot.processed_by_type == {"email-job": 1}


def test_reporter_counts_by_state(service, reporter):
    for _ in range(3):
        service.create_job("test-job", {})
    started = service.create_job("test-job", {})
    service.start_processing(started.id, "worker-1")
    finished = service.create_job("test-job", {})
    service.start_processing(finished.id, "worker-2")
    service.complete_job(finished.id)
    cancelled = service.create_job("test-job", {})
    service.cancel_job(cancelled.job_id)

    stats = reporter.snapshot()

    assert stats.pending == 3
    assert stats.processing == 1
    assert stats.completed == 1
    assert stats.failed == 1
    assert stats.total == 6
    assert stats.queue_size == 4
    assert stats.jobs_created == 6


def test_reporter_updates_queue_gauge(service, reporter, metrics):
    service.create_job("test-job", {})
    service.create_job("test-job", {})
    assert metrics.queue_size == 0

    reporter.snapshot()

    assert metrics.queue_size == 2


def test_success_rate(service, reporter):
    assert reporter.snapshot().success_rate == 0.0

    for _ in range(3):
        job = service.create_job("test-job", {})
        service.start_processing(job.id, "worker-1")
        service.complete_job(job.id)
    job = service.create_job("test-job", {})
    service.cancel_job(job.job_id)

    stats = reporter.snapshot()
    assert stats.jobs_completed == 3
    assert stats.jobs_failed == 1
    assert stats.success_rate == pytest.approx(0.75)


def test_reporter_empty_store(reporter):
    stats = reporter.snapshot()

    assert stats.total == 0
    assert all(
        getattr(stats, s.value.lower()) == 0 for s in JobStatus
    )


def test_redis_metrics_shared_between_instances(fake_redis):
    api_side = RedisJobMetrics(fake_redis, prefix="test:metrics")
    worker_side = RedisJobMetrics(fake_redis, prefix="test:metrics")

    api_side.increment_jobs_created()
    worker_side.increment_jobs_completed()
    worker_side.increment_jobs_retried()
    worker_side.increment_job_type_processed("email-job")
    api_side.increment_jobs_failed()
    api_side.update_queue_size(7)

    assert api_side.jobs_completed == 1
    assert worker_side.jobs_created == 1
    snapshot = api_side.snapshot()
    assert snapshot.jobs_created == 1
    assert snapshot.jobs_completed == 1
    assert snapshot.jobs_failed == 1
    assert snapshot.jobs_retried == 1
    assert snapshot.queue_size == 7
    assert snapshot.processed_by_type == {"email-job": 1}


def test_redis_metrics_start_at_zero(fake_redis):
    snapshot = RedisJobMetrics(fake_redis, prefix="test:metrics").snapshot()

    assert snapshot.jobs_completed == 0
    assert snapshot.processed_by_type == {}
    assert snapshot.processing_avg_seconds is None
    assert snapshot.processing_max_seconds == 0.0


def test_redis_metrics_processing_durations(fake_redis):
    first = RedisJobMetrics(fake_redis, prefix="test:metrics")
    second = RedisJobMetrics(fake_redis, prefix="test:metrics")
    first.record_processing_duration(1.5)
    second.record_processing_duration(0.5)

    snapshot = first.snapshot()
    assert snapshot.processing_count == 2
    assert snapshot.processing_avg_seconds == pytest.approx(1.0)
    assert snapshot.processing_max_seconds == pytest.approx(1.5)


def test_reporter_sees_completions_from_another_process(store, channel, registry, fake_redis):
    api_metrics = RedisJobMetrics(fake_redis, prefix="test:metrics")
    worker_metrics = RedisJobMetrics(fake_redis, prefix="test:metrics")
    api_service = JobService(store, channel, api_metrics)
    worker_consumer = JobConsumer(JobService(store, channel, worker_metrics), registry, worker_metrics)

    api_service.create_job("test-job", {"duration": 0})
    worker_consumer.handle(channel.last_delivery())
    cancelled = api_service.create_job("test-job", {})
    api_service.cancel_job(cancelled.job_id)

    stats = JobStatisticsReporter(store, api_metrics).snapshot()

    assert stats.jobs_created == 2
    assert stats.jobs_completed == 1
    assert stats.jobs_failed == 1
    assert stats.processed_by_type == {"test-job": 1}
    assert stats.success_rate == pytest.approx(0.5)
    assert stats.average_processing_seconds is not None
