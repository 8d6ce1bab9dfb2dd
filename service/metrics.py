"""
Job metrics.

One metrics object is created when a process starts (API lifespan or worker
main) and passed to every component that updates or reads it.

- JobMetrics keeps the counters in memory, behind a single lock because
  increments come from many consumer threads at once. Used by tests and
  single-process tools.
- RedisJobMetrics keeps them in Redis. The API and the workers both use it,
  so the API's reporter sees the completions and retries that happen in the
  worker processes.

Counters are advisory. Nothing in the lifecycle reads them to make a
decision, they only feed the statistics reporter and /metrics/job-queue.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional

from redis import Redis

from config.settings import settings


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


@dataclass(frozen=True)
class MetricsSnapshot:
    jobs_created: int
    jobs_completed: int
    jobs_failed: int
    jobs_retried: int
    queue_size: int
    processed_by_type: dict[str, int] = field(default_factory=dict)
    processing_count: int = 0
    processing_total_seconds: float = 0.0
    processing_max_seconds: float = 0.0

    @property
    def processing_avg_seconds(self) -> Optional[float]:
        if not self.processing_count:
            return None
        return self.processing_total_seconds / self.processing_count


class JobMetrics:

    def __init__(self):
        self._lock = threading.Lock()
        self._created = 0
        self._completed = 0
        self._failed = 0
        self._retried = 0
        self._queue_size = 0
        self._processed_by_type: dict[str, int] = defaultdict(int)
        self._duration_count = 0
        self._duration_total = 0.0
        self._duration_max = 0.0

    # ── Updates ─────────────────────────────────────────────────

    def increment_jobs_created(self) -> None:
        with self._lock:
            self._created += 1

    def increment_jobs_completed(self) -> None:
        with self._lock:
            self._completed += 1

    def increment_jobs_failed(self) -> None:
        with self._lock:
            self._failed += 1

    def increment_jobs_retried(self) -> None:
        with self._lock:
            self._retried += 1

    def increment_job_type_processed(self, job_type: str) -> None:
        with self._lock:
            self._processed_by_type[job_type] += 1

    def record_processing_duration(self, seconds: float) -> None:
        with self._lock:
            self._duration_count += 1
            self._duration_total += seconds
            self._duration_max = max(self._duration_max, seconds)

    def update_queue_size(self, size: int) -> None:
        with self._lock:
            self._queue_size = size

    # ── Reads ───────────────────────────────────────────────────

    @property
    def jobs_created(self) -> int:
        return self._created

    @property
    def jobs_completed(self) -> int:
        return self._completed

    @property
    def jobs_failed(self) -> int:
        return self._failed

    @property
    def jobs_retried(self) -> int:
        return self._retried

    @property
    def queue_size(self) -> int:
        return self._queue_size

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                jobs_created=self._created,
                jobs_completed=self._completed,
                jobs_failed=self._failed,
                jobs_retried=self._retried,
                queue_size=self._queue_size,
                processed_by_type=dict(self._processed_by_type),
                processing_count=self._duration_count,
                processing_total_seconds=self._duration_total,
                processing_max_seconds=self._duration_max,
            )


class RedisJobMetrics(JobMetrics):
    """
    JobMetrics kept in Redis so every process adds to the same counters.

    The API process creates and cancels jobs, the worker processes complete,
    fail and retry them. With in-process counters each side would only see
    its own half, so both sides are given one of these over the shared Redis:

        <prefix>:counters   hash   created / completed / failed / retried /
                                   queue_size / duration_count / duration_total
        <prefix>:by_type    hash   job_type → attempts
        <prefix>:max        zset   one member, score = longest attempt (ZADD GT)

    Every update is one Redis command (or one MULTI pipeline), so no local
    lock is needed.
    """

    def __init__(self, redis_client: Redis, prefix: Optional[str] = None):
        super().__init__()
        self._redis = redis_client
        prefix = prefix or settings.METRICS_KEY_PREFIX
        self._counters_key = f"{prefix}:counters"
        self._by_type_key = f"{prefix}:by_type"
        self._max_key = f"{prefix}:max"

    # ── Updates ─────────────────────────────────────────────────

    def increment_jobs_created(self) -> None:
        self._redis.hincrby(self._counters_key, "created", 1)

    def increment_jobs_completed(self) -> None:
        self._redis.hincrby(self._counters_key, "completed", 1)

    def increment_jobs_failed(self) -> None:
        self._redis.hincrby(self._counters_key, "failed", 1)

    def increment_jobs_retried(self) -> None:
        self._redis.hincrby(self._counters_key, "retried", 1)

    def increment_job_type_processed(self, job_type: str) -> None:
        self._redis.hincrby(self._by_type_key, job_type, 1)

    def record_processing_duration(self, seconds: float) -> None:
        pipe = self._redis.pipeline()
        pipe.hincrby(self._counters_key, "duration_count", 1)
        pipe.hincrbyfloat(self._counters_key, "duration_total", seconds)
        pipe.zadd(self._max_key, {"max": seconds}, gt=True)
        pipe.execute()

    def update_queue_size(self, size: int) -> None:
        self._redis.hset(self._counters_key, "queue_size", size)

    # ── Reads ───────────────────────────────────────────────────

    def _counter(self, name: str) -> int:
        return int(self._redis.hget(self._counters_key, name) or 0)

    @property
    def jobs_created(self) -> int:
        return self._counter("created")

    @property
    def jobs_completed(self) -> int:
        return self._counter("completed")

    @property
    def jobs_failed(self) -> int:
        return self._counter("failed")

    @property
    def jobs_retried(self) -> int:
        return self._counter("retried")

    @property
    def queue_size(self) -> int:
        return self._counter("queue_size")

    def snapshot(self) -> MetricsSnapshot:
        pipe = self._redis.pipeline()
        pipe.hgetall(self._counters_key)
        pipe.hgetall(self._by_type_key)
        pipe.zscore(self._max_key, "max")
        raw_counters, raw_by_type, longest = pipe.execute()

        counters = {_text(k): v for k, v in raw_counters.items()}
        return MetricsSnapshot(
            jobs_created=int(counters.get("created", 0)),
            jobs_completed=int(counters.get("completed", 0)),
            jobs_failed=int(counters.get("failed", 0)),
            jobs_retried=int(counters.get("retried", 0)),
            queue_size=int(counters.get("queue_size", 0)),
            processed_by_type={_text(k): int(v) for k, v in raw_by_type.items()},
            processing_count=int(counters.get("duration_count", 0)),
            processing_total_seconds=float(counters.get("duration_total", 0.0)),
            processing_max_seconds=float(longest or 0.0),
        )
