"""
Tests for JobStore.

The conditional transition is the concurrency control of the whole system,
so most of these check when it applies and when it is rejected.
"""

import threading
import uuid
from datetime import timedelta

from models.enums import JobStatus, SortDirection, SortField
from models.job import Job, utcnow


def _create_job(store, status=JobStatus.PENDING, job_type="test-job", priority=0, **fields):
    """Insert a job directly, bypassing the service."""
    job = Job(
        job_id=str(uuid.uuid4()),
        job_type=job_type,
        status=status.value,
        priority=priority,
        payload={"n": 1},
        max_retries=fields.pop("max_retries", 3),
        **fields,
    )
    return store.create(job)


def test_create_assigns_id_and_defaults(store):
    job = _create_job(store)

    assert job.id is not None
    assert job.status == JobStatus.PENDING.value
    assert job.retry_count == 0
    assert job.created_at is not None
    assert job.started_at is None
    assert job.completed_at is None


def test_find_by_job_id_and_pk(store):
    job = _create_job(store)

    assert store.find_by_job_id(job.job_id).id == job.id
    assert store.find_by_pk(job.id).job_id == job.job_id
    assert store.find_by_job_id("does-not-exist") is None
    assert store.find_by_pk(999_999) is None


def test_transition_applies_on_expected_status(store):
    job = _create_job(store)

    updated = store.conditional_transition(
        job.id, JobStatus.PENDING, JobStatus.PROCESSING, {"worker_id": "worker-abc"}
    )

    assert updated == 1
    reloaded = store.find_by_pk(job.id)
    assert reloaded.status == JobStatus.PROCESSING.value
    assert reloaded.worker_id == "worker-abc"


def test_transition_rejected_on_other_status(store):
    """A job already COMPLETED cannot be started again."""
    job = _create_job(store, status=JobStatus.COMPLETED)

    updated = store.conditional_transition(job.id, JobStatus.PENDING, JobStatus.PROCESSING)

    assert updated == 0
    assert store.find_by_pk(job.id).status == JobStatus.COMPLETED.value


def test_transition_accepts_several_expected_states(store):
    pending = _create_job(store)
    processing = _create_job(store, status=JobStatus.PROCESSING)
    completed = _create_job(store, status=JobStatus.COMPLETED)
    expected = (JobStatus.PENDING, JobStatus.PROCESSING)

    assert store.conditional_transition(pending.id, expected, JobStatus.FAILED) == 1
    assert store.conditional_transition(processing.id, expected, JobStatus.FAILED) == 1
    assert store.conditional_transition(completed.id, expected, JobStatus.FAILED) == 0


def test_transition_extra_conditions(store):
    """Extra WHERE clauses must hold too, e.g. the retry bound."""
    job = _create_job(store, status=JobStatus.PROCESSING, max_retries=1, retry_count=1)

    updated = store.conditional_transition(
        job.id,
        JobStatus.PROCESSING,
        JobStatus.PENDING,
        {"retry_count": Job.retry_count + 1},
        (Job.retry_count < Job.max_retries,),
    )

    assert updated == 0
    reloaded = store.find_by_pk(job.id)
    assert reloaded.status == JobStatus.PROCESSING.value
    assert reloaded.retry_count == 1


def test_transition_sql_expression_in_extra_fields(store):
    job = _create_job(store, status=JobStatus.PROCESSING)

    store.conditional_transition(
        job.id, JobStatus.PROCESSING, JobStatus.PENDING, {"retry_count": Job.retry_count + 1}
    )

    assert store.find_by_pk(job.id).retry_count == 1


def test_concurrent_duplicate_start_has_one_winner(store):
    """Eight threads race PENDING → PROCESSING on the same job: exactly one wins."""
    job = _create_job(store)
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def attempt(n):
        barrier.wait()
        updated = store.conditional_transition(
            job.id, JobStatus.PENDING, JobStatus.PROCESSING, {"worker_id": f"worker-{n}"}
        )
        with lock:
            results.append(updated)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == [0] * 7 + [1]
    assert store.find_by_pk(job.id).status == JobStatus.PROCESSING.value


def test_count_by_state_and_status(store):
    _create_job(store)
    _create_job(store)
    _create_job(store, status=JobStatus.PROCESSING)
    _create_job(store, status=JobStatus.FAILED)

    assert store.count_by_state(JobStatus.PENDING) == 2
    assert store.count_by_state(JobStatus.COMPLETED) == 0

    counts = store.count_by_status()
    assert counts == {
        JobStatus.PENDING: 2,
        JobStatus.PROCESSING: 1,
        JobStatus.COMPLETED: 0,
        JobStatus.FAILED: 1,
    }


def test_find_stuck_only_returns_old_processing_jobs(store):
    now = utcnow()
    stale = _create_job(store, status=JobStatus.PROCESSING, started_at=now - timedelta(hours=1))
    _create_job(store, status=JobStatus.PROCESSING, started_at=now)
    _create_job(store, status=JobStatus.PENDING)
    _create_job(store, status=JobStatus.COMPLETED, started_at=now - timedelta(hours=2))

    stuck = store.find_stuck(now - timedelta(minutes=30))

    assert [j.id for j in stuck] == [stale.id]


def test_find_stuck_respects_limit(store):
    old = utcnow() - timedelta(hours=1)
    for _ in range(3):
        _create_job(store, status=JobStatus.PROCESSING, started_at=old)

    assert len(store.find_stuck(utcnow(), limit=2)) == 2


def test_list_jobs_filters_and_paginates(store):
    for _ in range(3):
        _create_job(store, job_type="email-job")
    _create_job(store, job_type="test-job")
    _create_job(store, job_type="email-job", status=JobStatus.FAILED)

    jobs, total = store.list_jobs(status=JobStatus.PENDING, job_type="email-job", limit=2)
    assert total == 3
    assert len(jobs) == 2

    jobs, total = store.list_jobs(status=JobStatus.PENDING, job_type="email-job", offset=2, limit=2)
    assert total == 3
    assert len(jobs) == 1


def test_list_jobs_sort_by_priority(store):
    low = _create_job(store, priority=1)
    high = _create_job(store, priority=9)
    mid = _create_job(store, priority=5)

    jobs, _ = store.list_jobs(sort_by=SortField.PRIORITY, sort_dir=SortDirection.DESC)
    assert [j.id for j in jobs] == [high.id, mid.id, low.id]

    jobs, _ = store.list_jobs(sort_by=SortField.PRIORITY, sort_dir=SortDirection.ASC)
    assert [j.id for j in jobs] == [low.id, mid.id, high.id]


def test_results_accumulate_per_job(store):
    job = _create_job(store)
    other = _create_job(store)

    store.add_result(job.id, False, {"error": "first"}, 12)
    store.add_result(job.id, True, {"ok": True}, 30)
    store.add_result(other.id, True, {}, 1)

    results = store.results_for(job.id)
    assert [r.succeeded for r in results] == [False, True]
    assert results[0].result == {"error": "first"}
    assert results[1].execution_time_ms == 30


def test_ping(store):
    store.ping()


def test_can_retry():
    assert Job(retry_count=0, max_retries=1).can_retry() is True
    assert Job(retry_count=1, max_retries=1).can_retry() is False
