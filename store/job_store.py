"""
Job record store — the only code that talks to the jobs tables.

The important method is conditional_transition(). Every status change in the
system goes through it, and it is a single statement:

    UPDATE jobs SET status = :new, ...
    WHERE id = :id AND status IN (:expected...) [AND extra guards]

The guard is evaluated by the database as part of the write, so two consumers
racing for the same job cannot both win: one UPDATE matches one row, the other
matches zero. Zero rows is not an error, it means "somebody else already moved
this job" and callers treat it as a no-op.

Each method opens its own short-lived session, so the store can be shared by
API threads, consumer threads and the reconciler without locks.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.orm import Session, sessionmaker

from models.enums import JobStatus, SortDirection, SortField
from models.job import Job, utcnow
from models.job_result import JobResult

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    SortField.CREATED_AT: Job.created_at,
    SortField.UPDATED_AT: Job.updated_at,
    SortField.PRIORITY: Job.priority,
}


class JobStore:

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ── Create / read ───────────────────────────────────────────

    def create(self, job: Job) -> Job:
        """Insert a new job row and return it with id and timestamps populated."""
        session: Session = self._session_factory()
        try:
            session.add(job)
            session.commit()
            session.refresh(job)
            return job
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find_by_job_id(self, job_id: str) -> Optional[Job]:
        with self._session_factory() as session:
            return session.execute(
                select(Job).where(Job.job_id == job_id)
            ).scalar_one_or_none()

    def find_by_pk(self, job_pk: int) -> Optional[Job]:
        with self._session_factory() as session:
            return session.get(Job, job_pk)

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[str] = None,
        sort_by: SortField = SortField.CREATED_AT,
        sort_dir: SortDirection = SortDirection.DESC,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Job], int]:
        """
        Return one page of jobs plus the total number of matching rows.

        Sorting by priority breaks ties by creation time (oldest first), which
        is the order a human scanning the queue expects.
        """
        conditions = []
        if status is not None:
            conditions.append(Job.status == JobStatus(status).value)
        if job_type:
            conditions.append(Job.job_type == job_type)

        column = _SORT_COLUMNS[SortField(sort_by)]
        order = column.asc() if SortDirection(sort_dir) == SortDirection.ASC else column.desc()

        with self._session_factory() as session:
            total = session.execute(
                select(func.count(Job.id)).where(*conditions)
            ).scalar() or 0
            jobs = session.execute(
                select(Job)
                .where(*conditions)
                .order_by(order, Job.created_at.asc(), Job.id.asc())
                .offset(offset)
                .limit(limit)
            ).scalars().all()
        return list(jobs), total

    # ── Transitions ─────────────────────────────────────────────

    def conditional_transition(
        self,
        job_pk: int,
        expected: JobStatus | Iterable[JobStatus],
        new_status: JobStatus,
        extra_fields: Optional[dict[str, Any]] = None,
        conditions: Sequence[Any] = (),
    ) -> int:
        """
        Move a job to new_status only if it is currently in one of `expected`.

        Args:
            job_pk: internal id of the job
            expected: the state (or states) the job must be in right now
            new_status: the state to move to
            extra_fields: other columns to set in the same UPDATE; values may
                          be SQL expressions such as Job.retry_count + 1
            conditions: extra WHERE clauses that must also hold

        Returns:
            number of rows updated: 1 if the transition was applied, 0 if rejected
        """
        if isinstance(expected, JobStatus):
            expected = (expected,)
        expected_values = [JobStatus(s).value for s in expected]

        values = {"status": new_status.value, "updated_at": utcnow()}
        values.update(extra_fields or {})

        stmt = (
            update(Job)
            .where(Job.id == job_pk, Job.status.in_(expected_values), *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        session: Session = self._session_factory()
        try:
            result = session.execute(stmt)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        if result.rowcount == 0:
            logger.debug(
                f"Transition {'/'.join(expected_values)} → {new_status.value} "
                f"rejected for job pk={job_pk}"
            )
        return result.rowcount

    # ── Queries used by the reconciler and reporter ─────────────

    def count_by_state(self, status: JobStatus) -> int:
        with self._session_factory() as session:
            return session.execute(
                select(func.count(Job.id)).where(Job.status == JobStatus(status).value)
            ).scalar() or 0

    def count_by_status(self) -> dict[JobStatus, int]:
        """Counts for every state in one grouped query. States with no jobs report 0."""
        with self._session_factory() as session:
            rows = session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            ).all()
        counts = {status: 0 for status in JobStatus}
        for status, count in rows:
            counts[JobStatus(status)] = count
        return counts

    def find_stuck(self, cutoff: datetime, limit: int = 100) -> list[Job]:
        """PROCESSING jobs whose started_at is older than cutoff, oldest first."""
        with self._session_factory() as session:
            jobs = session.execute(
                select(Job)
                .where(
                    Job.status == JobStatus.PROCESSING.value,
                    Job.started_at < cutoff,
                )
                .order_by(Job.started_at.asc())
                .limit(limit)
            ).scalars().all()
        return list(jobs)

    # ── Execution results ───────────────────────────────────────

    def add_result(
        self,
        job_pk: int,
        succeeded: bool,
        result: Optional[dict],
        execution_time_ms: Optional[int],
    ) -> JobResult:
        session: Session = self._session_factory()
        try:
            row = JobResult(
                job_pk=job_pk,
                succeeded=succeeded,
                result=result,
                execution_time_ms=execution_time_ms,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return row
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def results_for(self, job_pk: int) -> list[JobResult]:
        with self._session_factory() as session:
            rows = session.execute(
                select(JobResult).where(JobResult.job_pk == job_pk).order_by(JobResult.id)
            ).scalars().all()
        return list(rows)

    def ping(self) -> None:
        with self._session_factory() as session:
            session.execute(text("SELECT 1"))
