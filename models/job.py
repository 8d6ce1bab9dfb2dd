"""
Job ORM model — maps to the "jobs" table.

Key design decisions:
- Two identifiers: `id` is an internal integer sequence (index locality, used by
  every transition), `job_id` is the UUID string shown to clients and used as
  the delivery channel key.
- JSON payload: each job type stores different data without schema changes
  (JSONB on PostgreSQL, plain JSON elsewhere).
- status is only ever written through JobStore.conditional_transition, never
  by assigning the attribute on a loaded object.
- retry_count + max_retries: drive the retry/fail decision.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer, String, DateTime, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.enums import JobStatus

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
JSONPayload = JSON().with_variant(JSONB, "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(Base):
    __tablename__ = "jobs"

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    job_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── State ───────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False, index=True
    )
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    worker_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Payload & errors ────────────────────────────────────────
    payload: Mapped[dict] = mapped_column(JSONPayload, default=dict, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Retry tracking ──────────────────────────────────────────
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)

    # ── Lifecycle timestamps ────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    def __repr__(self) -> str:
        return f"<Job {self.job_id} [{self.job_type}] {self.status} retries={self.retry_count}/{self.max_retries}>"
