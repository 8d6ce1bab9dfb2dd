"""
JobResult ORM model — one row per execution attempt.

Rows are appended by the consumer after each handler run (success or failure)
and never updated, so a job retried twice and then completed has three rows.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.job import BigIntPK, JSONPayload, utcnow


class JobResult(Base):
    __tablename__ = "job_results"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    job_pk: Mapped[int] = mapped_column(
        "job_id", ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False)
    result: Mapped[dict | None] = mapped_column(JSONPayload, nullable=True)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<JobResult {self.id} job={self.job_pk} ok={self.succeeded} {self.execution_time_ms}ms>"
