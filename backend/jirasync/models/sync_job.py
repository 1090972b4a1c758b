"""Per-project sync schedule and run status."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jirasync.db.base import Base, JSONType
from jirasync.models.enums import SyncJobStatus, enum_column_values


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SyncJob(Base):
    __tablename__ = "sync_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(
        ForeignKey("jira_projects.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    workflow_id: Mapped[str] = mapped_column(String(128), nullable=False)
    schedule_id: Mapped[str] = mapped_column(String(128), nullable=False)
    cron_schedule: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[SyncJobStatus] = mapped_column(
        Enum(SyncJobStatus, name="sync_job_status", values_callable=enum_column_values),
        default=SyncJobStatus.pending,
        nullable=False,
    )
    last_run_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    backoff_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    backoff_original_cron: Mapped[str | None] = mapped_column(String(64), nullable=True)
    backoff_last_notified_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # In-flight run: {"context": {...}, "cursor": {...}, "pages": n, "issues": n}. Cleared at finalize/fail.
    checkpoint: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("JiraProject", back_populates="sync_job")
