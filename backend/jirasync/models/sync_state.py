"""Per-entity sync status and low-water-mark cursor."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jirasync.db.base import Base
from jirasync.models.enums import SyncEntity, SyncStateStatus, enum_column_values


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SyncState(Base):
    __tablename__ = "sync_states"
    __table_args__ = (UniqueConstraint("project_id", "entity", name="uq_sync_states_project_entity"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(ForeignKey("jira_projects.id", ondelete="CASCADE"), index=True)
    entity: Mapped[SyncEntity] = mapped_column(
        Enum(SyncEntity, name="sync_entity", values_callable=enum_column_values),
        nullable=False,
    )
    status: Mapped[SyncStateStatus] = mapped_column(
        Enum(SyncStateStatus, name="sync_state_status", values_callable=enum_column_values),
        default=SyncStateStatus.idle,
        nullable=False,
    )
    # Every remote update older than this is known to be stored locally.
    last_sync_time: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("JiraProject", back_populates="sync_states")
