"""Append-only audit trail of sync activity."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jirasync.db.base import Base, JSONType
from jirasync.models.enums import SyncLogLevel, enum_column_values


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SyncLog(Base):
    __tablename__ = "sync_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(ForeignKey("jira_projects.id", ondelete="CASCADE"), index=True)
    level: Mapped[SyncLogLevel] = mapped_column(
        Enum(SyncLogLevel, name="sync_log_level", values_callable=enum_column_values),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
