"""Jira projects registered for sync and the accounts tracked on them."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jirasync.db.base import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class JiraProject(Base):
    __tablename__ = "jira_projects"
    __table_args__ = (UniqueConstraint("site_id", "key", name="uq_jira_projects_site_key"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    site_id: Mapped[str] = mapped_column(ForeignKey("jira_sites.id", ondelete="CASCADE"), index=True)
    jira_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    key: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    site = relationship("JiraSite", back_populates="projects")
    tracked_users: Mapped[list[TrackedUser]] = relationship(
        "TrackedUser",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="TrackedUser.display_name",
    )
    sync_job = relationship("SyncJob", back_populates="project", uselist=False)
    sync_states = relationship("SyncState", back_populates="project")


class TrackedUser(Base):
    __tablename__ = "jira_tracked_users"
    __table_args__ = (
        UniqueConstraint("project_id", "jira_account_id", name="uq_tracked_users_project_account"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id: Mapped[str] = mapped_column(ForeignKey("jira_projects.id", ondelete="CASCADE"), index=True)
    jira_account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_tracked: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    project: Mapped[JiraProject] = relationship("JiraProject", back_populates="tracked_users")
