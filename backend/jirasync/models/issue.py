"""Issue, comment and worklog models mirrored from Jira."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jirasync.db.base import Base, JSONType


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    jira_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("jira_projects.id", ondelete="CASCADE"), index=True)
    summary: Mapped[str | None] = mapped_column(String(512), nullable=True)
    status: Mapped[str] = mapped_column(String(64), default="Unknown", nullable=False)
    status_category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(64), nullable=True)
    issue_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    labels: Mapped[list[str]] = mapped_column(JSONType, default=list)
    assignee_id: Mapped[str | None] = mapped_column(
        ForeignKey("jira_users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sprint_id: Mapped[str | None] = mapped_column(ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True)
    jira_created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    jira_updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    # Full vendor payload, kept verbatim next to the normalized columns.
    remote_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    last_synced_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assignee = relationship("JiraUser")
    sprint = relationship("Sprint")
    comments: Mapped[list[Comment]] = relationship(
        "Comment",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="Comment.jira_created_at",
    )
    worklogs: Mapped[list[Worklog]] = relationship(
        "Worklog",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="Worklog.jira_started_at",
    )


class Comment(Base):
    __tablename__ = "issue_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    jira_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    issue_id: Mapped[str] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    author_id: Mapped[str] = mapped_column(ForeignKey("jira_users.id"), index=True)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    jira_created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    jira_updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    issue: Mapped[Issue] = relationship("Issue", back_populates="comments")
    author = relationship("JiraUser")


class Worklog(Base):
    __tablename__ = "issue_worklogs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    jira_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    issue_id: Mapped[str] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    author_id: Mapped[str] = mapped_column(ForeignKey("jira_users.id"), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    jira_started_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    jira_updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    issue: Mapped[Issue] = relationship("Issue", back_populates="worklogs")
    author = relationship("JiraUser")
