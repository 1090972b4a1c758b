"""Create-or-update of Jira entities keyed by their stable external ids."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from jirasync.integrations.jira.mapper import (
    extract_sprint,
    map_comment,
    map_issue,
    map_sprint,
    map_user,
    map_worklog,
    nested_comments,
    nested_worklogs,
)
from jirasync.models.issue import Comment, Issue, Worklog
from jirasync.models.jira_user import JiraUser
from jirasync.models.sprint import Sprint

logger = logging.getLogger(__name__)


@dataclass
class UpsertCounts:
    issues_created: int = 0
    issues_updated: int = 0
    comments: int = 0
    worklogs: int = 0


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def upsert_jira_user(db: Session, user: Any, fallback_key: str) -> JiraUser:
    mapped = map_user(user, fallback_key)
    record = db.query(JiraUser).filter(JiraUser.account_id == mapped.account_id).first()
    if record is None:
        record = JiraUser(
            account_id=mapped.account_id,
            display_name=mapped.display_name,
            email=mapped.email,
            avatar_url=mapped.avatar_url,
        )
        db.add(record)
        db.flush()
        return record

    record.display_name = mapped.display_name
    record.email = mapped.email
    record.avatar_url = mapped.avatar_url
    record.updated_at = _utcnow()
    db.add(record)
    db.flush()
    return record


def upsert_sprint(db: Session, sprint_payload: dict[str, Any] | None) -> Sprint | None:
    mapped = map_sprint(sprint_payload)
    if mapped is None:
        return None
    record = db.query(Sprint).filter(Sprint.jira_id == mapped.jira_id).first()
    if record is None:
        record = Sprint(jira_id=mapped.jira_id)
    record.name = mapped.name
    record.state = mapped.state
    record.start_date = mapped.start_date
    record.end_date = mapped.end_date
    db.add(record)
    db.flush()
    return record


def _upsert_issue_row(
    db: Session,
    project_id: str,
    detail: dict[str, Any],
    *,
    assignee: JiraUser | None,
    sprint: Sprint | None,
    now: dt.datetime,
) -> tuple[Issue, bool]:
    mapped = map_issue(detail)
    issue = db.query(Issue).filter(Issue.jira_id == mapped.jira_id).first()
    created = issue is None
    if issue is None:
        # Identity fields are only ever written here.
        issue = Issue(
            jira_id=mapped.jira_id,
            project_id=project_id,
            jira_created_at=mapped.jira_created_at or now,
        )

    issue.key = mapped.key
    issue.summary = mapped.summary
    issue.status = mapped.status
    issue.status_category = mapped.status_category
    issue.priority = mapped.priority
    issue.issue_type = mapped.issue_type
    issue.labels = mapped.labels
    issue.assignee_id = assignee.id if assignee else None
    issue.sprint_id = sprint.id if sprint else None
    issue.jira_updated_at = mapped.jira_updated_at or now
    issue.remote_data = detail
    issue.last_synced_at = now
    db.add(issue)
    db.flush()
    return issue, created


def _upsert_comment(db: Session, issue: Issue, payload: dict[str, Any], *, now: dt.datetime) -> Comment:
    mapped = map_comment(payload)
    author = upsert_jira_user(db, payload.get("author"), mapped.jira_id)
    comment = db.query(Comment).filter(Comment.jira_id == mapped.jira_id).first()
    if comment is None:
        comment = Comment(jira_id=mapped.jira_id, jira_created_at=mapped.jira_created_at or now)
    comment.issue_id = issue.id
    comment.author_id = author.id
    comment.body = mapped.body
    comment.jira_updated_at = mapped.jira_updated_at
    db.add(comment)
    db.flush()
    return comment


def _upsert_worklog(db: Session, issue: Issue, payload: dict[str, Any], *, now: dt.datetime) -> Worklog:
    mapped = map_worklog(payload)
    author = upsert_jira_user(db, payload.get("author"), mapped.jira_id)
    worklog = db.query(Worklog).filter(Worklog.jira_id == mapped.jira_id).first()
    if worklog is None:
        worklog = Worklog(jira_id=mapped.jira_id)
    worklog.issue_id = issue.id
    worklog.author_id = author.id
    worklog.description = mapped.description
    worklog.time_spent_seconds = mapped.time_spent_seconds
    worklog.jira_started_at = mapped.jira_started_at or now
    worklog.jira_updated_at = mapped.jira_updated_at or now
    db.add(worklog)
    db.flush()
    return worklog


def upsert_issue_from_detail(db: Session, project_id: str, detail: dict[str, Any]) -> tuple[Issue, UpsertCounts]:
    """Write one issue-detail payload and everything nested in it.

    Users and the sprint go first so the foreign keys exist; comments and
    worklogs follow with their own authors. Applying the same payload twice
    leaves the same rows behind. The caller owns the transaction.
    """
    now = _utcnow()
    counts = UpsertCounts()
    fields = detail.get("fields") or {}

    assignee_payload = fields.get("assignee")
    assignee = upsert_jira_user(db, assignee_payload, str(detail.get("id") or "")) if assignee_payload else None
    sprint = upsert_sprint(db, extract_sprint(fields))

    issue, created = _upsert_issue_row(db, project_id, detail, assignee=assignee, sprint=sprint, now=now)
    if created:
        counts.issues_created += 1
    else:
        counts.issues_updated += 1

    for payload in nested_comments(detail):
        try:
            _upsert_comment(db, issue, payload, now=now)
        except ValueError:
            logger.warning("Skipping comment without id on issue %s", issue.key)
            continue
        counts.comments += 1

    for payload in nested_worklogs(detail):
        try:
            _upsert_worklog(db, issue, payload, now=now)
        except ValueError:
            logger.warning("Skipping worklog without id on issue %s", issue.key)
            continue
        counts.worklogs += 1

    return issue, counts
