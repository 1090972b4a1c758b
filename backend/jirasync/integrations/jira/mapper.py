"""Mapping utilities from Jira issue-detail payloads to normalized rows."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any

from jirasync.integrations.jira.client import avatar_url_from

logger = logging.getLogger(__name__)

ANON_ACCOUNT_PREFIX = "anon-"
# Jira Cloud's default custom field for the Sprint field.
SPRINT_CUSTOM_FIELD = "customfield_10020"


def parse_datetime(value: Any) -> dt.datetime | None:
    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)
    if not value or not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    candidates = [
        normalized.replace("Z", "+00:00"),
        normalized,
    ]
    for candidate in candidates:
        try:
            parsed = dt.datetime.fromisoformat(candidate)
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=dt.timezone.utc)
            return parsed.astimezone(dt.timezone.utc)
        except ValueError:
            continue
    formats = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")
    for fmt in formats:
        try:
            parsed = dt.datetime.strptime(normalized, fmt)
            return parsed.astimezone(dt.timezone.utc)
        except ValueError:
            continue
    logger.warning("Could not parse Jira datetime: %s", value)
    return None


def as_utc(value: dt.datetime | None) -> dt.datetime | None:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def _text_from_adf(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return " ".join(part for part in (_text_from_adf(item) for item in node) if part)
    if not isinstance(node, dict):
        return str(node)

    parts: list[str] = []
    text = node.get("text")
    if isinstance(text, str):
        parts.append(text)
    content = node.get("content")
    if isinstance(content, list):
        for child in content:
            child_text = _text_from_adf(child)
            if child_text:
                parts.append(child_text)
    return " ".join(part.strip() for part in parts if part and part.strip())


def normalize_text(raw_body: Any) -> str:
    if isinstance(raw_body, str):
        text = raw_body
    else:
        text = _text_from_adf(raw_body)
    return " ".join(text.split()).strip()


@dataclass(frozen=True)
class NormalizedUser:
    account_id: str
    display_name: str
    email: str | None
    avatar_url: str | None


@dataclass(frozen=True)
class NormalizedSprint:
    jira_id: str
    name: str
    state: str
    start_date: dt.datetime | None
    end_date: dt.datetime | None


@dataclass(frozen=True)
class NormalizedIssue:
    jira_id: str
    key: str
    summary: str | None
    status: str
    status_category: str | None
    priority: str | None
    issue_type: str | None
    labels: list[str]
    jira_created_at: dt.datetime | None
    jira_updated_at: dt.datetime | None


@dataclass(frozen=True)
class NormalizedComment:
    jira_id: str
    body: str
    jira_created_at: dt.datetime | None
    jira_updated_at: dt.datetime | None


@dataclass(frozen=True)
class NormalizedWorklog:
    jira_id: str
    description: str | None
    time_spent_seconds: int
    jira_started_at: dt.datetime | None
    jira_updated_at: dt.datetime | None


def map_user(user: Any, fallback_key: str) -> NormalizedUser:
    """Normalize an account payload; a missing account becomes ``anon-<fallback_key>``."""
    payload = user if isinstance(user, dict) else {}
    account_id = str(payload.get("accountId") or "").strip() or f"{ANON_ACCOUNT_PREFIX}{fallback_key}"
    display_name = str(payload.get("displayName") or "").strip() or account_id
    return NormalizedUser(
        account_id=account_id[:128],
        display_name=display_name[:255],
        email=payload.get("emailAddress") or None,
        avatar_url=avatar_url_from(payload),
    )


def extract_sprint(fields: dict[str, Any]) -> dict[str, Any] | None:
    """Pick the sprint an issue belongs to.

    Prefers an explicit ``sprint`` field, then the active entry of the Sprint
    custom field (falling back to its most recent entry), then the first
    closed sprint.
    """
    sprint = fields.get("sprint")
    if isinstance(sprint, dict):
        return sprint

    custom = [item for item in list(fields.get(SPRINT_CUSTOM_FIELD) or []) if isinstance(item, dict)]
    if custom:
        active = [item for item in custom if str(item.get("state") or "").lower() == "active"]
        return active[0] if active else custom[-1]

    closed = [item for item in list(fields.get("closedSprints") or []) if isinstance(item, dict)]
    return closed[0] if closed else None


def map_sprint(sprint: dict[str, Any] | None) -> NormalizedSprint | None:
    if not sprint or sprint.get("id") in (None, "") or not sprint.get("name"):
        return None
    return NormalizedSprint(
        jira_id=str(sprint["id"]),
        name=str(sprint["name"])[:255],
        state=str(sprint.get("state") or "UNKNOWN")[:32],
        start_date=parse_datetime(sprint.get("startDate")),
        end_date=parse_datetime(sprint.get("endDate")),
    )


def map_issue(detail: dict[str, Any]) -> NormalizedIssue:
    fields = detail.get("fields") or {}
    issue_id = str(detail.get("id") or "").strip()
    issue_key = str(detail.get("key") or "").strip()
    if not issue_id:
        raise ValueError("missing_issue_id")

    status_obj = fields.get("status") or {}
    labels = [str(label).strip() for label in list(fields.get("labels") or []) if str(label).strip()]
    summary = fields.get("summary")
    return NormalizedIssue(
        jira_id=issue_id,
        key=issue_key or issue_id,
        summary=str(summary)[:512] if summary else None,
        status=str(status_obj.get("name") or "Unknown")[:64],
        status_category=(status_obj.get("statusCategory") or {}).get("key") or None,
        priority=(fields.get("priority") or {}).get("name") or None,
        issue_type=(fields.get("issuetype") or {}).get("name") or None,
        labels=labels[:50],
        jira_created_at=parse_datetime(fields.get("created")),
        jira_updated_at=parse_datetime(fields.get("updated")),
    )


def map_comment(comment: dict[str, Any]) -> NormalizedComment:
    comment_id = str(comment.get("id") or "").strip()
    if not comment_id:
        raise ValueError("missing_comment_id")
    return NormalizedComment(
        jira_id=comment_id,
        body=normalize_text(comment.get("body")),
        jira_created_at=parse_datetime(comment.get("created")),
        jira_updated_at=parse_datetime(comment.get("updated")),
    )


def map_worklog(worklog: dict[str, Any]) -> NormalizedWorklog:
    worklog_id = str(worklog.get("id") or "").strip()
    if not worklog_id:
        raise ValueError("missing_worklog_id")
    description = normalize_text(worklog.get("comment"))
    try:
        seconds = int(worklog.get("timeSpentSeconds") or 0)
    except (TypeError, ValueError):
        seconds = 0
    return NormalizedWorklog(
        jira_id=worklog_id,
        description=description or None,
        time_spent_seconds=max(0, seconds),
        jira_started_at=parse_datetime(worklog.get("started")),
        jira_updated_at=parse_datetime(worklog.get("updated")),
    )


def nested_comments(detail: dict[str, Any]) -> list[dict[str, Any]]:
    comment_field = (detail.get("fields") or {}).get("comment") or {}
    return [item for item in list(comment_field.get("comments") or []) if isinstance(item, dict)]


def nested_worklogs(detail: dict[str, Any]) -> list[dict[str, Any]]:
    worklog_field = (detail.get("fields") or {}).get("worklog") or {}
    return [item for item in list(worklog_field.get("worklogs") or []) if isinstance(item, dict)]
