from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

import jirasync.models  # noqa: E402,F401
from jirasync.core.crypto import encrypt_secret  # noqa: E402
from jirasync.db.base import Base  # noqa: E402
from jirasync.models.project import JiraProject, TrackedUser  # noqa: E402
from jirasync.models.site import JiraSite  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def project(db_session):
    site = JiraSite(
        alias="acme",
        base_url="https://acme.atlassian.net",
        admin_email="admin@acme.test",
        token_cipher=encrypt_secret("api-token"),
    )
    db_session.add(site)
    db_session.flush()
    record = JiraProject(site_id=site.id, jira_id="10000", key="DEMO", name="Demo project")
    record.tracked_users = [
        TrackedUser(jira_account_id="acc-1", display_name="Alice", is_tracked=True),
        TrackedUser(jira_account_id="acc-2", display_name="Bob", is_tracked=True),
        TrackedUser(jira_account_id="acc-3", display_name="Carol", is_tracked=False),
    ]
    db_session.add(record)
    db_session.commit()
    return record


def utc(*args: int) -> dt.datetime:
    return dt.datetime(*args, tzinfo=dt.timezone.utc)


def as_aware(value: dt.datetime | None) -> dt.datetime | None:
    """SQLite drops tzinfo on the way back; stored values are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=dt.timezone.utc)


def make_issue_detail(
    issue_id: str = "10001",
    key: str = "DEMO-1",
    *,
    updated: str = "2024-01-02T10:00:00.000+0000",
    assignee: dict | None = None,
    comments: list[dict] | None = None,
    worklogs: list[dict] | None = None,
    sprint: list[dict] | None = None,
) -> dict:
    fields: dict = {
        "summary": f"Issue {key}",
        "status": {"name": "In Progress", "statusCategory": {"key": "indeterminate"}},
        "priority": {"name": "High"},
        "issuetype": {"name": "Task"},
        "labels": ["backend", " ", "sync"],
        "assignee": assignee,
        "created": "2024-01-01T09:00:00.000+0000",
        "updated": updated,
        "comment": {"comments": comments or [], "total": len(comments or [])},
        "worklog": {"worklogs": worklogs or [], "total": len(worklogs or [])},
    }
    if sprint is not None:
        fields["customfield_10020"] = sprint
    return {"id": issue_id, "key": key, "fields": fields}
