"""Read-through listings of a site's Jira projects and assignable users."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jirasync.integrations.jira.client import JiraClient
from jirasync.integrations.jira.credentials import resolve_site_credentials
from jirasync.integrations.jira.state import get_project
from jirasync.schemas.sync import JiraProjectOptionOut, JiraUserOptionOut

logger = logging.getLogger(__name__)


def list_site_projects(db: Session, site_id: str) -> list[JiraProjectOptionOut]:
    client = JiraClient.from_credentials(resolve_site_credentials(db, site_id))
    options = client.list_projects()
    logger.debug("Listed %s Jira projects for site %s", len(options), site_id)
    return [JiraProjectOptionOut.model_validate(option) for option in options]


def list_assignable_users(db: Session, project_id: str) -> list[JiraUserOptionOut]:
    """Users Jira allows as assignees, flagged when they are already tracked."""
    project = get_project(db, project_id)
    tracked = {user.jira_account_id for user in project.tracked_users if user.is_tracked}
    client = JiraClient.from_credentials(resolve_site_credentials(db, project.site_id))
    return [
        JiraUserOptionOut(
            account_id=option.account_id,
            display_name=option.display_name,
            email=option.email,
            avatar_url=option.avatar_url,
            tracked=option.account_id in tracked,
        )
        for option in client.list_assignable_users(project.key)
    ]
