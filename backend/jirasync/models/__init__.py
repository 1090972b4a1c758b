"""Convenience imports for Alembic metadata discovery."""

from jirasync.models.site import JiraSite
from jirasync.models.project import JiraProject, TrackedUser
from jirasync.models.sync_job import SyncJob
from jirasync.models.sync_state import SyncState
from jirasync.models.sync_log import SyncLog
from jirasync.models.jira_user import JiraUser
from jirasync.models.sprint import Sprint
from jirasync.models.issue import Comment, Issue, Worklog  # noqa: F401
