"""Sync activities: prepare, run one page, finalize, fail.

Each function is one independently retryable unit of work. The workflow
driver threads the ``BatchContext`` returned by ``prepare_project_sync`` and
the cursor returned by each ``run_batch`` call through the run.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Iterable

from sqlalchemy.orm import Session

from jirasync.integrations.jira.client import JiraClient
from jirasync.integrations.jira.credentials import resolve_site_credentials
from jirasync.integrations.jira.error_classifier import JiraErrorClassification, classify_exception
from jirasync.integrations.jira.mapper import as_utc, parse_datetime
from jirasync.integrations.jira.retry import RetryPolicy, fetch_retry_policy
from jirasync.integrations.jira.schemas import BatchContext, BatchResult, SiteCredentials, SyncCursor
from jirasync.integrations.jira.state import (
    append_log,
    ensure_sync_job,
    ensure_sync_states,
    get_project,
    resume_point,
    set_entity_states,
)
from jirasync.integrations.jira.upsert import upsert_issue_from_detail
from jirasync.models.enums import SyncJobStatus, SyncLogLevel, SyncStateStatus
from jirasync.models.project import JiraProject

logger = logging.getLogger(__name__)

JQL_DATETIME_FORMAT = "%Y/%m/%d %H:%M"

CredentialResolver = Callable[[Session, str], SiteCredentials]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _jql_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_issue_jql(project_key: str, account_ids: Iterable[str], since: dt.datetime | None = None) -> str:
    """Issues of a project currently or formerly assigned to any tracked account."""
    ids = ",".join(_jql_quote(account_id) for account_id in account_ids)
    jql = f"project = {_jql_quote(project_key)} AND (assignee in ({ids}) OR assignee was in ({ids}))"
    if since is not None:
        jql += f' AND updated >= "{as_utc(since).strftime(JQL_DATETIME_FORMAT)}"'
    return jql + " ORDER BY updated ASC"


def resolve_tracked_accounts(project: JiraProject, account_ids: list[str] | None = None) -> list[str]:
    """Explicit account ids win over the project's tracked-user list."""
    if account_ids is not None:
        candidates = [str(account_id).strip() for account_id in account_ids]
    else:
        candidates = [user.jira_account_id for user in project.tracked_users if user.is_tracked]
    resolved: list[str] = []
    for account_id in candidates:
        if account_id and account_id not in resolved:
            resolved.append(account_id)
    return resolved


def prepare_project_sync(
    db: Session,
    project_id: str,
    *,
    full_resync: bool = False,
    account_ids: list[str] | None = None,
    resolve_credentials: CredentialResolver = resolve_site_credentials,
) -> BatchContext:
    project = get_project(db, project_id)
    tracked = resolve_tracked_accounts(project, account_ids)

    job, created = ensure_sync_job(db, project_id)
    if created:
        append_log(
            db,
            project_id,
            SyncLogLevel.debug,
            "Sync job ensured",
            {"workflowId": job.workflow_id, "scheduleId": job.schedule_id, "cronSchedule": job.cron_schedule},
        )
    states = ensure_sync_states(db, project_id)
    since = None if full_resync else resume_point(states)

    set_entity_states(db, project_id, SyncStateStatus.running)
    job.status = SyncJobStatus.active
    db.add(job)
    append_log(
        db,
        project_id,
        SyncLogLevel.info,
        "Sync run prepared",
        {
            "trackedAccounts": tracked,
            "since": since.isoformat() if since else None,
            "fullResync": full_resync,
        },
    )
    db.commit()
    logger.info(
        "Prepared Jira sync: project=%s tracked=%s since=%s full=%s",
        project.key,
        len(tracked),
        since,
        full_resync,
    )

    credentials = resolve_credentials(db, project.site_id)
    return BatchContext(
        project_id=project.id,
        project_key=project.key,
        site_id=project.site_id,
        base_url=credentials.base_url,
        admin_email=credentials.admin_email,
        token=credentials.token,
        tracked_account_ids=tracked,
        since=since,
    )


def run_batch(
    db: Session,
    context: BatchContext,
    cursor: SyncCursor,
    *,
    retry_policy: RetryPolicy | None = None,
) -> BatchResult:
    """Fetch one search page and upsert every issue on it.

    Each issue is committed on its own, so a failure later in the page keeps
    the issues already written. The returned ``last_updated_at`` never falls
    below the incoming cursor's value.
    """
    high_water = as_utc(cursor.last_updated_at or context.since)
    if not context.tracked_account_ids:
        return BatchResult(has_more=False, next_page_token=None, last_updated_at=high_water)

    policy = retry_policy or fetch_retry_policy()
    client = JiraClient.from_context(context)
    since = cursor.since or context.since
    jql = build_issue_jql(context.project_key, context.tracked_account_ids, since)

    page = policy.call(
        lambda: client.search(jql, next_page_token=cursor.next_page_token),
        description=f"Jira search for {context.project_key}",
    )

    processed = 0
    comments = 0
    worklogs = 0
    for summary in page.issues:
        issue_key = str(summary.get("key") or "").strip()
        if not issue_key:
            logger.warning("Skipping search result without key in project %s", context.project_key)
            continue

        detail = policy.call(
            lambda key=issue_key: client.fetch_issue_detail(key),
            description=f"Jira issue {issue_key}",
        )
        try:
            _, counts = upsert_issue_from_detail(db, context.project_id, detail)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Jira upsert failed for issue %s", issue_key)
            raise

        processed += 1
        comments += counts.comments
        worklogs += counts.worklogs
        updated = parse_datetime((detail.get("fields") or {}).get("updated"))
        if updated is not None and (high_water is None or updated > high_water):
            high_water = updated

    has_more = bool(page.issues) and not page.is_last and page.next_page_token is not None
    append_log(
        db,
        context.project_id,
        SyncLogLevel.info,
        f"Synced {processed} issues",
        {
            "issuesProcessed": processed,
            "comments": comments,
            "worklogs": worklogs,
            "hasMore": has_more,
            "lastUpdatedAt": high_water.isoformat() if high_water else None,
        },
    )
    db.commit()

    return BatchResult(
        has_more=has_more,
        next_page_token=page.next_page_token if has_more else None,
        last_updated_at=high_water,
        issues_processed=processed,
    )


def finalize_project_sync(
    db: Session,
    project_id: str,
    status: SyncStateStatus,
    last_updated_at: dt.datetime | None,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    if status not in (SyncStateStatus.success, SyncStateStatus.failed):
        raise ValueError(f"finalize status must be SUCCESS or FAILED, got: {status}")
    succeeded = status == SyncStateStatus.success

    job, _ = ensure_sync_job(db, project_id)
    set_entity_states(db, project_id, status, last_sync_time=as_utc(last_updated_at))
    job.status = SyncJobStatus.active if succeeded else SyncJobStatus.error
    job.last_run_at = _utcnow()
    job.checkpoint = None
    db.add(job)
    append_log(
        db,
        project_id,
        SyncLogLevel.info if succeeded else SyncLogLevel.error,
        message or ("Sync completed" if succeeded else "Sync failed"),
        details,
    )
    db.commit()


def fail_project_sync(
    db: Session,
    project_id: str,
    error: BaseException,
    *,
    classification: JiraErrorClassification | None = None,
) -> JiraErrorClassification:
    """Mark the run FAILED without moving any entity's ``last_sync_time``.

    The checkpoint is dropped in the same commit, so the next run starts from
    ``prepare``.
    """
    # Drop whatever the failed activity left half-written.
    db.rollback()
    classification = classification or classify_exception(error)

    job, _ = ensure_sync_job(db, project_id)
    set_entity_states(db, project_id, SyncStateStatus.failed)
    job.status = SyncJobStatus.error
    job.checkpoint = None
    db.add(job)
    append_log(
        db,
        project_id,
        SyncLogLevel.error,
        "Sync failed",
        {"error": str(error) or classification.message, **classification.as_details()},
    )
    db.commit()
    logger.warning("Jira sync failed for project %s: %s", project_id, error)
    return classification
