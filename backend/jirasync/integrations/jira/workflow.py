"""In-process driver for one project's sync run.

Loops ``run_batch`` until the search is drained, persisting the cursor on the
project's ``SyncJob`` after every page so an interrupted run picks up from the
last completed page instead of starting over.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.orm import Session

from jirasync.core.exceptions import ProjectNotFoundError, SyncAlreadyRunningError
from jirasync.integrations.jira.activities import (
    CredentialResolver,
    fail_project_sync,
    finalize_project_sync,
    prepare_project_sync,
    run_batch,
)
from jirasync.integrations.jira.credentials import resolve_site_credentials
from jirasync.integrations.jira.error_classifier import classify_exception
from jirasync.integrations.jira.retry import RetryPolicy, activity_retry_policy
from jirasync.integrations.jira.schemas import BatchContext, ProjectSyncResult, SyncCursor
from jirasync.integrations.jira.state import (
    append_log,
    clear_checkpoint,
    find_sync_job,
    get_sync_job,
    save_checkpoint,
    set_entity_states,
)
from jirasync.integrations.jira.telemetry import record_sync_failure, record_sync_success
from jirasync.models.enums import SyncJobStatus, SyncLogLevel, SyncStateStatus

logger = logging.getLogger(__name__)

NO_TRACKED_USERS_MESSAGE = "No tracked Jira users. Skipping sync."

_running_guard = threading.Lock()
_running: set[str] = set()


@contextmanager
def project_run_lock(project_id: str) -> Iterator[None]:
    with _running_guard:
        if project_id in _running:
            raise SyncAlreadyRunningError(project_id)
        _running.add(project_id)
    try:
        yield
    finally:
        with _running_guard:
            _running.discard(project_id)


def is_sync_running(project_id: str) -> bool:
    with _running_guard:
        return project_id in _running


def _checkpoint(context: BatchContext, cursor: SyncCursor, pages: int, issues: int) -> dict[str, Any]:
    return {
        "context": context.checkpoint_payload(),
        "cursor": cursor.model_dump(mode="json"),
        "pages": pages,
        "issues": issues,
    }


def _parse_checkpoint(payload: dict[str, Any]) -> tuple[dict[str, Any], SyncCursor, int, int]:
    context_data = payload.get("context")
    if not isinstance(context_data, dict) or not context_data.get("site_id"):
        raise ValueError("checkpoint_missing_context")
    cursor = SyncCursor.model_validate(payload.get("cursor") or {})
    return context_data, cursor, int(payload.get("pages") or 0), int(payload.get("issues") or 0)


def run_project_sync(
    db: Session,
    project_id: str,
    *,
    full_resync: bool = False,
    account_ids: list[str] | None = None,
    activity_policy: RetryPolicy | None = None,
    fetch_policy: RetryPolicy | None = None,
    resolve_credentials: CredentialResolver = resolve_site_credentials,
) -> ProjectSyncResult:
    """Run one project's sync to completion, resuming a checkpoint when one exists.

    Any error after ``prepare`` is routed to ``fail_project_sync`` and the
    adaptive-cadence telemetry, then re-raised.
    """
    with project_run_lock(project_id):
        return _run(
            db,
            project_id,
            full_resync=full_resync,
            account_ids=account_ids,
            activity_policy=activity_policy or activity_retry_policy(),
            fetch_policy=fetch_policy,
            resolve_credentials=resolve_credentials,
        )


def _run(
    db: Session,
    project_id: str,
    *,
    full_resync: bool,
    account_ids: list[str] | None,
    activity_policy: RetryPolicy,
    fetch_policy: RetryPolicy | None,
    resolve_credentials: CredentialResolver,
) -> ProjectSyncResult:
    restored = None
    job = find_sync_job(db, project_id)
    if job is not None and job.checkpoint and not full_resync and account_ids is None:
        try:
            restored = _parse_checkpoint(job.checkpoint)
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable sync checkpoint for project %s: %s", project_id, exc)
            clear_checkpoint(db, job)

    pages = 0
    issues = 0
    try:
        if restored is not None:
            context_data, cursor, pages, issues = restored
            credentials = resolve_credentials(db, context_data["site_id"])
            context = BatchContext.model_validate(
                {
                    **context_data,
                    "base_url": credentials.base_url,
                    "admin_email": credentials.admin_email,
                    "token": credentials.token,
                }
            )
            append_log(
                db,
                project_id,
                SyncLogLevel.info,
                "Resuming interrupted sync",
                {"pages": pages, "hasPageToken": bool(cursor.next_page_token)},
            )
            # Same lockstep as prepare: every entity RUNNING, job ACTIVE.
            set_entity_states(db, project_id, SyncStateStatus.running)
            job.status = SyncJobStatus.active
            db.add(job)
            db.commit()
            logger.info("Resuming Jira sync for project %s after %s pages", context.project_key, pages)
        else:
            context = activity_policy.call(
                lambda: prepare_project_sync(
                    db,
                    project_id,
                    full_resync=full_resync,
                    account_ids=account_ids,
                    resolve_credentials=resolve_credentials,
                ),
                description=f"prepare sync for project {project_id}",
            )
            if not context.tracked_account_ids:
                finalize_project_sync(db, project_id, SyncStateStatus.success, context.since, NO_TRACKED_USERS_MESSAGE)
                record_sync_success(db, project_id)
                return ProjectSyncResult(
                    project_id=project_id,
                    status=SyncStateStatus.success,
                    since=context.since,
                    last_updated_at=context.since,
                    message=NO_TRACKED_USERS_MESSAGE,
                )
            cursor = SyncCursor(next_page_token=None, since=context.since, last_updated_at=context.since)
            save_checkpoint(db, get_sync_job(db, project_id), _checkpoint(context, cursor, pages, issues))

        has_more = True
        while has_more:
            result = activity_policy.call(
                lambda current=cursor: run_batch(db, context, current, retry_policy=fetch_policy),
                description=f"sync batch {pages + 1} for {context.project_key}",
            )
            pages += 1
            issues += result.issues_processed
            has_more = result.has_more
            cursor = SyncCursor(
                next_page_token=result.next_page_token,
                since=context.since,
                last_updated_at=result.last_updated_at or cursor.last_updated_at or context.since,
            )
            save_checkpoint(db, get_sync_job(db, project_id), _checkpoint(context, cursor, pages, issues))

        last_updated_at = cursor.last_updated_at or context.since
        finalize_project_sync(
            db,
            project_id,
            SyncStateStatus.success,
            last_updated_at,
            "Sync completed successfully",
            {"pages": pages, "issuesProcessed": issues, "resumed": restored is not None},
        )
    except ProjectNotFoundError:
        raise
    except Exception as exc:
        classification = classify_exception(exc)
        logger.exception("Jira sync failed for project %s", project_id)
        fail_project_sync(db, project_id, exc, classification=classification)
        record_sync_failure(
            db,
            project_id,
            classification,
            classification.message,
            {"pages": pages, "issuesProcessed": issues},
        )
        raise

    record_sync_success(db, project_id)
    logger.info(
        "Jira sync completed: project=%s pages=%s issues=%s last_updated_at=%s",
        context.project_key,
        pages,
        issues,
        last_updated_at,
    )
    return ProjectSyncResult(
        project_id=project_id,
        status=SyncStateStatus.success,
        since=context.since,
        last_updated_at=last_updated_at,
        pages=pages,
        issues_processed=issues,
        resumed=restored is not None,
    )
