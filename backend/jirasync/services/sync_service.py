"""Schedule management and manual triggers for project syncs."""

from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy.orm import Session

from jirasync.core.exceptions import BadRequestError
from jirasync.db.session import SessionLocal
from jirasync.integrations.jira import workflow
from jirasync.integrations.jira.cron import is_valid_cron, next_fire_time
from jirasync.integrations.jira.schemas import ProjectSyncResult
from jirasync.integrations.jira.state import (
    append_log,
    apply_cron_schedule,
    ensure_sync_job,
    ensure_sync_states,
    find_sync_job,
    get_project,
    get_sync_job,
    list_sync_states,
)
from jirasync.integrations.jira.state import list_sync_logs as _query_sync_logs
from jirasync.models.enums import SyncJobStatus, SyncLogLevel
from jirasync.models.sync_job import SyncJob
from jirasync.schemas.sync import SyncJobOut, SyncLogOut, SyncOverview, SyncStateOut

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def initialize_project_sync(db: Session, project_id: str) -> SyncJob:
    """Create the job (ACTIVE) and the entity states if missing, then plan the next run."""
    get_project(db, project_id)
    job, created = ensure_sync_job(db, project_id)
    if created:
        job.status = SyncJobStatus.active
    ensure_sync_states(db, project_id)
    job.next_run_at = next_fire_time(job.cron_schedule)
    db.add(job)
    db.commit()
    db.refresh(job)
    if created:
        logger.info("Initialized sync for project %s (%s)", project_id, job.cron_schedule)
    return job


def _job_or_initialize(db: Session, project_id: str) -> SyncJob:
    return find_sync_job(db, project_id) or initialize_project_sync(db, project_id)


def pause_project_sync(db: Session, project_id: str) -> SyncJob:
    job = get_sync_job(db, project_id)
    job.status = SyncJobStatus.paused
    db.add(job)
    append_log(db, project_id, SyncLogLevel.info, "Sync paused by admin")
    db.commit()
    db.refresh(job)
    return job


def resume_project_sync(db: Session, project_id: str) -> SyncJob:
    job = _job_or_initialize(db, project_id)
    job.status = SyncJobStatus.active
    db.add(job)
    append_log(db, project_id, SyncLogLevel.info, "Sync resumed by admin")
    db.commit()
    return update_next_run_from_schedule(db, project_id)


def reschedule_project_sync(db: Session, project_id: str, cron: str) -> SyncJob:
    expression = " ".join((cron or "").split())
    if not is_valid_cron(expression):
        raise BadRequestError("invalid_cron_expression", details={"cron": cron})
    job = _job_or_initialize(db, project_id)
    apply_cron_schedule(job, expression)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def update_next_run_from_schedule(db: Session, project_id: str) -> SyncJob:
    job = _job_or_initialize(db, project_id)
    job.next_run_at = next_fire_time(job.cron_schedule, after=_utcnow())
    job.updated_at = _utcnow()
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def record_manual_trigger(
    db: Session,
    project_id: str,
    *,
    full: bool = False,
    account_ids: list[str] | None = None,
) -> SyncJob:
    job = _job_or_initialize(db, project_id)
    append_log(
        db,
        project_id,
        SyncLogLevel.info,
        "Manual sync triggered",
        {"full": full, "accountIds": account_ids},
    )
    db.commit()
    return job


def trigger_project_sync(
    db: Session,
    project_id: str,
    *,
    full: bool = False,
    account_ids: list[str] | None = None,
) -> ProjectSyncResult:
    record_manual_trigger(db, project_id, full=full, account_ids=account_ids)
    return workflow.run_project_sync(db, project_id, full_resync=full, account_ids=account_ids)


def start_project_sync(db: Session, project_id: str, full: bool = False) -> ProjectSyncResult:
    resume_project_sync(db, project_id)
    return trigger_project_sync(db, project_id, full=full)


def run_project_sync_in_background(
    project_id: str,
    *,
    full: bool = False,
    account_ids: list[str] | None = None,
) -> None:
    """Entry point for FastAPI background tasks; owns its own session."""
    db = SessionLocal()
    try:
        result = workflow.run_project_sync(db, project_id, full_resync=full, account_ids=account_ids)
        logger.info(
            "Background sync finished: project=%s pages=%s issues=%s",
            project_id,
            result.pages,
            result.issues_processed,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("Background sync failed for project %s: %s", project_id, exc)
    finally:
        db.close()


def get_sync_overview(db: Session, project_id: str) -> SyncOverview:
    project = get_project(db, project_id)
    job = find_sync_job(db, project_id)
    return SyncOverview(
        project_id=project.id,
        project_key=project.key,
        running=workflow.is_sync_running(project_id),
        job=SyncJobOut.model_validate(job) if job else None,
        states=[SyncStateOut.model_validate(state) for state in list_sync_states(db, project_id)],
    )


def list_sync_logs(db: Session, project_id: str, *, limit: int = 50) -> list[SyncLogOut]:
    get_project(db, project_id)
    return [SyncLogOut.model_validate(entry) for entry in _query_sync_logs(db, project_id, limit=limit)]
