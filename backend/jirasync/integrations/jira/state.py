"""Access helpers for SyncJob, SyncState and SyncLog rows."""

from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy.orm import Session

from jirasync.core.config import settings
from jirasync.core.exceptions import ProjectNotFoundError, SyncJobNotFoundError
from jirasync.integrations.jira.cron import next_fire_time
from jirasync.integrations.jira.mapper import as_utc
from jirasync.models.enums import SYNC_ENTITIES, SyncJobStatus, SyncLogLevel, SyncStateStatus
from jirasync.models.project import JiraProject
from jirasync.models.sync_job import SyncJob
from jirasync.models.sync_log import SyncLog
from jirasync.models.sync_state import SyncState


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def workflow_id_for(project_id: str) -> str:
    return f"jira-sync-{project_id}"


def schedule_id_for(project_id: str) -> str:
    return f"jira-sync-schedule-{project_id}"


def get_project(db: Session, project_id: str) -> JiraProject:
    project = db.get(JiraProject, project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


def find_sync_job(db: Session, project_id: str) -> SyncJob | None:
    return db.query(SyncJob).filter(SyncJob.project_id == project_id).first()


def get_sync_job(db: Session, project_id: str) -> SyncJob:
    job = find_sync_job(db, project_id)
    if job is None:
        raise SyncJobNotFoundError(project_id)
    return job


def ensure_sync_job(db: Session, project_id: str) -> tuple[SyncJob, bool]:
    """Return the project's job, creating it with derived ids and the default cron."""
    job = find_sync_job(db, project_id)
    if job is not None:
        return job, False

    job = SyncJob(
        project_id=project_id,
        workflow_id=workflow_id_for(project_id),
        schedule_id=schedule_id_for(project_id),
        cron_schedule=settings.SYNC_DEFAULT_CRON,
        status=SyncJobStatus.pending,
        last_run_at=None,
        next_run_at=None,
    )
    db.add(job)
    db.flush()
    return job, True


def ensure_sync_states(db: Session, project_id: str) -> list[SyncState]:
    """Create missing per-entity rows as IDLE; existing rows are left untouched."""
    existing = {state.entity: state for state in db.query(SyncState).filter(SyncState.project_id == project_id).all()}
    states: list[SyncState] = []
    for entity in SYNC_ENTITIES:
        state = existing.get(entity)
        if state is None:
            state = SyncState(project_id=project_id, entity=entity, status=SyncStateStatus.idle)
            db.add(state)
        states.append(state)
    db.flush()
    return states


def list_sync_states(db: Session, project_id: str) -> list[SyncState]:
    return (
        db.query(SyncState)
        .filter(SyncState.project_id == project_id, SyncState.entity.in_(SYNC_ENTITIES))
        .order_by(SyncState.entity)
        .all()
    )


def resume_point(states: list[SyncState]) -> dt.datetime | None:
    """Earliest non-null ``last_sync_time`` across the entity states, if any."""
    times = [as_utc(state.last_sync_time) for state in states if state.last_sync_time is not None]
    return min(times) if times else None


def set_entity_states(
    db: Session,
    project_id: str,
    status: SyncStateStatus,
    *,
    last_sync_time: dt.datetime | None = None,
) -> None:
    """Move every entity state of a project together.

    ``last_sync_time`` is only written when given, so a failed run never
    moves the resume point.
    """
    now = _utcnow()
    for state in ensure_sync_states(db, project_id):
        state.status = status
        state.updated_at = now
        if last_sync_time is not None:
            state.last_sync_time = last_sync_time
        db.add(state)
    db.flush()


def append_log(
    db: Session,
    project_id: str,
    level: SyncLogLevel,
    message: str,
    details: dict[str, Any] | None = None,
) -> SyncLog:
    entry = SyncLog(project_id=project_id, level=level, message=message, details=details)
    db.add(entry)
    db.flush()
    return entry


def list_sync_logs(db: Session, project_id: str, *, limit: int = 50) -> list[SyncLog]:
    return (
        db.query(SyncLog)
        .filter(SyncLog.project_id == project_id)
        .order_by(SyncLog.created_at.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )


def save_checkpoint(db: Session, job: SyncJob, payload: dict[str, Any]) -> None:
    job.checkpoint = payload
    db.add(job)
    db.commit()


def clear_checkpoint(db: Session, job: SyncJob) -> None:
    if job.checkpoint is None:
        return
    job.checkpoint = None
    db.add(job)
    db.commit()


def apply_cron_schedule(job: SyncJob, expression: str, *, now: dt.datetime | None = None) -> None:
    """Store a new cron on the job and move ``next_run_at`` to its next fire time."""
    job.cron_schedule = expression
    job.next_run_at = next_fire_time(expression, after=now or _utcnow())
