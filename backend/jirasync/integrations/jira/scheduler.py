"""Background loop that runs due project syncs from their cron schedules."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from jirasync.core.config import settings
from jirasync.core.exceptions import SyncAlreadyRunningError
from jirasync.db.session import SessionLocal
from jirasync.integrations.jira.cron import next_fire_time
from jirasync.integrations.jira.mapper import as_utc
from jirasync.integrations.jira.workflow import run_project_sync
from jirasync.models.enums import SyncJobStatus
from jirasync.models.sync_job import SyncJob

logger = logging.getLogger(__name__)

RUNNABLE_STATUSES = (SyncJobStatus.active, SyncJobStatus.error)

_task: asyncio.Task | None = None


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def due_project_ids(db: Session, now: dt.datetime | None = None) -> list[str]:
    """Projects whose job is runnable and whose next run is not in the future."""
    moment = now or _utcnow()
    jobs = (
        db.query(SyncJob)
        .filter(SyncJob.status.in_(RUNNABLE_STATUSES))
        .filter(or_(SyncJob.next_run_at.is_(None), SyncJob.next_run_at <= moment))
        .order_by(SyncJob.next_run_at)
        .all()
    )
    # SQLite hands back naive datetimes; compare again in UTC.
    return [job.project_id for job in jobs if job.next_run_at is None or as_utc(job.next_run_at) <= moment]


def interrupted_project_ids(db: Session) -> list[str]:
    jobs = db.query(SyncJob).filter(SyncJob.checkpoint.is_not(None)).all()
    return [job.project_id for job in jobs if job.checkpoint and job.status != SyncJobStatus.paused]


def _schedule_next_run(db: Session, project_id: str) -> None:
    job = db.query(SyncJob).filter(SyncJob.project_id == project_id).first()
    if job is None:
        return
    job.next_run_at = next_fire_time(job.cron_schedule, after=_utcnow())
    db.add(job)
    db.commit()


def _run_project(db: Session, project_id: str) -> None:
    try:
        result = run_project_sync(db, project_id)
        logger.info(
            "Scheduled Jira sync completed: project=%s pages=%s issues=%s resumed=%s",
            project_id,
            result.pages,
            result.issues_processed,
            result.resumed,
        )
    except SyncAlreadyRunningError:
        logger.debug("Skipping scheduled sync for %s: a run is already in flight", project_id)
        return
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduled Jira sync failed for project %s: %s", project_id, exc)
        db.rollback()
    _schedule_next_run(db, project_id)


def resume_interrupted() -> int:
    db = SessionLocal()
    try:
        project_ids = interrupted_project_ids(db)
        for project_id in project_ids:
            logger.info("Resuming interrupted Jira sync for project %s", project_id)
            _run_project(db, project_id)
        return len(project_ids)
    finally:
        db.close()


def run_due_once() -> int:
    db = SessionLocal()
    try:
        project_ids = due_project_ids(db)
        for project_id in project_ids:
            _run_project(db, project_id)
        return len(project_ids)
    finally:
        db.close()


async def _loop() -> None:
    startup_delay = max(0, settings.SYNC_SCHEDULER_STARTUP_DELAY_SECONDS)
    interval = max(5, settings.SYNC_SCHEDULER_POLL_SECONDS)
    if startup_delay:
        await asyncio.sleep(startup_delay)
    try:
        await asyncio.to_thread(resume_interrupted)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Resuming interrupted Jira syncs failed: %s", exc)
    while True:
        try:
            await asyncio.to_thread(run_due_once)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Jira sync scheduler tick failed: %s", exc)
        await asyncio.sleep(interval)


async def start_sync_scheduler() -> None:
    global _task
    if _task is not None:
        return
    if not settings.SYNC_SCHEDULER_ENABLED:
        return
    _task = asyncio.create_task(_loop(), name="jira-sync-scheduler")
    logger.info("Jira sync scheduler started (polling every %s seconds)", max(5, settings.SYNC_SCHEDULER_POLL_SECONDS))


async def stop_sync_scheduler() -> None:
    global _task
    task = _task
    _task = None
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
