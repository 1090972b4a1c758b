"""Adaptive sync cadence: slow a failing project's schedule, restore it on success."""

from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy.orm import Session

from jirasync.integrations.jira.error_classifier import JiraErrorClassification
from jirasync.integrations.jira.state import append_log, apply_cron_schedule, find_sync_job
from jirasync.models.enums import SyncJobStatus, SyncLogLevel
from jirasync.models.project import JiraProject
from jirasync.services.alerts import build_sync_degraded_alert, notify_ops

logger = logging.getLogger(__name__)

BACKOFF_CRON_STEPS = ("*/30 * * * *", "0 * * * *", "0 */3 * * *", "0 */6 * * *", "0 */12 * * *")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def backoff_cron_sequence(original_cron: str) -> list[str]:
    sequence = [original_cron]
    for candidate in BACKOFF_CRON_STEPS:
        if candidate not in sequence:
            sequence.append(candidate)
    return sequence


def record_sync_failure(
    db: Session,
    project_id: str,
    classification: JiraErrorClassification,
    message: str,
    metadata: dict | None = None,
) -> int | None:
    """Step the job one level down the cadence ladder; returns the new level."""
    job = find_sync_job(db, project_id)
    project = db.get(JiraProject, project_id)
    if job is None or project is None:
        logger.error("Sync failure recorded for unknown project %s", project_id)
        return None

    original_cron = job.backoff_original_cron or job.cron_schedule
    sequence = backoff_cron_sequence(original_cron)
    current_level = job.backoff_level or 0
    if classification.retryable:
        next_level = min(current_level + 1, len(sequence) - 1)
    else:
        # Retrying soon cannot help; go straight to the slowest cadence.
        next_level = len(sequence) - 1
    next_cron = sequence[next_level]
    level_increased = next_level > current_level

    if next_cron != job.cron_schedule:
        apply_cron_schedule(job, next_cron)
    job.backoff_level = next_level
    job.backoff_original_cron = original_cron
    if level_increased:
        job.backoff_last_notified_at = _utcnow()
    job.status = SyncJobStatus.error
    db.add(job)
    append_log(
        db,
        project_id,
        SyncLogLevel.error,
        message,
        {
            "errorCode": classification.code.value,
            "retryable": classification.retryable,
            "cronSchedule": next_cron,
            "backoffLevel": next_level,
            **(metadata or {}),
        },
    )
    db.commit()

    if level_increased:
        subject, body, html_body = build_sync_degraded_alert(
            project_key=project.key,
            site_alias=project.site.alias if project.site else project.site_id,
            error_code=classification.code.value,
            message=classification.message,
            backoff_level=next_level,
            cron_schedule=next_cron,
        )
        notify_ops(subject, body, html_body=html_body)
    return next_level


def record_sync_success(db: Session, project_id: str) -> bool:
    """Undo any backoff after a successful run; returns True when cadence was restored."""
    job = find_sync_job(db, project_id)
    if job is None or not job.backoff_level:
        return False

    restore_cron = job.backoff_original_cron or job.cron_schedule
    if restore_cron != job.cron_schedule:
        apply_cron_schedule(job, restore_cron)
    job.backoff_level = 0
    job.backoff_original_cron = None
    job.backoff_last_notified_at = None
    job.status = SyncJobStatus.active
    db.add(job)
    append_log(
        db,
        project_id,
        SyncLogLevel.info,
        "Sync cadence restored after successful run",
        {"restoredCron": restore_cron},
    )
    db.commit()
    logger.info("Restored sync cadence for project %s to %s", project_id, restore_cron)
    return True
