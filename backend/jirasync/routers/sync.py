"""Project sync admin endpoints."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Path, Query
from sqlalchemy.orm import Session

from jirasync.core.exceptions import SyncAlreadyRunningError
from jirasync.db.session import get_db
from jirasync.integrations.jira.workflow import is_sync_running
from jirasync.schemas.sync import (
    JiraProjectOptionOut,
    JiraUserOptionOut,
    SyncJobOut,
    SyncLogOut,
    SyncOverview,
    SyncScheduleUpdate,
    SyncTriggerRequest,
    SyncTriggerResponse,
)
from jirasync.services.jira_directory import list_assignable_users, list_site_projects
from jirasync.services.sync_service import (
    get_sync_overview,
    list_sync_logs,
    pause_project_sync,
    record_manual_trigger,
    reschedule_project_sync,
    resume_project_sync,
    run_project_sync_in_background,
)

router = APIRouter()


@router.get("/projects/{project_id}/sync", response_model=SyncOverview)
def get_project_sync(
    project_id: str = Path(..., max_length=36),
    db: Session = Depends(get_db),
) -> SyncOverview:
    return get_sync_overview(db, project_id)


@router.get("/projects/{project_id}/sync/logs", response_model=list[SyncLogOut])
def get_project_sync_logs(
    project_id: str = Path(..., max_length=36),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[SyncLogOut]:
    return list_sync_logs(db, project_id, limit=limit)


@router.post("/projects/{project_id}/sync/trigger", response_model=SyncTriggerResponse, status_code=202)
def trigger_project_sync(
    background_tasks: BackgroundTasks,
    project_id: str = Path(..., max_length=36),
    payload: SyncTriggerRequest = Body(default=SyncTriggerRequest()),
    db: Session = Depends(get_db),
) -> SyncTriggerResponse:
    if is_sync_running(project_id):
        raise SyncAlreadyRunningError(project_id)
    record_manual_trigger(db, project_id, full=payload.full, account_ids=payload.account_ids)
    background_tasks.add_task(
        run_project_sync_in_background,
        project_id,
        full=payload.full,
        account_ids=payload.account_ids,
    )
    return SyncTriggerResponse(project_id=project_id, full=payload.full)


@router.post("/projects/{project_id}/sync/pause", response_model=SyncJobOut)
def pause_sync(
    project_id: str = Path(..., max_length=36),
    db: Session = Depends(get_db),
) -> SyncJobOut:
    return SyncJobOut.model_validate(pause_project_sync(db, project_id))


@router.post("/projects/{project_id}/sync/resume", response_model=SyncJobOut)
def resume_sync(
    project_id: str = Path(..., max_length=36),
    db: Session = Depends(get_db),
) -> SyncJobOut:
    return SyncJobOut.model_validate(resume_project_sync(db, project_id))


@router.put("/projects/{project_id}/sync/schedule", response_model=SyncJobOut)
def update_sync_schedule(
    project_id: str = Path(..., max_length=36),
    payload: SyncScheduleUpdate = Body(...),
    db: Session = Depends(get_db),
) -> SyncJobOut:
    return SyncJobOut.model_validate(reschedule_project_sync(db, project_id, payload.cron_schedule))


@router.get("/sites/{site_id}/jira/projects", response_model=list[JiraProjectOptionOut])
def get_site_projects(
    site_id: str = Path(..., max_length=36),
    db: Session = Depends(get_db),
) -> list[JiraProjectOptionOut]:
    return list_site_projects(db, site_id)


@router.get("/projects/{project_id}/jira/assignable-users", response_model=list[JiraUserOptionOut])
def get_assignable_users(
    project_id: str = Path(..., max_length=36),
    db: Session = Depends(get_db),
) -> list[JiraUserOptionOut]:
    return list_assignable_users(db, project_id)
