from __future__ import annotations

import datetime as dt

import pytest

from conftest import as_aware
from jirasync.core.exceptions import BadRequestError, ProjectNotFoundError, SyncJobNotFoundError
from jirasync.integrations.jira.schemas import ProjectSyncResult
from jirasync.models.enums import SyncJobStatus, SyncStateStatus
from jirasync.models.sync_log import SyncLog
from jirasync.services import sync_service


def test_initialize_creates_active_job_and_states(db_session, project) -> None:
    job = sync_service.initialize_project_sync(db_session, project.id)

    assert job.status == SyncJobStatus.active
    assert job.cron_schedule == "*/15 * * * *"
    assert as_aware(job.next_run_at) > dt.datetime.now(dt.timezone.utc) - dt.timedelta(seconds=1)

    overview = sync_service.get_sync_overview(db_session, project.id)
    assert overview.project_key == "DEMO"
    assert overview.running is False
    assert [state.entity.value for state in overview.states] == ["comment", "issue", "worklog"]
    assert {state.status for state in overview.states} == {SyncStateStatus.idle}


def test_pause_requires_existing_job(db_session, project) -> None:
    with pytest.raises(SyncJobNotFoundError):
        sync_service.pause_project_sync(db_session, project.id)

    sync_service.initialize_project_sync(db_session, project.id)
    assert sync_service.pause_project_sync(db_session, project.id).status == SyncJobStatus.paused
    assert sync_service.resume_project_sync(db_session, project.id).status == SyncJobStatus.active


def test_reschedule_validates_cron(db_session, project) -> None:
    with pytest.raises(BadRequestError):
        sync_service.reschedule_project_sync(db_session, project.id, "every five minutes")

    job = sync_service.reschedule_project_sync(db_session, project.id, "0  */2 * * *")
    assert job.cron_schedule == "0 */2 * * *"
    next_run = as_aware(job.next_run_at)
    assert next_run.minute == 0 and next_run.hour % 2 == 0


def test_trigger_logs_and_runs_driver(db_session, project, monkeypatch) -> None:
    calls: list[dict] = []

    def fake_run(db, project_id, *, full_resync, account_ids):  # noqa: ANN001
        calls.append({"project_id": project_id, "full": full_resync, "accounts": account_ids})
        return ProjectSyncResult(project_id=project_id, status=SyncStateStatus.success)

    monkeypatch.setattr(sync_service.workflow, "run_project_sync", fake_run)

    result = sync_service.trigger_project_sync(db_session, project.id, full=True, account_ids=["acc-1"])

    assert result.project_id == project.id
    assert calls == [{"project_id": project.id, "full": True, "accounts": ["acc-1"]}]
    entry = db_session.query(SyncLog).filter(SyncLog.message == "Manual sync triggered").one()
    assert entry.details == {"full": True, "accountIds": ["acc-1"]}


def test_unknown_project_raises_not_found(db_session) -> None:
    with pytest.raises(ProjectNotFoundError):
        sync_service.get_sync_overview(db_session, "missing")
    with pytest.raises(ProjectNotFoundError):
        sync_service.initialize_project_sync(db_session, "missing")


def test_list_sync_logs_newest_first(db_session, project) -> None:
    sync_service.initialize_project_sync(db_session, project.id)
    sync_service.pause_project_sync(db_session, project.id)
    sync_service.resume_project_sync(db_session, project.id)

    logs = sync_service.list_sync_logs(db_session, project.id, limit=1)
    assert len(logs) == 1
    assert logs[0].message == "Sync resumed by admin"


def test_start_activates_paused_job_then_runs(db_session, project, monkeypatch) -> None:
    sync_service.initialize_project_sync(db_session, project.id)
    sync_service.pause_project_sync(db_session, project.id)
    statuses: list[SyncJobStatus] = []

    def fake_run(db, project_id, *, full_resync, account_ids):  # noqa: ANN001
        statuses.append(sync_service.find_sync_job(db, project_id).status)
        return ProjectSyncResult(project_id=project_id, status=SyncStateStatus.success)

    monkeypatch.setattr(sync_service.workflow, "run_project_sync", fake_run)

    result = sync_service.start_project_sync(db_session, project.id, full=True)

    assert result.status == SyncStateStatus.success
    assert statuses == [SyncJobStatus.active]
    messages = [entry.message for entry in sync_service.list_sync_logs(db_session, project.id)]
    assert "Sync resumed by admin" in messages
    assert "Manual sync triggered" in messages
