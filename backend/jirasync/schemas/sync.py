"""Pydantic schemas for the project sync admin endpoints."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, Field, field_validator

from jirasync.integrations.jira.cron import is_valid_cron
from jirasync.models.enums import SyncEntity, SyncJobStatus, SyncLogLevel, SyncStateStatus


class SyncJobOut(BaseModel):
    id: str
    project_id: str
    workflow_id: str
    schedule_id: str
    cron_schedule: str
    status: SyncJobStatus
    last_run_at: dt.datetime | None = None
    next_run_at: dt.datetime | None = None
    backoff_level: int = 0
    backoff_original_cron: str | None = None

    class Config:
        from_attributes = True


class SyncStateOut(BaseModel):
    entity: SyncEntity
    status: SyncStateStatus
    last_sync_time: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    class Config:
        from_attributes = True


class SyncLogOut(BaseModel):
    id: str
    level: SyncLogLevel
    message: str
    details: dict[str, Any] | None = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class SyncOverview(BaseModel):
    project_id: str
    project_key: str
    running: bool = False
    job: SyncJobOut | None = None
    states: list[SyncStateOut] = Field(default_factory=list)


class SyncTriggerRequest(BaseModel):
    full: bool = False
    account_ids: list[str] | None = Field(default=None, max_length=200)

    @field_validator("account_ids", mode="before")
    @classmethod
    def normalize_account_ids(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [str(item).strip() for item in value if str(item).strip()]


class SyncTriggerResponse(BaseModel):
    status: str = "queued"
    project_id: str
    full: bool = False


class SyncScheduleUpdate(BaseModel):
    cron_schedule: str = Field(..., min_length=1, max_length=64)

    @field_validator("cron_schedule", mode="before")
    @classmethod
    def normalize_cron(cls, value: str) -> str:
        cleaned = " ".join(str(value or "").split())
        if not is_valid_cron(cleaned):
            raise ValueError("invalid_cron_expression")
        return cleaned


class JiraProjectOptionOut(BaseModel):
    id: str
    key: str
    name: str
    project_type_key: str | None = None
    lead: str | None = None

    class Config:
        from_attributes = True


class JiraUserOptionOut(BaseModel):
    account_id: str
    display_name: str
    email: str | None = None
    avatar_url: str | None = None
    tracked: bool = False
