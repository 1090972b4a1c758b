"""Shared enum values used by the database models and schemas."""

from __future__ import annotations

import enum


class SyncJobStatus(str, enum.Enum):
    pending = "PENDING"
    active = "ACTIVE"
    paused = "PAUSED"
    error = "ERROR"


class SyncStateStatus(str, enum.Enum):
    idle = "IDLE"
    running = "RUNNING"
    success = "SUCCESS"
    failed = "FAILED"


class SyncLogLevel(str, enum.Enum):
    debug = "DEBUG"
    info = "INFO"
    warn = "WARN"
    error = "ERROR"


class SyncEntity(str, enum.Enum):
    issue = "issue"
    comment = "comment"
    worklog = "worklog"


# Every project carries exactly one sync state per entity kind.
SYNC_ENTITIES: tuple[SyncEntity, ...] = (SyncEntity.issue, SyncEntity.comment, SyncEntity.worklog)


def enum_column_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]
