"""DTOs passed between the sync activities and the workflow driver."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, Field

from jirasync.models.enums import SyncStateStatus


class SiteCredentials(BaseModel):
    base_url: str
    admin_email: str
    token: str = Field(repr=False)


class BatchContext(BaseModel):
    """Everything ``run_batch`` needs, resolved once by ``prepare``.

    Passed unchanged into every batch of a run. The credential is never
    written to a checkpoint; see ``checkpoint_payload``.
    """

    project_id: str
    project_key: str
    site_id: str
    base_url: str
    admin_email: str
    token: str = Field(repr=False)
    tracked_account_ids: list[str] = Field(default_factory=list)
    since: dt.datetime | None = None

    def checkpoint_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"token"})


class SyncCursor(BaseModel):
    next_page_token: str | None = None
    since: dt.datetime | None = None
    last_updated_at: dt.datetime | None = None


class BatchResult(BaseModel):
    has_more: bool
    next_page_token: str | None = None
    last_updated_at: dt.datetime | None = None
    issues_processed: int = 0


class ProjectSyncResult(BaseModel):
    project_id: str
    status: SyncStateStatus
    since: dt.datetime | None = None
    last_updated_at: dt.datetime | None = None
    pages: int = 0
    issues_processed: int = 0
    resumed: bool = False
    message: str | None = None
