"""Jira REST v3 transport used by the sync activities."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from jirasync.core.config import settings
from jirasync.core.exceptions import JiraClientError
from jirasync.integrations.jira.error_classifier import classify_jira_error
from jirasync.integrations.jira.schemas import BatchContext, SiteCredentials

logger = logging.getLogger(__name__)

SEARCH_PATH = "/rest/api/3/search/jql"
ISSUE_PATH = "/rest/api/3/issue/{issue_key}"
COMMENTS_PATH = "/rest/api/3/issue/{issue_key}/comment"
WORKLOGS_PATH = "/rest/api/3/issue/{issue_key}/worklog"
PROJECT_SEARCH_PATH = "/rest/api/3/project/search"
ASSIGNABLE_USERS_PATH = "/rest/api/3/user/assignable/search"

SEARCH_FIELDS = "summary,status,assignee,updated"
DETAIL_EXPAND = "renderedFields,comment,changelog"


@dataclass(frozen=True)
class SearchPage:
    issues: list[dict[str, Any]]
    next_page_token: str | None
    is_last: bool
    total: int | None = None


@dataclass(frozen=True)
class JiraProjectOption:
    id: str
    key: str
    name: str
    project_type_key: str | None = None
    lead: str | None = None


@dataclass(frozen=True)
class JiraUserOption:
    account_id: str
    display_name: str
    email: str | None = None
    avatar_url: str | None = None


def avatar_url_from(user: dict[str, Any]) -> str | None:
    avatars = user.get("avatarUrls") or {}
    if not isinstance(avatars, dict):
        return None
    return avatars.get("48x48") or avatars.get("24x24") or None


def _parse_error_body(response: httpx.Response) -> dict[str, Any] | None:
    text = response.text
    if not text or not text.strip():
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = (response.headers.get("Retry-After") or "").strip()
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class JiraClient:
    """Authenticated calls against one Jira site.

    Every failure surfaces as ``JiraClientError``: connectivity problems are
    classified with a null status, non-2xx responses with their status and the
    parsed vendor body. The client never retries; callers own that policy.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        *,
        timeout: float | None = None,
        page_size: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.api_token = api_token
        self.timeout = timeout or settings.JIRA_HTTP_TIMEOUT_SECONDS
        self.page_size = page_size or settings.JIRA_COLLECTION_PAGE_SIZE
        self.transport = transport

    @classmethod
    def from_context(cls, context: BatchContext, **kwargs: Any) -> JiraClient:
        return cls(context.base_url, context.admin_email, context.token, **kwargs)

    @classmethod
    def from_credentials(cls, credentials: SiteCredentials, **kwargs: Any) -> JiraClient:
        return cls(credentials.base_url, credentials.admin_email, credentials.token, **kwargs)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            auth=(self.email, self.api_token),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            transport=self.transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        with self._client() as client:
            try:
                response = client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                logger.warning("Jira request %s %s did not complete: %s", method, path, exc)
                raise JiraClientError(
                    classify_jira_error(None, None, str(exc) or "Network error while contacting Jira"),
                    path=path,
                ) from exc

        if not response.is_success:
            classification = classify_jira_error(
                response.status_code,
                _parse_error_body(response),
                response.reason_phrase or f"HTTP {response.status_code}",
            )
            logger.info(
                "Jira request %s %s failed: status=%s code=%s",
                method,
                path,
                response.status_code,
                classification.code.value,
            )
            raise JiraClientError(classification, retry_after=_parse_retry_after(response), path=path)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise JiraClientError(
                classify_jira_error(response.status_code, None, "Jira returned a malformed JSON body"),
                path=path,
            ) from exc

    def search(
        self,
        jql: str,
        *,
        next_page_token: str | None = None,
        max_results: int | None = None,
        fields: str = SEARCH_FIELDS,
    ) -> SearchPage:
        """Fetch one page of issue summaries; the caller drives pagination."""
        params: dict[str, Any] = {
            "jql": jql,
            "maxResults": max_results or settings.JIRA_SEARCH_PAGE_SIZE,
            "fields": fields,
        }
        if next_page_token:
            params["nextPageToken"] = next_page_token
        payload = self._request("GET", SEARCH_PATH, params=params)
        payload = payload if isinstance(payload, dict) else {}
        issues = [item for item in list(payload.get("issues") or []) if isinstance(item, dict)]
        token = payload.get("nextPageToken")
        total = payload.get("total")
        return SearchPage(
            issues=issues,
            next_page_token=str(token) if token else None,
            # Without an explicit flag, a missing continuation token means the last page.
            is_last=bool(payload.get("isLast", not token)),
            total=int(total) if isinstance(total, int) else None,
        )

    def fetch_issue_detail(
        self,
        issue_key: str,
        *,
        include_comments: bool = True,
        include_worklogs: bool = True,
    ) -> dict[str, Any]:
        key = (issue_key or "").strip()
        if not key:
            raise ValueError("missing_issue_key")
        detail = self._request(
            "GET",
            ISSUE_PATH.format(issue_key=quote(key, safe="")),
            params={"expand": DETAIL_EXPAND},
        )
        detail = detail if isinstance(detail, dict) else {}
        fields = detail.get("fields")
        if not isinstance(fields, dict):
            fields = {}
            detail["fields"] = fields

        if include_comments:
            comments = self.fetch_comments(key)
            fields["comment"] = {"comments": comments, "startAt": 0, "maxResults": len(comments), "total": len(comments)}
        if include_worklogs:
            worklogs = self.fetch_worklogs(key)
            fields["worklog"] = {"worklogs": worklogs, "startAt": 0, "maxResults": len(worklogs), "total": len(worklogs)}
        return detail

    def _drain_offset(self, path: str, items_key: str) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        start_at = 0
        while True:
            page = self._request("GET", path, params={"startAt": start_at, "maxResults": self.page_size})
            page = page if isinstance(page, dict) else {}
            chunk = [item for item in list(page.get(items_key) or []) if isinstance(item, dict)]
            if not chunk:
                break
            rows.extend(chunk)
            start_at += len(chunk)
            if start_at >= int(page.get("total") or 0):
                break
        return rows

    def fetch_comments(self, issue_key: str) -> list[dict[str, Any]]:
        return self._drain_offset(COMMENTS_PATH.format(issue_key=quote(issue_key, safe="")), "comments")

    def fetch_worklogs(self, issue_key: str) -> list[dict[str, Any]]:
        return self._drain_offset(WORKLOGS_PATH.format(issue_key=quote(issue_key, safe="")), "worklogs")

    def list_projects(self) -> list[JiraProjectOption]:
        payload = self._request("GET", PROJECT_SEARCH_PATH, params={"expand": "lead", "maxResults": 100})
        rows = payload.get("values") if isinstance(payload, dict) else None
        options: list[JiraProjectOption] = []
        for item in list(rows or []):
            if not isinstance(item, dict) or not item.get("key"):
                continue
            options.append(
                JiraProjectOption(
                    id=str(item.get("id") or ""),
                    key=str(item["key"]),
                    name=str(item.get("name") or item["key"]),
                    project_type_key=item.get("projectTypeKey"),
                    lead=(item.get("lead") or {}).get("displayName"),
                )
            )
        return options

    def list_assignable_users(self, project_key: str, *, max_results: int = 200) -> list[JiraUserOption]:
        payload = self._request(
            "GET",
            ASSIGNABLE_USERS_PATH,
            params={"project": project_key, "maxResults": max(1, min(max_results, 1000))},
        )
        users: list[JiraUserOption] = []
        for item in payload if isinstance(payload, list) else []:
            if not isinstance(item, dict) or not item.get("accountId"):
                continue
            users.append(
                JiraUserOption(
                    account_id=str(item["accountId"]),
                    display_name=str(item.get("displayName") or item["accountId"]),
                    email=item.get("emailAddress"),
                    avatar_url=avatar_url_from(item),
                )
            )
        return users
