from __future__ import annotations

import pytest

from conftest import make_issue_detail, utc
from jirasync.core.exceptions import JiraClientError
from jirasync.integrations.jira import activities
from jirasync.integrations.jira.client import SearchPage
from jirasync.integrations.jira.error_classifier import JiraErrorCode, classify_jira_error
from jirasync.integrations.jira.retry import RetryPolicy
from jirasync.integrations.jira.schemas import BatchContext, SyncCursor
from jirasync.models.issue import Issue
from jirasync.models.sync_log import SyncLog

UPDATED = {
    "DEMO-1": "2024-01-05T10:00:00.000+0000",
    "DEMO-2": "2024-01-03T10:00:00.000+0000",
    "DEMO-3": "2024-01-02T10:00:00.000+0000",
}


def _context(project, accounts: list[str] | None = None, since=None) -> BatchContext:  # noqa: ANN001
    return BatchContext(
        project_id=project.id,
        project_key="DEMO",
        site_id=project.site_id,
        base_url="https://acme.atlassian.net",
        admin_email="admin@acme.test",
        token="api-token",
        tracked_account_ids=["acc-1"] if accounts is None else accounts,
        since=since,
    )


def _policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, jitter=False, sleep=lambda _: None)


class FakeJiraClient:
    searches: list[tuple[str, str | None]] = []
    details: list[str] = []
    failures: dict[str, list[Exception]] = {}
    search_failures: list[Exception] = []

    @classmethod
    def from_context(cls, context, **kwargs):  # noqa: ANN001, ANN003, ANN206
        return cls()

    def search(self, jql: str, *, next_page_token: str | None = None, **kwargs) -> SearchPage:  # noqa: ANN003
        self.searches.append((jql, next_page_token))
        if self.search_failures:
            raise self.search_failures.pop(0)
        if next_page_token is None:
            return SearchPage(issues=[{"key": "DEMO-1"}, {"key": "DEMO-2"}], next_page_token="page-2", is_last=False)
        return SearchPage(issues=[{"key": "DEMO-3"}], next_page_token=None, is_last=True)

    def fetch_issue_detail(self, issue_key: str) -> dict:
        self.details.append(issue_key)
        pending = self.failures.get(issue_key) or []
        if pending:
            raise pending.pop(0)
        number = issue_key.split("-")[1]
        return make_issue_detail(f"1000{number}", issue_key, updated=UPDATED[issue_key])


@pytest.fixture()
def fake_client(monkeypatch):
    FakeJiraClient.searches = []
    FakeJiraClient.details = []
    FakeJiraClient.failures = {}
    FakeJiraClient.search_failures = []
    monkeypatch.setattr(activities, "JiraClient", FakeJiraClient)
    return FakeJiraClient


def test_no_tracked_accounts_short_circuits(db_session, project, monkeypatch) -> None:
    class ExplodingClient:
        @classmethod
        def from_context(cls, context, **kwargs):  # noqa: ANN001, ANN003, ANN206
            raise AssertionError("no remote call expected")

    monkeypatch.setattr(activities, "JiraClient", ExplodingClient)
    cursor = SyncCursor(last_updated_at=utc(2024, 1, 1))

    result = activities.run_batch(db_session, _context(project, accounts=[]), cursor)

    assert result.has_more is False
    assert result.last_updated_at == utc(2024, 1, 1)


def test_pages_thread_token_and_high_water_mark_never_regresses(db_session, project, fake_client) -> None:
    context = _context(project)

    first = activities.run_batch(db_session, context, SyncCursor(), retry_policy=_policy())
    assert first.has_more is True
    assert first.next_page_token == "page-2"
    assert first.issues_processed == 2
    assert first.last_updated_at == utc(2024, 1, 5, 10)

    second = activities.run_batch(
        db_session,
        context,
        SyncCursor(next_page_token=first.next_page_token, last_updated_at=first.last_updated_at),
        retry_policy=_policy(),
    )
    assert second.has_more is False
    assert second.next_page_token is None
    assert second.last_updated_at == utc(2024, 1, 5, 10)

    assert [token for _, token in fake_client.searches] == [None, "page-2"]
    assert fake_client.details == ["DEMO-1", "DEMO-2", "DEMO-3"]
    assert db_session.query(Issue).count() == 3
    messages = [entry.message for entry in db_session.query(SyncLog).all()]
    assert messages.count("Synced 2 issues") == 1
    assert messages.count("Synced 1 issues") == 1


def test_cursor_since_constrains_the_query(db_session, project, fake_client) -> None:
    activities.run_batch(
        db_session,
        _context(project, since=utc(2024, 1, 1)),
        SyncCursor(since=utc(2024, 1, 1, 6, 30)),
        retry_policy=_policy(),
    )
    jql = fake_client.searches[0][0]
    assert 'assignee was in ("acc-1")' in jql
    assert 'updated >= "2024/01/01 06:30"' in jql


def test_transient_detail_failure_is_retried(db_session, project, fake_client) -> None:
    fake_client.failures["DEMO-2"] = [JiraClientError(classify_jira_error(503, None, "Service Unavailable"))]

    result = activities.run_batch(db_session, _context(project), SyncCursor(), retry_policy=_policy())

    assert result.issues_processed == 2
    assert fake_client.details == ["DEMO-1", "DEMO-2", "DEMO-2"]


def test_permanent_failure_propagates_and_keeps_earlier_issues(db_session, project, fake_client) -> None:
    fake_client.failures["DEMO-2"] = [JiraClientError(classify_jira_error(404, None, "Not Found"))]

    with pytest.raises(JiraClientError) as excinfo:
        activities.run_batch(db_session, _context(project), SyncCursor(), retry_policy=_policy())

    assert excinfo.value.classification.code == JiraErrorCode.NOT_FOUND
    assert fake_client.details == ["DEMO-1", "DEMO-2"]
    assert [issue.key for issue in db_session.query(Issue).all()] == ["DEMO-1"]


def test_transient_search_failure_is_retried(db_session, project, fake_client) -> None:
    fake_client.search_failures = [JiraClientError(classify_jira_error(503, None, "Service Unavailable"))]

    result = activities.run_batch(db_session, _context(project), SyncCursor(), retry_policy=_policy())

    assert [token for _, token in fake_client.searches] == [None, None]
    assert result.has_more is True
    assert result.next_page_token == "page-2"
    assert result.issues_processed == 2


def test_bad_request_search_fails_without_retry(db_session, project, fake_client) -> None:
    fake_client.search_failures = [JiraClientError(classify_jira_error(400, None, "Bad Request"))]

    with pytest.raises(JiraClientError) as excinfo:
        activities.run_batch(db_session, _context(project), SyncCursor(), retry_policy=_policy())

    assert excinfo.value.classification.code == JiraErrorCode.BAD_REQUEST
    assert len(fake_client.searches) == 1
    assert fake_client.details == []


def test_empty_cursor_falls_back_to_run_since(db_session, project, monkeypatch, fake_client) -> None:
    monkeypatch.setattr(
        fake_client, "search", lambda self, jql, **kwargs: SearchPage(issues=[], next_page_token=None, is_last=True)
    )

    result = activities.run_batch(
        db_session,
        _context(project, since=utc(2024, 1, 1)),
        SyncCursor(),
        retry_policy=_policy(),
    )

    assert result.has_more is False
    assert result.last_updated_at == utc(2024, 1, 1)


def test_page_log_counts_comments_and_worklogs(db_session, project, monkeypatch, fake_client) -> None:
    def detail(self, issue_key: str) -> dict:  # noqa: ANN001
        self.details.append(issue_key)
        return make_issue_detail(
            f"3000{issue_key[-1]}",
            issue_key,
            updated=UPDATED[issue_key],
            comments=[
                {
                    "id": f"c-{issue_key}",
                    "body": "looking",
                    "author": {"accountId": "acc-1", "displayName": "Alice"},
                    "created": "2024-01-02T10:01:00.000+0000",
                }
            ],
            worklogs=[
                {
                    "id": f"w-{issue_key}",
                    "author": {"accountId": "acc-1", "displayName": "Alice"},
                    "timeSpentSeconds": 1800,
                    "started": "2024-01-02T08:00:00.000+0000",
                }
            ],
        )

    monkeypatch.setattr(fake_client, "fetch_issue_detail", detail)

    activities.run_batch(db_session, _context(project), SyncCursor(), retry_policy=_policy())

    entry = db_session.query(SyncLog).filter(SyncLog.message == "Synced 2 issues").one()
    assert entry.details["comments"] == 2
    assert entry.details["worklogs"] == 2
