from __future__ import annotations

import base64

import httpx
import pytest

from jirasync.core.exceptions import JiraClientError
from jirasync.integrations.jira.client import JiraClient
from jirasync.integrations.jira.error_classifier import JiraErrorCode


def _client(handler) -> JiraClient:  # noqa: ANN001
    return JiraClient(
        "https://acme.atlassian.net/",
        "admin@acme.test",
        "api-token",
        transport=httpx.MockTransport(handler),
    )


def test_search_returns_one_page_with_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "issues": [{"id": "1", "key": "DEMO-1"}, {"id": "2", "key": "DEMO-2"}],
                "nextPageToken": "tok-2",
                "isLast": False,
                "total": 5,
            },
        )

    page = _client(handler).search('project = "DEMO"', next_page_token="tok-1", max_results=2)

    assert [issue["key"] for issue in page.issues] == ["DEMO-1", "DEMO-2"]
    assert page.next_page_token == "tok-2"
    assert page.is_last is False
    assert page.total == 5

    assert len(seen) == 1
    request = seen[0]
    assert request.url.path == "/rest/api/3/search/jql"
    assert request.url.params["jql"] == 'project = "DEMO"'
    assert request.url.params["nextPageToken"] == "tok-1"
    assert request.url.params["maxResults"] == "2"
    expected_auth = base64.b64encode(b"admin@acme.test:api-token").decode()
    assert request.headers["Authorization"] == f"Basic {expected_auth}"


def test_search_without_token_or_flag_is_last_page() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert "nextPageToken" not in request.url.params
        return httpx.Response(200, json={"issues": []})

    page = _client(handler).search("project = DEMO")
    assert page.issues == []
    assert page.next_page_token is None
    assert page.is_last is True


def test_fetch_comments_drains_offset_pages() -> None:
    starts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        start = int(request.url.params["startAt"])
        starts.append(start)
        chunk = [{"id": str(index)} for index in range(start, min(start + 100, 250))]
        return httpx.Response(200, json={"startAt": start, "maxResults": 100, "total": 250, "comments": chunk})

    comments = _client(handler).fetch_comments("DEMO-1")

    assert starts == [0, 100, 200]
    assert len(comments) == 250
    assert comments[0]["id"] == "0"
    assert comments[-1]["id"] == "249"


def test_fetch_worklogs_stops_on_empty_chunk() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(int(request.url.params["startAt"]))
        if len(calls) == 1:
            return httpx.Response(200, json={"total": 500, "worklogs": [{"id": "w1"}]})
        return httpx.Response(200, json={"total": 500, "worklogs": []})

    worklogs = _client(handler).fetch_worklogs("DEMO-1")
    assert worklogs == [{"id": "w1"}]
    assert calls == [0, 1]


def test_fetch_issue_detail_replaces_nested_collections() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/rest/api/3/issue/DEMO-7":
            assert request.url.params["expand"] == "renderedFields,comment,changelog"
            return httpx.Response(
                200,
                json={
                    "id": "10007",
                    "key": "DEMO-7",
                    "fields": {"summary": "S", "comment": {"comments": [{"id": "partial"}], "total": 2}},
                },
            )
        if path == "/rest/api/3/issue/DEMO-7/comment":
            return httpx.Response(200, json={"total": 2, "comments": [{"id": "c1"}, {"id": "c2"}]})
        if path == "/rest/api/3/issue/DEMO-7/worklog":
            return httpx.Response(200, json={"total": 1, "worklogs": [{"id": "w1"}]})
        return httpx.Response(404)

    detail = _client(handler).fetch_issue_detail("DEMO-7")

    assert detail["key"] == "DEMO-7"
    assert [item["id"] for item in detail["fields"]["comment"]["comments"]] == ["c1", "c2"]
    assert detail["fields"]["comment"]["total"] == 2
    assert [item["id"] for item in detail["fields"]["worklog"]["worklogs"]] == ["w1"]


def test_fetch_issue_detail_can_skip_collections() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"id": "1", "key": "DEMO-1", "fields": {}})

    detail = _client(handler).fetch_issue_detail("DEMO-1", include_comments=False, include_worklogs=False)
    assert paths == ["/rest/api/3/issue/DEMO-1"]
    assert "comment" not in detail["fields"]


def test_vendor_code_classified_from_error_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"errorCode": "SUSPENDED_PAYMENT", "errorMessage": "Site suspended"})

    with pytest.raises(JiraClientError) as excinfo:
        _client(handler).search("project = DEMO")

    error = excinfo.value
    assert error.classification.code == JiraErrorCode.SUSPENDED_PAYMENT
    assert error.retryable is False
    assert error.message == "Site suspended"
    assert error.details["path"] == "/rest/api/3/search/jql"


def test_rate_limit_carries_retry_after() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "7"}, text="")

    with pytest.raises(JiraClientError) as excinfo:
        _client(handler).fetch_comments("DEMO-1")

    assert excinfo.value.classification.code == JiraErrorCode.RATE_LIMIT
    assert excinfo.value.retryable is True
    assert excinfo.value.retry_after == 7.0


def test_empty_and_non_json_error_bodies_fall_back_to_status_text() -> None:
    responses = iter(
        [
            httpx.Response(500, content=b""),
            httpx.Response(502, text="<html>bad gateway</html>"),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    client = _client(handler)
    with pytest.raises(JiraClientError) as first:
        client.search("project = DEMO")
    assert first.value.classification.code == JiraErrorCode.SERVER_ERROR
    assert first.value.message == "Internal Server Error"

    with pytest.raises(JiraClientError) as second:
        client.search("project = DEMO")
    assert second.value.classification.status == 502
    assert second.value.message == "Bad Gateway"


def test_connectivity_failure_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(JiraClientError) as excinfo:
        _client(handler).fetch_issue_detail("DEMO-1")

    assert excinfo.value.classification.code == JiraErrorCode.NETWORK
    assert excinfo.value.classification.status is None
    assert excinfo.value.retryable is True


def test_list_assignable_users_maps_options() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["project"] == "DEMO"
        return httpx.Response(
            200,
            json=[
                {"accountId": "acc-1", "displayName": "Alice", "avatarUrls": {"48x48": "https://a/48.png"}},
                {"displayName": "no account"},
            ],
        )

    users = _client(handler).list_assignable_users("DEMO")
    assert len(users) == 1
    assert users[0].account_id == "acc-1"
    assert users[0].avatar_url == "https://a/48.png"
