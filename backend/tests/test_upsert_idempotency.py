from __future__ import annotations

from conftest import make_issue_detail
from jirasync.integrations.jira.upsert import upsert_issue_from_detail
from jirasync.models.issue import Comment, Issue, Worklog
from jirasync.models.jira_user import JiraUser
from jirasync.models.sprint import Sprint


def _detail(**overrides) -> dict:  # noqa: ANN003
    payload = {
        "assignee": {"accountId": "acc-1", "displayName": "Alice"},
        "comments": [
            {
                "id": "c1",
                "body": "first",
                "author": {"accountId": "acc-2", "displayName": "Bob"},
                "created": "2024-01-02T10:01:00.000+0000",
                "updated": "2024-01-02T10:01:00.000+0000",
            },
            {"id": "c2", "body": "hidden author", "created": "2024-01-02T10:02:00.000+0000"},
        ],
        "worklogs": [
            {
                "id": "w1",
                "author": {"accountId": "acc-1", "displayName": "Alice"},
                "timeSpentSeconds": 1800,
                "started": "2024-01-02T08:00:00.000+0000",
                "updated": "2024-01-02T08:30:00.000+0000",
            }
        ],
        "sprint": [{"id": 7, "name": "Sprint 7", "state": "active"}],
    }
    payload.update(overrides)
    return make_issue_detail(**payload)


def _counts(db) -> dict[str, int]:  # noqa: ANN001
    return {
        "issues": db.query(Issue).count(),
        "comments": db.query(Comment).count(),
        "worklogs": db.query(Worklog).count(),
        "users": db.query(JiraUser).count(),
        "sprints": db.query(Sprint).count(),
    }


def test_same_payload_twice_yields_same_rows(db_session, project) -> None:
    detail = _detail()

    issue, first = upsert_issue_from_detail(db_session, project.id, detail)
    db_session.commit()
    after_first = _counts(db_session)
    first_issue_id = issue.id

    issue, second = upsert_issue_from_detail(db_session, project.id, detail)
    db_session.commit()

    assert after_first == {"issues": 1, "comments": 2, "worklogs": 1, "users": 3, "sprints": 1}
    assert _counts(db_session) == after_first
    assert issue.id == first_issue_id
    assert first.issues_created == 1 and first.issues_updated == 0
    assert second.issues_created == 0 and second.issues_updated == 1
    assert second.comments == 2 and second.worklogs == 1


def test_missing_author_gets_placeholder_account(db_session, project) -> None:
    upsert_issue_from_detail(db_session, project.id, _detail())
    db_session.commit()

    comment = db_session.query(Comment).filter(Comment.jira_id == "c2").one()
    assert comment.author.account_id == "anon-c2"


def test_update_overwrites_mutable_fields_only(db_session, project) -> None:
    issue, _ = upsert_issue_from_detail(db_session, project.id, _detail())
    db_session.commit()
    created_at = issue.jira_created_at

    changed = _detail(assignee=None, updated="2024-01-03T10:00:00.000+0000")
    changed["fields"]["summary"] = "Renamed"
    changed["fields"]["created"] = "2030-01-01T00:00:00.000+0000"
    issue, _ = upsert_issue_from_detail(db_session, project.id, changed)
    db_session.commit()

    stored = db_session.query(Issue).one()
    assert stored.summary == "Renamed"
    assert stored.assignee_id is None
    assert stored.jira_created_at == created_at
    assert stored.remote_data["fields"]["summary"] == "Renamed"
    assert stored.sprint.jira_id == "7"


def test_comment_without_id_is_skipped(db_session, project) -> None:
    detail = _detail(comments=[{"body": "no id"}], worklogs=[])
    _, counts = upsert_issue_from_detail(db_session, project.id, detail)
    db_session.commit()

    assert counts.comments == 0
    assert db_session.query(Comment).count() == 0
