from __future__ import annotations

import pytest

from jirasync.core.exceptions import SiteNotFoundError
from jirasync.integrations.jira.client import JiraProjectOption, JiraUserOption
from jirasync.services import jira_directory


class FakeDirectoryClient:
    instances: list["FakeDirectoryClient"] = []

    def __init__(self, credentials) -> None:  # noqa: ANN001
        self.credentials = credentials
        FakeDirectoryClient.instances.append(self)

    @classmethod
    def from_credentials(cls, credentials, **kwargs):  # noqa: ANN001, ANN003
        return cls(credentials)

    def list_projects(self) -> list[JiraProjectOption]:
        return [JiraProjectOption(id="100", key="DEMO", name="Demo", project_type_key="software", lead="Alice")]

    def list_assignable_users(self, project_key: str) -> list[JiraUserOption]:
        assert project_key == "DEMO"
        return [
            JiraUserOption(account_id="acc-1", display_name="Alice"),
            JiraUserOption(account_id="acc-3", display_name="Carol"),
            JiraUserOption(account_id="acc-9", display_name="Dan", email="dan@example.com"),
        ]


@pytest.fixture(autouse=True)
def fake_client(monkeypatch):
    FakeDirectoryClient.instances = []
    monkeypatch.setattr(jira_directory, "JiraClient", FakeDirectoryClient)


def test_site_projects_use_decrypted_credentials(db_session, project) -> None:
    options = jira_directory.list_site_projects(db_session, project.site_id)

    assert [option.key for option in options] == ["DEMO"]
    assert options[0].lead == "Alice"
    assert FakeDirectoryClient.instances[0].credentials.token == "api-token"


def test_assignable_users_flag_tracked_accounts(db_session, project) -> None:
    users = jira_directory.list_assignable_users(db_session, project.id)

    assert {user.account_id: user.tracked for user in users} == {"acc-1": True, "acc-3": False, "acc-9": False}


def test_unknown_site_raises(db_session) -> None:
    with pytest.raises(SiteNotFoundError):
        jira_directory.list_site_projects(db_session, "missing")
