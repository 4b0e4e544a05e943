from __future__ import annotations

from typing import Any

import pytest

from kanban_metrics.jira_client import JiraClientError
from kanban_metrics.main import create_app
from kanban_metrics.statuses import StatusCatalog


BOARD_CONFIG: dict[str, Any] = {
    "base_url": "https://jira.example.com",
    "username": "alice",
    "password": "secret",
    "project": "DET",
    "verify_ssl": True,
    "request_timeout_seconds": 30,
    "jql_filters": [],
    "exclude_issue_types": ["Epic"],
    "status_mapping": {
        "open": ["Open", "To Do"],
        "wip": ["In Progress", "Dev"],
        "idle": ["Waiting", "QA Wait"],
        "done": ["Done", "Resolved"],
    },
}


def jira_issue(key: str, issue_type: str, created: str, histories: list[tuple[str, list[dict[str, str]]]]) -> dict[str, Any]:
    return {
        "key": key,
        "fields": {
            "summary": f"Summary of {key}",
            "issuetype": {"name": issue_type},
            "created": created,
            "labels": ["backend"],
        },
        "changelog": {
            "histories": [{"created": changed_at, "items": items} for changed_at, items in histories],
        },
    }


class FakeJiraClient:
    def __init__(self, issues=None, error=None):
        self.issues = issues
        self.error = error
        self.last_jql = None
        self.query_calls = 0

    def get_issues_by_jql(self, jql=None):
        self.last_jql = jql
        self.query_calls += 1
        if self.error:
            raise JiraClientError(self.error)
        if self.issues is not None:
            return self.issues
        return [
            jira_issue(
                "DET-1",
                "Story",
                "2024-01-01T09:00:00.000+0000",
                [
                    (
                        "2024-01-02T09:00:00.000+0000",
                        [{"field": "status", "fromString": "Open", "toString": "In Progress"}],
                    ),
                    (
                        "2024-01-03T09:00:00.000+0000",
                        [{"field": "Epic Link", "fromString": "", "toString": "DET-100"}],
                    ),
                    (
                        "2024-01-08T09:00:00.000+0000",
                        [{"field": "status", "fromString": "In Progress", "toString": "Done"}],
                    ),
                ],
            ),
            jira_issue(
                "DET-2",
                "Bug",
                "2024-01-02T09:00:00.000+0000",
                [
                    (
                        "2024-01-03T09:00:00.000+0000",
                        [{"field": "status", "fromString": "Open", "toString": "In Progress"}],
                    ),
                ],
            ),
        ]

    def build_search_jql(self, jql=None):
        if jql:
            return f"(component = Core) AND ({jql})"
        return "(component = Core)"


@pytest.fixture
def board_config():
    return dict(BOARD_CONFIG)


@pytest.fixture
def catalog():
    return StatusCatalog.from_mapping(BOARD_CONFIG["status_mapping"], project="DET")


@pytest.fixture
def fake_jira():
    return FakeJiraClient()


@pytest.fixture
def app(fake_jira, board_config):
    app = create_app(jira_client=fake_jira, config=board_config)
    return app


@pytest.fixture
def client(app):
    return app.test_client()
