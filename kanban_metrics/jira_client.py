from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

import requests


logger = logging.getLogger(__name__)

SEARCH_ENDPOINT = "/rest/api/2/search"
SEARCH_FIELDS = "summary,status,issuetype,created,labels,parent,epic,sprint"
PAGE_SIZE = 50


class JiraClientError(Exception):
    pass


@dataclass
class JiraConfig:
    base_url: str
    username: str
    password: str
    verify_ssl: bool = True
    timeout_seconds: int = 30
    jql_filters: list[str] | None = None

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> JiraConfig:
        """Connection settings out of a loaded board config."""
        return cls(
            base_url=settings["base_url"],
            username=settings["username"],
            password=settings["password"],
            verify_ssl=settings.get("verify_ssl", True),
            timeout_seconds=settings.get("request_timeout_seconds", 30),
            jql_filters=list(settings.get("jql_filters") or []),
        )


def format_jira_date(value: date) -> str:
    return value.strftime("%Y/%m/%d")


def _quote(value: str) -> str:
    return "'" + value.replace("'", "\\'") + "'"


def _quoted(values: Iterable[str]) -> str:
    return ",".join(_quote(value) for value in values)


def build_window_jql(
    project: str,
    done_statuses: Iterable[str],
    start: date,
    end: date,
    exclude_issue_types: Iterable[str] | None = None,
) -> str:
    """Issues of ``project`` that moved into a Done status between ``start`` and ``end``."""
    statuses = [status for status in done_statuses if status]
    if not project:
        raise JiraClientError("A project is required to build the metrics query")
    if not statuses:
        raise JiraClientError("At least one done status is required to build the metrics query")

    clauses = [f"project = {_quote(project)}"]
    excluded = [item for item in (exclude_issue_types or []) if item]
    if excluded:
        clauses.append(f"issuetype not in ({_quoted(excluded)})")
    clauses.append(
        f"status CHANGED TO ({_quoted(statuses)}) DURING('{format_jira_date(start)}', '{format_jira_date(end)}')"
    )
    return " AND ".join(clauses)


class JiraClient:
    def __init__(self, config: JiraConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.session.auth = (config.username, config.password)
        self.session.headers["Accept"] = "application/json"

    def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        url = self.config.base_url + endpoint
        try:
            response = self.session.request(
                method="GET",
                url=url,
                params=params,
                timeout=self.config.timeout_seconds,
                verify=self.config.verify_ssl,
            )
        except requests.RequestException as error:
            raise JiraClientError(f"Could not reach Jira at {url}: {error}") from error

        status = response.status_code
        if status >= 400:
            logger.warning("Jira answered %s for GET %s", status, endpoint)
        if status in (401, 403):
            raise JiraClientError("Jira rejected the configured credentials")
        if status == 429:
            raise JiraClientError("Jira API rate limit reached, try again later")
        if status >= 500:
            raise JiraClientError(f"Jira server error ({status})")
        if status >= 400:
            raise JiraClientError(f"Jira search failed: {status} {response.text}")
        return response.json()

    def build_search_jql(self, jql: str | None = None) -> str:
        """AND the configured filter clauses with ``jql``."""
        clauses = [f"({clause})" for clause in (self.config.jql_filters or [])]
        if jql:
            clauses.append(f"({jql})")
        if not clauses:
            raise JiraClientError("Nothing to search for: no JQL given and no jql_filters configured")
        return " AND ".join(clauses)

    def get_issues_by_jql(self, jql: str | None = None) -> list[dict[str, Any]]:
        """All issues matching ``jql`` with their changelog expanded."""
        query = {
            "jql": self.build_search_jql(jql),
            "fields": SEARCH_FIELDS,
            "expand": "changelog",
            "maxResults": PAGE_SIZE,
        }
        issues: list[dict[str, Any]] = []
        start_at = 0
        while True:
            data = self._get(SEARCH_ENDPOINT, {**query, "startAt": start_at})
            page = data.get("issues") or []
            issues.extend(page)
            total = int(data.get("total") or len(issues))
            logger.debug("Fetched %s of %s issues (startAt=%s)", len(issues), total, start_at)

            if not page or start_at + PAGE_SIZE >= total:
                return issues
            start_at += PAGE_SIZE
