from pathlib import Path

import pytest

from kanban_metrics.config import build_catalog, load_config
from kanban_metrics.statuses import IDLE, WIP


def test_load_config_reads_board_mapping(tmp_path: Path):
    file = tmp_path / "jira_board.yaml"
    file.write_text(
        """
base_url: https://jira.example.com/
username: alice
password: secret
project: DET
verify_ssl: false
request_timeout_seconds: 15
status_mapping:
    open:
        - Open
        - Backlog
    wip:
        - Dev
        - 开发中
    idle:
        - Dev-Wait
    done: Resolved
jql_filters:
  - component = Core
""".strip(),
        encoding="utf-8",
    )

    cfg = load_config(str(file))
    assert cfg["base_url"] == "https://jira.example.com"
    assert cfg["project"] == "DET"
    assert cfg["verify_ssl"] is False
    assert cfg["request_timeout_seconds"] == 15
    assert cfg["status_mapping"]["open"] == ["Open", "Backlog"]
    assert cfg["status_mapping"]["wip"] == ["Dev", "开发中"]
    assert cfg["status_mapping"]["idle"] == ["Dev-Wait"]
    assert cfg["status_mapping"]["done"] == ["Resolved"]
    assert cfg["jql_filters"] == ["component = Core"]
    assert cfg["exclude_issue_types"] == ["Epic"]

    catalog = build_catalog(cfg)
    assert catalog.project == "DET"
    assert catalog.category_of("dev") == WIP
    assert catalog.category_of("DEV-WAIT") == IDLE


def test_load_config_allows_clearing_excluded_types(tmp_path: Path):
    file = tmp_path / "jira_board.yaml"
    file.write_text(
        """
base_url: https://jira.example.com
username: alice
password: secret
project: DET
exclude_issue_types: []
""".strip(),
        encoding="utf-8",
    )

    cfg = load_config(str(file))
    assert cfg["exclude_issue_types"] == []
    assert cfg["status_mapping"]["done"] == []


def test_load_config_requires_project(tmp_path: Path):
    file = tmp_path / "jira_board.yaml"
    file.write_text(
        """
base_url: https://jira.example.com/
username: alice
password: secret
""".strip(),
        encoding="utf-8",
    )

    with pytest.raises(ValueError):
        load_config(str(file))


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))
