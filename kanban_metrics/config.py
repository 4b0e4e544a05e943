from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .statuses import StatusCatalog


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "jira_board.yaml"
REQUIRED_KEYS = ("base_url", "username", "password", "project")
STATUS_GROUPS = ("open", "wip", "idle", "done")
DEFAULT_EXCLUDED_ISSUE_TYPES = ("Epic",)


def _as_list(values: Any) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned = (str(item).strip() for item in values)
    return [item for item in cleaned if item]


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Read the board YAML and fill in defaults.

    Status groups and list options accept either a single name or a list.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Board config not found: {path}")

    with path.open(encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    missing = [key for key in REQUIRED_KEYS if not raw.get(key)]
    if missing:
        raise ValueError(f"Board config {path} is missing: {', '.join(missing)}")

    mapping = raw.get("status_mapping") or {}
    excluded = raw.get("exclude_issue_types")
    return {
        "base_url": str(raw["base_url"]).rstrip("/"),
        "username": raw["username"],
        "password": raw["password"],
        "project": str(raw["project"]).strip(),
        "verify_ssl": bool(raw.get("verify_ssl", True)),
        "request_timeout_seconds": int(raw.get("request_timeout_seconds", 30)),
        "jql_filters": _as_list(raw.get("jql_filters")),
        "exclude_issue_types": _as_list(DEFAULT_EXCLUDED_ISSUE_TYPES if excluded is None else excluded),
        "status_mapping": {group: _as_list(mapping.get(group)) for group in STATUS_GROUPS},
    }


def build_catalog(config: dict[str, Any]) -> StatusCatalog:
    return StatusCatalog.from_mapping(config.get("status_mapping"), project=str(config.get("project") or ""))
