from __future__ import annotations

from datetime import datetime
import re
from typing import Any

from .models import FlagPeriod, IssueTimeline, Transition


STATUS_FIELD = "status"
EPIC_LINK_FIELD = "epic link"
SPRINT_FIELD = "sprint"
FLAGGED_FIELD = "flagged"

JIRA_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


class MalformedTimestampError(ValueError):
    def __init__(self, value: Any, issue_key: str | None = None) -> None:
        self.value = value
        self.issue_key = issue_key
        where = f" in issue {issue_key}" if issue_key else ""
        super().__init__(f"Malformed timestamp {value!r}{where}")


def _aware(value: datetime) -> datetime:
    # Offset-free timestamps are read as local time.
    if value.tzinfo is None or value.utcoffset() is None:
        return value.astimezone()
    return value


def parse_datetime(value: Any, issue_key: str | None = None) -> datetime:
    """Parse a Jira or ISO-8601 timestamp into a timezone-aware datetime."""
    if isinstance(value, datetime):
        return _aware(value)
    if not value or not isinstance(value, str):
        raise MalformedTimestampError(value, issue_key)

    try:
        return datetime.strptime(value, JIRA_TIME_FORMAT)
    except ValueError:
        pass

    normalized = value.strip().replace("Z", "+00:00")
    if re.search(r"[+-]\d{4}$", normalized):
        normalized = f"{normalized[:-5]}{normalized[-5:-2]}:{normalized[-2:]}"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as error:
        raise MalformedTimestampError(value, issue_key) from error
    return _aware(parsed)


def _text(value: Any) -> str:
    return str(value or "").strip()


def flatten_changelog(issue: dict[str, Any]) -> list[dict[str, Any]]:
    """Jira ``changelog.histories`` as flat ``{field, from, to, timestamp}`` records."""
    records: list[dict[str, Any]] = []
    histories = (issue.get("changelog") or {}).get("histories") or []
    for history in histories:
        changed_at = history.get("created")
        for item in history.get("items") or []:
            records.append(
                {
                    "field": _text(item.get("field")),
                    "from": _text(item.get("fromString")),
                    "to": _text(item.get("toString")),
                    "timestamp": changed_at,
                }
            )
    return records


def _flag_periods(events: list[tuple[datetime, str]]) -> tuple[FlagPeriod, ...]:
    periods: list[FlagPeriod] = []
    started_at: datetime | None = None
    for changed_at, value in events:
        if value and started_at is None:
            started_at = changed_at
        elif not value and started_at is not None:
            periods.append(FlagPeriod(start=started_at, end=changed_at))
            started_at = None
    if started_at is not None:
        periods.append(FlagPeriod(start=started_at))
    return tuple(periods)


def build_timeline(record: dict[str, Any]) -> IssueTimeline:
    """Build an ``IssueTimeline`` from a tracker-neutral issue record.

    ``record`` carries ``key``, ``type``, ``created``, ``labels`` and
    ``transitions`` (``{field, from, to, timestamp}``). Status changes feed the
    replay; epic link, sprint and flag changes become issue metadata. Raises
    ``MalformedTimestampError`` if any timestamp cannot be parsed.
    """
    key = _text(record.get("key"))
    created = parse_datetime(record.get("created"), key)

    parsed: list[tuple[datetime, dict[str, Any]]] = [
        (parse_datetime(row.get("timestamp"), key), row) for row in record.get("transitions") or []
    ]
    parsed.sort(key=lambda pair: pair[0])

    transitions: list[Transition] = []
    flag_events: list[tuple[datetime, str]] = []
    epic_link = _text(record.get("epic_link")) or None
    sprint = _text(record.get("sprint")) or None

    for changed_at, row in parsed:
        field = _text(row.get("field")).lower()
        if field == STATUS_FIELD:
            transitions.append(
                Transition(timestamp=changed_at, from_status=_text(row.get("from")), to_status=_text(row.get("to")))
            )
        elif field == EPIC_LINK_FIELD:
            epic_link = _text(row.get("to")) or None
        elif field == SPRINT_FIELD:
            sprint = _text(row.get("to")) or None
        elif field == FLAGGED_FIELD:
            flag_events.append((changed_at, _text(row.get("to"))))

    return IssueTimeline(
        key=key,
        issue_type=_text(record.get("type")) or "Unknown",
        created=created,
        transitions=tuple(transitions),
        labels=tuple(_text(label) for label in record.get("labels") or [] if _text(label)),
        summary=_text(record.get("summary")),
        epic_link=epic_link,
        sprint=sprint,
        flag_periods=_flag_periods(flag_events),
    )


def _sprint_name(value: Any) -> str | None:
    # The sprint field holds one sprint object, a list of them, or a plain name.
    if isinstance(value, list):
        value = value[-1] if value else None
    if isinstance(value, dict):
        value = value.get("name")
    return _text(value) or None


def _epic_key(fields: dict[str, Any]) -> str | None:
    epic = fields.get("epic")
    if isinstance(epic, dict) and epic.get("key"):
        return _text(epic["key"])
    parent = fields.get("parent") or {}
    parent_type = ((parent.get("fields") or {}).get("issuetype") or {}).get("name")
    if parent.get("key") and _text(parent_type).lower() == "epic":
        return _text(parent["key"])
    return None


def normalize_issue(issue: dict[str, Any]) -> IssueTimeline:
    """Jira search result to ``IssueTimeline``.

    Epic link and sprint start from the issue fields; later changelog values
    replace them.
    """
    fields = issue.get("fields") or {}
    return build_timeline(
        {
            "key": issue.get("key"),
            "type": (fields.get("issuetype") or {}).get("name"),
            "created": fields.get("created"),
            "labels": fields.get("labels") or [],
            "summary": fields.get("summary"),
            "epic_link": _epic_key(fields),
            "sprint": _sprint_name(fields.get("sprint")),
            "transitions": flatten_changelog(issue),
        }
    )
