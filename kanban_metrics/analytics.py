from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from .metrics import PortfolioMetrics, aggregate
from .models import IssueTimeline
from .normalize import MalformedTimestampError, build_timeline, normalize_issue
from .period import AnalysisWindow
from .statuses import StatusCatalog
from .summary import IssueSummary, summarize_issue


logger = logging.getLogger(__name__)


def _issue_key(issue: dict[str, Any]) -> str:
    return str(issue.get("key") or "").strip() or "<unknown>"


def build_timelines(
    issues: Iterable[dict[str, Any]],
    raw_jira: bool = True,
) -> tuple[list[IssueTimeline], list[str]]:
    """Turn fetched issues into timelines, skipping those with bad timestamps.

    ``raw_jira`` selects between Jira search results and already flattened
    ``{key, type, created, labels, transitions}`` records.
    """
    convert = normalize_issue if raw_jira else build_timeline
    timelines: list[IssueTimeline] = []
    skipped: list[str] = []
    for issue in issues:
        try:
            timelines.append(convert(issue))
        except MalformedTimestampError as error:
            key = _issue_key(issue)
            logger.warning("Skipping issue %s: %s", key, error)
            skipped.append(key)
    return timelines, skipped


def summarize_timelines(
    timelines: Iterable[IssueTimeline],
    catalog: StatusCatalog,
    window_end: datetime,
    now: datetime | None = None,
) -> list[IssueSummary]:
    summaries = [summarize_issue(timeline, catalog, window_end, now=now) for timeline in timelines]
    for item in summaries:
        logger.debug(
            "%s (%s): %s WIP days, resolved=%s, last status %s",
            item.key,
            item.issue_type,
            item.wip_days,
            item.resolved,
            item.last_status,
        )
    return summaries


def build_flow_metrics(
    issues: Iterable[dict[str, Any]],
    catalog: StatusCatalog,
    window: AnalysisWindow,
    now: datetime | None = None,
    raw_jira: bool = True,
) -> PortfolioMetrics:
    timelines, skipped = build_timelines(issues, raw_jira=raw_jira)
    logger.info(
        "Computing flow metrics for project %s, %s to %s: %s issues (%s skipped)",
        catalog.project or "-",
        window.first_day.isoformat(),
        window.last_day.isoformat(),
        len(timelines),
        len(skipped),
    )

    summaries = summarize_timelines(timelines, catalog, window.end, now=now)
    metrics = aggregate(summaries, catalog, window=window, skipped_issues=skipped)

    for status in metrics.unmapped_statuses:
        logger.warning("Status %r is not mapped in the board configuration, please update it", status)
    return metrics
