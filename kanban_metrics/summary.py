from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .business_days import business_duration, to_days
from .models import FlagPeriod, IssueTimeline
from .replay import ReplayResult, replay
from .statuses import IDLE, UNMAPPED, WIP, StatusCatalog


logger = logging.getLogger(__name__)

MIN_FLAG_DURATION = timedelta(hours=4)
CONSISTENCY_TOLERANCE = timedelta(hours=1)


@dataclass(frozen=True, slots=True)
class IssueSummary:
    key: str
    issue_type: str
    created: datetime
    resolved: bool
    resolved_date: datetime | None
    first_wip_date: datetime | None
    last_status: str
    last_transition_at: datetime | None
    wip_duration: timedelta
    wip_only_duration: timedelta
    idle_duration: timedelta
    unmapped_duration: timedelta
    categorized_total: timedelta
    wip_days: int
    wip_only_days: int
    flag_days: int = 0
    summary: str = ""
    epic_link: str | None = None
    sprint: str | None = None
    labels: tuple[str, ...] = ()
    duration_by_status: dict[str, timedelta] = field(default_factory=dict)
    duration_by_category: dict[str, timedelta] = field(default_factory=dict)
    unmapped_statuses: tuple[str, ...] = ()
    inconsistent_transitions: bool = False

    @property
    def end_date(self) -> datetime | None:
        return self.resolved_date or self.last_transition_at


def wip_day_count(duration: timedelta) -> int:
    """Whole WIP days for display; anything shorter than a day still counts as one."""
    return max(1, to_days(duration))


def _flag_days(periods: tuple[FlagPeriod, ...], horizon: datetime | None) -> int:
    total = 0
    for period in periods:
        end = period.end or horizon
        if end is None:
            continue
        duration = business_duration(period.start, end)
        if duration >= MIN_FLAG_DURATION:
            total += max(1, to_days(duration))
    return total


def summarize(timeline: IssueTimeline, result: ReplayResult, catalog: StatusCatalog) -> IssueSummary:
    by_category: dict[str, timedelta] = {}
    unmapped: list[str] = []
    for status, duration in result.duration_by_status.items():
        category = catalog.category_of(status)
        by_category[category] = by_category.get(category, timedelta(0)) + duration
        if category == UNMAPPED:
            unmapped.append(status)

    zero = timedelta(0)
    wip_only = by_category.get(WIP, zero)
    idle = by_category.get(IDLE, zero)
    wip_total = wip_only + idle
    unmapped_total = by_category.get(UNMAPPED, zero)
    categorized = sum((value for key, value in by_category.items() if key != UNMAPPED), zero)

    resolved = result.last_transition_at is not None and catalog.is_done(result.last_status)
    resolved_date = result.last_transition_at if resolved else None

    inconsistent = False
    if resolved and result.first_wip_date is not None:
        expected = business_duration(result.first_wip_date, resolved_date)
        if abs(wip_total - expected) > CONSISTENCY_TOLERANCE:
            inconsistent = True
            logger.debug(
                "%s has some strange status transition: %s tracked in WIP, %s between first WIP and resolution",
                timeline.key,
                wip_total,
                expected,
            )

    return IssueSummary(
        key=timeline.key,
        issue_type=timeline.issue_type,
        created=timeline.created,
        resolved=resolved,
        resolved_date=resolved_date,
        first_wip_date=result.first_wip_date,
        last_status=result.last_status,
        last_transition_at=result.last_transition_at,
        wip_duration=wip_total,
        wip_only_duration=wip_only,
        idle_duration=idle,
        unmapped_duration=unmapped_total,
        categorized_total=categorized,
        wip_days=wip_day_count(wip_total),
        wip_only_days=wip_day_count(wip_only) if wip_only > zero else 0,
        flag_days=_flag_days(timeline.flag_periods, result.horizon),
        summary=timeline.summary,
        epic_link=timeline.epic_link,
        sprint=timeline.sprint,
        labels=timeline.labels,
        duration_by_status=dict(result.duration_by_status),
        duration_by_category=by_category,
        unmapped_statuses=tuple(unmapped),
        inconsistent_transitions=inconsistent,
    )


def summarize_issue(
    timeline: IssueTimeline,
    catalog: StatusCatalog,
    window_end: datetime,
    now: datetime | None = None,
) -> IssueSummary:
    clipped = timeline.clipped(window_end)
    return summarize(clipped, replay(clipped, window_end, catalog, now=now), catalog)
