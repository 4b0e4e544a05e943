from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Sequence

from .business_days import round_half_up
from .period import AnalysisWindow
from .stats import NOT_COMPUTABLE, confidence_bound, mean, median, percentage, sample_std_dev
from .statuses import CATEGORIES, UNMAPPED, StatusCatalog
from .summary import IssueSummary


CATEGORY_ORDER = {name: index for index, name in enumerate((*CATEGORIES, UNMAPPED))}
MIN_WIP_DURATION = timedelta(hours=1)
WORK_DAYS_PER_WEEK = 5


@dataclass(frozen=True, slots=True)
class DurationShare:
    name: str
    category: str
    duration: timedelta
    percent_of_wip: float | None
    percent_of_total: float | None


@dataclass(frozen=True, slots=True)
class TypeThroughput:
    issue_type: str
    count: int
    percent: float | None


@dataclass(frozen=True, slots=True)
class TypeLeadTime:
    issue_type: str
    count: int
    mean: float | None
    median: float | None
    std_dev: float | None
    confidence_bound: float | None

    @property
    def outlier_threshold(self) -> int | None:
        if self.confidence_bound is None:
            return None
        return round_half_up(self.confidence_bound)


@dataclass(frozen=True, slots=True)
class ScatterPoint:
    key: str
    issue_type: str
    start: datetime | None
    end: datetime | None
    wip_days: int
    epic_link: str | None
    labels: tuple[str, ...]
    resolved: bool
    outlier: bool


@dataclass(frozen=True, slots=True)
class PortfolioMetrics:
    project: str
    issue_count: int
    status_shares: tuple[DurationShare, ...] = ()
    category_shares: tuple[DurationShare, ...] = ()
    total_wip_duration: timedelta = timedelta(0)
    total_categorized_duration: timedelta = timedelta(0)
    throughput_total: int = 0
    throughput_by_type: tuple[TypeThroughput, ...] = ()
    throughput_daily: float | None = None
    throughput_weekly: float | None = None
    wip_issue_count: int = 0
    wip_average: float | None = None
    lead_time_average: float | None = None
    lead_time_mean: float | None = None
    lead_time_median: float | None = None
    lead_time_by_type: tuple[TypeLeadTime, ...] = ()
    outliers: tuple[str, ...] = ()
    scatter: tuple[ScatterPoint, ...] = ()
    unmapped_statuses: tuple[str, ...] = ()
    skipped_issues: tuple[str, ...] = ()
    window: dict[str, Any] = field(default_factory=dict)

    def lead_time_for(self, issue_type: str) -> TypeLeadTime | None:
        for row in self.lead_time_by_type:
            if row.issue_type == issue_type:
                return row
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "issue_count": self.issue_count,
            "window": self.window,
            "average_by_status": [_share_row(row) for row in self.status_shares],
            "average_by_category": [_share_row(row) for row in self.category_shares],
            "throughput": {
                "total": self.throughput_total,
                "daily": _computable(self.throughput_daily),
                "weekly": _computable(self.throughput_weekly),
                "by_type": [
                    {"issue_type": row.issue_type, "count": row.count, "percent": _computable(row.percent)}
                    for row in self.throughput_by_type
                ],
            },
            "wip": {
                "issue_count": self.wip_issue_count,
                "average": _computable(self.wip_average),
            },
            "lead_time": {
                "average": _computable(self.lead_time_average),
                "mean": _computable(self.lead_time_mean),
                "median": _computable(self.lead_time_median),
                "by_type": [
                    {
                        "issue_type": row.issue_type,
                        "count": row.count,
                        "mean": _computable(row.mean),
                        "median": _computable(row.median),
                        "std_dev": _computable(row.std_dev),
                        "confidence_bound_90": _computable(row.confidence_bound),
                    }
                    for row in self.lead_time_by_type
                ],
            },
            "outliers": list(self.outliers),
            "scatter": [
                {
                    "key": point.key,
                    "issue_type": point.issue_type,
                    "start": point.start.isoformat() if point.start else None,
                    "end": point.end.isoformat() if point.end else None,
                    "wip_days": point.wip_days,
                    "epic_link": point.epic_link,
                    "labels": list(point.labels),
                    "resolved": point.resolved,
                    "outlier": point.outlier,
                }
                for point in self.scatter
            ],
            "unmapped_statuses": list(self.unmapped_statuses),
            "skipped_issues": list(self.skipped_issues),
        }


def _computable(value: float | None) -> float | str:
    if value is None:
        return NOT_COMPUTABLE
    return round(value, 2)


def duration_days(duration: timedelta) -> float:
    return round(duration.total_seconds() / 86400, 2)


def _share_row(row: DurationShare) -> dict[str, Any]:
    return {
        "name": row.name,
        "category": row.category,
        "duration_days": duration_days(row.duration),
        "duration_seconds": int(row.duration.total_seconds()),
        "percent_of_wip": _computable(row.percent_of_wip),
        "percent_of_total": _computable(row.percent_of_total),
    }


def _shares(
    totals: dict[str, timedelta],
    categories: dict[str, str],
    wip_total: timedelta,
    categorized_total: timedelta,
) -> tuple[DurationShare, ...]:
    rows = [
        DurationShare(
            name=name,
            category=categories[name],
            duration=duration,
            percent_of_wip=percentage(duration, wip_total),
            percent_of_total=percentage(duration, categorized_total),
        )
        for name, duration in totals.items()
    ]
    rows.sort(key=lambda row: (CATEGORY_ORDER.get(row.category, len(CATEGORY_ORDER)), -row.duration, row.name))
    return tuple(rows)


def _group_by_type(summaries: Sequence[IssueSummary]) -> dict[str, list[IssueSummary]]:
    grouped: dict[str, list[IssueSummary]] = {}
    for item in summaries:
        grouped.setdefault(item.issue_type, []).append(item)
    return grouped


def compute_lead_times(summaries: Sequence[IssueSummary]) -> tuple[TypeLeadTime, ...]:
    rows: list[TypeLeadTime] = []
    for issue_type, items in sorted(_group_by_type(summaries).items()):
        wip_days = [float(item.wip_days) for item in items]
        rows.append(
            TypeLeadTime(
                issue_type=issue_type,
                count=len(items),
                mean=mean(wip_days),
                median=median(wip_days),
                std_dev=sample_std_dev(wip_days),
                confidence_bound=confidence_bound(wip_days),
            )
        )
    return tuple(rows)


def compute_throughput(summaries: Sequence[IssueSummary]) -> tuple[int, tuple[TypeThroughput, ...]]:
    counts: dict[str, int] = {}
    for item in summaries:
        if item.resolved:
            counts[item.issue_type] = counts.get(item.issue_type, 0) + 1
    total = sum(counts.values())
    rows = tuple(
        TypeThroughput(issue_type=issue_type, count=count, percent=percentage(count, total))
        for issue_type, count in sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))
    )
    return total, rows


def aggregate(
    summaries: Sequence[IssueSummary],
    catalog: StatusCatalog,
    window: AnalysisWindow | None = None,
    skipped_issues: Sequence[str] = (),
) -> PortfolioMetrics:
    """Combine issue summaries into project-wide flow metrics.

    Percentages are taken against the summed Wip+Idle time of every issue
    (``percent_of_wip``) and against all categorised time
    (``percent_of_total``). Unmapped time is listed but never part of either
    denominator. Any ratio whose denominator is zero is reported as None.
    """
    status_totals: dict[str, timedelta] = {}
    status_categories: dict[str, str] = {}
    category_totals: dict[str, timedelta] = {}
    wip_total = timedelta(0)
    categorized_total = timedelta(0)

    for item in summaries:
        wip_total += item.wip_duration
        categorized_total += item.categorized_total
        for status, duration in item.duration_by_status.items():
            status_totals[status] = status_totals.get(status, timedelta(0)) + duration
            status_categories.setdefault(status, catalog.category_of(status))
        for category, duration in item.duration_by_category.items():
            category_totals[category] = category_totals.get(category, timedelta(0)) + duration

    throughput_total, throughput_by_type = compute_throughput(summaries)
    lead_times = compute_lead_times(summaries)
    thresholds = {row.issue_type: row.outlier_threshold for row in lead_times}

    scatter: list[ScatterPoint] = []
    outliers: list[str] = []
    for item in summaries:
        threshold = thresholds.get(item.issue_type)
        is_outlier = threshold is not None and item.wip_days > threshold
        if is_outlier:
            outliers.append(item.key)
        scatter.append(
            ScatterPoint(
                key=item.key,
                issue_type=item.issue_type,
                start=item.first_wip_date,
                end=item.end_date,
                wip_days=item.wip_days,
                epic_link=item.epic_link,
                labels=item.labels,
                resolved=item.resolved,
                outlier=is_outlier,
            )
        )

    all_wip_days = [float(item.wip_days) for item in summaries]
    total_wip_days = sum(item.wip_days for item in summaries)
    week_days = window.week_days if window else 0
    throughput_daily = throughput_total / week_days if week_days else None

    return PortfolioMetrics(
        project=catalog.project,
        issue_count=len(summaries),
        status_shares=_shares(status_totals, status_categories, wip_total, categorized_total),
        category_shares=_shares(
            category_totals,
            {name: name for name in category_totals},
            wip_total,
            categorized_total,
        ),
        total_wip_duration=wip_total,
        total_categorized_duration=categorized_total,
        throughput_total=throughput_total,
        throughput_by_type=throughput_by_type,
        throughput_daily=throughput_daily,
        throughput_weekly=throughput_daily * WORK_DAYS_PER_WEEK if throughput_daily is not None else None,
        wip_issue_count=sum(1 for item in summaries if item.wip_duration > MIN_WIP_DURATION),
        wip_average=total_wip_days / week_days if week_days else None,
        lead_time_average=total_wip_days / throughput_total if throughput_total else None,
        lead_time_mean=mean(all_wip_days),
        lead_time_median=median(all_wip_days),
        lead_time_by_type=lead_times,
        outliers=tuple(outliers),
        scatter=tuple(scatter),
        unmapped_statuses=tuple(catalog.unmapped_statuses),
        skipped_issues=tuple(skipped_issues),
        window=window.as_dict() if window else {},
    )
