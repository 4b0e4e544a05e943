from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from .business_days import week_days_between


DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d")


@dataclass(frozen=True, slots=True)
class AnalysisWindow:
    first_day: date
    last_day: date
    start: datetime
    end: datetime
    timezone: str

    @property
    def week_days(self) -> int:
        return week_days_between(self.start, self.end - timedelta(days=1))

    def as_dict(self) -> dict[str, str | int]:
        return {
            "first_day": self.first_day.isoformat(),
            "last_day": self.last_day.isoformat(),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "timezone": self.timezone,
            "week_days": self.week_days,
        }


def parse_window_date(value: str | date | None) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    if not text:
        raise ValueError("A window date is required")
    for pattern in DATE_FORMATS:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid window date {text!r}, expected DD/MM/YYYY or YYYY-MM-DD")


def resolve_analysis_window(
    start: str | date | None,
    end: str | date | None,
    tz: tzinfo | None = None,
) -> AnalysisWindow:
    """Window covering ``start`` through ``end`` inclusive.

    ``end`` is pushed to midnight of the following day so that changes made
    on the last day still fall inside the window.
    """
    first_day = parse_window_date(start)
    last_day = parse_window_date(end)
    if last_day < first_day:
        raise ValueError(f"Window end {last_day.isoformat()} is before start {first_day.isoformat()}")

    zone = tz or datetime.now().astimezone().tzinfo
    window_start = datetime.combine(first_day, time.min, tzinfo=zone)
    window_end = datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=zone)
    return AnalysisWindow(
        first_day=first_day,
        last_day=last_day,
        start=window_start,
        end=window_end,
        timezone=str(zone or "local"),
    )
