"""Issue timeline data models consumed by the replay engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Transition:
    timestamp: datetime
    from_status: str
    to_status: str

    @property
    def is_noop(self) -> bool:
        return self.from_status == self.to_status


@dataclass(frozen=True, slots=True)
class FlagPeriod:
    start: datetime
    end: datetime | None = None


@dataclass(frozen=True, slots=True)
class IssueTimeline:
    key: str
    issue_type: str
    created: datetime
    transitions: tuple[Transition, ...] = ()
    labels: tuple[str, ...] = ()
    summary: str = ""
    epic_link: str | None = None
    sprint: str | None = None
    flag_periods: tuple[FlagPeriod, ...] = ()

    def ordered_transitions(self) -> list[Transition]:
        return sorted(self.transitions, key=lambda row: row.timestamp)

    def clipped(self, window_end: datetime) -> IssueTimeline:
        """Copy without the status changes that happened after ``window_end``."""
        kept = tuple(row for row in self.transitions if row.timestamp <= window_end)
        flags = tuple(period for period in self.flag_periods if period.start <= window_end)
        flags = tuple(
            replace(period, end=None) if period.end and period.end > window_end else period
            for period in flags
        )
        return replace(self, transitions=kept, flag_periods=flags)
