from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .business_days import business_duration
from .models import IssueTimeline
from .statuses import StatusCatalog


logger = logging.getLogger(__name__)

# Status assumed between issue creation and its first recorded transition.
INITIAL_STATUS = "Open"


@dataclass(slots=True)
class ReplayResult:
    duration_by_status: dict[str, timedelta] = field(default_factory=dict)
    last_status: str = INITIAL_STATUS
    last_transition_at: datetime | None = None
    first_wip_date: datetime | None = None
    horizon: datetime | None = None
    tail_duration: timedelta = timedelta(0)

    @property
    def total_duration(self) -> timedelta:
        return sum(self.duration_by_status.values(), timedelta(0))


def _add(durations: dict[str, timedelta], status: str, delta: timedelta) -> None:
    durations[status] = durations.get(status, timedelta(0)) + delta


def replay(
    timeline: IssueTimeline,
    window_end: datetime,
    catalog: StatusCatalog,
    now: datetime | None = None,
) -> ReplayResult:
    """Rebuild how long an issue sat in each status.

    Each interval between consecutive status changes is charged to the status
    being left, net of weekend days. While the issue is not Done, the interval
    from its last change up to ``min(window_end, now)`` is charged to the
    current status.

    Transitions later than ``window_end`` must already be removed, see
    ``IssueTimeline.clipped``.
    """
    result = ReplayResult()
    cursor_time = timeline.created
    cursor_status = INITIAL_STATUS

    for transition in timeline.ordered_transitions():
        if transition.is_noop:
            continue

        delta = business_duration(cursor_time, transition.timestamp)
        origin = transition.from_status or cursor_status
        _add(result.duration_by_status, origin, delta)

        if result.first_wip_date is None and catalog.is_active(transition.to_status):
            result.first_wip_date = transition.timestamp

        logger.debug(
            "%s: %s -> %s at %s, %s in %s",
            timeline.key,
            origin,
            transition.to_status,
            transition.timestamp.isoformat(),
            delta,
            origin,
        )

        cursor_time = transition.timestamp
        cursor_status = transition.to_status
        result.last_transition_at = transition.timestamp

    horizon = window_end
    current = now or datetime.now(window_end.tzinfo)
    if current < horizon:
        horizon = current
    result.horizon = horizon
    result.last_status = cursor_status

    if cursor_time < horizon and not catalog.is_done(cursor_status):
        result.tail_duration = business_duration(cursor_time, horizon)
        _add(result.duration_by_status, cursor_status, result.tail_duration)
        logger.debug("%s: still in %s, counting up to %s", timeline.key, cursor_status, horizon.isoformat())

    return result
