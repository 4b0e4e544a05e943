from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal


ONE_DAY = timedelta(days=1)
WEEKEND = {5, 6}


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_days(duration: timedelta) -> int:
    return round_half_up(duration.total_seconds() / 86400)


def _iter_days(start: datetime, end: datetime):
    if start is None:
        raise ValueError("start timestamp is not set")
    cursor = start
    while cursor <= end:
        yield cursor
        cursor += ONE_DAY


def weekend_days_between(start: datetime, end: datetime) -> int:
    """Count calendar days in [start, end] falling on Saturday or Sunday.

    Steps one day at a time from ``start``, so the time-of-day of ``start``
    decides whether the last day is reached.
    """
    return sum(1 for day in _iter_days(start, end) if day.weekday() in WEEKEND)


def week_days_between(start: datetime, end: datetime) -> int:
    return sum(1 for day in _iter_days(start, end) if day.weekday() not in WEEKEND)


def business_duration(start: datetime, end: datetime) -> timedelta:
    """Elapsed time between two timestamps minus one full day per weekend day.

    Never negative: when the weekend days outnumber the raw day count the
    interval collapses to zero.
    """
    if start is None:
        raise ValueError("start timestamp is not set")
    if end <= start:
        return timedelta(0)

    duration = end - start
    weekend_days = weekend_days_between(start, end)
    if weekend_days > 0:
        if to_days(duration) >= weekend_days:
            duration -= weekend_days * ONE_DAY
        else:
            duration = timedelta(0)
    return max(duration, timedelta(0))
