"""
Period Buckets

Gap-free day / ISO week / calendar month bucket sequences covering a report
window, independent of whether any events fall inside a bucket.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List


class Granularity(str, Enum):
    """Supported bucket sizes"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class PeriodBucket:
    """Half-open time range [start, end) identified by a canonical key"""
    key: str
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def floor_to_period(moment: datetime, granularity: Granularity) -> datetime:
    """Start of the period containing ``moment``"""
    day = datetime.combine(_as_datetime(moment).date(), time.min)
    if granularity == Granularity.DAY:
        return day
    if granularity == Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def next_period(start: datetime, granularity: Granularity) -> datetime:
    """Start of the period following the one beginning at ``start``"""
    if granularity == Granularity.DAY:
        return start + timedelta(days=1)
    if granularity == Granularity.WEEK:
        return start + timedelta(weeks=1)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def period_key(moment: datetime, granularity: Granularity) -> str:
    """Canonical key: YYYY-MM-DD, YYYY-Www (ISO week) or YYYY-MM"""
    start = floor_to_period(moment, granularity)
    if granularity == Granularity.DAY:
        return start.strftime("%Y-%m-%d")
    if granularity == Granularity.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return start.strftime("%Y-%m")


def generate_buckets(
    window_start: datetime,
    window_end: datetime,
    granularity: Granularity = Granularity.DAY,
) -> List[PeriodBucket]:
    """
    Build the sorted, contiguous bucket sequence spanning a window.

    Both window bounds are inclusive; the first bucket is the period
    containing ``window_start`` and the last is the period containing
    ``window_end``.

    Args:
        window_start: First moment of the window
        window_end: Last moment of the window
        granularity: Bucket size

    Returns:
        List of PeriodBucket, empty when the window is inverted
    """
    window_start = _as_datetime(window_start)
    window_end = _as_datetime(window_end)
    if window_end < window_start:
        return []

    buckets = []
    start = floor_to_period(window_start, granularity)
    while start <= window_end:
        end = next_period(start, granularity)
        buckets.append(PeriodBucket(key=period_key(start, granularity), start=start, end=end))
        start = end

    return buckets


def window_bounds(start_date: date, end_date: date):
    """Inclusive datetime bounds for a pair of calendar dates"""
    return (
        datetime.combine(start_date, time.min),
        datetime.combine(end_date, time.max),
    )
