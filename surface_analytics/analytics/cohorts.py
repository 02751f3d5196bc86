"""
Cohort Analysis

New vs. returning users per time bucket.

A user is "returning" in a bucket when their first-ever session (over the
full, non-date-filtered history) started before that bucket. Computing the
first-session table is therefore a separate phase that must finish before
any bucket is classified.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import polars as pl
import structlog

from surface_analytics.analytics.events import SessionEvent
from surface_analytics.analytics.periods import (
    Granularity,
    PeriodBucket,
    generate_buckets,
    period_key,
)

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400

# (label, lower bound, upper bound or None for open-ended)
FREQUENCY_BUCKETS = (
    ("1", 1, 1),
    ("2-3", 2, 3),
    ("4-5", 4, 5),
    ("6+", 6, None),
)

HISTORY_SCHEMA = {"user_id": pl.Utf8, "created_at": pl.Datetime("us")}


def frequency_bucket(sessions: int) -> Optional[str]:
    for label, low, high in FREQUENCY_BUCKETS:
        if sessions >= low and (high is None or sessions <= high):
            return label
    return None


@dataclass
class CohortPeriod:
    """New and returning active users in one bucket"""
    period: str
    start: datetime
    new_users: int = 0
    returning_users: int = 0

    @property
    def active_users(self) -> int:
        return self.new_users + self.returning_users

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "start": self.start.isoformat(),
            "newUsers": self.new_users,
            "returningUsers": self.returning_users,
            "activeUsers": self.active_users,
        }


@dataclass
class CohortReport:
    """Result of a cohort analysis over a report window"""
    new_users: int = 0
    returning_users: int = 0
    frequency_distribution: Dict[str, int] = field(default_factory=dict)
    avg_return_gap_days: float = 0.0
    trend: List[CohortPeriod] = field(default_factory=list)

    @property
    def active_users(self) -> int:
        return self.new_users + self.returning_users

    @property
    def returning_rate(self) -> float:
        if not self.active_users:
            return 0.0
        return self.returning_users / self.active_users * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "newUsers": self.new_users,
            "returningUsers": self.returning_users,
            "activeUsers": self.active_users,
            "returningRate": round(self.returning_rate, 2),
            "avgReturnGapDays": round(self.avg_return_gap_days, 2),
            "frequencyDistribution": [
                {"name": label, "users": self.frequency_distribution.get(label, 0)}
                for label, _, _ in FREQUENCY_BUCKETS
            ],
            "trend": [period.to_dict() for period in self.trend],
        }


class CohortAnalyzer:
    """
    New/returning classification with session frequency and return gaps.

    Usage:
        analyzer = CohortAnalyzer()
        report = analyzer.analyze(history, Granularity.WEEK, start, end)

    ``history`` must be the full event history for the user population
    (dimension filters applied, date filters not).
    """

    def analyze(
        self,
        events: Iterable[SessionEvent],
        granularity: Granularity,
        window_start: datetime,
        window_end: datetime,
    ) -> CohortReport:
        granularity = Granularity(granularity)
        history = self.history_frame(events)

        # Phase 1: global first-session table
        first_sessions = self.first_sessions(history)

        # Phase 2: windowed per-bucket classification
        buckets = generate_buckets(window_start, window_end, granularity)
        active = self.active_users_by_bucket(history, buckets, granularity, window_start, window_end)
        trend, returning_ids, active_ids = self.classify_buckets(buckets, active, first_sessions)

        report = CohortReport(
            new_users=len(active_ids - returning_ids),
            returning_users=len(returning_ids),
            frequency_distribution=self.frequency_distribution(history),
            avg_return_gap_days=self.average_return_gap(history),
            trend=trend,
        )

        logger.debug(
            "Cohort analysis complete",
            granularity=granularity.value,
            buckets=len(buckets),
            users=len(first_sessions),
            new_users=report.new_users,
            returning_users=report.returning_users,
        )
        return report

    @staticmethod
    def history_frame(events: Iterable[SessionEvent]) -> pl.DataFrame:
        rows = [
            {"user_id": event.user_id, "created_at": event.created_at}
            for event in events
            if event.has_user and event.created_at is not None
        ]
        return pl.DataFrame(rows, schema=HISTORY_SCHEMA)

    @staticmethod
    def first_sessions(history: pl.DataFrame) -> Dict[str, datetime]:
        """Earliest session timestamp per user"""
        grouped = history.group_by("user_id").agg(
            pl.col("created_at").min().alias("first_session")
        )
        return dict(zip(
            grouped.get_column("user_id").to_list(),
            grouped.get_column("first_session").to_list(),
        ))

    @staticmethod
    def active_users_by_bucket(
        history: pl.DataFrame,
        buckets: List[PeriodBucket],
        granularity: Granularity,
        window_start: datetime,
        window_end: datetime,
    ) -> Dict[str, Set[str]]:
        """Distinct users with at least one in-window session per bucket"""
        active: Dict[str, Set[str]] = {bucket.key: set() for bucket in buckets}
        if not buckets:
            return active

        windowed = history.filter(
            pl.col("created_at").is_between(window_start, window_end, closed="both")
        )
        for user_id, created_at in windowed.iter_rows():
            key = period_key(created_at, granularity)
            if key in active:
                active[key].add(user_id)
        return active

    @staticmethod
    def classify_buckets(
        buckets: List[PeriodBucket],
        active: Dict[str, Set[str]],
        first_sessions: Dict[str, datetime],
    ) -> Tuple[List[CohortPeriod], Set[str], Set[str]]:
        """
        Split each bucket's active users into new and returning.

        Returns the per-bucket trend plus the ids classified returning in
        any bucket and all active ids in the window.
        """
        trend = []
        returning_ids: Set[str] = set()
        active_ids: Set[str] = set()

        for bucket in buckets:
            period = CohortPeriod(period=bucket.key, start=bucket.start)
            for user_id in active.get(bucket.key, ()):
                first = first_sessions.get(user_id)
                if first is not None and first < bucket.start:
                    period.returning_users += 1
                    returning_ids.add(user_id)
                else:
                    period.new_users += 1
                active_ids.add(user_id)
            trend.append(period)

        return trend, returning_ids, active_ids

    @staticmethod
    def frequency_distribution(history: pl.DataFrame) -> Dict[str, int]:
        """Users per lifetime session-count bucket"""
        distribution = {label: 0 for label, _, _ in FREQUENCY_BUCKETS}
        counts = history.group_by("user_id").agg(pl.len().alias("sessions"))
        for sessions in counts.get_column("sessions").to_list():
            label = frequency_bucket(sessions)
            if label is not None:
                distribution[label] += 1
        return distribution

    @staticmethod
    def average_return_gap(history: pl.DataFrame) -> float:
        """
        Mean over users of each user's mean gap in days between consecutive
        sessions. Users with a single session do not contribute; 0 when no
        user has two sessions.
        """
        if history.is_empty():
            return 0.0

        per_user = (
            history.sort(["user_id", "created_at"])
            .with_columns(
                (
                    pl.col("created_at").diff().over("user_id").dt.total_seconds()
                    / SECONDS_PER_DAY
                ).alias("gap_days")
            )
            .drop_nulls("gap_days")
            .group_by("user_id")
            .agg(pl.col("gap_days").mean().alias("avg_gap_days"))
        )
        if per_user.is_empty():
            return 0.0
        return float(per_user.get_column("avg_gap_days").mean())
