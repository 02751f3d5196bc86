"""
Unit Tests - Cohort Analysis
"""
from datetime import date, datetime

import pytest

from surface_analytics.analytics.cohorts import CohortAnalyzer, frequency_bucket
from surface_analytics.analytics.periods import Granularity, generate_buckets, window_bounds

DAY0 = datetime(2024, 1, 1, 12, 0)


class TestCohortScenario:
    """Tests for the single-user day 0 / 13 / 25 scenario"""

    def test_new_then_returning(self, daily_history):
        """Test new on day 0, returning on days 13 and 25"""
        events = daily_history("u1", DAY0, [0, 13, 25])
        start, end = window_bounds(date(2024, 1, 1), date(2024, 1, 26))

        report = CohortAnalyzer().analyze(events, Granularity.DAY, start, end)
        trend = {p.period: p for p in report.trend}

        assert (trend["2024-01-01"].new_users, trend["2024-01-01"].returning_users) == (1, 0)
        assert (trend["2024-01-14"].new_users, trend["2024-01-14"].returning_users) == (0, 1)
        assert (trend["2024-01-26"].new_users, trend["2024-01-26"].returning_users) == (0, 1)
        assert report.avg_return_gap_days == pytest.approx(12.5)

    def test_window_totals(self, daily_history):
        """Test a user returning in any bucket counts once as returning"""
        events = daily_history("u1", DAY0, [0, 13, 25])
        start, end = window_bounds(date(2024, 1, 1), date(2024, 1, 26))

        report = CohortAnalyzer().analyze(events, Granularity.DAY, start, end)

        assert report.new_users == 0
        assert report.returning_users == 1
        assert report.returning_rate == 100.0


class TestGlobalHistory:
    """Tests for first-session lookup outside the window"""

    def test_first_session_before_window(self, daily_history):
        """Test a user first seen before the window is returning inside it"""
        events = daily_history("u1", DAY0, [0, 40]) + daily_history("u2", DAY0, [40])
        start, end = window_bounds(date(2024, 2, 1), date(2024, 2, 29))

        report = CohortAnalyzer().analyze(events, Granularity.MONTH, start, end)

        assert [p.period for p in report.trend] == ["2024-02"]
        assert report.trend[0].returning_users == 1
        assert report.trend[0].new_users == 1
        assert report.new_users == 1
        assert report.returning_users == 1

    def test_same_bucket_sessions_are_new(self, daily_history):
        """Test two sessions in a user's first week are both 'new'"""
        events = daily_history("u1", datetime(2024, 1, 1), [0, 2])
        start, end = window_bounds(date(2024, 1, 1), date(2024, 1, 7))

        report = CohortAnalyzer().analyze(events, Granularity.WEEK, start, end)

        assert len(report.trend) == 1
        assert report.trend[0].new_users == 1
        assert report.trend[0].returning_users == 0


class TestCohortInvariants:
    """Tests for per-bucket identities and empty input"""

    def test_active_identity(self, daily_history):
        """Test new + returning == active in every bucket"""
        events = (
            daily_history("u1", DAY0, [0, 3, 9, 20])
            + daily_history("u2", DAY0, [2, 9])
            + daily_history("u3", DAY0, [9, 10, 11])
        )
        start, end = window_bounds(date(2024, 1, 1), date(2024, 1, 31))
        analyzer = CohortAnalyzer()
        history = analyzer.history_frame(events)
        buckets_active = analyzer.active_users_by_bucket(
            history,
            generate_buckets(start, end, Granularity.WEEK),
            Granularity.WEEK,
            start,
            end,
        )

        report = analyzer.analyze(events, Granularity.WEEK, start, end)

        for period in report.trend:
            assert period.new_users + period.returning_users == len(buckets_active[period.period])
        assert report.new_users + report.returning_users == 3

    def test_empty_window(self):
        """Test empty input yields zero-filled buckets"""
        start, end = window_bounds(date(2024, 3, 1), date(2024, 3, 5))

        report = CohortAnalyzer().analyze([], Granularity.DAY, start, end)

        assert len(report.trend) == 5
        assert all(p.active_users == 0 for p in report.trend)
        assert report.avg_return_gap_days == 0.0
        assert report.returning_rate == 0.0
        assert report.frequency_distribution == {"1": 0, "2-3": 0, "4-5": 0, "6+": 0}

    def test_events_without_user_or_time_are_ignored(self, make_event):
        """Test unusable events do not count"""
        events = [
            make_event(userId=None, createdAt="2024-03-02T10:00:00Z"),
            make_event(userId="u1", createdAt=None),
        ]
        start, end = window_bounds(date(2024, 3, 1), date(2024, 3, 5))

        report = CohortAnalyzer().analyze(events, Granularity.DAY, start, end)

        assert report.new_users == 0
        assert report.returning_users == 0


class TestFrequencyAndGaps:
    """Tests for session frequency distribution and return gaps"""

    def test_frequency_distribution(self, daily_history):
        """Test users bucketed by lifetime session count"""
        events = (
            daily_history("one", DAY0, [0])
            + daily_history("three", DAY0, [0, 1, 2])
            + daily_history("five", DAY0, [0, 1, 2, 3, 4])
            + daily_history("seven", DAY0, list(range(7)))
        )
        analyzer = CohortAnalyzer()

        distribution = analyzer.frequency_distribution(analyzer.history_frame(events))

        assert distribution == {"1": 1, "2-3": 1, "4-5": 1, "6+": 1}

    def test_average_gap_is_mean_of_user_means(self, daily_history):
        """Test per-user mean gaps are averaged across users"""
        events = (
            daily_history("a", DAY0, [0, 2, 4])
            + daily_history("b", DAY0, [0, 10])
            + daily_history("single", DAY0, [5])
        )
        analyzer = CohortAnalyzer()

        assert analyzer.average_return_gap(analyzer.history_frame(events)) == pytest.approx(6.0)

    @pytest.mark.parametrize("sessions, label", [(1, "1"), (2, "2-3"), (3, "2-3"), (5, "4-5"), (40, "6+")])
    def test_frequency_bucket(self, sessions, label):
        """Test bucket boundaries"""
        assert frequency_bucket(sessions) == label
