"""
Unit Tests - Period Buckets
"""
from datetime import date, datetime

import pytest

from surface_analytics.analytics.periods import (
    Granularity,
    floor_to_period,
    generate_buckets,
    period_key,
    window_bounds,
)


def assert_contiguous(buckets):
    keys = [b.key for b in buckets]
    assert len(keys) == len(set(keys))
    assert keys == sorted(keys)
    for current, following in zip(buckets, buckets[1:]):
        assert current.end == following.start


class TestGenerateBuckets:
    """Tests for gap-free bucket sequences"""

    def test_five_day_window(self):
        """Test an empty 5-day window yields 5 daily buckets"""
        start, end = window_bounds(date(2024, 3, 1), date(2024, 3, 5))
        buckets = generate_buckets(start, end, Granularity.DAY)

        assert [b.key for b in buckets] == [
            "2024-03-01", "2024-03-02", "2024-03-03", "2024-03-04", "2024-03-05",
        ]
        assert_contiguous(buckets)

    def test_weeks_use_iso_keys(self):
        """Test ISO week keys with Monday start"""
        start, end = window_bounds(date(2024, 12, 25), date(2025, 1, 8))
        buckets = generate_buckets(start, end, Granularity.WEEK)

        assert [b.key for b in buckets] == ["2024-W52", "2025-W01", "2025-W02"]
        assert buckets[0].start == datetime(2024, 12, 23)
        assert all(b.start.weekday() == 0 for b in buckets)
        assert_contiguous(buckets)

    def test_months_cross_year(self):
        """Test month buckets across a year boundary"""
        start, end = window_bounds(date(2023, 11, 15), date(2024, 2, 2))
        buckets = generate_buckets(start, end, Granularity.MONTH)

        assert [b.key for b in buckets] == ["2023-11", "2023-12", "2024-01", "2024-02"]
        assert buckets[1].end == datetime(2024, 1, 1)
        assert_contiguous(buckets)

    def test_inverted_window_is_empty(self):
        """Test end before start yields no buckets"""
        assert generate_buckets(datetime(2024, 3, 5), datetime(2024, 3, 1)) == []

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_window_is_covered(self, granularity):
        """Test first and last bucket contain the window bounds"""
        start, end = window_bounds(date(2024, 1, 17), date(2024, 4, 3))
        buckets = generate_buckets(start, end, granularity)

        assert buckets[0].contains(start)
        assert buckets[-1].contains(end)
        assert_contiguous(buckets)


class TestPeriodKeys:
    """Tests for key formatting and flooring"""

    def test_keys(self):
        """Test canonical key formats"""
        moment = datetime(2024, 3, 20, 15, 45)

        assert period_key(moment, Granularity.DAY) == "2024-03-20"
        assert period_key(moment, Granularity.WEEK) == "2024-W12"
        assert period_key(moment, Granularity.MONTH) == "2024-03"

    def test_floor(self):
        """Test flooring to period start"""
        moment = datetime(2024, 3, 20, 15, 45)

        assert floor_to_period(moment, Granularity.DAY) == datetime(2024, 3, 20)
        assert floor_to_period(moment, Granularity.WEEK) == datetime(2024, 3, 18)
        assert floor_to_period(moment, Granularity.MONTH) == datetime(2024, 3, 1)
