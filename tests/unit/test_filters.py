"""
Unit Tests - Report Filters
"""
from datetime import date, datetime

import pytest

from surface_analytics.analytics.classification import Classification
from surface_analytics.analytics.devices import DeviceType
from surface_analytics.analytics.filters import ReportFilters
from surface_analytics.exceptions import ValidationError


class TestReportFiltersParse:
    """Tests for query-string validation"""

    def test_full_filter_set(self):
        """Test every filter parsed"""
        filters = ReportFilters.parse({
            "startDate": "2024-03-01",
            "endDate": "2024-03-31T00:00:00Z",
            "classification": "hard-surface",
            "device": "mobile",
            "state": " Texas ",
            "city": "Austin",
        })

        assert filters.start_date == date(2024, 3, 1)
        assert filters.end_date == date(2024, 3, 31)
        assert filters.classification == Classification.HARD_SURFACE
        assert filters.device == DeviceType.MOBILE
        assert filters.state == "Texas"

    def test_all_means_no_filter(self):
        """Test 'all' and empty values are ignored"""
        filters = ReportFilters.parse({"classification": "all", "device": "All", "state": ""})

        assert filters.classification is None
        assert filters.device is None
        assert filters.state is None

    @pytest.mark.parametrize("params, field", [
        ({"startDate": "March 1st"}, "startDate"),
        ({"classification": "tile"}, "classification"),
        ({"device": "watch"}, "device"),
    ])
    def test_malformed_values(self, params, field):
        """Test malformed values raise ValidationError"""
        with pytest.raises(ValidationError) as exc_info:
            ReportFilters.parse(params)

        assert exc_info.value.field == field

    def test_inverted_range(self):
        """Test end before start is rejected"""
        with pytest.raises(ValidationError):
            ReportFilters.parse({"startDate": "2024-03-10", "endDate": "2024-03-01"})


class TestReportFiltersWindow:
    """Tests for window resolution"""

    def test_default_window(self):
        """Test trailing default window ending today"""
        start, end = ReportFilters().window(date(2024, 3, 31), 30)

        assert start == datetime(2024, 3, 1)
        assert end == datetime(2024, 3, 31, 23, 59, 59, 999999)

    def test_explicit_window(self):
        """Test explicit dates override the default"""
        filters = ReportFilters.parse({"startDate": "2024-01-01", "endDate": "2024-01-07"})

        assert filters.resolve_dates(date(2024, 3, 31), 30) == (date(2024, 1, 1), date(2024, 1, 7))

    def test_without_dates(self):
        """Test global-pass filters keep dimension filters only"""
        filters = ReportFilters.parse({
            "startDate": "2024-01-01",
            "endDate": "2024-01-07",
            "device": "tablet",
        })
        stripped = filters.without_dates()

        assert stripped.start_date is None
        assert stripped.end_date is None
        assert stripped.device == DeviceType.TABLET


class TestReportFiltersMatches:
    """Tests for in-memory matching"""

    def test_matches_normalized_values(self, make_event):
        """Test classification and device compare normalized values"""
        event = make_event(classification="Hard Surface", userLocation={"state": "Texas", "city": "Austin"})
        filters = ReportFilters.parse({"classification": "hard_surface", "state": "texas"})

        assert filters.matches(event, DeviceType.MOBILE, Classification.HARD_SURFACE)
        assert not filters.matches(event, DeviceType.MOBILE, Classification.CARPET)

    def test_location_mismatch(self, make_event):
        """Test case-insensitive location filters"""
        event = make_event(userLocation={"state": "Ohio", "city": "Akron"})

        assert not ReportFilters.parse({"city": "Austin"}).matches(
            event, DeviceType.DESKTOP, Classification.MIXED
        )
