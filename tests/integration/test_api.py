"""
Integration Tests - HTTP API
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from surface_analytics.analytics.catalog import CatalogIndex
from surface_analytics.analytics.reports import ReportService
from surface_analytics.exceptions import DataUnavailable
from surface_analytics.main import app
from surface_analytics.serving.api.routes.analytics import get_report_service


class InMemoryStore:
    """Event store over a list of events"""

    def __init__(self, events, fail: bool = False):
        self.events = events
        self.fail = fail

    async def fetch_events(self, filters=None, window=None):
        if self.fail:
            raise DataUnavailable("connection refused")
        events = [e for e in self.events if e.user_id]
        if window is not None:
            events = [e for e in events if e.created_at and window[0] <= e.created_at <= window[1]]
        return events


class InMemoryCatalog:
    async def lookup(self, identifiers):
        return CatalogIndex()


@pytest.fixture
def client_factory(sample_events, test_settings):
    def _client(fail: bool = False) -> TestClient:
        service = ReportService(
            InMemoryStore(sample_events, fail=fail),
            InMemoryCatalog(),
            settings=test_settings,
            today=date(2024, 3, 31),
        )
        app.dependency_overrides[get_report_service] = lambda: service
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


class TestAnalyticsEndpoints:
    """Tests for analytics routes"""

    @pytest.mark.parametrize("path", [
        "/api/v1/analytics/overview",
        "/api/v1/analytics/devices",
        "/api/v1/analytics/classifications",
        "/api/v1/analytics/geography?level=city",
        "/api/v1/analytics/time-patterns?granularity=month",
        "/api/v1/analytics/products?topN=2",
        "/api/v1/analytics/returning-users",
        "/api/v1/analytics/shares-downloads",
        "/api/v1/analytics/recent-queries?minActions=1",
    ])
    def test_views_respond(self, client_factory, path):
        """Test every view returns JSON with its window"""
        response = client_factory().get(path)

        assert response.status_code == 200
        assert "window" in response.json()

    def test_overview_filters(self, client_factory):
        """Test query-string filters reach the service"""
        response = client_factory().get(
            "/api/v1/analytics/overview",
            params={"device": "tablet", "startDate": "2024-03-20", "endDate": "2024-03-31"},
        )

        kpis = response.json()["kpis"]
        assert kpis["totalUploads"] == 1
        assert kpis["totalDownloads"] == 1

    def test_devices_all_filter(self, client_factory):
        """Test 'all' disables a filter"""
        response = client_factory().get("/api/v1/analytics/devices", params={"classification": "all"})

        assert sum(d["uploads"] for d in response.json()["devices"]) == 3


class TestErrorMapping:
    """Tests for error responses"""

    @pytest.mark.parametrize("params", [
        {"classification": "tile"},
        {"startDate": "not-a-date"},
        {"startDate": "2024-03-10", "endDate": "2024-03-01"},
    ])
    def test_malformed_filters_are_400(self, client_factory, params):
        """Test ValidationError maps to 400"""
        response = client_factory().get("/api/v1/analytics/overview", params=params)

        assert response.status_code == 400
        assert "error" in response.json()

    def test_bad_granularity_is_400(self, client_factory):
        """Test view options are validated"""
        response = client_factory().get("/api/v1/analytics/time-patterns", params={"granularity": "hour"})

        assert response.status_code == 400

    def test_bad_limit_is_400(self, client_factory):
        """Test query parameter validation maps to 400"""
        response = client_factory().get("/api/v1/analytics/products", params={"limit": 0})

        assert response.status_code == 400

    def test_store_failure_is_500(self, client_factory):
        """Test DataUnavailable maps to 500"""
        response = client_factory(fail=True).get("/api/v1/analytics/overview")

        assert response.status_code == 500
        assert response.json() == {"error": "Event store unavailable"}


class TestHealth:
    """Tests for health endpoints"""

    def test_liveness(self):
        """Test liveness probe"""
        response = TestClient(app).get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_health_without_database(self):
        """Test degraded status when the store is not initialized"""
        response = TestClient(app).get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["database"]["status"] == "unhealthy"
