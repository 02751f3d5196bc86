"""
Unit Tests - Session Event Coercion
"""
from datetime import datetime

import pytest

from surface_analytics.analytics.events import (
    SessionEvent,
    load_events,
    parse_action_entries,
    parse_search_results,
    parse_timestamp,
    to_document,
)
from surface_analytics.exceptions import ParseError


class TestParseTimestamp:
    """Tests for timestamp coercion"""

    def test_iso_with_z(self):
        """Test UTC ISO strings become naive UTC"""
        assert parse_timestamp("2024-03-20T10:00:00Z") == datetime(2024, 3, 20, 10, 0)

    def test_offset_is_converted(self):
        """Test offsets are normalized to UTC"""
        assert parse_timestamp("2024-03-20T10:00:00+02:00") == datetime(2024, 3, 20, 8, 0)

    def test_epoch_millis(self):
        """Test epoch milliseconds"""
        assert parse_timestamp(1710928800000) == datetime(2024, 3, 20, 10, 0)

    @pytest.mark.parametrize("value", ["yesterday", True, [2024], float("nan"), float("inf"), 10**20])
    def test_malformed(self, value):
        """Test malformed timestamps raise ParseError"""
        with pytest.raises(ParseError):
            parse_timestamp(value)

    def test_out_of_range_action_timestamp_is_dropped(self):
        """Test an unusable action timestamp keeps the action"""
        entries = parse_action_entries([{"action": "link_copied", "timestamp": 10**20}])

        assert [(e.token, e.timestamp) for e in entries] == [("link_copied", None)]


class TestSessionEvent:
    """Tests for SessionEvent.from_document"""

    def test_camel_case_document(self):
        """Test a full capture-frontend document"""
        event = SessionEvent.from_document({
            "sessionId": "s-1",
            "userId": "u-1",
            "createdAt": "2024-03-20T10:00:00Z",
            "classification": "Carpet",
            "deviceType": "mobile",
            "deviceInfo": "Mozilla/5.0",
            "userLocation": {"region": "Texas", "city": "Austin"},
            "searchResults": [{"sku": "SKU-1"}, "SKU-2", {"name": "no id"}],
            "userActions": ["link_copied", {"action": "summary_downloaded", "timestamp": "2024-03-20T10:01:00Z"}],
            "userImage": "https://img.example.com/1.jpg",
        })

        assert event.user_id == "u-1"
        assert event.created_at == datetime(2024, 3, 20, 10, 0)
        assert event.location.state == "Texas"
        assert event.search_results == ["SKU-1", "SKU-2"]
        assert [a.token for a in event.user_actions] == ["link_copied", "summary_downloaded"]
        assert event.user_actions[1].timestamp == datetime(2024, 3, 20, 10, 1)

    def test_snake_case_document(self):
        """Test snake_case keys are accepted"""
        event = SessionEvent.from_document({"session_id": "s-2", "user_id": "u-2"})

        assert event.session_id == "s-2"
        assert event.user_id == "u-2"
        assert event.has_user

    def test_malformed_field_is_dropped(self):
        """Test a bad timestamp only drops that field"""
        event = SessionEvent.from_document({
            "sessionId": "s-3",
            "userId": "u-3",
            "createdAt": "not a date",
            "searchResults": "oops",
        })

        assert event.created_at is None
        assert event.search_results == []

    @pytest.mark.parametrize("created_at", [float("nan"), float("inf"), 10**20])
    def test_unusable_epoch_is_dropped(self, created_at):
        """Test an out-of-range epoch only drops the timestamp"""
        event = SessionEvent.from_document({"sessionId": "s-4", "userId": "u-4", "createdAt": created_at})

        assert event.created_at is None
        assert event.user_id == "u-4"

    def test_missing_user(self):
        """Test empty user ids become None"""
        event = SessionEvent.from_document({"sessionId": "s-4", "userId": ""})

        assert event.user_id is None
        assert not event.has_user

    def test_missing_session_id(self):
        """Test documents without a session id are rejected"""
        with pytest.raises(ParseError):
            SessionEvent.from_document({"userId": "u-5"})


class TestLoadEvents:
    """Tests for bulk loading"""

    def test_skips_malformed_documents(self):
        """Test documents without a session id or not shaped as objects are skipped"""
        events = load_events([
            {"sessionId": "a"},
            {"userId": "orphan"},
            None,
            ["sessionId", "x"],
            {"sessionId": "b", "createdAt": 12},
        ])

        assert [e.session_id for e in events] == ["a", "b"]

    def test_document_round_trip(self):
        """Test to_document output is accepted by from_document"""
        original = SessionEvent.from_document({
            "sessionId": "s-9",
            "userId": "u-9",
            "createdAt": "2024-03-20T10:00:00Z",
            "userLocation": {"state": "Ohio", "city": "Akron"},
            "searchResults": ["SKU-1"],
            "userActions": ["link_copied"],
        })

        assert SessionEvent.from_document(to_document(original)) == original

    def test_search_result_references(self):
        """Test identifier keys in search result entries"""
        assert parse_search_results([
            {"public_id": "P1"}, {"productId": 42}, {"id": "X"}, None,
        ]) == ["P1", "42", "X"]
