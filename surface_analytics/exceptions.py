"""
Analytics Error Taxonomy

- ValidationError: malformed report filters, rejected before any query
- DataUnavailable: event store unreachable or query failure, never retried
- ParseError: a single token or record field could not be decoded; callers
  catch it and drop that contribution
"""

from typing import Any, Optional


class AnalyticsError(Exception):
    """Base class for analytics engine errors"""


class ValidationError(AnalyticsError):
    """Filter values could not be parsed or are inconsistent"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class DataUnavailable(AnalyticsError):
    """The event store or product catalog could not be queried"""


class ParseError(AnalyticsError):
    """A record field or action token is malformed"""

    def __init__(self, message: str, value: Any = None):
        super().__init__(message)
        self.value = value
