"""
Report Filters

Validated filter set shared by every report view. Raw query-string values
are checked here, before any store query is issued.
"""

from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from surface_analytics.analytics.classification import Classification, normalize_classification
from surface_analytics.analytics.devices import DeviceType
from surface_analytics.analytics.events import SessionEvent
from surface_analytics.analytics.periods import window_bounds
from surface_analytics.exceptions import ValidationError

ALL_VALUES = frozenset({"", "all"})


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in ALL_VALUES:
        return None
    return value


class ReportFilters(BaseModel):
    """
    Filter set for a report request.

    ``classification`` and ``device`` are compared against normalized event
    values; ``state`` and ``city`` against case-folded raw location fields.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    classification: Optional[Classification] = None
    device: Optional[DeviceType] = None
    state: Optional[str] = None
    city: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if isinstance(v, str):
            text = v.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                return datetime.fromisoformat(text).date()
            except ValueError:
                raise ValueError(f"Invalid date: {v!r}")
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("classification", mode="before")
    @classmethod
    def parse_classification(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None or isinstance(v, Classification):
            return v
        text = str(v).strip().lower().replace("-", "_").replace(" ", "_")
        if text not in {c.value for c in Classification}:
            raise ValueError(f"Unknown classification: {v!r}")
        return normalize_classification(text)

    @field_validator("device", mode="before")
    @classmethod
    def parse_device(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None or isinstance(v, DeviceType):
            return v
        for device in DeviceType:
            if str(v).strip().lower() == device.value.lower():
                return device
        raise ValueError(f"Unknown device: {v!r}")

    @field_validator("state", "city", mode="before")
    @classmethod
    def strip_location(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def check_range(self) -> "ReportFilters":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self

    @classmethod
    def parse(cls, params: Mapping[str, Any]) -> "ReportFilters":
        """
        Build filters from raw request parameters.

        Raises:
            ValidationError: If any value is malformed
        """
        try:
            return cls.model_validate(dict(params))
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError(first.get("msg", str(e)), field=field) from e

    def resolve_dates(self, today: date, default_days: int) -> Tuple[date, date]:
        """Explicit dates, or the trailing ``default_days`` ending ``today``"""
        end = self.end_date or today
        start = self.start_date or (end - timedelta(days=default_days))
        return start, end

    def window(self, today: date, default_days: int) -> Tuple[datetime, datetime]:
        """Inclusive datetime window for the report"""
        return window_bounds(*self.resolve_dates(today, default_days))

    def without_dates(self) -> "ReportFilters":
        """Same dimension filters with no date bound, for global history passes"""
        return self.model_copy(update={"start_date": None, "end_date": None})

    def matches(self, event: SessionEvent, device: DeviceType, classification: Classification) -> bool:
        """Apply the non-date filters to an event's normalized values"""
        if self.classification is not None and classification != self.classification:
            return False
        if self.device is not None and device != self.device:
            return False
        if self.state is not None and (event.location.state or "").lower() != self.state.lower():
            return False
        if self.city is not None and (event.location.city or "").lower() != self.city.lower():
            return False
        return True
