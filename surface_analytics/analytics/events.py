"""
Session Event Model

Typed representation of one upload/query session and coercion from the raw
camelCase documents written by the capture frontend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog

from surface_analytics.analytics.actions import ActionEntry
from surface_analytics.exceptions import ParseError

logger = structlog.get_logger(__name__)

# Keys that may carry a product identifier inside a searchResults entry
PRODUCT_REFERENCE_KEYS = ("sku", "public_id", "publicId", "product_id", "productId", "id")


@dataclass(frozen=True)
class Location:
    """Coarse user location"""
    state: Optional[str] = None
    city: Optional[str] = None


@dataclass
class SessionEvent:
    """One user upload/query and its subsequent interactions"""
    session_id: str
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    classification: Optional[str] = None
    device_type: Optional[str] = None
    device_info: Optional[str] = None
    location: Location = field(default_factory=Location)
    search_results: List[str] = field(default_factory=list)
    user_actions: List[ActionEntry] = field(default_factory=list)
    user_image: Optional[str] = None

    @property
    def has_user(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def from_document(
        cls,
        document: Mapping[str, Any],
        fallback_timestamp: Optional[datetime] = None,
    ) -> "SessionEvent":
        """
        Build a SessionEvent from a raw document.

        Fields that cannot be decoded are dropped individually; only a
        missing ``sessionId`` rejects the whole document.

        Raises:
            ParseError: If the document is not a mapping or has no usable session id
        """
        if not isinstance(document, Mapping):
            raise ParseError("Document is not a mapping", value=document)

        session_id = document.get("sessionId") or document.get("session_id")
        if session_id is None or str(session_id).strip() == "":
            raise ParseError("Document has no sessionId", value=document)

        created_at = _optional(parse_timestamp, _first(document, "createdAt", "created_at"))

        user_id = _first(document, "userId", "user_id")

        return cls(
            session_id=str(session_id),
            user_id=str(user_id) if user_id not in (None, "") else None,
            created_at=created_at or fallback_timestamp,
            classification=_optional_str(document.get("classification")),
            device_type=_optional_str(_first(document, "deviceType", "device_type")),
            device_info=_optional_str(_first(document, "deviceInfo", "device_info")),
            location=parse_location(_first(document, "userLocation", "user_location")),
            search_results=parse_search_results(
                _first(document, "searchResults", "search_results") or []
            ),
            user_actions=parse_action_entries(
                _first(document, "userActions", "user_actions") or []
            ),
            user_image=_optional_str(_first(document, "userImage", "user_image")),
        )


def _first(document: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = document.get(key)
        if value is not None:
            return value
    return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional(parser, value):
    if value is None:
        return None
    try:
        return parser(value)
    except ParseError as e:
        logger.debug("Dropping malformed field", error=str(e))
        return None


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp into a naive UTC datetime.

    Accepts datetimes, ISO-8601 strings (with or without ``Z``) and epoch
    milliseconds.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            raise ParseError(f"Epoch value out of range: {value!r}", value=value)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise ParseError(f"Unparsable timestamp: {value!r}", value=value)
    else:
        raise ParseError(f"Unsupported timestamp type: {type(value).__name__}", value=value)

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def parse_location(raw: Any) -> Location:
    if not isinstance(raw, Mapping):
        return Location()
    return Location(
        state=_optional_str(raw.get("state") or raw.get("region")),
        city=_optional_str(raw.get("city")),
    )


def product_reference(entry: Any) -> Optional[str]:
    """Extract the product identifier from one searchResults entry"""
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, Mapping):
        for key in PRODUCT_REFERENCE_KEYS:
            value = entry.get(key)
            if value not in (None, ""):
                return str(value)
    return None


def parse_search_results(raw: Any) -> List[str]:
    """
    Ordered product references; entries without an identifier are dropped,
    which shifts the position of later entries.
    """
    if not isinstance(raw, (list, tuple)):
        return []
    references = []
    for entry in raw:
        reference = product_reference(entry)
        if reference is not None:
            references.append(reference)
    return references


def parse_action_entries(raw: Any) -> List[ActionEntry]:
    """Accept bare token strings or ``{"action": ..., "timestamp": ...}`` mappings"""
    if not isinstance(raw, (list, tuple)):
        return []
    entries = []
    for item in raw:
        if isinstance(item, str):
            entries.append(ActionEntry(token=item))
        elif isinstance(item, Mapping):
            token = item.get("action") or item.get("type") or item.get("name")
            if not isinstance(token, str):
                continue
            entries.append(
                ActionEntry(token=token, timestamp=_optional(parse_timestamp, item.get("timestamp")))
            )
    return entries


def load_events(documents: Iterable[Mapping[str, Any]]) -> List[SessionEvent]:
    """Coerce raw documents, skipping the ones that cannot form an event"""
    events = []
    skipped = 0
    for document in documents:
        try:
            events.append(SessionEvent.from_document(document))
        except ParseError as e:
            skipped += 1
            logger.debug("Skipping malformed session document", error=str(e))
    if skipped:
        logger.info("Skipped malformed session documents", skipped=skipped, loaded=len(events))
    return events


def to_document(event: SessionEvent) -> Dict[str, Any]:
    """Inverse of ``SessionEvent.from_document`` for seeding and export"""
    return {
        "sessionId": event.session_id,
        "userId": event.user_id,
        "createdAt": event.created_at.isoformat() if event.created_at else None,
        "classification": event.classification,
        "deviceType": event.device_type,
        "deviceInfo": event.device_info,
        "userLocation": {"state": event.location.state, "city": event.location.city},
        "searchResults": list(event.search_results),
        "userActions": [
            {
                "action": entry.token,
                "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
            }
            for entry in event.user_actions
        ],
        "userImage": event.user_image,
    }
