"""
Database Models

Storage layout for the capture frontend's collections:

- SessionEventRecord: one row per upload/query session. Search results and
  the action log are JSON columns; the location object is flattened into
  state/city columns.
- ProductRecord: product catalog used to resolve result and click
  identifiers to one product.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from surface_analytics.analytics.events import (
    Location,
    SessionEvent,
    parse_action_entries,
    parse_search_results,
)
from surface_analytics.config import get_settings

_tables = get_settings().database


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class SessionEventRecord(Base):
    """
    Session Event Table

    ``created_at`` is client supplied and may be missing; ``inserted_at``
    records insertion order and stands in for it.
    """
    __tablename__ = _tables.events_table

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    inserted_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    classification: Mapped[Optional[str]] = mapped_column(String(50))
    device_type: Mapped[Optional[str]] = mapped_column(String(50))
    device_info: Mapped[Optional[str]] = mapped_column(Text)

    location_state: Mapped[Optional[str]] = mapped_column(String(100))
    location_city: Mapped[Optional[str]] = mapped_column(String(100))

    search_results: Mapped[List[Any]] = mapped_column(JSON, default=list)
    user_actions: Mapped[List[Any]] = mapped_column(JSON, default=list)
    user_image: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index(f"ix_{_tables.events_table}_user_created", "user_id", "created_at"),
        Index(f"ix_{_tables.events_table}_state_city", "location_state", "location_city"),
    )

    @classmethod
    def from_event(cls, event: SessionEvent) -> "SessionEventRecord":
        return cls(
            session_id=event.session_id,
            user_id=event.user_id,
            created_at=event.created_at,
            classification=event.classification,
            device_type=event.device_type,
            device_info=event.device_info,
            location_state=event.location.state,
            location_city=event.location.city,
            search_results=list(event.search_results),
            user_actions=[
                {
                    "action": entry.token,
                    "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
                }
                for entry in event.user_actions
            ],
            user_image=event.user_image,
        )

    def to_event(self) -> SessionEvent:
        """Decode the row; a missing ``created_at`` falls back to ``inserted_at``"""
        return SessionEvent(
            session_id=self.session_id,
            user_id=self.user_id or None,
            created_at=self.created_at or self.inserted_at,
            classification=self.classification,
            device_type=self.device_type,
            device_info=self.device_info,
            location=Location(state=self.location_state, city=self.location_city),
            search_results=parse_search_results(self.search_results or []),
            user_actions=parse_action_entries(self.user_actions or []),
            user_image=self.user_image,
        )


class ProductRecord(Base):
    """
    Product Catalog Table

    Search results reference ``sku``; click tokens reference ``public_id``.
    """
    __tablename__ = _tables.products_table

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    public_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(255))
    category: Mapped[Optional[str]] = mapped_column(String(100))
