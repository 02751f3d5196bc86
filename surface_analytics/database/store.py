"""
Event Store and Product Catalog

Session-bound adapters between the analytics engine and the database.
Both are constructed per request with an explicit AsyncSession; neither
touches the process-wide engine.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from surface_analytics.analytics.catalog import CatalogEntry, CatalogIndex
from surface_analytics.analytics.events import SessionEvent
from surface_analytics.analytics.filters import ReportFilters
from surface_analytics.database.models import ProductRecord, SessionEventRecord
from surface_analytics.exceptions import DataUnavailable

logger = structlog.get_logger(__name__)

# Keeps IN lists under driver bind-parameter limits
LOOKUP_CHUNK_SIZE = 500


def event_timestamp():
    """Client timestamp, falling back to insertion time"""
    return func.coalesce(SessionEventRecord.created_at, SessionEventRecord.inserted_at)


class EventStore:
    """
    Query access to stored session events.

    Example:
        async with get_db() as db:
            events = await EventStore(db).fetch_events(filters, window=(start, end))
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_events(
        self,
        filters: Optional[ReportFilters] = None,
        window: Optional[Tuple[datetime, datetime]] = None,
    ) -> List[SessionEvent]:
        """
        Fetch events with a user id, optionally bounded to a window.

        State and city filters are applied in SQL. Classification and device
        filters compare normalized values and are left to the engine.

        Args:
            filters: Report filters
            window: Inclusive (start, end); None fetches the full history

        Raises:
            DataUnavailable: If the query fails
        """
        stmt = select(SessionEventRecord).where(
            SessionEventRecord.user_id.is_not(None),
            SessionEventRecord.user_id != "",
        )
        if window is not None:
            stmt = stmt.where(event_timestamp().between(window[0], window[1]))
        if filters is not None and filters.state:
            stmt = stmt.where(func.lower(SessionEventRecord.location_state) == filters.state.lower())
        if filters is not None and filters.city:
            stmt = stmt.where(func.lower(SessionEventRecord.location_city) == filters.city.lower())
        stmt = stmt.order_by(event_timestamp(), SessionEventRecord.id)

        try:
            result = await self.session.execute(stmt)
            records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Event query failed", error=str(e))
            raise DataUnavailable(f"Event store query failed: {e}") from e

        events = [record.to_event() for record in records]
        logger.debug("Fetched events", count=len(events), bounded=window is not None)
        return events

    async def add_events(self, events: Iterable[SessionEvent]) -> int:
        """Insert events; returns the number added"""
        records = [SessionEventRecord.from_event(event) for event in events]
        try:
            self.session.add_all(records)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Event insert failed", error=str(e))
            raise DataUnavailable(f"Event store insert failed: {e}") from e
        return len(records)

    async def count(self) -> int:
        try:
            result = await self.session.execute(
                select(func.count()).select_from(SessionEventRecord)
            )
        except SQLAlchemyError as e:
            logger.error("Event count failed", error=str(e))
            raise DataUnavailable(f"Event store count failed: {e}") from e
        return int(result.scalar_one())


class ProductCatalog:
    """Product lookup by any of sku, public id or product id"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lookup(self, identifiers: Iterable[str]) -> CatalogIndex:
        """
        Build a CatalogIndex for the products matching ``identifiers``.

        Raises:
            DataUnavailable: If the query fails
        """
        wanted = sorted({i for i in identifiers if i})
        index = CatalogIndex()
        if not wanted:
            return index

        try:
            for chunk in _chunks(wanted, LOOKUP_CHUNK_SIZE):
                result = await self.session.execute(
                    select(ProductRecord).where(
                        or_(
                            ProductRecord.sku.in_(chunk),
                            ProductRecord.public_id.in_(chunk),
                            ProductRecord.product_id.in_(chunk),
                        )
                    )
                )
                for record in result.scalars().all():
                    index.add(CatalogEntry(
                        sku=record.sku,
                        product_id=record.product_id,
                        public_id=record.public_id,
                        name=record.product_name,
                        category=record.category,
                    ))
        except SQLAlchemyError as e:
            logger.error("Catalog lookup failed", error=str(e))
            raise DataUnavailable(f"Product catalog lookup failed: {e}") from e

        logger.debug("Resolved catalog entries", requested=len(wanted), found=len(index))
        return index

    async def add_products(self, entries: Iterable[CatalogEntry]) -> int:
        records = [
            ProductRecord(
                sku=entry.sku,
                product_id=entry.product_id,
                public_id=entry.public_id,
                product_name=entry.name,
                category=entry.category,
            )
            for entry in entries
        ]
        try:
            self.session.add_all(records)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Product insert failed", error=str(e))
            raise DataUnavailable(f"Product catalog insert failed: {e}") from e
        return len(records)


def _chunks(items: Sequence[str], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]
