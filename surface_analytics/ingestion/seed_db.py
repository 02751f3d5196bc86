"""
Database Seeding

Loads a generated product catalog and session documents into the event
store. Documents go through the same coercion as live data, so malformed
ones are skipped here exactly as they would be at query time.
"""

import argparse
import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import polars as pl
import structlog

from surface_analytics.analytics.events import load_events
from surface_analytics.config.logging import configure_logging
from surface_analytics.data.generators import ProductCatalogGenerator, SessionEventGenerator
from surface_analytics.database.connection import (
    close_database,
    create_tables,
    get_db,
    init_database,
)
from surface_analytics.database.store import EventStore, ProductCatalog

logger = structlog.get_logger(__name__)


async def seed_database(
    sessions: int = 5000,
    users: int = 800,
    products: int = 300,
    days: int = 90,
    seed: int = 42,
    end: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Generate and insert catalog products and session events.

    Requires an initialized database (``init_database``).
    """
    await create_tables()

    catalog = ProductCatalogGenerator(seed=seed).generate(products)
    documents = SessionEventGenerator(catalog, seed=seed).generate(
        n=sessions, users=users, days=days, end=end
    )
    events = load_events(documents)

    async with get_db() as db:
        added_products = await ProductCatalog(db).add_products(catalog)
        added_events = await EventStore(db).add_events(events)

    logger.info("Database seeded", products=added_products, events=added_events)
    return {"products": added_products, "events": added_events}


async def load_documents(documents: Iterable[Dict[str, Any]]) -> int:
    """Insert raw session documents, e.g. from an NDJSON export"""
    await create_tables()
    events = load_events(documents)
    async with get_db() as db:
        return await EventStore(db).add_events(events)


async def main(args: argparse.Namespace) -> None:
    configure_logging()
    await init_database(args.database_url)
    try:
        if args.from_file:
            added = await load_documents(pl.read_ndjson(Path(args.from_file)).to_dicts())
            logger.info("Loaded session documents", path=args.from_file, events=added)
            return
        await seed_database(
            sessions=args.sessions,
            users=args.users,
            products=args.products,
            days=args.days,
            seed=args.seed,
        )
    finally:
        await close_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the surface analytics event store")
    parser.add_argument("--sessions", type=int, default=5000)
    parser.add_argument("--users", type=int, default=800)
    parser.add_argument("--products", type=int, default=300)
    parser.add_argument("--days", type=int, default=90)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--from-file", default=None, help="NDJSON session documents to load instead of generating")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    asyncio.run(main(parser.parse_args()))
