"""
Database Module
"""
from .connection import (
    check_database_health,
    close_database,
    create_tables,
    get_db,
    get_db_dependency,
    init_database,
)
from .models import Base, ProductRecord, SessionEventRecord
from .store import EventStore, ProductCatalog

__all__ = [
    "init_database",
    "close_database",
    "create_tables",
    "get_db",
    "get_db_dependency",
    "check_database_health",
    "Base",
    "SessionEventRecord",
    "ProductRecord",
    "EventStore",
    "ProductCatalog",
]
