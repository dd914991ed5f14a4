"""
Persistence module for storage adapters and the query dispatcher.
"""

from .database import DatabaseManager, SQLiteDatabase, PostgreSQLDatabase, DatabaseFactory
from .dispatcher import QueryDispatcher
from .schema import SQLITE_SCHEMA, POSTGRESQL_SCHEMA, schema_for

__all__ = [
    "DatabaseManager",
    "SQLiteDatabase",
    "PostgreSQLDatabase",
    "DatabaseFactory",
    "QueryDispatcher",
    "SQLITE_SCHEMA",
    "POSTGRESQL_SCHEMA",
    "schema_for",
]
