"""
SQLite Database Adapter

SQLite specifics:
- One file, one writer at a time; connections are not pooled (NullPool)
  so every session gets a fresh aiosqlite connection
- No native date type: timestamps are stored as ISO strings, so bucketing
  goes through date() and strftime()
"""

from typing import Any, Optional

from sqlalchemy import Integer, cast, func
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.elements import ColumnElement

from shortlink.core.setting import settings
from shortlink.db.interface import DatabaseAdapter


class SQLiteAdapter(DatabaseAdapter):
    """Adapter for sqlite+aiosqlite databases."""

    dialect_name = "sqlite"

    def engine_options(self) -> dict[str, Any]:
        return {
            "poolclass": NullPool,
            # aiosqlite runs the connection in its own thread
            "connect_args": {"check_same_thread": False},
            "echo": False,
        }

    def day_bucket(self, column: ColumnElement) -> ColumnElement:
        return func.date(column)

    def hour_bucket(self, column: ColumnElement) -> ColumnElement:
        return cast(func.strftime("%H", column), Integer)


ADAPTERS = {
    SQLiteAdapter.dialect_name: SQLiteAdapter,
}


def get_database_adapter(database_url: Optional[str] = None) -> DatabaseAdapter:
    """
    Adapter matching the backend of a database URL.

    Args:
        database_url: SQLAlchemy URL (default: settings.DATABASE_URL)

    Returns:
        DatabaseAdapter instance

    Raises:
        ValueError: If no adapter exists for the URL's backend
    """
    backend = make_url(database_url or settings.DATABASE_URL).get_backend_name()
    try:
        return ADAPTERS[backend]()
    except KeyError:
        raise ValueError(f"Unsupported database backend: '{backend}'")
