"""
Database Adapter Interface

An adapter hides what differs between database backends:
- how the async engine is configured (pooling, driver connect args)
- the SQL used to bucket click timestamps by day and by hour, which the
  analytics queries group on

Everything else talks to the database through plain SQLAlchemy.
"""

from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql.elements import ColumnElement


class DatabaseAdapter(ABC):
    """
    Base class for database adapters.

    Subclasses set dialect_name and implement engine_options() and the two
    bucketing expressions.
    """

    dialect_name: str = ""

    def create_engine(self, database_url: str, **overrides) -> AsyncEngine:
        """
        Create the async engine for this backend.

        Args:
            database_url: SQLAlchemy async URL
            **overrides: Engine options replacing the adapter defaults

        Returns:
            Configured AsyncEngine
        """
        options = self.engine_options()
        options.update(overrides)
        return create_async_engine(database_url, **options)

    @abstractmethod
    def engine_options(self) -> dict[str, Any]:
        """Default keyword arguments for create_async_engine()."""

    @abstractmethod
    def day_bucket(self, column: ColumnElement) -> ColumnElement:
        """
        Expression truncating a timestamp column to its calendar day.

        Must evaluate to a ``YYYY-MM-DD`` string, or a value whose ``str()``
        is one, so daily series look the same on every backend.
        """

    @abstractmethod
    def hour_bucket(self, column: ColumnElement) -> ColumnElement:
        """Expression extracting the hour of day (0-23) from a timestamp column."""
