"""
Persistence layer: models, the per-backend adapter and session handling.
"""

from shortlink.db.interface import DatabaseAdapter
from shortlink.db.session import (
    async_session_maker,
    build_session_factory,
    create_tables,
    engine,
    get_session,
)

__all__ = [
    "DatabaseAdapter",
    "async_session_maker",
    "build_session_factory",
    "create_tables",
    "engine",
    "get_session",
]
