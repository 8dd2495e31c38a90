"""
Database Session Management

One async engine per process, built by the adapter for settings.DATABASE_URL,
and one session factory shared by:
- HTTP endpoints, through the get_session dependency (one unit of work per
  request)
- the click tracking worker, which opens a session per job since it runs
  outside any request
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from shortlink.core.setting import settings
from shortlink.db.sqlite_adapter import get_database_adapter


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory for an engine; objects stay usable after commit."""
    return async_sessionmaker(
        bind,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = get_database_adapter(settings.DATABASE_URL).create_engine(settings.DATABASE_URL)
async_session_maker = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session for one request.

    Commits when the endpoint returns normally, rolls back when it raises.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(bind: AsyncEngine = engine) -> None:
    """
    Create missing tables.

    Development and tests only; deployed databases are migrated with Alembic.
    """
    from shortlink.db import models  # noqa: F401  (registers tables on the metadata)

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
