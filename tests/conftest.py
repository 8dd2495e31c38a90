"""
Pytest fixtures for the shortlink tests.

Provides a throwaway SQLite database per test, a click queue and worker
wired to it, and an HTTP client talking to the FastAPI app in-process.
"""

import os

# Must be set before shortlink modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GEOLOCATION_ENABLED", "false")
os.environ.setdefault("ENV_SETTING", "dev")

from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest
from sqlalchemy import select

from shortlink.core.rate_limit import limiter
from shortlink.core.worker_manager import get_click_queue
from shortlink.db.models import ClickEvent, ShortURL
from shortlink.db.session import build_session_factory, create_tables, get_session
from shortlink.db.sqlite_adapter import get_database_adapter
from shortlink.main import app
from shortlink.services.click_queue import ClickTrackingQueue
from shortlink.services.click_worker import ClickTrackingWorker
from shortlink.services.geolocation import GeoLocationService


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so every session gets its own connection."""
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = get_database_adapter(database_url).create_engine(database_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def click_queue():
    return ClickTrackingQueue(maxsize=100)


@pytest.fixture
def worker(click_queue, session_factory):
    return ClickTrackingWorker(
        queue=click_queue,
        session_factory=session_factory,
        geolocation=GeoLocationService(enabled=False),
    )


@pytest.fixture
async def client(session_factory, click_queue):
    """HTTP client for the app with the test database and queue swapped in."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_click_queue] = lambda: click_queue
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def make_short_url(session):
    """Insert a ShortURL directly, bypassing creation-time validation."""

    async def _make(
        short_code: str = "abc",
        original_url: str = "https://example.com/landing",
        **fields
    ) -> ShortURL:
        short_url = ShortURL(short_code=short_code, original_url=original_url, **fields)
        session.add(short_url)
        await session.commit()
        await session.refresh(short_url)
        return short_url

    return _make


@pytest.fixture
def add_click(session):
    """Insert a ClickEvent with the given timestamp and fields."""

    async def _add(short_url_id: int, clicked_at: Optional[datetime] = None, **fields) -> ClickEvent:
        click = ClickEvent(
            short_url_id=short_url_id,
            clicked_at=clicked_at or datetime.now(timezone.utc),
            **fields
        )
        session.add(click)
        await session.commit()
        return click

    return _add


@pytest.fixture
def stored_clicks(session_factory):
    """Read back all ClickEvents, in insertion order, through a fresh session."""

    async def _load(short_url_id: Optional[int] = None):
        async with session_factory() as fresh:
            statement = select(ClickEvent).order_by(ClickEvent.id)
            if short_url_id is not None:
                statement = statement.where(ClickEvent.short_url_id == short_url_id)
            result = await fresh.execute(statement)
            return list(result.scalars().all())

    return _load


@pytest.fixture
def past():
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture
def future():
    return datetime.now(timezone.utc) + timedelta(days=1)
