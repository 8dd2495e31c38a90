"""
Analytics Service

Read-only aggregation over ClickEvents, plus retention cleanup.

Design Decisions:
- All date filters are inclusive [start, end] bounds on clicked_at
- Breakdowns are computed with GROUP BY in the database, not in Python
- Day/hour bucketing SQL comes from the database adapter since date
  functions differ between backends
- The real-time figure is recomputed on every call (no caching) over a
  rolling window (settings.REAL_TIME_WINDOW_HOURS)
- Storage failures surface as DatabaseError; callers never see driver
  exceptions
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.exceptions import DatabaseError, ValidationError
from shortlink.core.setting import settings
from shortlink.core.timeutils import normalize_utc, utc_now
from shortlink.core.validators import validate_date_range, validate_day_span, validate_pagination
from shortlink.db.interface import DatabaseAdapter
from shortlink.db.models import ClickEvent
from shortlink.db.sqlite_adapter import get_database_adapter

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"
MAX_RECENT_CLICKS = 100
MAX_PAGE_SIZE = 100


@dataclass
class ClickHistoryPage:
    items: List[ClickEvent] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 50

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class AnalyticsService:
    """
    Service for click analytics of short URLs.
    """

    def __init__(self, session: AsyncSession, adapter: Optional[DatabaseAdapter] = None):
        """
        Args:
            session: Async database session for database operations
            adapter: Database adapter supplying dialect-specific SQL
        """
        self.session = session
        self.adapter = adapter or get_database_adapter()

    def _filtered(self, statement, short_url_id: int, start: Optional[datetime], end: Optional[datetime]):
        statement = statement.where(ClickEvent.short_url_id == short_url_id)
        if start is not None:
            statement = statement.where(ClickEvent.clicked_at >= normalize_utc(start))
        if end is not None:
            statement = statement.where(ClickEvent.clicked_at <= normalize_utc(end))
        return statement

    async def _execute(self, statement, action: str):
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action}: {e}", exc_info=True)
            raise DatabaseError(f"Failed to {action}", original_error=e)

    async def get_total_clicks(
        self,
        short_url_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        """Number of click events for a short URL, optionally within [start, end]."""
        validate_date_range(start, end)
        statement = self._filtered(select(func.count(ClickEvent.id)), short_url_id, start, end)
        result = await self._execute(statement, "count clicks")
        return result.scalar() or 0

    async def _breakdown(
        self,
        column,
        short_url_id: int,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> Dict[str, int]:
        validate_date_range(start, end)
        statement = self._filtered(
            select(column, func.count(ClickEvent.id)),
            short_url_id, start, end
        ).group_by(column)
        result = await self._execute(statement, f"group clicks by {column.key}")

        breakdown: Dict[str, int] = {}
        for label, count in result.all():
            key = label or UNKNOWN_LABEL
            breakdown[key] = breakdown.get(key, 0) + count
        return breakdown

    async def get_clicks_by_country(
        self, short_url_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, int]:
        return await self._breakdown(ClickEvent.country, short_url_id, start, end)

    async def get_clicks_by_device_type(
        self, short_url_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, int]:
        return await self._breakdown(ClickEvent.device_type, short_url_id, start, end)

    async def get_clicks_by_traffic_source(
        self, short_url_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, int]:
        return await self._breakdown(ClickEvent.traffic_source, short_url_id, start, end)

    async def get_daily_clicks(self, short_url_id: int, start: datetime, end: datetime) -> Dict[str, int]:
        """
        Clicks per calendar day (UTC) within [start, end].

        Returns:
            Mapping of ISO date string to count, ordered by day; days without
            clicks are included with 0

        Raises:
            ValidationError: If start is after end or the range spans more
                than settings.MAX_DAILY_RANGE_DAYS days
        """
        start, end = normalize_utc(start), normalize_utc(end)
        validate_date_range(start, end)
        validate_day_span(start, end, settings.MAX_DAILY_RANGE_DAYS)
        bucket = self.adapter.day_bucket(ClickEvent.clicked_at)
        statement = self._filtered(
            select(bucket, func.count(ClickEvent.id)),
            short_url_id, start, end
        ).group_by(bucket)
        result = await self._execute(statement, "group clicks by day")
        counts = {str(day): count for day, count in result.all()}

        daily: Dict[str, int] = {}
        day = start.date()
        last_day = end.date()
        while day <= last_day:
            key = day.isoformat()
            daily[key] = counts.get(key, 0)
            day += timedelta(days=1)
        return daily

    async def get_hourly_clicks(self, short_url_id: int, day: date) -> Dict[int, int]:
        """
        Clicks per hour of one UTC day.

        Returns:
            Mapping of hour (0-23) to count; all 24 hours are present
        """
        start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        end = start + timedelta(days=1) - timedelta(microseconds=1)
        bucket = self.adapter.hour_bucket(ClickEvent.clicked_at)
        statement = self._filtered(
            select(bucket, func.count(ClickEvent.id)),
            short_url_id, start, end
        ).group_by(bucket)
        result = await self._execute(statement, "group clicks by hour")

        hourly = {hour: 0 for hour in range(24)}
        for hour, count in result.all():
            hourly[int(hour)] = count
        return hourly

    async def get_recent_clicks(self, short_url_id: int, count: int = 10) -> List[ClickEvent]:
        """
        Most recent clicks, newest first.

        Raises:
            ValidationError: If count is outside 1..100
        """
        if count < 1 or count > MAX_RECENT_CLICKS:
            raise ValidationError(f"Count must be between 1 and {MAX_RECENT_CLICKS}", field="count")

        statement = (
            select(ClickEvent)
            .where(ClickEvent.short_url_id == short_url_id)
            .order_by(ClickEvent.clicked_at.desc(), ClickEvent.id.desc())
            .limit(count)
        )
        result = await self._execute(statement, "load recent clicks")
        return list(result.scalars().all())

    async def get_clicks_by_date_range(
        self, short_url_id: int, start: datetime, end: datetime
    ) -> List[ClickEvent]:
        """All clicks within [start, end], oldest first."""
        validate_date_range(start, end)
        statement = self._filtered(select(ClickEvent), short_url_id, start, end).order_by(
            ClickEvent.clicked_at, ClickEvent.id
        )
        result = await self._execute(statement, "load clicks by date range")
        return list(result.scalars().all())

    async def get_click_history(
        self, short_url_id: int, page: int = 1, page_size: int = 50
    ) -> ClickHistoryPage:
        """
        One page of a short URL's clicks, newest first.

        Args:
            short_url_id: Id of the ShortURL
            page: 1-based page number
            page_size: Items per page (1..100)

        Raises:
            ValidationError: On an invalid page or page size
        """
        validate_pagination(page, page_size, max_page_size=MAX_PAGE_SIZE)

        total_count = await self.get_total_clicks(short_url_id)
        statement = (
            select(ClickEvent)
            .where(ClickEvent.short_url_id == short_url_id)
            .order_by(ClickEvent.clicked_at.desc(), ClickEvent.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self._execute(statement, "load click history")

        return ClickHistoryPage(
            items=list(result.scalars().all()),
            total_count=total_count,
            page=page,
            page_size=page_size,
        )

    async def get_real_time_clicks(self, short_url_id: int) -> int:
        """Clicks within the rolling real-time window ending now."""
        end = utc_now()
        start = end - timedelta(hours=settings.REAL_TIME_WINDOW_HOURS)
        return await self.get_total_clicks(short_url_id, start, end)

    async def get_analytics(
        self,
        short_url_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        """
        Summary of a short URL's clicks.

        Returns:
            Dictionary with:
            - total_clicks
            - clicks_by_country, clicks_by_device_type, clicks_by_traffic_source
            - daily_clicks (only when both start and end are given)

        Raises:
            ValidationError: If start is after end or the daily range is too wide
        """
        validate_date_range(start, end)
        if start is not None and end is not None:
            validate_day_span(normalize_utc(start), normalize_utc(end), settings.MAX_DAILY_RANGE_DAYS)

        analytics = {
            "total_clicks": await self.get_total_clicks(short_url_id, start, end),
            "clicks_by_country": await self.get_clicks_by_country(short_url_id, start, end),
            "clicks_by_device_type": await self.get_clicks_by_device_type(short_url_id, start, end),
            "clicks_by_traffic_source": await self.get_clicks_by_traffic_source(short_url_id, start, end),
            "daily_clicks": None,
        }
        if start is not None and end is not None:
            analytics["daily_clicks"] = await self.get_daily_clicks(short_url_id, start, end)
        return analytics

    async def cleanup_old_clicks(self, retention_days: int, now: Optional[datetime] = None) -> int:
        """
        Delete click events older than the retention period. Irreversible.

        Args:
            retention_days: Events with clicked_at < now - retention_days are removed
            now: Reference time (default: current UTC time)

        Returns:
            Number of deleted events

        Raises:
            ValidationError: If retention_days is not positive
        """
        if retention_days <= 0:
            raise ValidationError("Retention days must be greater than 0", field="retention_days")

        cutoff = (now or utc_now()) - timedelta(days=retention_days)
        statement = delete(ClickEvent).where(ClickEvent.clicked_at < cutoff)
        result = await self._execute(statement, "delete old clicks")
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseError("Failed to delete old clicks", original_error=e)

        deleted = result.rowcount or 0
        logger.info(f"Cleaned up {deleted} click events older than {cutoff.isoformat()}")
        return deleted
