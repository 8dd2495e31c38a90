"""
Click Count Service

This service handles incrementing click counts for short URLs.

Design Decisions:
- Database-level atomic increment (UPDATE ... SET click_count = click_count + 1),
  never read-modify-write, so concurrent redirects cannot lose updates
- The UPDATE repeats the accessibility predicate in its WHERE clause: it is
  a compare-and-set that only succeeds while the link is still active,
  unexpired and under its click limit. Two concurrent redirects competing
  for the last allowed click cannot both succeed
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.timeutils import utc_now
from shortlink.db.models import ShortURL


class ClickCountService:
    """
    Service for managing click counts.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the click count service with a database session.

        Args:
            session: Async database session for database operations
        """
        self.session = session

    async def increment_click_count(self, short_url_id: int, now: Optional[datetime] = None) -> bool:
        """
        Increment the click count for a short URL if it is still accessible.

        Args:
            short_url_id: Id of the ShortURL
            now: Reference time for the expiry check (default: current UTC time)

        Returns:
            True if the row was incremented, False if it no longer qualifies
            (inactive, expired, limit reached) or does not exist

        Note:
        - Commit is handled by the caller
        """
        now = now or utc_now()
        statement = (
            update(ShortURL)
            .where(
                and_(
                    ShortURL.id == short_url_id,
                    ShortURL.is_active.is_(True),
                    or_(ShortURL.expires_at.is_(None), ShortURL.expires_at >= now),
                    or_(ShortURL.click_limit.is_(None), ShortURL.click_count < ShortURL.click_limit),
                )
            )
            .values(click_count=ShortURL.click_count + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        result = await self.session.execute(statement)
        return result.rowcount > 0

    async def get_click_count(self, short_url_id: int) -> int:
        """
        Get the current click count for a short URL.

        Returns:
            Click count (0 if not found)
        """
        statement = select(ShortURL.click_count).where(ShortURL.id == short_url_id)
        result = await self.session.execute(statement)
        count = result.scalar_one_or_none()
        return count if count is not None else 0
