"""
Redirect Service

This service resolves short codes for redirection.

Flow of get_redirect_info():
1. Narrow projection lookup by code (only the columns the access check needs)
2. Accessibility check: active, not expired, under the click limit.
   Any failure is reported with the same ForbiddenError message
3. Atomic, guarded click count increment
4. Queue the click for background enrichment (never blocks, never raises)
5. Return the destination and whether a password is required

Password-protected links are counted by unlock(), once the verify endpoint
has a matching password; check_access() lets the redirect endpoint answer
them without counting.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.exceptions import ForbiddenError, ShortCodeNotFoundError, ValidationError
from shortlink.core.timeutils import normalize_utc, utc_now
from shortlink.db.models import ShortURL
from shortlink.services.click_count_service import ClickCountService
from shortlink.services.click_queue import ClickTrackingData, ClickTrackingQueue

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = "This link is no longer active."


def hash_password(password: str) -> str:
    """Hash a password using SHA-256."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def check_password(password: str, password_hash: Optional[str]) -> bool:
    """Constant-time comparison of a candidate password against a stored hash."""
    if not password_hash:
        return False
    return hmac.compare_digest(hash_password(password), password_hash)


@dataclass(frozen=True)
class RedirectProjection:
    """The columns of a ShortURL that the redirect path needs."""
    id: int
    original_url: str
    is_active: bool
    expires_at: Optional[datetime]
    click_limit: Optional[int]
    click_count: int
    password_hash: Optional[str]

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password_hash)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires_at = normalize_utc(self.expires_at)
        return expires_at is not None and expires_at < (now or utc_now())

    def is_click_limit_reached(self) -> bool:
        return self.click_limit is not None and self.click_count >= self.click_limit

    def can_access(self, now: Optional[datetime] = None) -> bool:
        return self.is_active and not self.is_expired(now) and not self.is_click_limit_reached()


@dataclass(frozen=True)
class RedirectInfo:
    original_url: str
    password_protected: bool
    short_url_id: int


class RedirectService:
    """
    Service for handling URL redirections.
    """

    def __init__(self, session: AsyncSession, click_queue: Optional[ClickTrackingQueue] = None):
        """
        Initialize the redirect service.

        Args:
            session: Async database session for database operations
            click_queue: Queue receiving click tracking jobs; clicks are counted
                but not tracked when None
        """
        self.session = session
        self.click_queue = click_queue
        self.click_count_service = ClickCountService(session)

    async def get_redirect_projection(self, short_code: str) -> Optional[RedirectProjection]:
        """
        Fetch only what the redirect needs for a code.

        Returns:
            RedirectProjection if the code exists, None otherwise
        """
        statement = select(
            ShortURL.id,
            ShortURL.original_url,
            ShortURL.is_active,
            ShortURL.expires_at,
            ShortURL.click_limit,
            ShortURL.click_count,
            ShortURL.password_hash,
        ).where(ShortURL.short_code == short_code)
        result = await self.session.execute(statement)
        row = result.first()
        if row is None:
            return None
        return RedirectProjection(
            id=row.id,
            original_url=row.original_url,
            is_active=bool(row.is_active),
            expires_at=row.expires_at,
            click_limit=row.click_limit,
            click_count=row.click_count or 0,
            password_hash=row.password_hash,
        )

    async def check_access(self, short_code: str, now: Optional[datetime] = None) -> RedirectProjection:
        """
        Look up a code and make sure it can currently be redirected.

        Raises:
            ShortCodeNotFoundError: If the code does not exist
            ForbiddenError: If the link is inactive, expired or out of clicks
        """
        projection = await self.get_redirect_projection(short_code)
        if projection is None:
            raise ShortCodeNotFoundError(short_code)

        if not projection.can_access(now or utc_now()):
            logger.info(f"Refused redirect for inaccessible short code '{short_code}'")
            raise ForbiddenError(FORBIDDEN_MESSAGE)
        return projection

    async def record_click(
        self,
        projection: RedirectProjection,
        tracking_data: Optional[ClickTrackingData] = None,
        now: Optional[datetime] = None,
    ) -> RedirectInfo:
        """
        Count and queue one click on a link that passed check_access().

        Raises:
            ForbiddenError: If another redirect used up the last allowed click
        """
        try:
            incremented = await self.click_count_service.increment_click_count(
                projection.id, now=now or utc_now()
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Failed to increment click count for short URL {projection.id}: {e}",
                exc_info=True
            )
        else:
            if not incremented:
                # Another redirect used up the last allowed click since the lookup
                logger.info(f"Short URL {projection.id} became inaccessible during redirect")
                raise ForbiddenError(FORBIDDEN_MESSAGE)

        self._queue_click(projection.id, tracking_data)

        return RedirectInfo(
            original_url=projection.original_url,
            password_protected=projection.is_password_protected,
            short_url_id=projection.id,
        )

    async def get_redirect_info(
        self,
        short_code: str,
        tracking_data: Optional[ClickTrackingData] = None,
    ) -> RedirectInfo:
        """
        Resolve a short code for redirection and record the click.

        Args:
            short_code: The code from the request path
            tracking_data: Raw request inputs to queue for enrichment

        Returns:
            RedirectInfo with the destination and password flag

        Raises:
            ShortCodeNotFoundError: If the code does not exist
            ForbiddenError: If the link is inactive, expired or out of clicks
        """
        now = utc_now()
        projection = await self.check_access(short_code, now=now)
        return await self.record_click(projection, tracking_data, now=now)

    def _queue_click(self, short_url_id: int, tracking_data: Optional[ClickTrackingData]) -> None:
        if self.click_queue is None:
            logger.debug(f"No click queue available, click on {short_url_id} not tracked")
            return
        try:
            self.click_queue.enqueue(short_url_id, tracking_data or ClickTrackingData())
        except Exception as e:
            logger.error(f"Failed to queue click for short URL {short_url_id}: {e}", exc_info=True)

    async def verify_password(self, short_url_id: int, password: str) -> bool:
        """
        Check a password against the stored hash of a ShortURL.

        Returns:
            True on match; False for a wrong password, an unknown id or a
            link without password

        Raises:
            ValidationError: If password is empty
        """
        if not password:
            raise ValidationError("Password cannot be empty", field="password")

        statement = select(ShortURL.password_hash).where(ShortURL.id == short_url_id)
        result = await self.session.execute(statement)
        return check_password(password, result.scalar_one_or_none())

    async def _unlockable_projection(self, short_code: str, password: str) -> Optional[RedirectProjection]:
        if not password:
            return None
        projection = await self.get_redirect_projection(short_code)
        if projection is None or not projection.can_access():
            return None
        if not check_password(password, projection.password_hash):
            return None
        return projection

    async def get_url_if_password_correct(self, short_code: str, password: str) -> Optional[str]:
        """
        Destination URL when the password matches and the link is accessible,
        None otherwise.

        Unknown codes, wrong passwords and inactive, expired or exhausted
        links all give None.
        """
        projection = await self._unlockable_projection(short_code, password)
        return projection.original_url if projection else None

    async def unlock(
        self,
        short_code: str,
        password: str,
        tracking_data: Optional[ClickTrackingData] = None,
    ) -> Optional[RedirectInfo]:
        """
        Password-gated redirect: check the password and the access rules,
        then count and queue the click.

        Returns:
            RedirectInfo on success, None under the same conditions as
            get_url_if_password_correct()

        Raises:
            ForbiddenError: If another redirect used up the last allowed click
        """
        projection = await self._unlockable_projection(short_code, password)
        if projection is None:
            return None
        return await self.record_click(projection, tracking_data)

    async def is_active(self, short_code: str) -> bool:
        """True if the code exists and can currently be redirected."""
        projection = await self.get_redirect_projection(short_code)
        return projection is not None and projection.can_access()

    async def is_password_protected(self, short_code: str) -> bool:
        projection = await self.get_redirect_projection(short_code)
        return projection is not None and projection.is_password_protected

    async def is_click_limit_reached(self, short_code: str) -> bool:
        projection = await self.get_redirect_projection(short_code)
        return projection is not None and projection.is_click_limit_reached()
