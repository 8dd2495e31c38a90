"""
URL Shortening Service

This service handles creation of short URLs:
- Validating destination URLs
- Claiming user-chosen (custom) codes
- Generating codes from the row id with base62 encoding
- Storing access constraints (expiry, click limit, password)

Design Decisions:
- Counter-based codes: the row is inserted first to obtain its id, then
  its code is set to generate_code(id) in the same transaction. Codes are
  assigned exactly once and never change
- A custom code can equal the code some future id would generate; that id
  is skipped (left as an inactive row without a code) and the next one used
- Custom codes are validated for shape first, then checked for uniqueness
  against the database
- Passwords are stored as SHA-256 digests only
"""

import logging
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.exceptions import (
    CodeConflictError,
    DatabaseError,
    InvalidURLError,
    ValidationError,
)
from shortlink.core.timeutils import normalize_utc, utc_now
from shortlink.core.validators import validate_url_length
from shortlink.db.models import ShortURL
from shortlink.services.code_generator import generate_code, validate_custom_code
from shortlink.services.redirect_service import hash_password

logger = logging.getLogger(__name__)

# Ids skipped in one creation before giving up
MAX_GENERATION_ATTEMPTS = 5


def is_valid_url(url: str) -> bool:
    """
    Validate URL format and security.

    Checks that URL uses http/https, has valid domain, and doesn't contain
    malicious patterns. Prevents javascript:, file:, and other dangerous schemes.

    Args:
        url: The URL string to validate

    Returns:
        True if valid and safe, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    if not validate_url_length(url):
        return False

    try:
        result = urlparse(url)
    except ValueError:
        return False

    if not result.scheme or not result.netloc:
        return False

    if result.scheme.lower() not in {'http', 'https'}:
        return False

    domain = (result.hostname or "")
    if domain != 'localhost' and '.' not in domain:
        return False

    malicious_patterns = ['javascript:', 'data:', 'file:', 'vbscript:']
    url_lower = url.lower()
    if any(pattern in url_lower for pattern in malicious_patterns):
        return False

    return True


class URLShorteningService:
    """
    Core business logic for creating short URLs.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the URL shortening service.

        Args:
            session: Database session
        """
        self.session = session

    async def code_exists(self, short_code: str) -> bool:
        statement = select(ShortURL.id).where(ShortURL.short_code == short_code).limit(1)
        result = await self.session.execute(statement)
        return result.first() is not None

    async def create_short_url(
        self,
        original_url: str,
        custom_code: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        click_limit: Optional[int] = None,
        password: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> ShortURL:
        """
        Create a new short URL.

        Args:
            original_url: The long URL to shorten
            custom_code: User-chosen code; a code is generated from the id when None
            expires_at: Optional expiry; naive values are taken as UTC
            click_limit: Optional maximum number of redirects (>= 1)
            password: Optional password required to reveal the destination
            owner_id: Optional opaque owner reference

        Returns:
            The committed ShortURL with short_code populated

        Raises:
            InvalidURLError: If URL format is invalid
            ValidationError: If the custom code, click limit or expiry is invalid
            CodeConflictError: If the custom code is already taken
            DatabaseError: If database operation fails
        """
        if not is_valid_url(original_url):
            raise InvalidURLError(
                original_url,
                reason="Invalid URL format. URL must use http:// or https:// and have a valid domain"
            )

        if click_limit is not None and click_limit < 1:
            raise ValidationError("Click limit must be at least 1", field="click_limit")

        expires_at = normalize_utc(expires_at)
        if expires_at is not None and expires_at <= utc_now():
            raise ValidationError("Expiry must be in the future", field="expires_at")

        if custom_code is not None:
            validate_custom_code(custom_code)
            if await self.code_exists(custom_code):
                raise CodeConflictError(custom_code)

        password_hash = hash_password(password) if password else None

        try:
            for _ in range(MAX_GENERATION_ATTEMPTS):
                short_url = ShortURL(
                    original_url=original_url,
                    short_code=custom_code,
                    owner_id=owner_id,
                    expires_at=expires_at,
                    click_limit=click_limit,
                    password_hash=password_hash,
                )
                self.session.add(short_url)
                await self.session.flush()

                if custom_code is not None:
                    break

                code = generate_code(short_url.id)
                if not await self.code_exists(code):
                    short_url.short_code = code
                    await self.session.flush()
                    break

                # A custom code already owns this id's code: keep the row
                # as an unreachable placeholder so the id is not reused
                logger.warning(f"Code '{code}' for id {short_url.id} is taken by a custom code, skipping id")
                short_url.is_active = False
                await self.session.flush()
            else:
                raise DatabaseError("Failed to create short URL: no free generated code")

            await self.session.commit()
            await self.session.refresh(short_url)
        except IntegrityError as e:
            await self.session.rollback()
            if custom_code is not None:
                raise CodeConflictError(custom_code)
            logger.error(f"Generated code collided with a concurrently created code: {e}")
            raise DatabaseError(
                "Failed to create short URL: database constraint violation",
                original_error=e
            )
        except DatabaseError:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to create short URL: {e}", exc_info=True)
            raise DatabaseError(
                f"Failed to create short URL: {str(e)}",
                original_error=e
            )

        logger.info(f"Created short code '{short_url.short_code}' (id={short_url.id})")
        return short_url

    async def get_by_code(self, short_code: str) -> Optional[ShortURL]:
        """
        Retrieve the ShortURL for a given short code.

        Returns:
            ShortURL object if found, None otherwise
        """
        statement = select(ShortURL).where(ShortURL.short_code == short_code)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()
