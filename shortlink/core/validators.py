"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.

Security Considerations:
- Short codes are matched against a fixed character set before hitting the database
- Length limits prevent DoS attacks
"""

import re
from datetime import datetime
from typing import Optional

from shortlink.core.exceptions import ValidationError

SHORT_CODE_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')
MAX_SHORT_CODE_LENGTH = 50


def sanitize_short_code(short_code: str) -> Optional[str]:
    """
    Sanitize and validate short code format.

    Accepts both generated base62 codes and custom codes, so the allowed
    set is [A-Za-z0-9_-].

    Args:
        short_code: The short code to sanitize

    Returns:
        Sanitized short code if valid, None otherwise
    """
    if not short_code or not isinstance(short_code, str):
        return None

    short_code = short_code.strip()

    if len(short_code) > MAX_SHORT_CODE_LENGTH:
        return None

    if not SHORT_CODE_PATTERN.match(short_code):
        return None

    return short_code


def validate_url_length(url: str, max_length: int = 2048) -> bool:
    """
    Validate URL length to prevent DoS attacks.

    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048 per RFC 7230)

    Returns:
        True if URL length is valid, False otherwise
    """
    return bool(url) and len(url) <= max_length


def validate_date_range(start: Optional[datetime], end: Optional[datetime]) -> None:
    """Raise ValidationError when both bounds are given and start is after end."""
    if start is not None and end is not None and start > end:
        raise ValidationError("Start date cannot be after end date", field="start")


def validate_day_span(start: datetime, end: datetime, max_days: int) -> None:
    """Raise ValidationError when [start, end] covers more than max_days calendar days."""
    days = (end.date() - start.date()).days + 1
    if days > max_days:
        raise ValidationError(
            f"Daily breakdown range cannot exceed {max_days} days",
            field="end"
        )


def validate_pagination(page: int, page_size: int, max_page_size: int = 100) -> None:
    """Raise ValidationError for a page < 1 or a page size outside 1..max_page_size."""
    if page < 1:
        raise ValidationError("Page number must be at least 1", field="page")
    if page_size < 1 or page_size > max_page_size:
        raise ValidationError(
            f"Page size must be between 1 and {max_page_size}",
            field="page_size"
        )
