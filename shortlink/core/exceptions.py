"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Mapping to HTTP (done in the API layer):
- ShortCodeNotFoundError -> 404
- ForbiddenError -> 403
- ValidationError, InvalidURLError -> 400
- CodeConflictError -> 409
- DatabaseError -> 500
"""


class URLShortenerException(Exception):
    """Base exception for URL shortener service."""
    pass


class InvalidURLError(URLShortenerException):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class ShortCodeNotFoundError(URLShortenerException):
    """Raised when a short code is not found in the database."""

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' not found")


class ForbiddenError(URLShortenerException):
    """
    Raised when a short code exists but may not be redirected.

    The message is the same whether the link is inactive, expired or has
    used up its click limit.
    """

    def __init__(self, message: str = "This link is no longer active."):
        self.message = message
        super().__init__(message)


class ValidationError(URLShortenerException):
    """Raised when caller-supplied input is malformed (codes, pagination, date ranges)."""

    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(message)


class CodeConflictError(URLShortenerException):
    """Raised when a custom short code is already taken."""

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' is already in use")


class DatabaseError(URLShortenerException):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
