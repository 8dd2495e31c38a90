"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class ShortenRequest(BaseModel):
    """Request model for URL shortening endpoint."""
    url: HttpUrl = Field(..., description="The long URL to shorten")
    custom_code: Optional[str] = Field(None, description="Desired short code (3-50 chars of [A-Za-z0-9_-])")
    expires_at: Optional[datetime] = Field(None, description="Expiry time; naive values are UTC")
    click_limit: Optional[int] = Field(None, ge=1, description="Maximum number of redirects")
    password: Optional[str] = Field(None, min_length=1, max_length=128, description="Password protecting the link")
    owner_id: Optional[str] = Field(None, max_length=100, description="Opaque owner reference")


class ShortenResponse(BaseModel):
    """Response model for URL shortening endpoint."""
    short_code: str = Field(..., description="The assigned short code")
    short_url: str = Field(..., description="The complete short URL")
    original_url: str = Field(..., description="The original long URL")
    password_protected: bool = False
    expires_at: Optional[datetime] = None
    click_limit: Optional[int] = None


class VerifyPasswordRequest(BaseModel):
    """Request model for the password verification endpoint."""
    password: str = Field(..., min_length=1, max_length=128)


class VerifyPasswordResponse(BaseModel):
    original_url: str


class ClickEventResponse(BaseModel):
    """A stored click as returned by the analytics endpoints."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    clicked_at: datetime
    ip_address: Optional[str] = None
    session_id: Optional[str] = None
    browser: Optional[str] = None
    browser_version: Optional[str] = None
    os: Optional[str] = None
    os_version: Optional[str] = None
    device: Optional[str] = None
    device_type: Optional[str] = None
    referrer: Optional[str] = None
    referrer_domain: Optional[str] = None
    traffic_source: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None


class AnalyticsResponse(BaseModel):
    """Response model for the analytics summary endpoint."""
    short_code: str
    original_url: str
    click_count: int
    total_clicks: int
    clicks_by_country: Dict[str, int]
    clicks_by_device_type: Dict[str, int]
    clicks_by_traffic_source: Dict[str, int]
    daily_clicks: Optional[Dict[str, int]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class ClickHistoryResponse(BaseModel):
    short_code: str
    items: List[ClickEventResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class RealTimeResponse(BaseModel):
    short_code: str
    clicks_last_24h: int


class HourlyClicksResponse(BaseModel):
    short_code: str
    day: str
    hourly_clicks: Dict[int, int]


class CleanupResponse(BaseModel):
    deleted: int
    retention_days: int
