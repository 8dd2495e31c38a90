"""
Database Models for URL Shortener Service

This module defines the SQLModel database schemas for:
- ShortURL: Stores the mapping between short codes and original URLs together
  with the access constraints checked on every redirect
- ClickEvent: Stores one enriched, append-only record per resolved redirect

Design Decisions:
- Separate ClickEvent table so analytics can grow (and be purged) without
  touching the hot redirect lookup
- Indexes on short_code for fast lookups (most common operation)
- click_count denormalized in ShortURL; it is what the click limit is checked against
- ClickEvent references the ShortURL by id, not by code
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlmodel import Column, Field, SQLModel

from shortlink.core.timeutils import utc_now


class ShortURL(SQLModel, table=True):
    """
    Main table storing URL shortening mappings.

    Fields:
    - id: Auto-incrementing primary key (generated codes are derived from it)
    - short_code: Unique code; assigned once, either custom or generated from id
    - original_url: The long URL that was shortened
    - owner_id: Opaque reference to the owning user/organization (optional)
    - is_active: Manual on/off switch
    - expires_at: Optional expiry (UTC)
    - click_limit: Optional maximum number of redirects
    - click_count: Number of successful redirects (atomically incremented)
    - password_hash: SHA-256 hex digest when the link is password protected

    short_code is nullable only for the moment between inserting a row and
    assigning its generated code inside the same transaction.
    """
    __tablename__ = "short_urls"

    id: Optional[int] = Field(default=None, primary_key=True)
    short_code: Optional[str] = Field(
        default=None,
        sa_column=Column(String(50), nullable=True, unique=True, index=True),
        max_length=50
    )
    original_url: str = Field(sa_column=Column(Text, nullable=False))
    owner_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True, index=True)
    )
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    click_limit: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    click_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    password_hash: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password_hash)


class ClickEvent(SQLModel, table=True):
    """
    Click event table for detailed analytics.

    Written only by the background click worker, never updated afterwards.
    Derived fields (browser, os, device, traffic source, location) fall back
    to "Unknown" when enrichment could not determine them.
    """
    __tablename__ = "click_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    short_url_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    clicked_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )

    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(45), nullable=True))  # IPv6 max length
    session_id: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))

    browser: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    browser_version: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    os: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    os_version: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    device: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    device_type: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True, index=True))

    referrer: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    referrer_domain: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    traffic_source: Optional[str] = Field(default=None, sa_column=Column(String(30), nullable=True, index=True))

    utm_source: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    utm_medium: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    utm_campaign: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    utm_term: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    utm_content: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))

    country: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True, index=True))
    country_code: Optional[str] = Field(default=None, sa_column=Column(String(10), nullable=True))
    city: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
