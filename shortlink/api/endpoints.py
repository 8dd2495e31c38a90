"""
FastAPI Endpoints for URL Shortener Service

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Request validation (Pydantic models)
- Rate limiting
- Error handling and HTTP responses
- Delegating to service layer

Route order matters: the analytics routes are registered before the
single-segment catch-all GET /{short_code}.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.api.schemas import (
    AnalyticsResponse,
    CleanupResponse,
    ClickEventResponse,
    ClickHistoryResponse,
    HourlyClicksResponse,
    RealTimeResponse,
    ShortenRequest,
    ShortenResponse,
    VerifyPasswordRequest,
    VerifyPasswordResponse,
)
from shortlink.core.exceptions import (
    CodeConflictError,
    DatabaseError,
    ForbiddenError,
    InvalidURLError,
    ShortCodeNotFoundError,
    ValidationError,
)
from shortlink.core.rate_limit import RATE_LIMITS, limiter
from shortlink.core.setting import settings
from shortlink.core.validators import sanitize_short_code
from shortlink.core.worker_manager import get_click_queue
from shortlink.db.models import ShortURL
from shortlink.db.session import get_session
from shortlink.services.analytics_service import AnalyticsService
from shortlink.services.click_queue import ClickTrackingData, ClickTrackingQueue
from shortlink.services.redirect_service import RedirectService
from shortlink.services.request_context import SESSION_COOKIE_NAME, extract_tracking_data
from shortlink.services.url_service import URLShorteningService

router = APIRouter()

SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def _clean_code(short_code: str) -> str:
    sanitized_code = sanitize_short_code(short_code)
    if not sanitized_code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid short code format: '{short_code}'. "
                   f"Short codes may only contain letters, digits, '_' and '-'."
        )
    return sanitized_code


async def _load_short_url(session: AsyncSession, short_code: str) -> ShortURL:
    short_url = await URLShorteningService(session).get_by_code(_clean_code(short_code))
    if short_url is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Short code '{short_code}' not found"
        )
    return short_url


def _tracking_data(request: Request) -> tuple[ClickTrackingData, Optional[str]]:
    """Tracking inputs for a click, plus a new session id when the visitor had none."""
    tracking_data = extract_tracking_data(request)
    new_session_id = None
    if not tracking_data.session_id:
        new_session_id = uuid.uuid4().hex
        tracking_data.session_id = new_session_id
    return tracking_data, new_session_id


def _set_session_cookie(response: Response, session_id: Optional[str]) -> None:
    if session_id:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            session_id,
            max_age=SESSION_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a short URL",
    description="Takes a long URL and returns a shortened version with a unique code"
)
@limiter.limit(RATE_LIMITS["shorten"])
async def create_short_url(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    body: ShortenRequest,
    session: AsyncSession = Depends(get_session)
) -> ShortenResponse:
    """
    Create a new short URL from a long URL.

    Returns:
        ShortenResponse with short_code, short_url and the link's constraints
    """
    try:
        short_url = await URLShorteningService(session).create_short_url(
            str(body.url),
            custom_code=body.custom_code,
            expires_at=body.expires_at,
            click_limit=body.click_limit,
            password=body.password,
            owner_id=body.owner_id,
        )
    except (InvalidURLError, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CodeConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return ShortenResponse(
        short_code=short_url.short_code,
        short_url=f"{settings.BASE_URL}/{short_url.short_code}",
        original_url=short_url.original_url,
        password_protected=short_url.is_password_protected,
        expires_at=short_url.expires_at,
        click_limit=short_url.click_limit,
    )


@router.get(
    "/analytics/{short_code}",
    response_model=AnalyticsResponse,
    summary="Click analytics for a short URL",
    description="Total clicks and breakdowns by country, device type and traffic source"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_analytics(
    short_code: str,
    request: Request,
    start: Optional[datetime] = Query(None, description="Inclusive lower bound (UTC)"),
    end: Optional[datetime] = Query(None, description="Inclusive upper bound (UTC)"),
    session: AsyncSession = Depends(get_session)
) -> AnalyticsResponse:
    short_url = await _load_short_url(session, short_code)
    try:
        analytics = await AnalyticsService(session).get_analytics(short_url.id, start, end)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return AnalyticsResponse(
        short_code=short_url.short_code,
        original_url=short_url.original_url,
        click_count=short_url.click_count,
        start=start,
        end=end,
        **analytics
    )


@router.get(
    "/analytics/{short_code}/recent",
    response_model=list[ClickEventResponse],
    summary="Most recent clicks"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_recent_clicks(
    short_code: str,
    request: Request,
    count: int = Query(10, description="Number of clicks (1-100)"),
    session: AsyncSession = Depends(get_session)
) -> list[ClickEventResponse]:
    short_url = await _load_short_url(session, short_code)
    try:
        clicks = await AnalyticsService(session).get_recent_clicks(short_url.id, count)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return [ClickEventResponse.model_validate(click) for click in clicks]


@router.get(
    "/analytics/{short_code}/history",
    response_model=ClickHistoryResponse,
    summary="Paginated click history"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_click_history(
    short_code: str,
    request: Request,
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(50, description="Items per page (1-100)"),
    session: AsyncSession = Depends(get_session)
) -> ClickHistoryResponse:
    short_url = await _load_short_url(session, short_code)
    try:
        history = await AnalyticsService(session).get_click_history(short_url.id, page, page_size)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return ClickHistoryResponse(
        short_code=short_url.short_code,
        items=[ClickEventResponse.model_validate(click) for click in history.items],
        total_count=history.total_count,
        page=history.page,
        page_size=history.page_size,
        total_pages=history.total_pages,
        has_next=history.has_next,
        has_previous=history.has_previous,
    )


@router.get(
    "/analytics/{short_code}/realtime",
    response_model=RealTimeResponse,
    summary="Clicks in the last 24 hours"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_real_time_clicks(
    short_code: str,
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> RealTimeResponse:
    short_url = await _load_short_url(session, short_code)
    try:
        clicks = await AnalyticsService(session).get_real_time_clicks(short_url.id)
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return RealTimeResponse(short_code=short_url.short_code, clicks_last_24h=clicks)


@router.get(
    "/analytics/{short_code}/hourly",
    response_model=HourlyClicksResponse,
    summary="Clicks per hour for one day"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_hourly_clicks(
    short_code: str,
    request: Request,
    day: date = Query(..., description="UTC day, YYYY-MM-DD"),
    session: AsyncSession = Depends(get_session)
) -> HourlyClicksResponse:
    short_url = await _load_short_url(session, short_code)
    try:
        hourly = await AnalyticsService(session).get_hourly_clicks(short_url.id, day)
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return HourlyClicksResponse(short_code=short_url.short_code, day=day.isoformat(), hourly_clicks=hourly)


@router.delete(
    "/analytics/cleanup",
    response_model=CleanupResponse,
    summary="Delete old click events",
    description="Irreversibly deletes click events older than the retention period"
)
@limiter.limit(RATE_LIMITS["maintenance"])
async def cleanup_old_clicks(
    request: Request,
    retention_days: int = Query(settings.CLICK_RETENTION_DAYS, description="Keep this many days of clicks"),
    session: AsyncSession = Depends(get_session)
) -> CleanupResponse:
    try:
        deleted = await AnalyticsService(session).cleanup_old_clicks(retention_days)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return CleanupResponse(deleted=deleted, retention_days=retention_days)


@router.post(
    "/{short_code}/verify",
    response_model=VerifyPasswordResponse,
    summary="Unlock a password-protected short URL"
)
@limiter.limit(RATE_LIMITS["verify"])
async def verify_password(
    short_code: str,
    request: Request,
    response: Response,
    body: VerifyPasswordRequest,
    session: AsyncSession = Depends(get_session),
    click_queue: Optional[ClickTrackingQueue] = Depends(get_click_queue)
) -> VerifyPasswordResponse:
    """
    Reveal the destination of a password-protected link and count the click.

    Unknown codes, wrong passwords and links that can no longer be
    redirected all get the same 401 response.
    """
    sanitized_code = sanitize_short_code(short_code)
    tracking_data, new_session_id = _tracking_data(request)

    info = None
    if sanitized_code:
        try:
            info = await RedirectService(session, click_queue=click_queue).unlock(
                sanitized_code, body.password, tracking_data
            )
        except ForbiddenError:
            info = None

    if info is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password or link"
        )
    _set_session_cookie(response, new_session_id)
    return VerifyPasswordResponse(original_url=info.original_url)


@router.get(
    "/{short_code}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect to original URL",
    description="Takes a short code and redirects to the original long URL"
)
@limiter.limit(RATE_LIMITS["redirect"])
async def redirect_to_url(
    short_code: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    click_queue: Optional[ClickTrackingQueue] = Depends(get_click_queue)
) -> RedirectResponse:
    """
    Redirect to the original URL for a given short code.

    The click is counted synchronously and queued for enrichment; the
    response never waits for tracking. Password-protected links are not
    counted here, only once /{short_code}/verify accepts the password.

    Raises:
        HTTPException 400: If short code format is invalid
        HTTPException 401: If the link is password protected (use /{short_code}/verify)
        HTTPException 403: If the link is inactive, expired or out of clicks
        HTTPException 404: If short code not found
        HTTPException 429: If rate limit exceeded
    """
    short_code = _clean_code(short_code)
    redirect_service = RedirectService(session, click_queue=click_queue)

    try:
        projection = await redirect_service.check_access(short_code)
        if projection.is_password_protected:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Password required"
            )
        tracking_data, new_session_id = _tracking_data(request)
        info = await redirect_service.record_click(projection, tracking_data)
    except ShortCodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    response = RedirectResponse(url=info.original_url, status_code=status.HTTP_302_FOUND)
    _set_session_cookie(response, new_session_id)
    return response
