"""
Request Context Accessors

Pull the raw click tracking inputs out of an incoming request. Nothing here
does I/O or parsing beyond reading headers, cookies and query parameters,
so it is cheap enough for the redirect path.
"""

from typing import Optional

from fastapi import Request

from shortlink.services.click_queue import ClickTrackingData

SESSION_COOKIE_NAME = "sid"
SESSION_HEADER_NAME = "X-Session-Id"

UTM_PARAMETERS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Handles proxies and load balancers by checking X-Forwarded-For, then
    X-Real-IP, before falling back to the socket peer.

    Args:
        request: FastAPI Request object

    Returns:
        IP address as string ("unknown" when none is available)
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def get_session_id(request: Request) -> Optional[str]:
    """Anonymous session id from the session cookie or header, if the client sent one."""
    session_id = request.cookies.get(SESSION_COOKIE_NAME) or request.headers.get(SESSION_HEADER_NAME)
    if session_id:
        return session_id.strip()[:100] or None
    return None


def _query_value(request: Request, name: str) -> Optional[str]:
    value = request.query_params.get(name)
    if value is None:
        return None
    value = value.strip()
    return value[:255] or None


def extract_tracking_data(request: Request) -> ClickTrackingData:
    """
    Capture everything the enrichment pipeline needs from the request.

    Args:
        request: The redirect request

    Returns:
        ClickTrackingData with IP, session id, User-Agent ("Unknown" when
        missing), Referer and the five UTM parameters
    """
    return ClickTrackingData(
        ip_address=get_client_ip(request),
        session_id=get_session_id(request),
        user_agent=request.headers.get("User-Agent") or "Unknown",
        referrer=request.headers.get("Referer") or None,
        **{name: _query_value(request, name) for name in UTM_PARAMETERS}
    )
