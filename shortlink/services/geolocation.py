"""
Geolocation Service

Resolves a client IP to country/city through an ipapi.co-compatible JSON
API (GET {base_url}/{ip}/json/).

Design Decisions:
- Private, loopback and otherwise non-routable addresses are answered
  locally as Unknown; they would only waste a request
- Every failure (timeout, HTTP error, API error payload, bad JSON) yields
  Unknown and a warning; geolocation never fails a click
- A shared httpx.AsyncClient can be injected (the worker owns one for its
  lifetime); without one, a short-lived client is opened per lookup
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from shortlink.core.setting import settings

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class GeoLocation:
    country: str = UNKNOWN
    country_code: str = UNKNOWN
    city: str = UNKNOWN

    @property
    def is_known(self) -> bool:
        return self.country != UNKNOWN


def is_public_ip(ip_address: Optional[str]) -> bool:
    """True for a syntactically valid, globally routable IPv4/IPv6 address."""
    if not ip_address:
        return False
    try:
        address = ipaddress.ip_address(ip_address.strip())
    except ValueError:
        return False
    return not (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_reserved
        or address.is_unspecified
    )


class GeoLocationService:
    """
    IP to location lookups against an ipapi-style HTTP API.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        enabled: Optional[bool] = None,
    ):
        """
        Args:
            client: Shared HTTP client; a per-call client is used when None
            base_url: API base URL (default: settings.GEOLOCATION_API_URL)
            timeout: Per-lookup timeout in seconds (default: settings.GEOLOCATION_TIMEOUT)
            enabled: Turn lookups off entirely (default: settings.GEOLOCATION_ENABLED)
        """
        self.client = client
        self.base_url = (base_url or settings.GEOLOCATION_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GEOLOCATION_TIMEOUT
        self.enabled = settings.GEOLOCATION_ENABLED if enabled is None else enabled

    async def lookup(self, ip_address: Optional[str]) -> GeoLocation:
        """
        Resolve an IP address to a location.

        Args:
            ip_address: Client IP as captured from the request

        Returns:
            GeoLocation; all fields Unknown when the address is not public,
            lookups are disabled, or the API call fails
        """
        if not self.enabled or not is_public_ip(ip_address):
            return GeoLocation()

        url = f"{self.base_url}/{ip_address.strip()}/json/"
        try:
            if self.client is not None:
                response = await self.client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Geolocation lookup timed out for {ip_address}")
            return GeoLocation()
        except httpx.HTTPError as e:
            logger.warning(f"Geolocation lookup failed for {ip_address}: {e}")
            return GeoLocation()
        except ValueError as e:
            logger.warning(f"Geolocation returned invalid JSON for {ip_address}: {e}")
            return GeoLocation()

        if not isinstance(payload, dict) or payload.get("error"):
            reason = payload.get("reason") if isinstance(payload, dict) else payload
            logger.warning(f"Geolocation API refused {ip_address}: {reason}")
            return GeoLocation()

        return GeoLocation(
            country=payload.get("country_name") or UNKNOWN,
            country_code=payload.get("country_code") or UNKNOWN,
            city=payload.get("city") or UNKNOWN,
        )
