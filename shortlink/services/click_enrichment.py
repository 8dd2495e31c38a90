"""
Click Enrichment Service

Turns a queued click into a persisted ClickEvent.

Steps:
1. Parse the User-Agent (browser, OS, device, device type)
2. Resolve the IP to country/city
3. Classify the traffic source from UTM parameters and referrer
4. Insert the ClickEvent

Steps 1-3 are independent: each one that fails is logged and falls back to
"Unknown" without affecting the others. Only the insert in step 4 can fail
the job, and that failure is contained by the worker.

This service only appends ClickEvents; it never modifies the ShortURL (its
click counter is incremented on the redirect path).
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.db.models import ClickEvent
from shortlink.core.timeutils import utc_now
from shortlink.services import user_agent_parser
from shortlink.services.click_queue import ClickTrackingData
from shortlink.services.geolocation import GeoLocation, GeoLocationService
from shortlink.services.traffic_source import (
    TrafficSource,
    TrafficSourceInfo,
    analyze_traffic_source,
)
from shortlink.services.user_agent_parser import UserAgentInfo

logger = logging.getLogger(__name__)


class ClickEnrichmentService:
    """
    Enriches and stores click events.

    Runs inside the background worker with a session dedicated to one job.
    """

    def __init__(self, session: AsyncSession, geolocation: Optional[GeoLocationService] = None):
        """
        Args:
            session: Async database session for this job
            geolocation: Location resolver (default: a GeoLocationService from settings)
        """
        self.session = session
        self.geolocation = geolocation or GeoLocationService()

    def _parse_user_agent(self, user_agent: str) -> UserAgentInfo:
        try:
            return user_agent_parser.parse(user_agent)
        except Exception as e:
            logger.warning(f"User agent enrichment failed: {e}", exc_info=True)
            return UserAgentInfo()

    async def _locate(self, ip_address: str) -> GeoLocation:
        try:
            return await self.geolocation.lookup(ip_address)
        except Exception as e:
            logger.warning(f"Geolocation enrichment failed for {ip_address}: {e}", exc_info=True)
            return GeoLocation()

    def _classify(self, data: ClickTrackingData) -> TrafficSourceInfo:
        try:
            return analyze_traffic_source(
                referrer=data.referrer,
                utm_source=data.utm_source,
                utm_medium=data.utm_medium,
            )
        except Exception as e:
            logger.warning(f"Traffic source enrichment failed: {e}", exc_info=True)
            return TrafficSourceInfo(traffic_source=TrafficSource.DIRECT)

    async def track_click(
        self,
        short_url_id: int,
        data: ClickTrackingData,
        clicked_at: Optional[datetime] = None,
    ) -> ClickEvent:
        """
        Enrich and persist one click.

        Args:
            short_url_id: Id of the clicked ShortURL
            data: Raw tracking inputs captured at redirect time
            clicked_at: When the redirect happened (default: now)

        Returns:
            The flushed ClickEvent (committed by the caller)
        """
        agent = self._parse_user_agent(data.user_agent)
        location = await self._locate(data.ip_address)
        source = self._classify(data)

        click_event = ClickEvent(
            short_url_id=short_url_id,
            clicked_at=clicked_at or utc_now(),
            ip_address=data.ip_address,
            session_id=data.session_id,
            user_agent=(data.user_agent or "")[:500] or None,
            browser=agent.browser,
            browser_version=agent.browser_version or None,
            os=agent.os,
            os_version=agent.os_version or None,
            device=agent.device,
            device_type=agent.device_type.value,
            referrer=data.referrer,
            referrer_domain=source.referrer_domain,
            traffic_source=source.traffic_source.value,
            utm_source=data.utm_source,
            utm_medium=data.utm_medium,
            utm_campaign=data.utm_campaign,
            utm_term=data.utm_term,
            utm_content=data.utm_content,
            country=location.country,
            country_code=location.country_code,
            city=location.city,
        )

        self.session.add(click_event)
        await self.session.flush()

        logger.debug(
            f"Tracked click {click_event.id} for short URL {short_url_id}: "
            f"{click_event.traffic_source}/{click_event.device_type}/{click_event.country}"
        )
        return click_event
