"""
Traffic Source Analyzer

Classifies where a click came from. Explicit campaign tagging (UTM
parameters) takes precedence over the Referer header, and a click with
neither is Direct.

Rules, first match wins:
1. utm_source present: classify by utm_medium; an unknown medium falls back
   to matching utm_source against the social/search platform names, then
   to Campaign.
2. Referrer present: Search or Social when its host contains one of the
   curated domains, Referral otherwise.
3. Direct.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

HOSTNAME_PATTERN = re.compile(
    r'^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)+$'
)


class TrafficSource(str, Enum):
    """Closed set of traffic source labels; the value is what gets stored."""
    DIRECT = "Direct"
    SEARCH = "Search"
    SOCIAL = "Social"
    PAID_SEARCH = "Paid Search"
    EMAIL = "Email"
    REFERRAL = "Referral"
    DISPLAY = "Display"
    CAMPAIGN = "Campaign"
    ORGANIC_SEARCH = "Organic Search"


SEARCH_ENGINE_DOMAINS = (
    "google.com",
    "bing.com",
    "yahoo.com",
    "duckduckgo.com",
    "baidu.com",
    "yandex.com",
)

SOCIAL_MEDIA_DOMAINS = (
    "facebook.com",
    "twitter.com",
    "instagram.com",
    "linkedin.com",
    "pinterest.com",
    "reddit.com",
    "tiktok.com",
    "youtube.com",
    "snapchat.com",
    "whatsapp.com",
)

UTM_MEDIUM_SOURCES = {
    "email": TrafficSource.EMAIL,
    "social": TrafficSource.SOCIAL,
    "cpc": TrafficSource.PAID_SEARCH,
    "ppc": TrafficSource.PAID_SEARCH,
    "paid": TrafficSource.PAID_SEARCH,
    "organic": TrafficSource.ORGANIC_SEARCH,
    "referral": TrafficSource.REFERRAL,
    "display": TrafficSource.DISPLAY,
}


@dataclass(frozen=True)
class TrafficSourceInfo:
    traffic_source: TrafficSource
    referrer_domain: Optional[str] = None


def extract_domain(url: str) -> str:
    """
    Lowercase host of a URL, or "" when it cannot be parsed.

    A bare host such as "m.facebook.com" (some clients send the Referer
    without a scheme) is accepted when it looks like a dotted hostname.

    Example:
        extract_domain("https://www.google.com/search?q=x") -> "www.google.com"
        extract_domain("not a url") -> ""
    """
    if not url:
        return ""
    url = url.strip()
    try:
        if "://" in url:
            return (urlparse(url).hostname or "").lower()
        host = (urlparse("//" + url).hostname or "").lower()
    except ValueError:
        return ""
    return host if HOSTNAME_PATTERN.match(host) else ""


def _platform_names(domains) -> tuple:
    # "facebook.com" -> "facebook"
    return tuple(domain.split(".")[0] for domain in domains)


def _matches_any(value: str, fragments) -> bool:
    value = value.lower()
    return any(fragment in value for fragment in fragments)


def _classify_campaign(utm_source: str, utm_medium: Optional[str]) -> TrafficSource:
    medium = (utm_medium or "").strip().lower()
    if medium in UTM_MEDIUM_SOURCES:
        return UTM_MEDIUM_SOURCES[medium]

    if _matches_any(utm_source, _platform_names(SOCIAL_MEDIA_DOMAINS)):
        return TrafficSource.SOCIAL
    if _matches_any(utm_source, _platform_names(SEARCH_ENGINE_DOMAINS)):
        return TrafficSource.SEARCH
    return TrafficSource.CAMPAIGN


def _classify_domain(domain: str) -> TrafficSource:
    if _matches_any(domain, SEARCH_ENGINE_DOMAINS):
        return TrafficSource.SEARCH
    if _matches_any(domain, SOCIAL_MEDIA_DOMAINS):
        return TrafficSource.SOCIAL
    return TrafficSource.REFERRAL


def analyze_traffic_source(
    referrer: Optional[str] = None,
    utm_source: Optional[str] = None,
    utm_medium: Optional[str] = None,
) -> TrafficSourceInfo:
    """
    Classify a click's origin.

    Args:
        referrer: Raw Referer header value
        utm_source: utm_source query parameter
        utm_medium: utm_medium query parameter

    Returns:
        TrafficSourceInfo with the label and the referrer's host (None when
        there is no referrer)
    """
    referrer = (referrer or "").strip()
    utm_source = (utm_source or "").strip()

    if utm_source:
        return TrafficSourceInfo(
            traffic_source=_classify_campaign(utm_source, utm_medium),
            referrer_domain=extract_domain(referrer) if referrer else None,
        )

    if referrer:
        domain = extract_domain(referrer)
        return TrafficSourceInfo(
            traffic_source=_classify_domain(domain),
            referrer_domain=domain,
        )

    return TrafficSourceInfo(traffic_source=TrafficSource.DIRECT)
