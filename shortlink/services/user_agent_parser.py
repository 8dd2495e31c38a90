"""
User-Agent Parser

Turns a raw User-Agent header into browser, OS, device and device type,
using the `user_agents` library (ua-parser regexes underneath).

Device type is decided from the library's markers in this order:
bot, tablet, mobile, and Desktop when none of them is set. Versions are
reduced to their major number. Anything that cannot be determined is
reported as "Unknown" (names) or "" (versions).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from user_agents import parse as parse_user_agent

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

# ua-parser's placeholder for "no match"
_UNMATCHED_FAMILY = "Other"


class DeviceType(str, Enum):
    MOBILE = "Mobile"
    TABLET = "Tablet"
    DESKTOP = "Desktop"
    BOT = "Bot"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class UserAgentInfo:
    browser: str = UNKNOWN
    browser_version: str = ""
    os: str = UNKNOWN
    os_version: str = ""
    device: str = UNKNOWN
    device_type: DeviceType = DeviceType.UNKNOWN


def _family(value: Optional[str]) -> str:
    if not value or value == _UNMATCHED_FAMILY:
        return UNKNOWN
    return value


def _major_version(version: tuple) -> str:
    if version and version[0] is not None:
        return str(version[0])
    return ""


def _device_type(parsed) -> DeviceType:
    if parsed.is_bot:
        return DeviceType.BOT
    if parsed.is_tablet:
        return DeviceType.TABLET
    if parsed.is_mobile:
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def parse(user_agent: Optional[str]) -> UserAgentInfo:
    """
    Parse a User-Agent header.

    Args:
        user_agent: Raw header value; None, "" and "Unknown" give an all-Unknown result

    Returns:
        UserAgentInfo; never raises
    """
    if not user_agent or not user_agent.strip() or user_agent.strip() == UNKNOWN:
        return UserAgentInfo()

    try:
        parsed = parse_user_agent(user_agent)
    except Exception as e:
        logger.warning(f"Failed to parse user agent '{user_agent[:100]}': {e}")
        return UserAgentInfo()

    device_type = _device_type(parsed)
    device = _family(parsed.device.family)
    if device == UNKNOWN and device_type == DeviceType.DESKTOP:
        device = "Desktop"

    return UserAgentInfo(
        browser=_family(parsed.browser.family),
        browser_version=_major_version(parsed.browser.version),
        os=_family(parsed.os.family),
        os_version=_major_version(parsed.os.version),
        device=device,
        device_type=device_type,
    )
