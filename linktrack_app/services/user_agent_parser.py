"""
User-agent classification.

Browser and OS come from the `user-agents` library (ua-parser regexes).
Device type and bot detection are keyword checks on the raw header, so their
precedence stays fixed regardless of the library's device database.
parse_user_agent() never raises; anything unreadable comes back as
"Unknown" / "unknown".
"""

import logging
import re
from typing import Optional

from user_agents import parse as parse_ua_string

from linktrack_app.schemas.enrichment import (
    DEVICE_DESKTOP,
    DEVICE_MOBILE,
    DEVICE_TABLET,
    DEVICE_UNKNOWN,
    UNKNOWN,
    NameVersion,
    UserAgentInfo,
)

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r"mobile|android|iphone|ipod|blackberry|windows phone")
TABLET_PATTERN = re.compile(r"tablet|ipad")
DESKTOP_OS_PATTERN = re.compile(r"windows|mac|linux|ubuntu|chrome os")

BOT_TOKENS = (
    "bot", "crawler", "spider", "scraper", "parser",
    "google", "bing", "yahoo", "facebook", "twitter",
    "linkedin", "pinterest", "slack", "discord",
    "wget", "curl", "python", "java", "node.js",
)

# ua-parser reports anything it does not recognize as "Other"
UNRECOGNIZED_FAMILY = "Other"


def _name_version(family: Optional[str], version: Optional[str]) -> NameVersion:
    if not family or family == UNRECOGNIZED_FAMILY:
        return NameVersion()
    return NameVersion(name=family, version=version or UNKNOWN)


def determine_device_type(user_agent: str, os_name: str) -> str:
    """Mobile keywords beat tablet keywords, which beat a desktop OS name."""
    ua = user_agent.lower()
    if MOBILE_PATTERN.search(ua):
        return DEVICE_MOBILE
    if TABLET_PATTERN.search(ua):
        return DEVICE_TABLET
    if os_name and DESKTOP_OS_PATTERN.search(os_name.lower()):
        return DEVICE_DESKTOP
    return DEVICE_UNKNOWN


def detect_bot(user_agent: Optional[str]) -> bool:
    """Case-insensitive substring match against known crawler and tool tokens."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(token in ua for token in BOT_TOKENS)


def parse_user_agent(user_agent: Optional[str]) -> UserAgentInfo:
    """
    Classify a raw User-Agent header.

    Args:
        user_agent: Header value, possibly empty or None

    Returns:
        UserAgentInfo; all fields unknown when the header is empty or unreadable
    """
    if not user_agent or not isinstance(user_agent, str):
        return UserAgentInfo()

    try:
        parsed = parse_ua_string(user_agent)
        browser = _name_version(parsed.browser.family, parsed.browser.version_string)
        os_info = _name_version(parsed.os.family, parsed.os.version_string)
        return UserAgentInfo(
            browser=browser,
            os=os_info,
            device=determine_device_type(user_agent, os_info.name),
            is_bot=detect_bot(user_agent),
        )
    except Exception as e:
        logger.warning("Could not parse user agent %r: %s", user_agent[:100], e)
        return UserAgentInfo()


def simplify_browser_name(browser_name: Optional[str]) -> str:
    """Collapse browser name variants into the labels used in reports."""
    if not browser_name:
        return UNKNOWN
    browser = browser_name.lower()
    if "edge" in browser:
        return "Edge"
    if "chrome" in browser:
        return "Chrome"
    if "firefox" in browser:
        return "Firefox"
    if "safari" in browser:
        return "Safari"
    if "opera" in browser:
        return "Opera"
    if "internet explorer" in browser or browser == "ie":
        return "IE"
    return browser_name
