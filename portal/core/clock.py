"""
Portal calendar.

Expiry arithmetic works on calendar dates in one fixed time zone. The zone
is PORTAL_TIMEZONE (an IANA name such as "Asia/Kolkata"); when unset, the
server's local zone is used.

"Today" is sampled once per request or command and passed down
explicitly; nothing below the HTTP/CLI layer reads the clock.
"""

import os
from datetime import date, datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def portal_timezone() -> Optional[tzinfo]:
    """
    The configured zone, or None for the server's local zone.

    Raises:
        ValueError: if PORTAL_TIMEZONE names an unknown zone
    """
    name = os.environ.get("PORTAL_TIMEZONE", "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown PORTAL_TIMEZONE: {name}") from e


def today() -> date:
    """Current calendar date in the portal zone."""
    return datetime.now(portal_timezone()).date()


def to_portal_date(moment: datetime) -> date:
    """Calendar date of a timestamp in the portal zone (naive = already local)."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(portal_timezone()).date()
