"""User-local calendar days.

Streak days are counted in the user's own timezone. A missing, blank or
unknown IANA name falls back to UTC and never raises.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def resolve_timezone(tz_name: str | None) -> tzinfo:
    """Return the zone for ``tz_name``, or UTC if it is absent or invalid."""
    if tz_name is None or not tz_name.strip():
        return timezone.utc
    try:
        return ZoneInfo(tz_name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.debug("Unknown timezone %r, falling back to UTC", tz_name)
        return timezone.utc


def is_valid_timezone(tz_name: str | None) -> bool:
    """True if ``tz_name`` names a zone in the IANA database."""
    if tz_name is None or not tz_name.strip():
        return False
    try:
        ZoneInfo(tz_name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def _as_utc(instant: datetime) -> datetime:
    # Naive datetimes are UTC throughout the engine.
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def local_date(instant: datetime, tz_name: str | None) -> date:
    """Calendar date of ``instant`` as seen in ``tz_name``."""
    return _as_utc(instant).astimezone(resolve_timezone(tz_name)).date()


def next_local_midnight_utc(instant: datetime, tz_name: str | None) -> datetime:
    """Start of the local day after ``instant``, expressed in UTC."""
    tz = resolve_timezone(tz_name)
    tomorrow = _as_utc(instant).astimezone(tz).date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=tz).astimezone(timezone.utc)
