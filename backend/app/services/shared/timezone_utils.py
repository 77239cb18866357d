"""User-local calendar day helpers."""

import logging
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings

logger = logging.getLogger(__name__)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """ZoneInfo for ``name``, falling back to the configured default, then UTC."""
    for candidate in (name, settings.default_timezone):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {candidate!r}, falling back")
    return ZoneInfo("UTC")


def local_today(timezone_name: str | None, now: datetime | None = None) -> date:
    """Calendar date in the given timezone at ``now`` (default: current instant)."""
    instant = now or datetime.now(UTC)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(resolve_timezone(timezone_name)).date()


def local_yesterday(timezone_name: str | None, now: datetime | None = None) -> date:
    return local_today(timezone_name, now) - timedelta(days=1)


def utc_today() -> date:
    return datetime.now(UTC).date()
