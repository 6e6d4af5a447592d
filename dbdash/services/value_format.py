"""Display formatting for arbitrary record values."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dbdash.config import settings
from dbdash.logging import get_logger

logger = get_logger(__name__)

EMPTY_DISPLAY = "-"


def display_timezone(name: str | None = None) -> tzinfo:
    tz_name = (name or settings.display_timezone or "UTC").strip()
    if tz_name.upper() in ("UTC", "Z"):
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown display timezone %s, using UTC", tz_name)
        return timezone.utc


def parse_iso_datetime(value: str) -> datetime | None:
    """Parse an ISO-8601 date-time string; ``None`` when it is not one."""
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def to_display_zone(value: datetime, tz: tzinfo | None = None) -> datetime:
    target = tz or display_timezone()
    if value.tzinfo is None:
        # Naive values are already wall-clock time in the display zone.
        return value.replace(tzinfo=target)
    return value.astimezone(target)


def _format_datetime(value: datetime) -> str:
    return to_display_zone(value).strftime(settings.datetime_format)


def format_value(value: object) -> str:
    """Render any field value as table/detail text. Never raises."""
    try:
        if value is None:
            return EMPTY_DISPLAY
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, datetime):
            return _format_datetime(value)
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, str):
            if "T" in value:
                parsed = parse_iso_datetime(value)
                if parsed is not None:
                    return _format_datetime(parsed)
            return value
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, default=str, ensure_ascii=False, separators=(",", ":"))
        return str(value)
    except Exception:
        logger.debug("Falling back to repr for unformattable value", exc_info=True)
        return object.__repr__(value)
