from __future__ import annotations

from datetime import datetime, timezone, tzinfo

import dateparser
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")


def get_timezone(tz_name: str) -> ZoneInfo:
    """Return a ZoneInfo instance, raising a clear error when invalid."""
    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # pragma: no cover - ZoneInfo raises various subclassed errors
        raise ValueError(f"Invalid timezone '{tz_name}': {exc}") from exc


def resolve_timezone(tz: tzinfo | str | None) -> tzinfo:
    """Accept a tzinfo, an IANA name or None (UTC)."""
    if tz is None:
        return UTC
    if isinstance(tz, str):
        return get_timezone(tz)
    return tz


def ensure_timezone(dt: datetime, tz: tzinfo) -> datetime:
    """Ensure a datetime is timezone-aware and localized to the target zone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def parse_human_datetime(value: str | datetime, tz: tzinfo) -> datetime:
    """Parse ISO or natural language datetime strings relative to a timezone."""
    if isinstance(value, datetime):
        return ensure_timezone(value, tz)

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return ensure_timezone(parsed, tz)
    except ValueError:
        pass

    parsed = dateparser.parse(value, settings={"TIMEZONE": str(tz), "RETURN_AS_TIMEZONE_AWARE": True})
    if not parsed:
        raise ValueError(f"Unable to parse datetime value '{value}'")
    return parsed.astimezone(tz)


def to_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc)
