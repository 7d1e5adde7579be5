from __future__ import annotations

from datetime import datetime, timezone, tzinfo

from core.exceptions import MalformedDateToken
from core.models import DateToken

DATE_FORMAT = "%Y%m%d"
DATETIME_FORMAT = "%Y%m%dT%H%M%S"


def parse_date_token(token: str, tz: tzinfo, *, key: str | None = None) -> DateToken:
    """
    Parse ``YYYYMMDD`` or ``YYYYMMDDTHHMMSS[Z]`` into a DateToken.

    Date-only tokens resolve to midnight in ``tz``; timed tokens without the
    ``Z`` marker are wall-clock times in ``tz``; ``Z`` tokens are UTC.
    """
    if len(token) == 8:
        if not token.isdigit():
            raise MalformedDateToken("Date token must contain only digits", key=key, token=token)
        parsed = _strptime(token, DATE_FORMAT, key=key)
        return DateToken(instant=parsed.replace(tzinfo=tz), date_only=True, utc=False)

    if len(token) not in (15, 16):
        raise MalformedDateToken("Date token has the wrong length", key=key, token=token)

    date_part, separator, time_part = token[:8], token[8], token[9:15]
    suffix = token[15:]
    if separator != "T":
        raise MalformedDateToken("Expected 'T' between date and time", key=key, token=token)
    if not (date_part.isdigit() and time_part.isdigit()):
        raise MalformedDateToken("Date token must contain only digits", key=key, token=token)
    if suffix not in ("", "Z"):
        raise MalformedDateToken("Unrecognized date token suffix", key=key, token=token)

    parsed = _strptime(token[:15], DATETIME_FORMAT, key=key)
    if suffix == "Z":
        return DateToken(instant=parsed.replace(tzinfo=timezone.utc), date_only=False, utc=True)
    return DateToken(instant=parsed.replace(tzinfo=tz), date_only=False, utc=False)


def format_date_token(value: DateToken, tz: tzinfo) -> str:
    if value.date_only:
        return value.instant.astimezone(tz).strftime(DATE_FORMAT)
    if value.utc:
        return value.instant.astimezone(timezone.utc).strftime(DATETIME_FORMAT) + "Z"
    return value.instant.astimezone(tz).strftime(DATETIME_FORMAT)


def _strptime(text: str, fmt: str, *, key: str | None) -> datetime:
    # str.isdigit() accepts non-ASCII digits that strptime rejects
    try:
        return datetime.strptime(text, fmt)
    except ValueError as exc:
        raise MalformedDateToken(f"Invalid calendar date or time: {exc}", key=key, token=text) from exc
