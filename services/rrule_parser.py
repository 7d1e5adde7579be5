from __future__ import annotations

import logging
import re
from datetime import tzinfo
from typing import Any, Callable

from core.exceptions import (
    DuplicateRuleKey,
    InvalidRuleValue,
    MalformedByDayToken,
    MalformedInteger,
    RuleParseError,
    UnknownFrequency,
    UnknownRuleKey,
    UnsupportedRuleCombination,
)
from core.models import ByDay, DateToken, Frequency, RuleFields, Weekday
from core.time_utils import resolve_timezone
from services.date_tokens import parse_date_token

logger = logging.getLogger(__name__)

# Canonical spellings only: no leading zeros, no "+" sign
INTEGER_PATTERN = re.compile(r"^(0|-?[1-9][0-9]*)$")
BYDAY_PATTERN = re.compile(r"^(-?)([1-9][0-9]*)?([A-Za-z]+)$")


def _parse_int(key: str, token: str) -> int:
    if not INTEGER_PATTERN.match(token):
        raise MalformedInteger("Expected a decimal integer", key=key, token=token)
    return int(token)


def _parse_positive(key: str, token: str, tz: tzinfo | None = None) -> int:
    value = _parse_int(key, token)
    if value < 1:
        raise InvalidRuleValue("Value must be a positive integer", key=key, token=token)
    return value


def _split_list(key: str, value: str) -> list[str]:
    items = value.split(",")
    if any(item == "" for item in items):
        raise RuleParseError("Empty list item", key=key, token=value)
    return items


def _parse_freq(key: str, value: str, tz: tzinfo) -> Frequency:
    try:
        return Frequency(value)
    except ValueError:
        raise UnknownFrequency("Unknown frequency", key=key, token=value) from None


def _parse_months(key: str, value: str, tz: tzinfo) -> tuple[int, ...]:
    months: list[int] = []
    for token in _split_list(key, value):
        month = _parse_int(key, token)
        if not 1 <= month <= 12:
            raise InvalidRuleValue("Month must be between 1 and 12", key=key, token=token)
        if month in months:
            raise InvalidRuleValue("Month listed more than once", key=key, token=token)
        months.append(month)
    return tuple(months)


def _parse_month_days(key: str, value: str, tz: tzinfo) -> tuple[int, ...]:
    days: list[int] = []
    for token in _split_list(key, value):
        day = _parse_int(key, token)
        if not 1 <= day <= 31:
            raise InvalidRuleValue("Day of month must be between 1 and 31", key=key, token=token)
        days.append(day)
    return tuple(days)


def parse_byday_token(token: str, *, key: str = "BYDAY") -> ByDay:
    match = BYDAY_PATTERN.match(token)
    if not match:
        raise MalformedByDayToken("Malformed BYDAY token", key=key, token=token)
    sign, digits, code = match.groups()
    if code not in Weekday.__members__:
        raise MalformedByDayToken("Unknown weekday code", key=key, token=token)
    if sign and not digits:
        raise MalformedByDayToken("Sign without ordinal", key=key, token=token)
    ordinal = int(digits) if digits else 0
    if sign == "-":
        ordinal = -ordinal
    return ByDay(ordinal=ordinal, weekday=Weekday[code])


def _parse_by_day(key: str, value: str, tz: tzinfo) -> tuple[ByDay, ...]:
    return tuple(parse_byday_token(token, key=key) for token in _split_list(key, value))


def _parse_until(key: str, value: str, tz: tzinfo) -> DateToken:
    return parse_date_token(value, tz, key=key)


def _parse_exdates(key: str, value: str, tz: tzinfo) -> tuple[DateToken, ...]:
    return tuple(parse_date_token(token, tz, key=key) for token in _split_list(key, value))


# Grammar key -> (RuleFields attribute, value parser)
KEY_HANDLERS: dict[str, tuple[str, Callable[[str, str, tzinfo], Any]]] = {
    "FREQ": ("freq", _parse_freq),
    "INTERVAL": ("interval", _parse_positive),
    "COUNT": ("count", _parse_positive),
    "UNTIL": ("until", _parse_until),
    "BYMONTH": ("by_month", _parse_months),
    "BYMONTHDAY": ("by_month_day", _parse_month_days),
    "BYDAY": ("by_day", _parse_by_day),
    "EXDATE": ("exdates", _parse_exdates),
}


def parse(text: str, tz: tzinfo | str | None = None) -> RuleFields:
    """
    Parse ``KEY=VALUE(;KEY=VALUE)*`` rule text into RuleFields.

    Time-bearing tokens without a ``Z`` marker are read as wall-clock time in
    ``tz`` (UTC when omitted). The first malformed segment aborts parsing.
    """
    zone = resolve_timezone(tz)
    if not text or not text.strip():
        raise RuleParseError("Rule text is empty")

    values: dict[str, Any] = {}
    key_order: list[str] = []

    for segment in text.split(";"):
        key, separator, value = segment.partition("=")
        if not separator or not key:
            raise RuleParseError("Expected KEY=VALUE segment", token=segment)
        if key not in KEY_HANDLERS:
            raise UnknownRuleKey("Unknown rule key", key=key, token=value)
        if key in key_order:
            raise DuplicateRuleKey("Rule key given more than once", key=key, token=value)
        if value == "":
            raise RuleParseError("Missing value", key=key)

        attribute, handler = KEY_HANDLERS[key]
        values[attribute] = handler(key, value, zone)
        key_order.append(key)
        logger.debug("Parsed %s=%s", key, value)

    if "freq" not in values:
        raise RuleParseError("Rule has no frequency", key="FREQ")
    if values.get("by_month_day") and values.get("by_day"):
        raise UnsupportedRuleCombination(
            "BYMONTHDAY cannot be combined with BYDAY", key="BYMONTHDAY", token=text
        )

    return RuleFields(key_order=tuple(key_order), **values)
