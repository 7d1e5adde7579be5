from __future__ import annotations

from datetime import tzinfo
from typing import Iterable

from core.models import ByDay, RuleFields
from core.time_utils import resolve_timezone
from services.date_tokens import format_date_token


def format_byday(entry: ByDay) -> str:
    if entry.ordinal == 0:
        return entry.weekday.name
    return f"{entry.ordinal}{entry.weekday.name}"


def _join(values: Iterable[object]) -> str:
    return ",".join(str(value) for value in values)


def format_rule(fields: RuleFields, tz: tzinfo | str | None = None) -> str:
    """Render RuleFields back into ``KEY=VALUE`` rule text."""
    zone = resolve_timezone(tz)
    renderers = {
        "FREQ": lambda: fields.freq.value,
        "INTERVAL": lambda: str(fields.interval),
        "COUNT": lambda: str(fields.count),
        "UNTIL": lambda: format_date_token(fields.until, zone),
        "BYMONTH": lambda: _join(fields.by_month),
        "BYMONTHDAY": lambda: _join(fields.by_month_day),
        "BYDAY": lambda: _join(format_byday(entry) for entry in fields.by_day),
        "EXDATE": lambda: _join(format_date_token(token, zone) for token in fields.exdates),
    }
    return ";".join(f"{key}={renderers[key]()}" for key in fields.ordered_keys())
