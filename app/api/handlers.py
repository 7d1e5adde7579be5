from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from core.exceptions import RecurrenceError
from core.models import DateToken
from core.time_utils import get_timezone
from services.date_tokens import format_date_token
from services.recurrence import RecurrenceRule

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_timezone(payload: dict, settings: Settings) -> tzinfo:
    requested = payload.get("timezone")
    if isinstance(requested, str) and requested.strip():
        return get_timezone(requested.strip())
    return get_timezone(settings.timezone)


def _build_rule(payload: dict, settings: Settings, *, with_anchor: bool = True) -> RecurrenceRule:
    text = payload.get("rule")
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Rule text (rule) is required")

    anchor = payload.get("start")
    if with_anchor and not anchor:
        raise ValueError("Anchor start (start) is required")

    app_config = settings.load_app_config()
    return RecurrenceRule(
        text.strip(),
        anchor if with_anchor else None,
        tz=_resolve_timezone(payload, settings),
        lookahead_years=app_config.recurrence.lookahead_years,
    )


def _jsonable_token(token: DateToken, tz: tzinfo) -> dict:
    return {
        "value": format_date_token(token, tz),
        "instant": token.instant.isoformat(),
        "date_only": token.date_only,
        "utc": token.utc,
    }


def _jsonable_snapshot(rule: RecurrenceRule) -> dict[str, Any]:
    snapshot = rule.value_of()
    if "UNTIL" in snapshot:
        snapshot["UNTIL"] = _jsonable_token(snapshot["UNTIL"], rule.tz)
    if "EXDATE" in snapshot:
        snapshot["EXDATE"] = [_jsonable_token(token, rule.tz) for token in snapshot["EXDATE"]]
    return snapshot


@router.post("/rules/parse")
async def parse_rule(
    payload: dict,
    settings: Settings = Depends(get_settings),
) -> dict:
    """Parse rule text and echo its normalized parts and canonical text."""
    try:
        rule = _build_rule(payload, settings, with_anchor=False)
    except (RecurrenceError, ValueError) as exc:
        logger.info("Rejected rule %r: %s", payload.get("rule"), exc)
        return {"status": "error", "error": str(exc)}

    return {"status": "ok", "rule": _jsonable_snapshot(rule), "text": str(rule)}


@router.post("/rules/next")
async def next_occurrence(
    payload: dict,
    settings: Settings = Depends(get_settings),
) -> dict:
    """Return the first occurrence strictly after ``after`` (or the first of the series)."""
    try:
        rule = _build_rule(payload, settings)
        after = payload.get("after")
        found = rule.next(after) if after else rule.first()
    except (RecurrenceError, ValueError) as exc:
        logger.info("Rejected next-occurrence request: %s", exc)
        return {"status": "error", "error": str(exc)}

    return {"status": "ok", "next": found.isoformat() if found else None}


@router.post("/rules/occurrences")
async def list_occurrences(
    payload: dict,
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    Preview upcoming occurrences of a rule.

    ``count`` falls back to the configured preview size and is capped at the
    configured maximum. Without ``after`` the preview starts at the anchor
    itself.
    """
    app_config = settings.load_app_config()
    try:
        raw_count = payload.get("count")
        requested = int(raw_count) if raw_count is not None else None
        count = app_config.preview.clamp(requested)

        rule = _build_rule(payload, settings)
        after = payload.get("after")
        if after:
            occurrences = rule.next_occurrences(after, count)
        else:
            first = rule.first() if count else None
            occurrences = [first] if first else []
            if first and count > 1:
                occurrences.extend(rule.next_occurrences(first, count - 1))
    except (RecurrenceError, ValueError, TypeError) as exc:
        logger.info("Rejected occurrence preview: %s", exc)
        return {"status": "error", "error": str(exc)}

    return {
        "status": "ok",
        "rule": str(rule),
        "count": len(occurrences),
        "occurrences": [occurrence.isoformat() for occurrence in occurrences],
    }
