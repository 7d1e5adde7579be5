from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, tzinfo
from typing import Any, List

from core.config import DEFAULT_LOOKAHEAD_YEARS
from core.exceptions import MissingAnchorError
from core.models import RuleFields
from core.time_utils import parse_human_datetime, resolve_timezone
from services.occurrences import OccurrenceGenerator
from services.rrule_parser import parse
from services.serializer import format_rule


class RecurrenceRule:
    """
    Immutable recurrence rule bound to an anchor start and a time zone.

    ``source`` is rule text (``FREQ=MONTHLY;BYDAY=1SU``), a parsed
    ``RuleFields`` or a mapping of ``RuleFields`` attributes. Naive datetimes,
    for the anchor and for query arguments alike, are read in ``tz`` (UTC
    when omitted); strings go through ``parse_human_datetime``.
    """

    def __init__(
        self,
        source: str | RuleFields | Mapping[str, Any],
        anchor_start: datetime | str | None = None,
        *,
        tz: tzinfo | str | None = None,
        lookahead_years: int | None = None,
    ) -> None:
        self._tz = resolve_timezone(tz)

        if isinstance(source, RuleFields):
            fields = source
        elif isinstance(source, str):
            fields = parse(source, self._tz)
        elif isinstance(source, Mapping):
            fields = RuleFields.model_validate(dict(source))
        else:
            raise TypeError(f"Cannot build a recurrence rule from {type(source).__name__}")
        self._fields = fields

        self._anchor = None
        self._generator = None
        if anchor_start is not None:
            self._anchor = parse_human_datetime(anchor_start, self._tz)
            self._generator = OccurrenceGenerator(
                fields,
                self._anchor,
                self._tz,
                lookahead_years or DEFAULT_LOOKAHEAD_YEARS,
            )

    @property
    def fields(self) -> RuleFields:
        return self._fields

    @property
    def anchor_start(self) -> datetime | None:
        return self._anchor

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def value_of(self) -> dict[str, Any]:
        """Snapshot of the present rule parts keyed by grammar key."""
        fields = self._fields
        getters = {
            "FREQ": lambda: fields.freq.value,
            "INTERVAL": lambda: fields.interval,
            "COUNT": lambda: fields.count,
            "UNTIL": lambda: fields.until,
            "BYMONTH": lambda: list(fields.by_month),
            "BYMONTHDAY": lambda: list(fields.by_month_day),
            "BYDAY": lambda: [entry.as_pair() for entry in fields.by_day],
            "EXDATE": lambda: list(fields.exdates),
        }
        return {key: getters[key]() for key in fields.ordered_keys()}

    def to_string(self) -> str:
        return format_rule(self._fields, self._tz)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"RecurrenceRule({self.to_string()!r}, anchor_start={self._anchor!r}, tz={self._tz!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecurrenceRule):
            return NotImplemented
        # Source key order only affects serialization
        return (self.value_of(), self._anchor, self._tz) == (other.value_of(), other._anchor, other._tz)

    def __hash__(self) -> int:
        return hash((self._fields.freq, self._anchor, str(self._tz)))

    def first(self) -> datetime | None:
        """First occurrence of the series at or after the anchor start."""
        return self._require_generator().next_after(None)

    def next(self, after: datetime | str) -> datetime | None:
        """Earliest occurrence strictly after ``after``, or None when exhausted."""
        return self._require_generator().next_after(parse_human_datetime(after, self._tz))

    def next_occurrences(self, after: datetime | str, max_count: int) -> List[datetime]:
        """Up to ``max_count`` ascending occurrences after ``after``."""
        generator = self._require_generator()
        return generator.occurrences_after(parse_human_datetime(after, self._tz), max_count)

    def _require_generator(self) -> OccurrenceGenerator:
        if self._generator is None:
            raise MissingAnchorError("Occurrence queries need an anchor start")
        return self._generator
