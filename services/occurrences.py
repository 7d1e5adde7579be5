from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, tzinfo
from itertools import islice
from typing import Iterable, Iterator, List

from dateutil.relativedelta import MO, relativedelta

from core.config import DEFAULT_LOOKAHEAD_YEARS
from core.models import ByDay, Frequency, RuleFields, Weekday
from core.time_utils import ensure_timezone, to_utc

logger = logging.getLogger(__name__)


def period_start(freq: Frequency, day: date) -> date:
    """Return the first day of the FREQ-sized period containing ``day``."""
    if freq is Frequency.YEARLY:
        return day.replace(month=1, day=1)
    if freq is Frequency.MONTHLY:
        return day.replace(day=1)
    if freq is Frequency.WEEKLY:
        return day + relativedelta(weekday=MO(-1))
    return day


def period_delta(freq: Frequency, periods: int) -> relativedelta:
    if freq is Frequency.YEARLY:
        return relativedelta(years=periods)
    if freq is Frequency.MONTHLY:
        return relativedelta(months=periods)
    if freq is Frequency.WEEKLY:
        return relativedelta(weeks=periods)
    return relativedelta(days=periods)


def periods_between(freq: Frequency, first: date, second: date) -> int:
    """Number of whole periods from period start ``first`` to period start ``second``."""
    if freq is Frequency.YEARLY:
        return second.year - first.year
    if freq is Frequency.MONTHLY:
        return (second.year - first.year) * 12 + second.month - first.month
    if freq is Frequency.WEEKLY:
        return (second - first).days // 7
    return (second - first).days


def weekday_dates(weekday: Weekday, first: date, last: date) -> List[date]:
    """All dates in ``[first, last]`` falling on ``weekday``."""
    current = first + timedelta(days=(weekday - Weekday.of(first)) % 7)
    found: List[date] = []
    while current <= last:
        found.append(current)
        current += timedelta(days=7)
    return found


def resolve_by_day(entries: Iterable[ByDay], first: date, last: date) -> List[date]:
    """
    Expand BYDAY entries over the span ``[first, last]``.

    Ordinal 0 selects every matching weekday, ``n`` the n-th one from the start
    of the span and ``-n`` the n-th one from its end. Ordinals beyond the
    number of matching weekdays select nothing.
    """
    selected: List[date] = []
    for entry in entries:
        matches = weekday_dates(entry.weekday, first, last)
        if entry.ordinal == 0:
            selected.extend(matches)
        elif abs(entry.ordinal) <= len(matches):
            selected.append(matches[entry.ordinal - 1] if entry.ordinal > 0 else matches[entry.ordinal])
    return selected


class OccurrenceGenerator:
    """
    Period-stepping search for the next occurrence of a rule.

    Periods are FREQ-sized spans (years, months, Monday-started weeks or days)
    visited every ``interval`` periods counting from the period that holds
    the anchor. Each visited period is expanded into sorted candidates which
    carry the anchor's wall-clock time of day in ``tz``.
    """

    def __init__(
        self,
        fields: RuleFields,
        anchor: datetime,
        tz: tzinfo,
        lookahead_years: int = DEFAULT_LOOKAHEAD_YEARS,
    ) -> None:
        if lookahead_years < 1:
            raise ValueError("lookahead_years must be at least 1")
        self.fields = fields
        self.tz = tz
        self.anchor = ensure_timezone(anchor, tz)
        self.lookahead_years = lookahead_years

        self._anchor_date = self.anchor.date()
        self._anchor_time = self.anchor.time()
        self._anchor_period = period_start(fields.freq, self._anchor_date)

        self._until = fields.until.instant if fields.until else None
        self._until_date = self._until.astimezone(tz).date() if self._until else None

        self._excluded_dates = frozenset(
            token.instant.astimezone(tz).date() for token in fields.exdates if token.date_only
        )
        self._excluded_instants = frozenset(
            to_utc(token.instant) for token in fields.exdates if not token.date_only
        )

    def next_after(self, after: datetime | None) -> datetime | None:
        """Earliest occurrence strictly after ``after`` (``None`` = the first one)."""
        found = self.occurrences_after(after, 1)
        return found[0] if found else None

    def occurrences_after(self, after: datetime | None, limit: int) -> List[datetime]:
        """
        Up to ``limit`` ascending occurrences strictly after ``after``.

        With COUNT set the series is walked once from its first occurrence so
        that nothing past the COUNT-th occurrence is ever returned. Excluded
        instances still take up a position in that walk.
        """
        if after is not None:
            after = ensure_timezone(after, self.tz)
        return list(islice(self._series_after(after), max(limit, 0)))

    def _series_after(self, after: datetime | None) -> Iterator[datetime]:
        count = self.fields.count
        if count is None:
            yield from self._walk(after)
            return

        for occurrence in islice(self._walk(None, apply_exclusions=False), count):
            if (after is None or occurrence > after) and not self._is_excluded(occurrence):
                yield occurrence

    def _walk(self, after: datetime | None, apply_exclusions: bool = True) -> Iterator[datetime]:
        """
        Lazily step through periods yielding occurrences after ``after``.

        The walk ends at UNTIL, or when no occurrence turns up within
        ``lookahead_years`` of the floor or of the last one yielded.
        """
        freq = self.fields.freq
        step = self.fields.step

        last = self.anchor if after is None or after < self.anchor else after
        floor_day = last.astimezone(self.tz).date()
        horizon = floor_day + relativedelta(years=self.lookahead_years)

        elapsed = periods_between(freq, self._anchor_period, period_start(freq, floor_day))
        current = self._anchor_period + period_delta(freq, -(-elapsed // step) * step)

        while current <= horizon:
            if self._until_date is not None and current > self._until_date:
                return
            for candidate in self._candidates(current):
                if candidate < self.anchor:
                    continue
                if after is not None and candidate <= after:
                    continue
                if self._until is not None and candidate > self._until:
                    return
                if apply_exclusions and self._is_excluded(candidate):
                    continue
                yield candidate
                last = candidate
                horizon = candidate.date() + relativedelta(years=self.lookahead_years)
            current += period_delta(freq, step)

        logger.debug(
            "No occurrence within %s years after %s for %s",
            self.lookahead_years,
            last.isoformat(),
            freq.value,
        )

    def _is_excluded(self, candidate: datetime) -> bool:
        if candidate.date() in self._excluded_dates:
            return True
        return to_utc(candidate) in self._excluded_instants

    def _candidates(self, start: date) -> List[datetime]:
        return [
            datetime.combine(day, self._anchor_time).replace(tzinfo=self.tz)
            for day in self._candidate_days(start)
        ]

    def _candidate_days(self, start: date) -> List[date]:
        fields = self.fields
        freq = fields.freq

        if freq is Frequency.YEARLY:
            if fields.by_day and not fields.by_month:
                days = resolve_by_day(fields.by_day, start, start.replace(month=12, day=31))
            else:
                if fields.by_month:
                    months: Iterable[int] = fields.by_month
                elif fields.by_month_day:
                    months = range(1, 13)
                else:
                    months = (self._anchor_date.month,)
                days = []
                for month in months:
                    days.extend(self._days_in_month(start.replace(month=month)))
        elif freq is Frequency.MONTHLY:
            days = self._days_in_month(start)
        elif freq is Frequency.WEEKLY:
            wanted = fields.weekdays or {Weekday.of(self._anchor_date)}
            days = [
                start + timedelta(days=offset)
                for offset in range(7)
                if Weekday.of(start + timedelta(days=offset)) in wanted
            ]
        else:
            days = [start] if not fields.by_day or Weekday.of(start) in fields.weekdays else []

        return sorted({day for day in days if self._passes_filters(day)})

    def _days_in_month(self, first: date) -> List[date]:
        fields = self.fields
        last = first + relativedelta(day=31)
        if fields.by_month_day:
            return [first.replace(day=day) for day in fields.by_month_day if day <= last.day]
        if fields.by_day:
            return resolve_by_day(fields.by_day, first, last)
        if self._anchor_date.day <= last.day:
            return [first.replace(day=self._anchor_date.day)]
        return []

    def _passes_filters(self, day: date) -> bool:
        if self.fields.by_month and day.month not in self.fields.by_month:
            return False
        if self.fields.by_month_day and day.day not in self.fields.by_month_day:
            return False
        return True
