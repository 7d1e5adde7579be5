from __future__ import annotations

from datetime import date, datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CANONICAL_KEY_ORDER = (
    "FREQ",
    "INTERVAL",
    "COUNT",
    "UNTIL",
    "BYMONTH",
    "BYMONTHDAY",
    "BYDAY",
    "EXDATE",
)


class Frequency(str, Enum):
    YEARLY = "YEARLY"
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"


class Weekday(IntEnum):
    """Weekday codes of the rule grammar, numbered from Sunday."""

    SU = 0
    MO = 1
    TU = 2
    WE = 3
    TH = 4
    FR = 5
    SA = 6

    @classmethod
    def of(cls, day: date) -> "Weekday":
        # date.weekday() counts from Monday
        return cls((day.weekday() + 1) % 7)


class DateToken(BaseModel):
    """A parsed UNTIL/EXDATE value together with the shape of its source token."""

    model_config = ConfigDict(frozen=True)

    instant: datetime
    date_only: bool = False
    utc: bool = False

    @field_validator("instant")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("DateToken instants must be timezone-aware")
        return value


class ByDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    ordinal: int = 0
    weekday: Weekday

    def as_pair(self) -> list[int]:
        return [self.ordinal, int(self.weekday)]


class RuleFields(BaseModel):
    """Normalized field map of a recurrence rule."""

    model_config = ConfigDict(frozen=True)

    freq: Frequency
    interval: int | None = Field(default=None, ge=1)
    count: int | None = Field(default=None, ge=1)
    until: DateToken | None = None
    by_month: tuple[int, ...] = ()
    by_month_day: tuple[int, ...] = ()
    by_day: tuple[ByDay, ...] = ()
    exdates: tuple[DateToken, ...] = ()
    key_order: tuple[str, ...] = ()

    @field_validator("by_month")
    @classmethod
    def _check_months(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        for month in value:
            if not 1 <= month <= 12:
                raise ValueError(f"BYMONTH value out of range: {month}")
        if len(set(value)) != len(value):
            raise ValueError("BYMONTH values must be distinct")
        return value

    @field_validator("by_month_day")
    @classmethod
    def _check_month_days(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        for day in value:
            if not 1 <= day <= 31:
                raise ValueError(f"BYMONTHDAY value out of range: {day}")
        return value

    @field_validator("key_order")
    @classmethod
    def _check_key_order(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [key for key in value if key not in CANONICAL_KEY_ORDER]
        if unknown:
            raise ValueError(f"Unknown rule keys in key_order: {unknown}")
        return value

    @model_validator(mode="after")
    def _check_day_filters(self) -> "RuleFields":
        if self.by_month_day and self.by_day:
            raise ValueError("BYMONTHDAY cannot be combined with BYDAY")
        return self

    @property
    def step(self) -> int:
        return self.interval or 1

    @property
    def weekdays(self) -> frozenset[Weekday]:
        return frozenset(entry.weekday for entry in self.by_day)

    def has_key(self, key: str) -> bool:
        return {
            "FREQ": True,
            "INTERVAL": self.interval is not None,
            "COUNT": self.count is not None,
            "UNTIL": self.until is not None,
            "BYMONTH": bool(self.by_month),
            "BYMONTHDAY": bool(self.by_month_day),
            "BYDAY": bool(self.by_day),
            "EXDATE": bool(self.exdates),
        }[key]

    def ordered_keys(self) -> list[str]:
        """Present keys, in source order when known, else canonical order."""
        ordered = [key for key in self.key_order if self.has_key(key)]
        for key in CANONICAL_KEY_ORDER:
            if key not in ordered and self.has_key(key):
                ordered.append(key)
        return ordered
