"""Pydantic models shared across the engine and service layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import IntEnum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from appguard.utils.datetime import truncate_to_minute

DAYS_PER_WEEK = 7
HOURS_PER_DAY = 24


class DayOfWeek(IntEnum):
    """ISO day numbering, Monday is 1."""

    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7

    @classmethod
    def from_value(cls, value: int) -> DayOfWeek | None:
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def from_date(cls, value: date) -> DayOfWeek:
        return cls(value.isoweekday())

    @property
    def index(self) -> int:
        """Zero-based grid column, Monday is 0."""

        return self.value - 1


class Rule(BaseModel):
    """Day + time range + usage limits attached to one monitored app.

    ``day`` is kept as a plain integer so that malformed stored values can
    still flow into the coverage calculator, which skips and counts them.
    """

    model_config = ConfigDict(frozen=True)

    id: int = 0
    app_id: int
    day: int
    range_start: time
    range_end: time
    time_limit_minutes: int = Field(default=0, ge=0)
    count_limit: int = Field(default=0, ge=0)
    created_time: datetime = Field(default_factory=datetime.now)

    @property
    def day_of_week(self) -> DayOfWeek | None:
        return DayOfWeek.from_value(self.day)

    @property
    def is_degenerate(self) -> bool:
        return self.range_start == self.range_end

    @property
    def crosses_midnight(self) -> bool:
        return self.range_end < self.range_start


class AppInfoModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    app_name: str
    package_name: str
    enabled: bool = True
    created_time: datetime | None = None


class WeekTime(NamedTuple):
    """An instant reduced to day of week and minute of day."""

    day: DayOfWeek
    time: time

    @classmethod
    def from_datetime(cls, value: datetime) -> WeekTime:
        return cls(DayOfWeek.from_date(value), truncate_to_minute(value.time()))


class UsageFigures(NamedTuple):
    minutes: int
    count: int


@dataclass(frozen=True)
class CoverageGrid:
    """Immutable 7x24 matrix, ``rows[day][hour]`` with day 0 = Monday."""

    rows: tuple[tuple[bool, ...], ...]

    @classmethod
    def empty(cls) -> CoverageGrid:
        return cls(tuple((False,) * HOURS_PER_DAY for _ in range(DAYS_PER_WEEK)))

    def has_coverage(self, day: int, hour: int) -> bool:
        if 0 <= day < DAYS_PER_WEEK and 0 <= hour < HOURS_PER_DAY:
            return self.rows[day][hour]
        return False

    def covered_hours(self, day: int) -> list[int]:
        return [hour for hour in range(HOURS_PER_DAY) if self.has_coverage(day, hour)]

    @property
    def covered_slot_count(self) -> int:
        return sum(sum(row) for row in self.rows)


@dataclass(frozen=True)
class CoverageResult:
    grid: CoverageGrid
    invalid_rule_count: int = 0


class RestrictionVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    package_name: str
    is_restricted: bool
    violated_rule: Rule | None = None
    observed_usage_minutes: int = 0
    observed_usage_count: int = 0
    app_name: str | None = None
    reason: str | None = None
    degraded: bool = False

    @classmethod
    def allowed(
        cls, package_name: str, *, reason: str, app_name: str | None = None
    ) -> RestrictionVerdict:
        return cls(
            package_name=package_name,
            is_restricted=False,
            app_name=app_name,
            reason=reason,
        )

    @classmethod
    def fail_open(
        cls, package_name: str, *, reason: str, app_name: str | None = None
    ) -> RestrictionVerdict:
        """Verdict used when a collaborator failed; never blocks the user."""

        return cls(
            package_name=package_name,
            is_restricted=False,
            app_name=app_name,
            reason=reason,
            degraded=True,
        )


__all__ = [
    "AppInfoModel",
    "CoverageGrid",
    "CoverageResult",
    "DAYS_PER_WEEK",
    "DayOfWeek",
    "HOURS_PER_DAY",
    "RestrictionVerdict",
    "Rule",
    "UsageFigures",
    "WeekTime",
]
