"""Expand a day pattern into one rule per day."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, time
from enum import Enum

from appguard.domain.models import DayOfWeek, Rule
from appguard.services.exceptions import RuleValidationError

WORKDAYS = (
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
)
WEEKEND = (DayOfWeek.SATURDAY, DayOfWeek.SUNDAY)


class DayPattern(str, Enum):
    WORKDAY = "workday"
    WEEKEND = "weekend"
    CUSTOM = "custom"


def validate_pattern_input(pattern: DayPattern, selected_days: Iterable[DayOfWeek]) -> bool:
    if pattern is DayPattern.CUSTOM:
        return bool(set(selected_days))
    return True


def _days_for(pattern: DayPattern, selected_days: Iterable[DayOfWeek]) -> list[DayOfWeek]:
    if pattern is DayPattern.WORKDAY:
        return list(WORKDAYS)
    if pattern is DayPattern.WEEKEND:
        return list(WEEKEND)
    return sorted(set(selected_days))


def expand_pattern(
    pattern: DayPattern,
    *,
    app_id: int,
    range_start: time,
    range_end: time,
    time_limit_minutes: int = 0,
    count_limit: int = 0,
    selected_days: Iterable[DayOfWeek] = (),
) -> list[Rule]:
    """Build unsaved rules (``id`` 0) sharing one range and one set of limits."""

    selected_days = list(selected_days)
    if not validate_pattern_input(pattern, selected_days):
        raise RuleValidationError("custom pattern needs at least one day")
    if time_limit_minutes < 0 or count_limit < 0:
        raise RuleValidationError("limits must not be negative")

    created = datetime.now()
    return [
        Rule(
            app_id=app_id,
            day=day,
            range_start=range_start,
            range_end=range_end,
            time_limit_minutes=time_limit_minutes,
            count_limit=count_limit,
            created_time=created,
        )
        for day in _days_for(pattern, selected_days)
    ]


__all__ = ["DayPattern", "expand_pattern", "validate_pattern_input"]
