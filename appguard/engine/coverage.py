"""Fold a rule set into a weekly 7x24 coverage grid."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import time

from appguard.domain.models import (
    DAYS_PER_WEEK,
    HOURS_PER_DAY,
    CoverageGrid,
    CoverageResult,
    DayOfWeek,
    Rule,
)
from appguard.logging import logger

LAST_HOUR = HOURS_PER_DAY - 1


def is_valid_rule(rule: Rule) -> bool:
    return (
        DayOfWeek.from_value(rule.day) is not None
        and isinstance(rule.range_start, time)
        and isinstance(rule.range_end, time)
    )


def _mark(cells: list[list[bool]], day_index: int, start_hour: int, end_hour: int) -> None:
    # both ends inclusive: touching any minute of an hour covers the hour
    for hour in range(start_hour, end_hour + 1):
        cells[day_index][hour] = True


def _mark_rule(cells: list[list[bool]], rule: Rule) -> None:
    day_index = rule.day - 1
    start_hour = rule.range_start.hour
    end_hour = rule.range_end.hour

    if rule.is_degenerate:
        _mark(cells, day_index, 0, LAST_HOUR)
    elif rule.crosses_midnight:
        _mark(cells, day_index, start_hour, LAST_HOUR)
        _mark(cells, (day_index + 1) % DAYS_PER_WEEK, 0, end_hour)
    else:
        _mark(cells, day_index, start_hour, end_hour)


def compute_coverage_grid(rules: Iterable[Rule]) -> CoverageResult:
    """Union the hour slots touched by ``rules``.

    Rules that cannot be placed on the grid are skipped and counted in
    ``invalid_rule_count`` instead of failing the whole build.
    """

    cells = [[False] * HOURS_PER_DAY for _ in range(DAYS_PER_WEEK)]
    invalid = 0
    for rule in rules:
        if not is_valid_rule(rule):
            invalid += 1
            logger.warning(
                "rule_skipped_invalid",
                rule_id=getattr(rule, "id", None),
                day=getattr(rule, "day", None),
            )
            continue
        _mark_rule(cells, rule)

    grid = CoverageGrid(tuple(tuple(row) for row in cells))
    return CoverageResult(grid=grid, invalid_rule_count=invalid)


__all__ = ["compute_coverage_grid", "is_valid_rule"]
