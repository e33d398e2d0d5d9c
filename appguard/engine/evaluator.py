"""Decide whether an app is over its usage limits right now."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import time
from typing import Protocol

from appguard.domain.models import RestrictionVerdict, Rule, UsageFigures, WeekTime
from appguard.logging import logger
from appguard.utils.datetime import truncate_to_minute


class UsageSource(Protocol):
    """Reports foreground minutes and launch count inside a time window.

    The window may cross midnight, with the same semantics as rule ranges.
    """

    async def elapsed_and_count(
        self, package_name: str, window_start: time, window_end: time
    ) -> UsageFigures: ...


def is_in_range(now: time, start: time, end: time) -> bool:
    """Open-interval containment at minute granularity.

    A range whose end is at or before its start wraps past midnight.
    """

    now = truncate_to_minute(now)
    start = truncate_to_minute(start)
    end = truncate_to_minute(end)
    if start < end:
        return start < now < end
    return now > start or now < end


def is_violated(rule: Rule, usage: UsageFigures) -> bool:
    time_exceeded = rule.time_limit_minutes > 0 and usage.minutes >= rule.time_limit_minutes
    count_exceeded = rule.count_limit > 0 and usage.count >= rule.count_limit
    return time_exceeded or count_exceeded


def _check_package_name(package_name: str) -> None:
    if not isinstance(package_name, str):
        raise TypeError(f"package_name must be str, got {type(package_name).__name__}")
    if not package_name.strip():
        raise ValueError("package_name must not be empty")


async def evaluate_restriction(
    package_name: str,
    now: WeekTime,
    rules: Iterable[Rule],
    usage: UsageSource,
    *,
    app_name: str | None = None,
) -> RestrictionVerdict:
    """Walk ``rules`` in the given order and report the first violated one.

    Usage-source failures fail open: the verdict is not restricted and
    flagged as degraded. Cancellation propagates untouched.
    """

    _check_package_name(package_name)

    for rule in rules:
        if rule.day != now.day:
            continue
        if not is_in_range(now.time, rule.range_start, rule.range_end):
            continue

        try:
            raw = await usage.elapsed_and_count(package_name, rule.range_start, rule.range_end)
            figures = UsageFigures(*raw)
        except Exception as exc:
            logger.warning(
                "usage_lookup_failed",
                package_name=package_name,
                rule_id=rule.id,
                error=str(exc),
            )
            return RestrictionVerdict.fail_open(
                package_name, reason="usage lookup failed", app_name=app_name
            )

        if is_violated(rule, figures):
            logger.info(
                "rule_violated",
                package_name=package_name,
                rule_id=rule.id,
                minutes=figures.minutes,
                count=figures.count,
            )
            return RestrictionVerdict(
                package_name=package_name,
                is_restricted=True,
                violated_rule=rule,
                observed_usage_minutes=figures.minutes,
                observed_usage_count=figures.count,
                app_name=app_name,
                reason=f"rule {rule.id} limits reached",
            )

    return RestrictionVerdict.allowed(package_name, reason="no rule violated", app_name=app_name)


__all__ = ["UsageSource", "evaluate_restriction", "is_in_range", "is_violated"]
