"""Restriction evaluation against live usage figures."""

from __future__ import annotations

import asyncio
from datetime import datetime, time

import pytest

from appguard.domain.models import DayOfWeek, Rule, UsageFigures, WeekTime
from appguard.engine.evaluator import evaluate_restriction, is_in_range, is_violated

PACKAGE = "com.example.social"


class FakeUsage:
    def __init__(self, minutes: int = 0, count: int = 0, error: Exception | None = None) -> None:
        self.figures = UsageFigures(minutes, count)
        self.error = error
        self.calls: list[tuple[str, time, time]] = []

    async def elapsed_and_count(self, package_name, window_start, window_end):
        self.calls.append((package_name, window_start, window_end))
        if self.error is not None:
            raise self.error
        return self.figures


def _rule(
    rule_id: int = 1,
    *,
    day: DayOfWeek = DayOfWeek.MONDAY,
    start: time = time(9),
    end: time = time(17),
    minutes: int = 30,
    count: int = 0,
) -> Rule:
    return Rule(
        id=rule_id,
        app_id=1,
        day=day,
        range_start=start,
        range_end=end,
        time_limit_minutes=minutes,
        count_limit=count,
    )


def _monday(hour: int, minute: int = 0) -> WeekTime:
    return WeekTime(DayOfWeek.MONDAY, time(hour, minute))


@pytest.mark.parametrize(
    "now,expected",
    [
        (time(8, 59), False),
        (time(9, 0), False),
        (time(9, 1), True),
        (time(16, 59), True),
        (time(17, 0), False),
    ],
)
def test_same_day_range_is_an_open_interval(now, expected):
    assert is_in_range(now, time(9), time(17)) is expected


@pytest.mark.parametrize(
    "now,expected",
    [
        (time(22, 0), False),
        (time(22, 1), True),
        (time(23, 59), True),
        (time(0, 0), True),
        (time(5, 59), True),
        (time(6, 0), False),
        (time(12, 0), False),
    ],
)
def test_overnight_range_wraps_past_midnight(now, expected):
    assert is_in_range(now, time(22), time(6)) is expected


def test_seconds_are_ignored_at_the_boundary():
    assert is_in_range(time(9, 0, 45), time(9), time(17)) is False
    assert is_in_range(time(16, 59, 59), time(9), time(17)) is True


def test_equal_start_and_end_matches_every_other_minute():
    assert is_in_range(time(10, 0), time(10), time(10)) is False
    assert is_in_range(time(10, 1), time(10), time(10)) is True
    assert is_in_range(time(9, 59), time(10), time(10)) is True


def test_zero_limits_never_trigger():
    rule = _rule(minutes=0, count=0)

    assert is_violated(rule, UsageFigures(10_000, 10_000)) is False


def test_limits_trigger_when_reached():
    assert is_violated(_rule(minutes=30), UsageFigures(30, 0)) is True
    assert is_violated(_rule(minutes=30), UsageFigures(29, 0)) is False
    assert is_violated(_rule(minutes=0, count=3), UsageFigures(0, 3)) is True


@pytest.mark.asyncio
async def test_boundary_minute_is_outside_the_rule():
    usage = FakeUsage(minutes=100)

    at_start = await evaluate_restriction(PACKAGE, _monday(9, 0), [_rule()], usage)
    assert at_start.is_restricted is False
    assert usage.calls == []

    just_after = await evaluate_restriction(PACKAGE, _monday(9, 1), [_rule()], usage)
    assert just_after.is_restricted is True
    assert usage.calls == [(PACKAGE, time(9), time(17))]


@pytest.mark.asyncio
async def test_first_violated_rule_in_input_order_wins():
    lenient = _rule(2, minutes=50)
    strict = _rule(1, minutes=5)
    usage = FakeUsage(minutes=60)

    verdict = await evaluate_restriction(PACKAGE, _monday(10), [lenient, strict], usage)
    assert verdict.violated_rule == lenient

    verdict = await evaluate_restriction(PACKAGE, _monday(10), [strict, lenient], usage)
    assert verdict.violated_rule == strict


@pytest.mark.asyncio
async def test_rule_not_violated_moves_on_to_the_next_one():
    usage = FakeUsage(minutes=20)
    rules = [_rule(1, minutes=30), _rule(2, start=time(8), end=time(12), minutes=15)]

    verdict = await evaluate_restriction(PACKAGE, _monday(10), rules, usage)

    assert verdict.violated_rule == rules[1]
    assert len(usage.calls) == 2
    assert usage.calls[1] == (PACKAGE, time(8), time(12))


@pytest.mark.asyncio
async def test_rules_for_other_days_are_ignored():
    usage = FakeUsage(minutes=1_000)

    verdict = await evaluate_restriction(
        PACKAGE, _monday(10), [_rule(day=DayOfWeek.TUESDAY)], usage
    )

    assert verdict.is_restricted is False
    assert usage.calls == []


@pytest.mark.asyncio
async def test_overnight_rule_is_checked_on_its_own_day_only():
    rule = _rule(day=DayOfWeek.FRIDAY, start=time(22), end=time(6), minutes=10)
    usage = FakeUsage(minutes=15)

    friday_night = await evaluate_restriction(
        PACKAGE, WeekTime(DayOfWeek.FRIDAY, time(23)), [rule], usage
    )
    saturday_morning = await evaluate_restriction(
        PACKAGE, WeekTime(DayOfWeek.SATURDAY, time(3)), [rule], usage
    )

    assert friday_night.is_restricted is True
    assert saturday_morning.is_restricted is False


@pytest.mark.asyncio
async def test_restricted_verdict_reports_observed_usage():
    usage = FakeUsage(minutes=4, count=5)

    verdict = await evaluate_restriction(
        PACKAGE, _monday(12), [_rule(minutes=0, count=5)], usage, app_name="Social"
    )

    assert verdict.is_restricted is True
    assert verdict.observed_usage_minutes == 4
    assert verdict.observed_usage_count == 5
    assert verdict.app_name == "Social"
    assert verdict.degraded is False


@pytest.mark.asyncio
async def test_unviolated_rules_report_zero_usage():
    usage = FakeUsage(minutes=29, count=2)

    verdict = await evaluate_restriction(PACKAGE, _monday(12), [_rule(minutes=30)], usage)

    assert verdict.is_restricted is False
    assert verdict.violated_rule is None
    assert verdict.observed_usage_minutes == 0
    assert verdict.observed_usage_count == 0


@pytest.mark.asyncio
async def test_usage_failure_fails_open():
    usage = FakeUsage(error=RuntimeError("usage database locked"))

    verdict = await evaluate_restriction(
        PACKAGE, _monday(12), [_rule(1), _rule(2, minutes=1)], usage
    )

    assert verdict.is_restricted is False
    assert verdict.violated_rule is None
    assert verdict.degraded is True
    assert len(usage.calls) == 1


@pytest.mark.asyncio
async def test_cancellation_stops_the_walk():
    started = asyncio.Event()
    calls: list[time] = []

    class HangingUsage:
        async def elapsed_and_count(self, package_name, window_start, window_end):
            calls.append(window_start)
            started.set()
            await asyncio.Event().wait()

    rules = [_rule(1), _rule(2, start=time(8))]
    task = asyncio.create_task(evaluate_restriction(PACKAGE, _monday(10), rules, HangingUsage()))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert calls == [time(9)]


@pytest.mark.asyncio
async def test_concurrent_evaluations_are_independent():
    rule = _rule(minutes=30)
    usages = [FakeUsage(minutes=minutes) for minutes in range(0, 60, 5)]

    verdicts = await asyncio.gather(
        *(
            evaluate_restriction(f"com.example.app{index}", _monday(10), [rule], usage)
            for index, usage in enumerate(usages)
        )
    )

    for usage, verdict in zip(usages, verdicts):
        assert verdict.is_restricted is (usage.figures.minutes >= 30)
        assert len(usage.calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_name,error", [("", ValueError), ("   ", ValueError), (42, TypeError)])
async def test_malformed_package_name_is_a_hard_error(bad_name, error):
    with pytest.raises(error):
        await evaluate_restriction(bad_name, _monday(10), [_rule()], FakeUsage())


def test_week_time_truncates_to_the_minute():
    # 2024-01-01 was a Monday
    moment = WeekTime.from_datetime(datetime(2024, 1, 1, 9, 0, 42))

    assert moment == WeekTime(DayOfWeek.MONDAY, time(9, 0))


def test_day_of_week_numbering():
    assert DayOfWeek.MONDAY.index == 0
    assert DayOfWeek.SUNDAY.index == 6
    assert DayOfWeek.from_value(7) is DayOfWeek.SUNDAY
    assert DayOfWeek.from_value(8) is None
    assert DayOfWeek.from_value(0) is None
