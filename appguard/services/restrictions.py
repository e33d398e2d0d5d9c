"""Compose repository, usage source and engine into a single check."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from typing import TypeVar

from appguard.domain.models import CoverageResult, RestrictionVerdict, WeekTime
from appguard.engine.coverage import compute_coverage_grid
from appguard.engine.evaluator import UsageSource, evaluate_restriction
from appguard.logging import logger
from appguard.services.repository import RuleRepository
from appguard.services.results import Failure, Result, Success
from appguard.utils.datetime import local_now

T = TypeVar("T")


class RestrictionService:
    def __init__(
        self,
        repository: RuleRepository,
        usage: UsageSource,
        *,
        clock: Callable[[], datetime] = local_now,
        timeout_seconds: float | None = None,
    ) -> None:
        self.repository = repository
        self.usage = usage
        self.clock = clock
        self.timeout_seconds = timeout_seconds

    async def _bounded(self, operation: str, pending: Awaitable[Result[T]]) -> Result[T]:
        if self.timeout_seconds is None:
            return await pending
        try:
            return await asyncio.wait_for(pending, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning("repository_read_timeout", operation=operation)
            return Failure(f"{operation} timed out", exc)

    async def check(self, package_name: str, now: datetime | None = None) -> RestrictionVerdict:
        """Verdict for the app currently in the foreground.

        Unknown and disabled apps are never restricted; repository failures
        fail open.
        """

        lookup = await self._bounded(
            "get_app_by_package", self.repository.get_app_by_package(package_name)
        )
        if isinstance(lookup, Failure):
            return RestrictionVerdict.fail_open(package_name, reason=lookup.message)
        app = lookup.value
        if app is None:
            return RestrictionVerdict.allowed(package_name, reason="app not monitored")
        if not app.enabled:
            return RestrictionVerdict.allowed(
                package_name, reason="monitoring disabled", app_name=app.app_name
            )

        rules = await self._bounded("rules_for", self.repository.rules_for(app.id))
        if isinstance(rules, Failure):
            return RestrictionVerdict.fail_open(
                package_name, reason=rules.message, app_name=app.app_name
            )

        moment = WeekTime.from_datetime(now or self.clock())
        return await evaluate_restriction(
            package_name, moment, rules.value, self.usage, app_name=app.app_name
        )

    async def coverage_for(self, app_id: int) -> Result[CoverageResult]:
        """Weekly grid of one app; unreadable stored rules count as invalid."""

        loaded = await self._bounded("load_rules", self.repository.load_rules(app_id))
        if isinstance(loaded, Failure):
            return loaded
        coverage = compute_coverage_grid(loaded.value.rules)
        return Success(
            replace(
                coverage,
                invalid_rule_count=coverage.invalid_rule_count + loaded.value.malformed,
            )
        )


__all__ = ["RestrictionService"]
