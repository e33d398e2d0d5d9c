"""Enforcement loop fed by foreground-app events."""

from __future__ import annotations

from collections.abc import AsyncIterable, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from appguard.config import GuardSettings, get_settings
from appguard.db.session import Database
from appguard.domain.models import RestrictionVerdict, Rule, WeekTime
from appguard.engine.evaluator import evaluate_restriction
from appguard.logging import logger
from appguard.services.exceptions import DatabaseError
from appguard.services.repository import RuleRepository
from appguard.services.results import Failure
from appguard.services.usage import SqlUsageSource
from appguard.utils.datetime import format_hhmm, local_now
from appguard.utils.formatting import format_usage_time
from appguard.utils.retry import retry_async

BlockHandler = Callable[[RestrictionVerdict], Awaitable[None]]


@dataclass(frozen=True)
class CachedApp:
    app_name: str
    rules: list[Rule] = field(default_factory=list)


def describe_verdict(verdict: RestrictionVerdict) -> str:
    """One-line explanation shown when an app gets blocked."""

    name = verdict.app_name or verdict.package_name
    rule = verdict.violated_rule
    if not verdict.is_restricted or rule is None:
        return f"{name} is not restricted"
    used = format_usage_time(verdict.observed_usage_minutes * 60_000)
    parts = [f"{used} used"]
    if rule.time_limit_minutes:
        parts[0] += f" of {format_usage_time(rule.time_limit_minutes * 60_000)}"
    opens = f"{verdict.observed_usage_count} opens"
    if rule.count_limit:
        opens += f" of {rule.count_limit}"
    parts.append(opens)
    window = f"{format_hhmm(rule.range_start)}-{format_hhmm(rule.range_end)}"
    return f"{name} is restricted during {window}: {', '.join(parts)}"


class ForegroundMonitor:
    """Checks every foreground switch against a cached rule snapshot.

    The snapshot is rebuilt only by :meth:`reload_rules`; callers invoke it
    whenever rules change. Each switch also closes the previous app's usage
    session and opens one for the new app, so launches and foreground time
    reach the usage table. Errors are logged and never stop the loop.
    """

    def __init__(
        self,
        database: Database,
        on_restricted: BlockHandler,
        settings: GuardSettings | None = None,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.database = database
        self.on_restricted = on_restricted
        self.settings = settings or get_settings()
        self.clock = clock
        self._cache: dict[str, CachedApp] = {}
        self._foreground: str | None = None
        self._open_session_id: int | None = None

    @property
    def cached_packages(self) -> set[str]:
        return set(self._cache)

    async def _load_snapshot(self) -> dict[str, CachedApp]:
        async with self.database.session() as session:
            repository = RuleRepository(session)
            apps = await repository.list_apps()
            rules = await repository.enabled_rules()
        if isinstance(apps, Failure):
            raise DatabaseError(apps.message) from apps.error
        if isinstance(rules, Failure):
            raise DatabaseError(rules.message) from rules.error

        by_app_id: dict[int, list[Rule]] = {}
        for rule in rules.value:
            by_app_id.setdefault(rule.app_id, []).append(rule)
        return {
            app.package_name: CachedApp(app.app_name, by_app_id[app.id])
            for app in apps.value
            if app.enabled and app.id in by_app_id
        }

    async def reload_rules(self) -> int:
        """Rebuild the per-package rule cache; keeps the old one on failure."""

        monitor_cfg = self.settings.monitor
        try:
            snapshot = await retry_async(
                self._load_snapshot,
                max_attempts=monitor_cfg.reload_attempts,
                base_delay=monitor_cfg.reload_base_delay,
                logger=logger,
                operation_name="reload_rules",
            )
        except Exception:
            logger.exception("rules_reload_failed", cached=len(self._cache))
            return len(self._cache)
        self._cache = snapshot
        logger.info("rules_reloaded", packages=len(snapshot))
        return len(snapshot)

    def _is_ignored(self, package_name: str) -> bool:
        monitor_cfg = self.settings.monitor
        return (
            package_name == monitor_cfg.self_package
            or package_name in monitor_cfg.ignored_packages
        )

    async def _track_foreground(self, package_name: str | None, now: datetime) -> None:
        """Close the running usage session and open one for ``package_name``."""

        if package_name == self._foreground:
            return
        opened: int | None = None
        try:
            async with self.database.session() as session:
                usage = SqlUsageSource(session, clock=self.clock)
                if self._open_session_id is not None:
                    await usage.close_session(self._open_session_id, now)
                if package_name and not self._is_ignored(package_name):
                    opened = (await usage.record_session(package_name, now)).id
        except Exception:
            logger.exception("usage_record_failed", package_name=package_name)
            return
        self._foreground = package_name
        self._open_session_id = opened

    async def handle_event(self, package_name: str) -> RestrictionVerdict | None:
        if not self.settings.enabled or not package_name:
            return None
        now = self.clock()
        await self._track_foreground(package_name, now)
        if self._is_ignored(package_name):
            return None
        cached = self._cache.get(package_name)
        if cached is None:
            return None

        try:
            async with self.database.session() as session:
                usage = SqlUsageSource(
                    session,
                    clock=self.clock,
                    timeout_seconds=self.settings.monitor.evaluation_timeout_seconds,
                )
                verdict = await evaluate_restriction(
                    package_name,
                    WeekTime.from_datetime(now),
                    cached.rules,
                    usage,
                    app_name=cached.app_name,
                )
        except Exception:
            logger.exception("restriction_check_failed", package_name=package_name)
            return None

        logger.info(
            "restriction_checked",
            package_name=package_name,
            restricted=verdict.is_restricted,
            degraded=verdict.degraded,
        )
        if verdict.is_restricted:
            try:
                await self.on_restricted(verdict)
            except Exception:
                logger.exception("block_handler_failed", package_name=package_name)
        return verdict

    async def run(self, events: AsyncIterable[str]) -> None:
        await self.reload_rules()
        async for package_name in events:
            await self.handle_event(package_name.strip())
        await self._track_foreground(None, self.clock())


__all__ = ["BlockHandler", "CachedApp", "ForegroundMonitor", "describe_verdict"]
