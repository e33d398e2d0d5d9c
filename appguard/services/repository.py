"""Persistence of monitored apps and their rules."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import NamedTuple, TypeVar

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from appguard.db.models.core import AppInfo, AppRule
from appguard.domain.models import AppInfoModel, Rule
from appguard.logging import logger
from appguard.services.exceptions import (
    AppNotFound,
    DatabaseError,
    RuleNotFound,
    RuleValidationError,
)
from appguard.services.results import Failure, Result, Success
from appguard.utils.datetime import format_hhmm, parse_hhmm

T = TypeVar("T")


def _check_id(value: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def rule_from_row(row: AppRule) -> Rule | None:
    """Map a stored row; malformed rows are logged and dropped."""

    try:
        return Rule(
            id=row.id,
            app_id=row.app_info_id,
            day=row.day,
            range_start=parse_hhmm(row.time_range_start),
            range_end=parse_hhmm(row.time_range_end),
            time_limit_minutes=row.total_time,
            count_limit=row.total_count,
            created_time=row.created_time,
        )
    except (ValueError, ValidationError) as exc:
        logger.warning("rule_row_malformed", rule_id=row.id, error=str(exc))
        return None


def _fill_row(row: AppRule, rule: Rule) -> AppRule:
    row.app_info_id = rule.app_id
    row.day = int(rule.day)
    row.time_range_start = format_hhmm(rule.range_start)
    row.time_range_end = format_hhmm(rule.range_end)
    row.total_time = rule.time_limit_minutes
    row.total_count = rule.count_limit
    row.created_time = rule.created_time
    return row


class LoadedRules(NamedTuple):
    rules: list[Rule]
    malformed: int = 0


def _rules_from_rows(rows: Sequence[AppRule]) -> LoadedRules:
    rules = [rule for rule in (rule_from_row(row) for row in rows) if rule is not None]
    return LoadedRules(rules, len(rows) - len(rules))


class RuleRepository:
    """Reads return :class:`Success`/:class:`Failure`; writes raise ``ServiceError``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _read(self, operation: str, loader: Callable[[], Awaitable[T]]) -> Result[T]:
        try:
            return Success(await loader())
        except Exception as exc:
            logger.error("repository_read_failed", operation=operation, error=str(exc))
            return Failure(f"{operation} failed", exc)

    async def _app_row(self, app_id: int) -> AppInfo:
        app = await self.session.get(AppInfo, app_id)
        if app is None:
            raise AppNotFound(f"App not found with ID: {app_id}")
        return app

    # apps

    async def list_apps(self) -> Result[list[AppInfoModel]]:
        async def load() -> list[AppInfoModel]:
            result = await self.session.execute(select(AppInfo).order_by(AppInfo.app_name))
            return [AppInfoModel.model_validate(app) for app in result.scalars().all()]

        return await self._read("list_apps", load)

    async def get_app(self, app_id: int) -> Result[AppInfoModel | None]:
        _check_id(app_id, "app_id")

        async def load() -> AppInfoModel | None:
            app = await self.session.get(AppInfo, app_id)
            return AppInfoModel.model_validate(app) if app else None

        return await self._read("get_app", load)

    async def get_app_by_package(self, package_name: str) -> Result[AppInfoModel | None]:
        if not package_name or not package_name.strip():
            raise ValueError("package_name must not be empty")

        async def load() -> AppInfoModel | None:
            stmt = select(AppInfo).where(AppInfo.package_name == package_name)
            result = await self.session.execute(stmt)
            app = result.scalar_one_or_none()
            return AppInfoModel.model_validate(app) if app else None

        return await self._read("get_app_by_package", load)

    async def save_app(
        self, *, app_name: str, package_name: str, enabled: bool = True
    ) -> AppInfoModel:
        app = AppInfo(app_name=app_name, package_name=package_name, enabled=enabled)
        try:
            self.session.add(app)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to save app: {app_name}") from exc
        logger.info("app_saved", app_id=app.id, package_name=package_name)
        return AppInfoModel.model_validate(app)

    async def set_app_enabled(self, app_id: int, enabled: bool) -> None:
        _check_id(app_id, "app_id")
        try:
            app = await self._app_row(app_id)
            app.enabled = enabled
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to update app enabled status") from exc

    async def delete_app(self, app_id: int) -> None:
        _check_id(app_id, "app_id")
        try:
            app = await self._app_row(app_id)
            await self.session.delete(app)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to delete app: {app_id}") from exc
        logger.info("app_deleted", app_id=app_id)

    # rules

    async def get_rule(self, rule_id: int) -> Result[Rule | None]:
        _check_id(rule_id, "rule_id")

        async def load() -> Rule | None:
            row = await self.session.get(AppRule, rule_id)
            return rule_from_row(row) if row else None

        return await self._read("get_rule", load)

    async def load_rules(self, app_id: int) -> Result[LoadedRules]:
        """Rules of one app in insertion order, plus the count of unreadable rows."""

        _check_id(app_id, "app_id")

        async def load() -> LoadedRules:
            stmt = select(AppRule).where(AppRule.app_info_id == app_id).order_by(AppRule.id)
            result = await self.session.execute(stmt)
            return _rules_from_rows(result.scalars().all())

        return await self._read("load_rules", load)

    async def rules_for(self, app_id: int) -> Result[list[Rule]]:
        loaded = await self.load_rules(app_id)
        if isinstance(loaded, Failure):
            return loaded
        return Success(loaded.value.rules)

    async def enabled_rules(self) -> Result[list[Rule]]:
        async def load() -> list[Rule]:
            stmt = (
                select(AppRule)
                .join(AppInfo, AppRule.app_info_id == AppInfo.id)
                .where(AppInfo.enabled.is_(True))
                .order_by(AppRule.app_info_id, AppRule.id)
            )
            result = await self.session.execute(stmt)
            return _rules_from_rows(result.scalars().all()).rules

        return await self._read("enabled_rules", load)

    async def save_rule(self, rule: Rule) -> int:
        try:
            await self._app_row(rule.app_id)
            row = _fill_row(AppRule(), rule)
            self.session.add(row)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to save rule") from exc
        logger.info("rule_saved", rule_id=row.id, app_id=rule.app_id, day=row.day)
        return row.id

    async def save_rules(self, rules: Sequence[Rule]) -> list[int]:
        if not rules:
            raise RuleValidationError("Cannot save empty rule list")
        return [await self.save_rule(rule) for rule in rules]

    async def update_rule(self, rule: Rule) -> None:
        _check_id(rule.id, "rule.id")
        try:
            row = await self.session.get(AppRule, rule.id)
            if row is None:
                raise RuleNotFound(f"Rule not found with ID: {rule.id}")
            _fill_row(row, rule)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to update rule") from exc

    async def delete_rule(self, rule_id: int) -> None:
        _check_id(rule_id, "rule_id")
        try:
            row = await self.session.get(AppRule, rule_id)
            if row is None:
                raise RuleNotFound(f"Rule not found with ID: {rule_id}")
            await self.session.delete(row)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to delete rule") from exc

    async def delete_rules_for_app(self, app_id: int) -> int:
        _check_id(app_id, "app_id")
        try:
            result = await self.session.execute(
                delete(AppRule).where(AppRule.app_info_id == app_id)
            )
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to delete rules") from exc
        return result.rowcount or 0


__all__ = ["LoadedRules", "RuleRepository", "rule_from_row"]
