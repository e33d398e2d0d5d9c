"""Foreground usage recorded as sessions, queried per rule window."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, time, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from appguard.db.models.core import UsageSession
from appguard.domain.models import UsageFigures
from appguard.engine.evaluator import UsageSource
from appguard.utils.datetime import local_now


def window_bounds(now: datetime, start: time, end: time) -> tuple[datetime, datetime]:
    """Anchor a time-of-day window on the calendar around ``now``.

    A window that wraps past midnight started yesterday when ``now`` is in
    its after-midnight part, otherwise it ends tomorrow.
    """

    today = now.date()
    lower = datetime.combine(today, start)
    upper = datetime.combine(today, end)
    if end <= start:
        if now.time() < end:
            lower -= timedelta(days=1)
        else:
            upper += timedelta(days=1)
    return lower, upper


class SqlUsageSource:
    """:class:`UsageSource` backed by the ``usage_session`` table."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime] = local_now,
        timeout_seconds: float | None = None,
    ) -> None:
        self.session = session
        self.clock = clock
        self.timeout_seconds = timeout_seconds

    async def elapsed_and_count(
        self, package_name: str, window_start: time, window_end: time
    ) -> UsageFigures:
        query = self._query(package_name, window_start, window_end)
        if self.timeout_seconds is None:
            return await query
        return await asyncio.wait_for(query, timeout=self.timeout_seconds)

    async def _query(self, package_name: str, window_start: time, window_end: time) -> UsageFigures:
        now = self.clock()
        lower, upper = window_bounds(now, window_start, window_end)
        stmt = select(UsageSession).where(
            UsageSession.package_name == package_name,
            UsageSession.started_at < upper,
            or_(UsageSession.ended_at.is_(None), UsageSession.ended_at > lower),
        )
        result = await self.session.execute(stmt)

        seconds = 0.0
        launches = 0
        for item in result.scalars().all():
            begin = max(item.started_at, lower)
            finish = min(item.ended_at or now, upper)
            if finish > begin:
                seconds += (finish - begin).total_seconds()
            if item.started_at >= lower:
                launches += 1
        return UsageFigures(minutes=int(seconds // 60), count=launches)

    async def record_session(
        self, package_name: str, started_at: datetime, ended_at: datetime | None = None
    ) -> UsageSession:
        item = UsageSession(package_name=package_name, started_at=started_at, ended_at=ended_at)
        self.session.add(item)
        await self.session.flush()
        return item

    async def close_session(self, session_id: int, ended_at: datetime) -> None:
        item = await self.session.get(UsageSession, session_id)
        if item is not None and item.ended_at is None:
            item.ended_at = ended_at
            await self.session.flush()


__all__ = ["SqlUsageSource", "UsageSource", "window_bounds"]
