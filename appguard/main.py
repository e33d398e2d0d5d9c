"""Command line entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator, Sequence

from appguard.config import GuardSettings, get_settings
from appguard.db.session import Database
from appguard.domain.models import DAYS_PER_WEEK, CoverageGrid, DayOfWeek, RestrictionVerdict
from appguard.engine.patterns import DayPattern, expand_pattern
from appguard.logging import configure_logging, logger
from appguard.services.exceptions import ServiceError
from appguard.services.monitor import ForegroundMonitor, describe_verdict
from appguard.services.repository import RuleRepository
from appguard.services.restrictions import RestrictionService
from appguard.services.results import Failure
from appguard.services.usage import SqlUsageSource
from appguard.utils.datetime import parse_hhmm


def render_grid(grid: CoverageGrid) -> str:
    lines = ["    " + "".join(f"{hour:<3}" for hour in range(0, 24, 3))]
    for day in range(DAYS_PER_WEEK):
        label = DayOfWeek(day + 1).name[:3].title()
        cells = "".join("#" if covered else "." for covered in grid.rows[day])
        lines.append(f"{label} {cells}")
    return "\n".join(lines)


async def _stdin_packages() -> AsyncIterator[str]:
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        yield line


async def _print_block(verdict: RestrictionVerdict) -> None:
    print(describe_verdict(verdict), flush=True)


async def cmd_grid(database: Database, args: argparse.Namespace) -> int:
    async with database.session() as session:
        repository = RuleRepository(session)
        lookup = await repository.get_app_by_package(args.package)
        if isinstance(lookup, Failure) or lookup.value is None:
            print(f"unknown app: {args.package}", file=sys.stderr)
            return 1
        service = RestrictionService(repository, SqlUsageSource(session))
        coverage = await service.coverage_for(lookup.value.id)
    if isinstance(coverage, Failure):
        print(coverage.message, file=sys.stderr)
        return 1
    print(render_grid(coverage.value.grid))
    if coverage.value.invalid_rule_count:
        print(f"{coverage.value.invalid_rule_count} invalid rule(s) skipped")
    return 0


async def cmd_check(database: Database, settings: GuardSettings, args: argparse.Namespace) -> int:
    timeout = settings.monitor.evaluation_timeout_seconds
    async with database.session() as session:
        service = RestrictionService(
            RuleRepository(session),
            SqlUsageSource(session, timeout_seconds=timeout),
            timeout_seconds=timeout,
        )
        verdict = await service.check(args.package)
    print(describe_verdict(verdict))
    print(verdict.model_dump_json())
    return 0


async def cmd_add_rule(database: Database, args: argparse.Namespace) -> int:
    async with database.session() as session:
        repository = RuleRepository(session)
        lookup = await repository.get_app_by_package(args.package)
        if isinstance(lookup, Failure):
            print(lookup.message, file=sys.stderr)
            return 1
        app = lookup.value or await repository.save_app(
            app_name=args.name or args.package, package_name=args.package
        )
        try:
            rules = expand_pattern(
                DayPattern(args.pattern),
                app_id=app.id,
                range_start=parse_hhmm(args.start),
                range_end=parse_hhmm(args.end),
                time_limit_minutes=args.minutes,
                count_limit=args.count,
                selected_days=[DayOfWeek(day) for day in args.days],
            )
            rule_ids = await repository.save_rules(rules)
        except (ServiceError, ValueError) as exc:
            print(f"cannot save rules: {exc}", file=sys.stderr)
            return 1
    print(f"saved {len(rule_ids)} rule(s) for {args.package}")
    return 0


async def cmd_watch(database: Database, settings: GuardSettings) -> int:
    monitor = ForegroundMonitor(database, _print_block, settings)
    await monitor.run(_stdin_packages())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="appguard", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    grid = commands.add_parser("grid", help="print the weekly rule coverage of an app")
    grid.add_argument("package")

    check = commands.add_parser("check", help="evaluate an app's restriction right now")
    check.add_argument("package")

    add_rule = commands.add_parser("add-rule", help="add rules for an app from a day pattern")
    add_rule.add_argument("package")
    add_rule.add_argument("--name", help="display name when the app is new")
    add_rule.add_argument(
        "--pattern", choices=[pattern.value for pattern in DayPattern], default="custom"
    )
    add_rule.add_argument("--days", type=int, nargs="*", default=[], choices=range(1, 8))
    add_rule.add_argument("--start", required=True, help="HH:MM")
    add_rule.add_argument("--end", required=True, help="HH:MM")
    add_rule.add_argument("--minutes", type=int, default=0, help="time limit, 0 = none")
    add_rule.add_argument("--count", type=int, default=0, help="open limit, 0 = none")

    commands.add_parser("watch", help="read foreground package names from stdin")
    return parser


async def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    database = Database(settings=settings)
    await database.create_all()
    logger.info("appguard_starting", command=args.command, environment=settings.environment)
    try:
        if args.command == "grid":
            return await cmd_grid(database, args)
        if args.command == "check":
            return await cmd_check(database, settings, args)
        if args.command == "add-rule":
            return await cmd_add_rule(database, args)
        return await cmd_watch(database, settings)
    finally:
        await database.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
