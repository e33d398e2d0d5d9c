"""Wall-clock helpers for minute-precision time-of-day values."""

from __future__ import annotations

from datetime import datetime, time

HHMM_FORMAT = "%H:%M"


def local_now() -> datetime:
    """Return naive local device time; rules are evaluated against it."""

    return datetime.now()


def truncate_to_minute(value: time) -> time:
    return value.replace(second=0, microsecond=0)


def parse_hhmm(value: str) -> time:
    """Parse a stored ``HH:MM`` string; raises ``ValueError`` when malformed."""

    return datetime.strptime(value.strip(), HHMM_FORMAT).time()


def format_hhmm(value: time) -> str:
    return value.strftime(HHMM_FORMAT)


__all__ = ["HHMM_FORMAT", "format_hhmm", "local_now", "parse_hhmm", "truncate_to_minute"]
