"""Human readable usage durations."""

from __future__ import annotations


def format_usage_time(millis: int) -> str:
    """Format a duration as ``30s``, ``45m``, ``2h`` or ``2h 45m``.

    Zero or negative durations render as ``0m``.
    """

    if millis <= 0:
        return "0m"
    total_seconds = millis // 1000
    if total_seconds < 60:
        return f"{total_seconds}s"
    if total_seconds < 3600:
        return f"{total_seconds // 60}m"
    hours, remainder = divmod(total_seconds, 3600)
    minutes = remainder // 60
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


__all__ = ["format_usage_time"]
