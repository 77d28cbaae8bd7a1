from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

from .records import parse_datetime_like, to_number


def _whole_seconds(secs: Any) -> int:
    return int(math.floor(to_number(secs) + 0.5))


def format_duration(secs: Any) -> str:
    """Compact duration such as ``2h 5m``; sub-minute reading shows as ``1m``."""
    total = _whole_seconds(secs)
    if total <= 0:
        return "0m"
    hours, minutes = total // 3600, (total % 3600) // 60
    if hours == 0:
        return f"{minutes or 1}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def format_duration_long(secs: Any) -> str:
    total = _whole_seconds(secs)
    if total <= 0:
        return "No reading yet"
    hours, minutes = total // 3600, (total % 3600) // 60
    if not hours and not minutes:
        return "Less than a minute"
    if not hours:
        return f"{minutes} minutes"
    if not minutes:
        return f"{hours} hours"
    return f"{hours} hours {minutes} minutes"


def short_duration(secs: Any) -> str:
    total = _whole_seconds(secs)
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}"


def format_date_label(value: date | str | None) -> str:
    """``Mar 5, 2024`` for a day; unparseable input is returned as-is."""
    if not value:
        return ""
    parsed = parse_datetime_like(value)
    if parsed is None:
        return str(value)
    return f"{parsed:%b} {parsed.day}, {parsed:%Y}"


def format_month_label(year_month: str) -> str:
    try:
        parsed = datetime.strptime(year_month[:7], "%Y-%m")
    except (TypeError, ValueError):
        return ""
    return f"{parsed:%b}"


def format_timestamp(value: datetime | str | None) -> str:
    """``Mar 5, 2024, 09:30 PM`` style label for annotation and session times."""
    parsed = parse_datetime_like(value)
    if parsed is None:
        return str(value or "")
    return f"{parsed:%b} {parsed.day}, {parsed:%Y}, {parsed:%I:%M %p}"


__all__ = [
    "format_duration",
    "format_duration_long",
    "short_duration",
    "format_date_label",
    "format_month_label",
    "format_timestamp",
]
