"""Time-series analytics over daily reading totals.

Every function here is a pure transform over a dashboard snapshot: the
pre-aggregated ``series``/``kpis``/``top_books`` sections served by the
dashboard API and the catalog used to resolve covers.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any

from .config import Preferences
from .covers import build_library_cover_resolver
from .formatting import format_duration
from .indexes import FirstWinsIndex
from .models import (
    Insights,
    MonthlyBucket,
    PaceWord,
    StatsOverview,
    Streaks,
    TopBooksKind,
    TrendPrecedence,
    WeekdayBucket,
)
from .records import as_int, get_field, number_field, parse_day, text_field, to_list, to_number

logger = logging.getLogger(__name__)

TREND_DAY_CHOICES = (30, 90, 180, 365)
DEFAULT_TREND_DAYS = 90
CURRENT_STREAK_LIMIT = 500
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_DAILY_KEYS_WIDEST_FIRST = ("daily_365d", "daily_180d", "daily_90d")


def empty_dashboard() -> dict[str, Any]:
    """Shape served when the dashboard endpoint is unavailable."""
    return {
        "summary": {
            "total_books": 0,
            "reading_books": 0,
            "finished_books": 0,
            "total_read_time_sec": 0,
            "total_read_pages": 0,
            "total_highlights": 0,
            "total_notes": 0,
            "active_days_90d": 0,
            "best_streak_days": 0,
            "current_streak_days": 0,
            "last_read_date": "",
        },
        "kpis": {
            "last_7_days_time_sec": 0,
            "last_30_days_time_sec": 0,
            "avg_daily_time_30d_sec": 0,
            "longest_day_sec": 0,
            "books_touched_30d": 0,
            "books_touched_90d": 0,
            "books_touched_180d": 0,
            "books_touched_365d": 0,
        },
        "series": {
            "daily_90d": [],
            "daily_180d": [],
            "daily_365d": [],
            "monthly_12m": [],
            "weekday_avg": [],
            "hourly_activity": [],
            "hourly_activity_30d": [],
            "hourly_activity_90d": [],
            "hourly_activity_180d": [],
            "hourly_activity_365d": [],
        },
        "calendar": {"days": [], "legend": {"max_daily_sec_90d": 0}},
        "top_books": {
            "by_time": [],
            "by_pages": [],
            **{f"by_{kind}_{days}d": [] for kind in ("time", "pages") for days in (30, 90, 180, 365)},
        },
    }


def normalize_trend_days(days: Any) -> int:
    try:
        value = int(days)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_TREND_DAYS
    return value if value in TREND_DAY_CHOICES else DEFAULT_TREND_DAYS


def _range_suffix(days: Any) -> str:
    value = normalize_trend_days(days)
    return f"{value}d"


def _section(source: Any, key: str) -> Mapping[str, Any]:
    value = get_field(source, key, {})
    return value if isinstance(value, Mapping) else {}


def get_trend_series_by_days(
    series: Mapping[str, Any] | None,
    days: int = DEFAULT_TREND_DAYS,
    precedence: TrendPrecedence = "widest",
) -> list[Mapping[str, Any]]:
    """Merge the overlapping daily arrays and keep the trailing ``days`` entries.

    With ``precedence="widest"`` the 365-day array is read first, so its row
    wins whenever two arrays report the same date; ``"narrowest"`` flips that.
    """
    keys = _DAILY_KEYS_WIDEST_FIRST if precedence != "narrowest" else _DAILY_KEYS_WIDEST_FIRST[::-1]
    merged: FirstWinsIndex[Mapping[str, Any]] = FirstWinsIndex()
    for key in keys:
        for row in to_list(get_field(series, key, [])):
            if isinstance(row, Mapping):
                merged.add(text_field(row, "date"), row)
    rows = sorted(merged.values(), key=lambda row: text_field(row, "date"))
    if not rows:
        return []
    try:
        take = max(1, int(days or DEFAULT_TREND_DAYS))
    except (TypeError, ValueError, OverflowError):
        take = DEFAULT_TREND_DAYS
    return rows[-take:]


def get_streaks_from_daily_series(daily: Any, today: date | None = None) -> Streaks:
    """Best run of consecutive reading days, and the run ending today or yesterday."""
    active: list[date] = []
    for row in sorted(
        (row for row in to_list(daily) if isinstance(row, Mapping) and text_field(row, "date")),
        key=lambda row: text_field(row, "date"),
    ):
        if number_field(row, "duration_sec") <= 0:
            continue
        day = parse_day(row.get("date"))
        if day is None:
            logger.debug("Skipping unparseable date %r in streak scan", row.get("date"))
            continue
        active.append(day)

    best = 0
    run = 0
    previous: date | None = None
    for day in active:
        if previous is None:
            run = 1
        else:
            run = run + 1 if (day - previous).days == 1 else 1
        previous = day
        best = max(best, run)

    active_set = set(active)
    expected = today or date.today()
    if expected not in active_set:
        expected -= timedelta(days=1)
    current = 0
    for _ in range(CURRENT_STREAK_LIMIT):
        if expected not in active_set:
            break
        current += 1
        expected -= timedelta(days=1)
    return Streaks(best=best, current=current)


def build_monthly_series_from_daily(daily: Any) -> list[MonthlyBucket]:
    buckets: dict[str, MonthlyBucket] = {}
    for row in to_list(daily):
        day = parse_day(get_field(row, "date"))
        if day is None:
            continue
        month = day.isoformat()[:7]
        bucket = buckets.setdefault(month, MonthlyBucket(month=month))
        duration = number_field(row, "duration_sec")
        bucket.duration_sec = as_int(bucket.duration_sec + duration)
        if duration > 0:
            bucket.days_read += 1
    return [buckets[month] for month in sorted(buckets)]


def build_weekday_series_from_daily(daily: Any) -> list[WeekdayBucket]:
    """Average reading time per weekday, Monday first.

    Each weekday averages over the daily rows that fall on it; a weekday
    with no rows reports 0.
    """
    totals = [0.0] * 7
    counts = [0] * 7
    for row in to_list(daily):
        day = parse_day(get_field(row, "date"))
        if day is None:
            continue
        slot = day.weekday()
        totals[slot] += number_field(row, "duration_sec")
        counts[slot] += 1
    return [
        WeekdayBucket(
            weekday=label,
            duration_sec=int(math.floor(totals[slot] / counts[slot])) if counts[slot] else 0,
        )
        for slot, label in enumerate(WEEKDAY_LABELS)
    ]


def get_hourly_series_by_days(series: Mapping[str, Any] | None, days: int = DEFAULT_TREND_DAYS) -> list[Any]:
    ranged = to_list(get_field(series, f"hourly_activity_{_range_suffix(days)}", []))
    if ranged:
        return ranged
    return to_list(get_field(series, "hourly_activity", []))


def get_books_touched_by_days(kpis: Mapping[str, Any] | None, days: int = DEFAULT_TREND_DAYS) -> int:
    suffix = _range_suffix(days)
    for key in (f"books_touched_{suffix}", "books_touched"):
        value = number_field(kpis, key)
        if value:
            return int(value)
    if suffix == "90d":
        return int(number_field(kpis, "books_touched_30d"))
    return 0


def get_top_books_by_days(
    top_books: Mapping[str, Any] | None,
    kind: TopBooksKind = "time",
    days: int = DEFAULT_TREND_DAYS,
) -> list[Any]:
    base = "by_pages" if kind == "pages" else "by_time"
    ranged = get_field(top_books, f"{base}_{_range_suffix(days)}", [])
    if isinstance(ranged, list) and ranged:
        return list(ranged)
    legacy = get_field(top_books, base, [])
    return list(legacy) if isinstance(legacy, list) else []


def _metric(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def _sum_durations(rows: list[Any]) -> float:
    return sum(number_field(row, "duration_sec") for row in rows)


def pace_word(trend_series: list[Any]) -> PaceWord:
    """Compare the two halves of the window: >15% growth is up, >15% drop is down."""
    half = len(trend_series) // 2
    first = _sum_durations(trend_series[:half])
    second = _sum_durations(trend_series[half:])
    if first > 0 and second > first * 1.15:
        return "up"
    if first > 0 and second < first * 0.85:
        return "down"
    return "steady"


def build_insights(
    dashboard: Mapping[str, Any] | None,
    trend_days: int,
    trend_series: list[Any],
    weekday_series: list[Any] | None = None,
    hourly_series: list[Any] | None = None,
) -> Insights:
    summary = _section(dashboard, "summary")
    kpis = _section(dashboard, "kpis")
    series = _section(dashboard, "series")
    weekdays = list(weekday_series or []) or to_list(series.get("weekday_avg"))
    hours = list(hourly_series or []) or to_list(series.get("hourly_activity"))
    top_weekday = max(weekdays, key=lambda w: to_number(_metric(w, "duration_sec")), default=None)
    top_hour = max(hours, key=lambda h: to_number(_metric(h, "duration_sec")), default=None)
    total = _sum_durations(trend_series)
    word = pace_word(trend_series)
    current_streak = int(number_field(summary, "current_streak_days"))

    titles = {
        "up": "Momentum is building",
        "down": "A slower reading week",
        "steady": "Your reading pace is steady",
    }
    sentences = [f"You logged {format_duration(total)} in the selected {trend_days}-day range."]
    if top_weekday is not None:
        sentences.append(f"{_metric(top_weekday, 'weekday')} is your strongest reading day.")
    else:
        sentences.append("No weekday pattern yet.")
    if top_hour is not None and to_number(_metric(top_hour, "duration_sec")) > 0:
        hour = int(to_number(_metric(top_hour, "hour")))
        sentences.append(f"Most reading happens around {hour:02d}:00.")
    else:
        sentences.append("Read a few sessions to unlock hourly patterns.")
    if current_streak > 0:
        sentences.append(f"Current streak: {current_streak} days.")
    else:
        sentences.append("No current streak yet.")

    return Insights(
        title=titles[word],
        body=" ".join(sentences),
        chips=[
            f"7d: {format_duration(number_field(kpis, 'last_7_days_time_sec'))}",
            f"30d avg: {format_duration(number_field(kpis, 'avg_daily_time_30d_sec'))}",
            f"Best streak: {int(number_field(summary, 'best_streak_days'))}d",
        ],
    )


def has_daily_data(dashboard: Mapping[str, Any] | None) -> bool:
    series = _section(dashboard, "series")
    return any(to_list(series.get(key)) for key in _DAILY_KEYS_WIDEST_FIRST)


def build_stats_overview(
    dashboard: Mapping[str, Any] | None,
    books: Any = (),
    prefs: Preferences | None = None,
    today: date | None = None,
) -> StatsOverview | None:
    """Assemble the stats page data; ``None`` means there is no reading data yet."""
    if not has_daily_data(dashboard):
        return None
    prefs = prefs or Preferences()
    series = _section(dashboard, "series")
    kpis = _section(dashboard, "kpis")
    top_books = _section(dashboard, "top_books")
    resolver = build_library_cover_resolver(books, cover_version=prefs.cover_version)

    trend_days = normalize_trend_days(prefs.stats_trend_days)
    trend = get_trend_series_by_days(series, trend_days, prefs.trend_precedence)
    weekday = build_weekday_series_from_daily(trend)
    hourly = get_hourly_series_by_days(series, trend_days)
    durations = [number_field(row, "duration_sec") for row in trend]

    return StatsOverview(
        trend_days=trend_days,
        trend_series=trend,
        streaks=get_streaks_from_daily_series(trend, today=today),
        active_days=sum(1 for value in durations if value > 0),
        longest_day_sec=as_int(max([0.0, *durations])),
        total_time_sec=as_int(sum(durations)),
        monthly=build_monthly_series_from_daily(trend),
        weekday=weekday,
        hourly=hourly,
        insights=build_insights(dashboard, trend_days, trend, weekday, hourly),
        books_touched=get_books_touched_by_days(kpis, trend_days),
        top_by_time=[resolver(item) for item in get_top_books_by_days(top_books, "time", trend_days)],
        top_by_pages=[resolver(item) for item in get_top_books_by_days(top_books, "pages", trend_days)],
    )


__all__ = [
    "TREND_DAY_CHOICES",
    "WEEKDAY_LABELS",
    "empty_dashboard",
    "normalize_trend_days",
    "get_trend_series_by_days",
    "get_streaks_from_daily_series",
    "build_monthly_series_from_daily",
    "build_weekday_series_from_daily",
    "get_hourly_series_by_days",
    "get_books_touched_by_days",
    "get_top_books_by_days",
    "pace_word",
    "build_insights",
    "has_daily_data",
    "build_stats_overview",
]
