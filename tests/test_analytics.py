from __future__ import annotations

from datetime import date, timedelta

import pytest

from reading_insights.analytics import (
    build_insights,
    build_monthly_series_from_daily,
    build_stats_overview,
    build_weekday_series_from_daily,
    empty_dashboard,
    get_books_touched_by_days,
    get_hourly_series_by_days,
    get_streaks_from_daily_series,
    get_top_books_by_days,
    get_trend_series_by_days,
    normalize_trend_days,
    pace_word,
)
from reading_insights.config import Preferences


def _overlapping_series() -> dict:
    return {
        "daily_90d": [{"date": "2024-03-01", "duration_sec": 500}, {"date": "2024-03-02", "duration_sec": 60}],
        "daily_180d": [{"date": "2024-02-29", "duration_sec": 30}],
        "daily_365d": [{"date": "2024-03-01", "duration_sec": 0}, {"date": "2024-02-01", "duration_sec": 10}],
    }


def test_trend_series_widest_range_wins_duplicate_dates() -> None:
    trend = get_trend_series_by_days(_overlapping_series(), 365)
    assert [row["date"] for row in trend] == ["2024-02-01", "2024-02-29", "2024-03-01", "2024-03-02"]
    assert [row["duration_sec"] for row in trend if row["date"] == "2024-03-01"] == [0]


def test_trend_series_narrowest_precedence_prefers_short_range() -> None:
    trend = get_trend_series_by_days(_overlapping_series(), 365, precedence="narrowest")
    assert [row["duration_sec"] for row in trend if row["date"] == "2024-03-01"] == [500]


def test_trend_series_keeps_trailing_entries() -> None:
    trend = get_trend_series_by_days(_overlapping_series(), 2)
    assert [row["date"] for row in trend] == ["2024-03-01", "2024-03-02"]
    assert get_trend_series_by_days({}, 30) == []


def test_streaks_example() -> None:
    daily = [
        {"date": "2024-01-05", "duration_sec": 60},
        {"date": "2024-01-01", "duration_sec": 60},
        {"date": "2024-01-02", "duration_sec": 60},
        {"date": "2024-01-03", "duration_sec": 60},
        {"date": "2024-01-04", "duration_sec": 0},
    ]
    streaks = get_streaks_from_daily_series(daily, today=date(2024, 1, 5))
    assert streaks.best == 3
    assert streaks.current == 1


def test_current_streak_starts_yesterday_when_today_is_idle() -> None:
    daily = [{"date": "2024-01-03", "duration_sec": 5}, {"date": "2024-01-04", "duration_sec": 5}]
    assert get_streaks_from_daily_series(daily, today=date(2024, 1, 5)).current == 2
    assert get_streaks_from_daily_series(daily, today=date(2024, 1, 7)).current == 0


def test_streaks_skip_unparseable_dates() -> None:
    daily = [{"date": "not-a-date", "duration_sec": 5}, {"date": "2024-01-01", "duration_sec": 5}]
    assert get_streaks_from_daily_series(daily, today=date(2024, 1, 1)).best == 1


def test_monthly_rollup() -> None:
    daily = [
        {"date": "2024-01-30", "duration_sec": 100},
        {"date": "2024-01-31", "duration_sec": 0},
        {"date": "2024-02-01", "duration_sec": 50},
        {"date": "garbage", "duration_sec": 999},
    ]
    months = build_monthly_series_from_daily(daily)
    assert [(m.month, m.duration_sec, m.days_read) for m in months] == [("2024-01", 100, 1), ("2024-02", 50, 1)]


def test_weekday_rollup_averages_rows_per_weekday() -> None:
    # 2024-01-01 is a Monday
    daily = [
        {"date": "2024-01-01", "duration_sec": 600},
        {"date": "2024-01-08", "duration_sec": 0},
        {"date": "2024-01-15", "duration_sec": 900},
        {"date": "2024-01-02", "duration_sec": 301},
    ]
    weekdays = build_weekday_series_from_daily(daily)
    assert [w.weekday for w in weekdays] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert weekdays[0].duration_sec == 500
    assert weekdays[1].duration_sec == 301


def test_weekday_without_rows_is_zero() -> None:
    weekdays = build_weekday_series_from_daily([{"date": "2024-01-01", "duration_sec": 10}])
    assert all(w.duration_sec == 0 for w in weekdays[1:])
    assert build_weekday_series_from_daily([])[0].duration_sec == 0


def test_range_selectors_fall_back_to_legacy_keys() -> None:
    series = {"hourly_activity_30d": [{"hour": 8}], "hourly_activity": [{"hour": 21}]}
    assert get_hourly_series_by_days(series, 30) == [{"hour": 8}]
    assert get_hourly_series_by_days(series, 365) == [{"hour": 21}]

    kpis = {"books_touched_30d": 4, "books_touched_365d": 12}
    assert get_books_touched_by_days(kpis, 365) == 12
    assert get_books_touched_by_days(kpis, 90) == 4
    assert get_books_touched_by_days({}, 180) == 0

    top = {"by_time": [{"title": "legacy"}], "by_pages_30d": [{"title": "recent"}]}
    assert get_top_books_by_days(top, "time", 30) == [{"title": "legacy"}]
    assert get_top_books_by_days(top, "pages", 30) == [{"title": "recent"}]
    assert get_top_books_by_days(None, "pages") == []


def test_pace_word() -> None:
    assert pace_word([{"duration_sec": 100}, {"duration_sec": 200}]) == "up"
    assert pace_word([{"duration_sec": 100}, {"duration_sec": 50}]) == "down"
    assert pace_word([{"duration_sec": 100}, {"duration_sec": 110}]) == "steady"
    assert pace_word([]) == "steady"


def test_insights_mention_strongest_weekday_and_peak_hour() -> None:
    dashboard = {
        "summary": {"current_streak_days": 4, "best_streak_days": 9},
        "kpis": {"last_7_days_time_sec": 3600, "avg_daily_time_30d_sec": 600},
    }
    trend = [{"date": "2024-01-01", "duration_sec": 1800}]
    weekdays = build_weekday_series_from_daily(trend)
    insights = build_insights(dashboard, 30, trend, weekdays, [{"hour": 7, "duration_sec": 1800}])
    assert insights.title == "Your reading pace is steady"
    assert "Mon is your strongest reading day." in insights.body
    assert "around 07:00" in insights.body
    assert "Current streak: 4 days." in insights.body
    assert insights.chips == ["7d: 1h", "30d avg: 10m", "Best streak: 9d"]


def test_stats_overview_reports_no_data_explicitly() -> None:
    assert build_stats_overview(empty_dashboard()) is None
    assert build_stats_overview(None) is None


def test_stats_overview_uses_preferences_and_resolves_covers() -> None:
    dashboard = empty_dashboard()
    dashboard["series"]["daily_90d"] = [
        {"date": "2024-01-01", "duration_sec": 120},
        {"date": "2024-01-02", "duration_sec": 0},
        {"date": "2024-01-03", "duration_sec": 300},
    ]
    dashboard["kpis"]["books_touched_30d"] = 2
    dashboard["top_books"]["by_time_30d"] = [{"title": "Dune", "authors": "Frank Herbert", "total_read_time_sec": 420}]
    books = [{"id": "b1", "title": "Dune", "authors": "Frank Herbert"}]

    overview = build_stats_overview(dashboard, books, Preferences(stats_trend_days=30), today=date(2024, 1, 3))
    assert overview is not None
    assert overview.trend_days == 30
    assert overview.total_time_sec == 420
    assert overview.active_days == 2
    assert overview.longest_day_sec == 300
    assert overview.streaks.best == 1
    assert overview.streaks.current == 1
    assert overview.books_touched == 2
    assert overview.top_by_time[0]["cover_ref"] == "b1"
    assert overview.top_by_pages == []


@pytest.mark.parametrize("days", [float("inf"), float("nan"), "abc", None])
def test_unusable_trend_days_fall_back_to_default(days) -> None:
    assert normalize_trend_days(days) == 90
    series = {"daily_90d": [{"date": "2024-03-01", "duration_sec": 60}, {"date": "2024-03-02", "duration_sec": 30}]}
    assert len(get_trend_series_by_days(series, days)) == 2


def test_current_streak_walk_is_capped() -> None:
    today = date(2024, 6, 1)
    daily = [{"date": (today - timedelta(days=offset)).isoformat(), "duration_sec": 60} for offset in range(600)]
    streaks = get_streaks_from_daily_series(daily, today=today)
    assert streaks.best == 600
    assert streaks.current == 500
