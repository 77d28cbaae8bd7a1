from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from .covers import build_library_cover_resolver
from .indexes import FirstWinsIndex
from .models import (
    BookHeatmap,
    CalendarCell,
    CalendarDayDetail,
    CalendarMonth,
    DailyAggregateRow,
    HeatmapDay,
    HeatmapRow,
    RawSessionRow,
)
from .records import (
    annotation_timestamp,
    as_int,
    get_field,
    is_finite_number,
    number_field,
    parse_datetime_like,
    parse_day,
    text_field,
    timestamp_to_datetime,
    to_list,
)

logger = logging.getLogger(__name__)

BOOK_HEATMAP_DAYS = 84
BOOK_HEATMAP_WEEKS = 13


def shift_month(year: int, month: int, offset: int = 0) -> tuple[int, int]:
    """Normalise ``(year, month + offset)`` so months roll over year boundaries."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _calendar_days(dashboard: Mapping[str, Any] | None) -> FirstWinsIndex[Mapping[str, Any]]:
    section = get_field(dashboard, "calendar", {})
    days: FirstWinsIndex[Mapping[str, Any]] = FirstWinsIndex()
    for row in to_list(get_field(section, "days", [])):
        if not isinstance(row, Mapping):
            continue
        day = parse_day(row.get("date"))
        if day is None:
            continue
        days.add(day.isoformat(), row)
    return days


def build_calendar_month(
    dashboard: Mapping[str, Any] | None,
    year: int,
    month: int,
    books: Any = (),
    *,
    today: date | None = None,
    selected: str | None = None,
    cover_version: int = 0,
) -> CalendarMonth:
    """Library-wide calendar heatmap for one month, padded to whole Monday-first weeks."""
    year, month = shift_month(year, month)
    today = today or date.today()
    resolver = build_library_cover_resolver(books, cover_version=cover_version)
    days = _calendar_days(dashboard)

    legend = get_field(get_field(dashboard, "calendar", {}), "legend", {})
    max_daily = number_field(legend, "max_daily_sec_90d")
    if max_daily <= 0:
        max_daily = 1.0

    month_start = date(year, month, 1)
    month_end = date(year, month, calendar.monthrange(year, month)[1])
    grid_start = month_start - timedelta(days=month_start.weekday())
    grid_end = month_end + timedelta(days=6 - month_end.weekday())
    today_key = today.isoformat()

    if selected is None:
        today_row = days.get(today_key)
        selected = today_key if today_row is not None and number_field(today_row, "duration_sec") > 0 else None

    cells: list[CalendarCell] = []
    read_days = 0
    month_duration = 0.0
    current = grid_start
    while current <= grid_end:
        key = current.isoformat()
        row = days.get(key) or {}
        duration = number_field(row, "duration_sec")
        in_month = current.month == month
        if in_month and duration > 0:
            read_days += 1
            month_duration += duration
        cells.append(
            CalendarCell(
                date=key,
                day=current.day,
                duration_sec=as_int(duration),
                intensity=min(1.0, duration / max_daily),
                muted=not in_month,
                is_today=key == today_key,
                selected=key == selected,
                books_count=int(number_field(row, "books_count")),
                top_books=[resolver(book) for book in to_list(get_field(row, "top_books", []))],
            )
        )
        current += timedelta(days=1)

    return CalendarMonth(
        year=year,
        month=month,
        label=f"{calendar.month_name[month]} {year}",
        grid_start=grid_start,
        grid_end=grid_end,
        cells=cells,
        read_days=read_days,
        duration_sec=as_int(month_duration),
        max_daily_sec=as_int(max_daily),
        selected_date=selected,
    )


def build_calendar_day_detail(day: Mapping[str, Any] | CalendarCell) -> CalendarDayDetail:
    if isinstance(day, CalendarCell):
        top = list(day.top_books)
        return CalendarDayDetail(
            date=day.date,
            duration_sec=day.duration_sec,
            books_count=day.books_count or len(top),
            top_books=list(enumerate(top, start=1)),
        )
    top = to_list(get_field(day, "top_books", []))
    return CalendarDayDetail(
        date=text_field(day, "date"),
        duration_sec=as_int(number_field(day, "duration_sec")),
        books_count=int(number_field(day, "books_count")) or len(top),
        top_books=list(enumerate(top, start=1)),
    )


def _row_date(row: Mapping[str, Any]) -> str:
    day = parse_day(row.get("date"))
    if day is None:
        started = timestamp_to_datetime(row.get("start_time"))
        day = started.date() if started else None
    return day.isoformat() if day else ""


def coerce_heatmap_rows(rows: Any) -> list[HeatmapRow]:
    """Classify raw timeline rows as daily aggregates or raw sessions.

    A row carrying a numeric ``duration_sec`` is a daily aggregate; anything
    else is a raw session row. Rows without a usable date are dropped.
    """
    result: list[HeatmapRow] = []
    skipped = 0
    for row in to_list(rows):
        if isinstance(row, (DailyAggregateRow, RawSessionRow)):
            result.append(row)
            continue
        if not isinstance(row, Mapping):
            skipped += 1
            continue
        day = _row_date(row)
        if not day:
            skipped += 1
            continue
        if is_finite_number(row.get("duration_sec")):
            result.append(
                DailyAggregateRow(
                    date=day,
                    duration_sec=as_int(number_field(row, "duration_sec")),
                    sessions=int(number_field(row, "sessions")),
                    pages=int(number_field(row, "pages")),
                )
            )
        else:
            page = number_field(row, "page")
            result.append(
                RawSessionRow(
                    date=day,
                    duration=as_int(number_field(row, "duration")),
                    page=int(page) if page > 0 else None,
                )
            )
    if skipped:
        logger.debug("Skipped %d heatmap rows without a usable date", skipped)
    return result


@dataclass(slots=True)
class _DaySlot:
    duration: float = 0
    sessions: int = 0
    distinct_pages: set[int] = field(default_factory=set)
    pages_count: int = 0
    annotations: int = 0

    @property
    def pages(self) -> int:
        return len(self.distinct_pages) or self.pages_count


def build_book_daily_heatmap(
    rows: Iterable[HeatmapRow],
    annotations: Any = (),
    today: date | None = None,
) -> BookHeatmap:
    """Per-book activity over the trailing 84 days on a 13-week Monday-first grid."""
    slots: dict[str, _DaySlot] = {}
    for row in rows:
        day = parse_day(row.date)
        if day is None:
            continue
        slot = slots.setdefault(day.isoformat(), _DaySlot())
        if isinstance(row, DailyAggregateRow):
            slot.duration += row.duration_sec
            slot.sessions += row.sessions
            slot.pages_count += row.pages
        else:
            slot.duration += row.duration
            slot.sessions += 1
            if row.page is not None and row.page > 0:
                slot.distinct_pages.add(row.page)

    for annotation in to_list(annotations):
        moment = parse_datetime_like(annotation_timestamp(annotation))
        if moment is None:
            continue
        slots.setdefault(moment.date().isoformat(), _DaySlot()).annotations += 1

    today = today or date.today()
    start = today - timedelta(days=BOOK_HEATMAP_DAYS - 1)
    grid_start = start - timedelta(days=start.weekday())

    days: list[HeatmapDay] = []
    for i in range(BOOK_HEATMAP_WEEKS * 7):
        current = grid_start + timedelta(days=i)
        slot = slots.get(current.isoformat()) or _DaySlot()
        days.append(
            HeatmapDay(
                date=current.isoformat(),
                week=i // 7 + 1,
                weekday=current.weekday(),
                in_range=start <= current <= today,
                is_today=current == today,
                duration=as_int(slot.duration),
                sessions=slot.sessions,
                pages=slot.pages,
                annotations=slot.annotations,
            )
        )

    in_range = [day for day in days if day.in_range]
    max_duration = max([0, *(day.duration for day in in_range)])
    if max_duration > 0:
        for day in days:
            day.intensity = min(1.0, day.duration / max_duration)

    return BookHeatmap(
        start=start,
        end=today,
        days=days,
        max_duration=max_duration,
        active_days=sum(1 for day in in_range if day.active),
        total_duration=as_int(sum(day.duration for day in in_range)),
    )


def book_heatmap_from_records(rows: Any, annotations: Any = (), today: date | None = None) -> BookHeatmap:
    """Boundary helper: classify raw timeline rows, then build the heatmap."""
    return build_book_daily_heatmap(coerce_heatmap_rows(rows), annotations, today=today)


__all__ = [
    "BOOK_HEATMAP_DAYS",
    "shift_month",
    "build_calendar_month",
    "build_calendar_day_detail",
    "coerce_heatmap_rows",
    "build_book_daily_heatmap",
    "book_heatmap_from_records",
]
