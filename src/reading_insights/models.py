from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal


AnnotationKind = Literal["note", "highlight", "bookmark"]
StatusTag = Literal["finished", "reading", "queued"]
SortDirection = Literal["asc", "desc"]
BooksSortKey = Literal["last_open_ts", "percent", "title", "total_read_time", "highlights"]
BooksFilter = Literal["all", "reading", "finished", "highlighted"]
HighlightsType = Literal["all", "highlight", "note", "bookmark"]
HighlightsSort = Literal["recent", "count", "title"]
TrendPrecedence = Literal["widest", "narrowest"]
TopBooksKind = Literal["time", "pages"]
PaceWord = Literal["up", "down", "steady"]
MilestoneKind = Literal["open", "annotation", "last"]


@dataclass(slots=True)
class Streaks:
    best: int = 0
    current: int = 0


@dataclass(slots=True)
class MonthlyBucket:
    month: str
    duration_sec: float = 0
    days_read: int = 0


@dataclass(slots=True)
class WeekdayBucket:
    weekday: str
    duration_sec: int = 0


@dataclass(slots=True)
class Insights:
    title: str
    body: str
    chips: list[str] = field(default_factory=list)


@dataclass(slots=True)
class StatsOverview:
    trend_days: int
    trend_series: list[dict[str, Any]]
    streaks: Streaks
    active_days: int
    longest_day_sec: float
    total_time_sec: float
    monthly: list[MonthlyBucket]
    weekday: list[WeekdayBucket]
    hourly: list[dict[str, Any]]
    insights: Insights
    books_touched: int
    top_by_time: list[dict[str, Any]]
    top_by_pages: list[dict[str, Any]]


@dataclass(slots=True)
class CalendarCell:
    date: str
    day: int
    duration_sec: float
    intensity: float
    muted: bool
    is_today: bool
    selected: bool
    books_count: int = 0
    top_books: list[dict[str, Any]] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.duration_sec > 0


@dataclass(slots=True)
class CalendarMonth:
    year: int
    month: int
    label: str
    grid_start: date
    grid_end: date
    cells: list[CalendarCell]
    read_days: int
    duration_sec: float
    max_daily_sec: float
    selected_date: str | None = None

    @property
    def weeks(self) -> list[list[CalendarCell]]:
        return [self.cells[i : i + 7] for i in range(0, len(self.cells), 7)]


@dataclass(slots=True)
class CalendarDayDetail:
    date: str
    duration_sec: float
    books_count: int
    # (rank, book) pairs, rank starting at 1
    top_books: list[tuple[int, dict[str, Any]]] = field(default_factory=list)


@dataclass(slots=True)
class DailyAggregateRow:
    date: str
    duration_sec: float = 0
    sessions: int = 0
    pages: int = 0


@dataclass(slots=True)
class RawSessionRow:
    date: str
    duration: float = 0
    page: int | None = None


HeatmapRow = DailyAggregateRow | RawSessionRow


@dataclass(slots=True)
class HeatmapDay:
    date: str
    week: int
    weekday: int  # Monday=0
    in_range: bool
    is_today: bool
    duration: float = 0
    sessions: int = 0
    pages: int = 0
    annotations: int = 0
    intensity: float = 0.0

    @property
    def active(self) -> bool:
        return self.duration > 0 or self.annotations > 0

    @property
    def annotation_only(self) -> bool:
        return self.annotations > 0 and self.duration <= 0


@dataclass(slots=True)
class BookHeatmap:
    start: date
    end: date
    days: list[HeatmapDay]
    max_duration: float
    active_days: int
    total_duration: float

    @property
    def has_data(self) -> bool:
        return self.active_days > 0


@dataclass(slots=True)
class BookGroup:
    id: str
    book_ref: str
    book_md5: str
    title: str
    authors: str
    items: list[dict[str, Any]] = field(default_factory=list)
    last_ts: float = 0.0
    note_count: int = 0
    cover_url: str = ""


@dataclass(slots=True)
class Milestone:
    key: str
    label: str
    kind: MilestoneKind
    when: datetime | None
    page: int | None = None
    total_pages: int | None = None
    duration: float = 0
    annotation_kind: AnnotationKind | None = None
    chapter: str = ""
