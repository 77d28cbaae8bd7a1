from __future__ import annotations

import asyncio
import dataclasses
import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Iterable

import typer

from .analytics import build_stats_overview
from .client import DashboardError
from .config import Preferences, Settings, load_settings
from .covers import build_library_cover_resolver
from .dedupe import dedupe_annotations_for_display
from .formatting import format_duration, format_duration_long, format_timestamp, short_duration
from .heatmaps import build_calendar_day_detail, build_calendar_month, book_heatmap_from_records
from .highlights import build_highlight_groups, export_highlights_json, export_highlights_markdown
from .library import build_library_view
from .logging_setup import setup_logging
from .matcher import find_best_stats_match
from .records import get_field, number_field, pages_read, text_field, to_list
from .service import SnapshotService
from .snapshot import Snapshot, SnapshotNotFoundError, load_snapshot
from .timeline import build_book_milestones

app = typer.Typer(help="Reading analytics over dashboard snapshots")

_INTENSITY_MARKS = " .:*#"
_WEEKDAY_HEADER = "Mo  Tu  We  Th  Fr  Sa  Su"


@dataclass(slots=True)
class AppState:
    settings: Settings


def _resolve_config_path(config: Path | None) -> Path | None:
    if config:
        return config
    env_value = os.getenv("READING_INSIGHTS_CONFIG")
    if env_value:
        return Path(env_value)
    default = Path.cwd() / ".reading-insights.yaml"
    return default if default.exists() else None


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(None, "--config", exists=True, help="Path to .reading-insights.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    cfg_path = _resolve_config_path(config)
    try:
        settings = load_settings(cfg_path)
    except ValueError as exc:
        typer.secho(f"Invalid config: {exc}", fg="red", err=True)
        raise typer.Exit(code=2) from None
    if verbose:
        settings.log_level = "DEBUG"
    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings)
    typer.secho(
        f"Config: {settings.config_path or 'defaults'}, snapshots={settings.snapshot_dir}",
        fg="cyan",
        err=True,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("application state missing")
    return state


def _parse_date(value: str | None, option: str = "--date") -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        typer.secho(f"{option} must be in YYYY-MM-DD format", fg="red", err=True)
        raise typer.Exit(code=2) from None


def _check_choice(value: str | None, allowed: Iterable[str], option: str) -> str | None:
    if value is None:
        return None
    options = tuple(allowed)
    if value not in options:
        typer.secho(f"{option} must be one of: {', '.join(options)}", fg="red", err=True)
        raise typer.Exit(code=2)
    return value


def _load(state: AppState, date_option: str | None) -> Snapshot:
    try:
        return load_snapshot(state.settings.snapshot_dir, date=_parse_date(date_option))
    except SnapshotNotFoundError as exc:
        typer.secho(str(exc), fg="red", err=True)
        raise typer.Exit(code=1) from None


def _preferences(state: AppState, **overrides: object) -> Preferences:
    changes = {key: value for key, value in overrides.items() if value is not None}
    return dataclasses.replace(state.settings.preferences, **changes)


@app.command()
def pull(
    ctx: typer.Context,
    details: bool = typer.Option(True, "--details/--no-details", help="Also fetch per-book annotations and timelines"),
) -> None:
    """Fetch the dashboard collections and store today's snapshot."""
    state = _get_state(ctx)
    state.settings.ensure_data_dirs()

    async def _run() -> Path:
        service = SnapshotService(state.settings)
        try:
            return await service.pull_and_save(with_details=details)
        finally:
            await service.close()

    try:
        path = asyncio.run(_run())
    except DashboardError as exc:
        typer.secho(f"Pull failed: {exc}", fg="red", err=True)
        raise typer.Exit(code=1) from None
    typer.secho(f"Snapshot written to {path}", fg="green")


@app.command()
def books(
    ctx: typer.Context,
    search: str | None = typer.Option(None, "--search", "-s", help="Match title or author"),
    status: str | None = typer.Option(None, "--filter", help="all|reading|finished|highlighted"),
    sort: str | None = typer.Option(None, "--sort", help="last_open_ts|percent|title|total_read_time|highlights"),
    direction: str | None = typer.Option(None, "--dir", help="asc|desc"),
    date_option: str | None = typer.Option(None, "--date", help="Snapshot date (YYYY-MM-DD)"),
) -> None:
    """List the deduplicated library with reading time from stats."""
    state = _get_state(ctx)
    prefs = _preferences(
        state,
        books_search=search,
        books_filter=_check_choice(status, ("all", "reading", "finished", "highlighted"), "--filter"),
        books_sort_key=_check_choice(
            sort, ("last_open_ts", "percent", "title", "total_read_time", "highlights"), "--sort"
        ),
        books_sort_dir=_check_choice(direction, ("asc", "desc"), "--dir"),
    )
    snapshot = _load(state, date_option)
    view = build_library_view(snapshot.books, snapshot.stats_books, prefs)
    if not view:
        typer.echo("No books match.")
        return
    for book in view:
        percent = number_field(book, "percent")
        line = f"[{book['status_tag']:<8}] {text_field(book, 'title') or 'Untitled'}"
        authors = text_field(book, "authors")
        if authors:
            line += f" by {authors}"
        line += f"  {percent:.0f}%  {format_duration(book.get('total_read_time'))}"
        highlights = int(number_field(book, "highlights"))
        if highlights:
            line += f"  {highlights} highlights"
        typer.echo(line)


@app.command()
def stats(
    ctx: typer.Context,
    days: int | None = typer.Option(None, "--days", help="Trend window: 30, 90, 180 or 365"),
    precedence: str | None = typer.Option(None, "--precedence", help="widest|narrowest series precedence"),
    date_option: str | None = typer.Option(None, "--date", help="Snapshot date (YYYY-MM-DD)"),
) -> None:
    """Summarise reading trends, streaks and top books."""
    state = _get_state(ctx)
    prefs = _preferences(
        state,
        stats_trend_days=days,
        trend_precedence=_check_choice(precedence, ("widest", "narrowest"), "--precedence"),
    )
    snapshot = _load(state, date_option)
    overview = build_stats_overview(snapshot.dashboard, snapshot.books, prefs)
    if overview is None:
        typer.echo("No reading data yet.")
        return
    typer.secho(f"Last {overview.trend_days} days", bold=True)
    typer.echo(f"  Total time:   {format_duration_long(overview.total_time_sec)}")
    typer.echo(f"  Active days:  {overview.active_days}")
    typer.echo(f"  Longest day:  {format_duration(overview.longest_day_sec)}")
    typer.echo(f"  Streaks:      best {overview.streaks.best}, current {overview.streaks.current}")
    typer.echo(f"  Books:        {overview.books_touched}")
    typer.echo("")
    typer.secho(overview.insights.title, bold=True)
    typer.echo(f"  {overview.insights.body}")
    for chip in overview.insights.chips:
        typer.echo(f"  - {chip}")
    if overview.monthly:
        typer.echo("")
        typer.secho("Monthly", bold=True)
        for bucket in overview.monthly:
            typer.echo(f"  {bucket.month}  {short_duration(bucket.duration_sec):>6}  {bucket.days_read} days")
    if overview.top_by_time:
        typer.echo("")
        typer.secho("Top books by time", bold=True)
        for rank, item in enumerate(overview.top_by_time, start=1):
            typer.echo(f"  {rank}. {text_field(item, 'title') or 'Untitled'}  {format_duration(get_field(item, 'total_read_time_sec'))}")


@app.command()
def calendar(
    ctx: typer.Context,
    month: str | None = typer.Option(None, "--month", help="Month to show (YYYY-MM)"),
    day: str | None = typer.Option(None, "--day", help="Show the books read on this day (YYYY-MM-DD)"),
    date_option: str | None = typer.Option(None, "--date", help="Snapshot date (YYYY-MM-DD)"),
) -> None:
    """Render a month of reading activity as a Monday-first grid."""
    state = _get_state(ctx)
    today = date.today()
    year, month_number = today.year, today.month
    if month:
        try:
            parsed = datetime.strptime(month, "%Y-%m")
        except ValueError:
            typer.secho("--month must be in YYYY-MM format", fg="red", err=True)
            raise typer.Exit(code=2) from None
        year, month_number = parsed.year, parsed.month
    selected = _parse_date(day, "--day")
    snapshot = _load(state, date_option)
    view = build_calendar_month(
        snapshot.dashboard,
        year,
        month_number,
        snapshot.books,
        today=today,
        selected=selected.isoformat() if selected else None,
        cover_version=state.settings.preferences.cover_version,
    )
    typer.secho(view.label, bold=True)
    typer.echo(_WEEKDAY_HEADER)
    for week in view.weeks:
        cells = []
        for cell in week:
            if cell.muted:
                cells.append("  ")
                continue
            mark = _INTENSITY_MARKS[min(len(_INTENSITY_MARKS) - 1, int(round(cell.intensity * (len(_INTENSITY_MARKS) - 1))))]
            cells.append(f"{cell.day:>2}{mark}" if cell.active else f"{cell.day:>2} ")
        typer.echo(" ".join(c.ljust(3) for c in cells).rstrip())
    typer.echo(f"{view.read_days} reading days, {format_duration_long(view.duration_sec)}")

    if view.selected_date:
        chosen = next((cell for cell in view.cells if cell.date == view.selected_date), None)
        if chosen is not None:
            detail = build_calendar_day_detail(chosen)
            typer.echo("")
            typer.secho(f"{detail.date}: {format_duration(detail.duration_sec)}, {detail.books_count} books", bold=True)
            for rank, book in detail.top_books:
                typer.echo(f"  {rank}. {text_field(book, 'title') or 'Untitled'}  {format_duration(get_field(book, 'duration_sec'))}")


@app.command()
def book(
    ctx: typer.Context,
    ref: str = typer.Argument(..., help="Book id as listed by the dashboard"),
    date_option: str | None = typer.Option(None, "--date", help="Snapshot date (YYYY-MM-DD)"),
) -> None:
    """Show one book: matched stats, 84-day heatmap and milestones."""
    state = _get_state(ctx)
    snapshot = _load(state, date_option)
    detail = snapshot.book_details.get(ref)
    if not detail:
        typer.secho(f"Book {ref} not found in snapshot (pull with --details)", fg="red", err=True)
        raise typer.Exit(code=1)
    record = get_field(detail, "book", {})
    annotations = dedupe_annotations_for_display(get_field(detail, "annotations", []))
    timeline = get_field(detail, "timeline", {})
    sessions = to_list(get_field(timeline, "sessions", []))
    daily = to_list(get_field(timeline, "daily", []))

    match = find_best_stats_match(record, snapshot.stats_books) or {}
    typer.secho(text_field(record, "title") or "Untitled", bold=True)
    authors = text_field(record, "authors")
    if authors:
        typer.echo(f"by {authors}")
    typer.echo(
        f"{number_field(record, 'percent'):.0f}% ({pages_read(record)}/{int(number_field(record, 'pages'))} pages), "
        f"{format_duration_long(get_field(match, 'total_read_time', 0))} read"
    )

    heatmap = book_heatmap_from_records(daily or sessions, annotations)
    typer.echo("")
    typer.secho(f"Last 84 days ({heatmap.active_days} active)", bold=True)
    if heatmap.has_data:
        for weekday in range(7):
            row = [day for day in heatmap.days if day.weekday == weekday]
            marks = []
            for day in row:
                if not day.in_range:
                    marks.append(" ")
                elif day.annotation_only:
                    marks.append("o")
                else:
                    marks.append(_INTENSITY_MARKS[int(round(day.intensity * (len(_INTENSITY_MARKS) - 1)))])
            typer.echo(f"{_WEEKDAY_HEADER.split()[weekday]} {''.join(marks)}")
    else:
        typer.echo("  No activity in range.")

    milestones = build_book_milestones(
        sessions,
        annotations,
        first_session=get_field(timeline, "first_session"),
        last_session=get_field(timeline, "last_session"),
    )
    if milestones:
        typer.echo("")
        typer.secho("Milestones", bold=True)
        for point in milestones:
            line = f"  {point.label}: {format_timestamp(point.when)}"
            if point.page:
                line += f", page {point.page}"
                if point.total_pages:
                    line += f"/{point.total_pages}"
            typer.echo(line)


@app.command()
def highlights(
    ctx: typer.Context,
    kind: str | None = typer.Option(None, "--type", help="all|highlight|note|bookmark"),
    sort: str | None = typer.Option(None, "--sort", help="recent|count|title"),
    search: str | None = typer.Option(None, "--search", "-s", help="Search text, notes, chapters, titles"),
    export: str | None = typer.Option(None, "--export", help="Export format: json or md"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the export to this file"),
    date_option: str | None = typer.Option(None, "--date", help="Snapshot date (YYYY-MM-DD)"),
) -> None:
    """List highlights grouped by book, or export them."""
    state = _get_state(ctx)
    prefs = _preferences(
        state,
        highlights_type=_check_choice(kind, ("all", "highlight", "note", "bookmark"), "--type"),
        highlights_sort=_check_choice(sort, ("recent", "count", "title"), "--sort"),
        highlights_search=search,
    )
    export = _check_choice(export, ("json", "md"), "--export")
    snapshot = _load(state, date_option)
    resolver = build_library_cover_resolver(snapshot.books, cover_version=prefs.cover_version)
    groups = build_highlight_groups(snapshot.highlights, prefs, resolver)

    if export:
        text = export_highlights_json(groups) if export == "json" else export_highlights_markdown(groups)
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(text, encoding="utf-8")
            typer.secho(f"Exported {len(groups)} books to {output}", fg="green", err=True)
        else:
            typer.echo(text)
        return

    if not groups:
        typer.echo("No highlights match.")
        return
    for group in groups:
        notes = f", {group.note_count} notes" if group.note_count else ""
        typer.secho(f"{group.title or 'Untitled'} ({len(group.items)} items{notes})", bold=True)
        for item in group.items:
            text = text_field(item, "text") or text_field(item, "note") or "(bookmark)"
            typer.echo(f"  - {text.splitlines()[0] if text else ''}")


__all__ = ["app"]
