from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable
import os

import yaml
from dotenv import load_dotenv

from .models import (
    BooksFilter,
    BooksSortKey,
    HighlightsSort,
    HighlightsType,
    SortDirection,
    TrendPrecedence,
)


_DEFAULT_API_URL = "http://localhost:8686"
_SORT_KEYS = ("last_open_ts", "percent", "title", "total_read_time", "highlights")
_SORT_DIRS = ("desc", "asc")
_BOOK_FILTERS = ("all", "reading", "finished", "highlighted")
_HIGHLIGHT_TYPES = ("all", "highlight", "note", "bookmark")
_HIGHLIGHT_SORTS = ("recent", "count", "title")
_TREND_DAYS = (90, 30, 180, 365)
_PRECEDENCES = ("widest", "narrowest")


@dataclass(slots=True)
class Preferences:
    """View preferences passed explicitly into engine entry points."""

    books_sort_key: BooksSortKey = "last_open_ts"
    books_sort_dir: SortDirection = "desc"
    books_filter: BooksFilter = "all"
    books_search: str = ""
    highlights_type: HighlightsType = "all"
    highlights_sort: HighlightsSort = "recent"
    highlights_search: str = ""
    stats_trend_days: int = 90
    trend_precedence: TrendPrecedence = "widest"
    cover_version: int = 0


@dataclass(slots=True)
class Settings:
    """Runtime settings resolved from YAML + environment variables."""

    root: Path
    api_base_url: str
    api_timeout: float
    concurrency: int
    rpm: int
    snapshot_dir: Path
    preferences: Preferences = field(default_factory=Preferences)
    log_level: str = "INFO"
    config_path: Path | None = None

    def ensure_data_dirs(self) -> None:
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)


def _choice(value: object, allowed: Iterable[object]) -> object:
    options = tuple(allowed)
    return value if value in options else options[0]


def load_preferences(section: object) -> Preferences:
    """Build preferences from a mapping, replacing unknown values with defaults."""
    try:
        trend_days = int(_coerce_value(section, "stats_trend_days", 90))
    except (TypeError, ValueError):
        trend_days = 90
    try:
        cover_version = int(_coerce_value(section, "cover_version", 0))
    except (TypeError, ValueError):
        cover_version = 0
    return Preferences(
        books_sort_key=_choice(str(_coerce_value(section, "books_sort_key", "")), _SORT_KEYS),
        books_sort_dir=_choice(str(_coerce_value(section, "books_sort_dir", "")).lower(), _SORT_DIRS),
        books_filter=_choice(str(_coerce_value(section, "books_filter", "")), _BOOK_FILTERS),
        books_search=str(_coerce_value(section, "books_search", "")),
        highlights_type=_choice(str(_coerce_value(section, "highlights_type", "")), _HIGHLIGHT_TYPES),
        highlights_sort=_choice(str(_coerce_value(section, "highlights_sort", "")), _HIGHLIGHT_SORTS),
        highlights_search=str(_coerce_value(section, "highlights_search", "")),
        stats_trend_days=int(_choice(trend_days, _TREND_DAYS)),
        trend_precedence=_choice(str(_coerce_value(section, "trend_precedence", "")), _PRECEDENCES),
        cover_version=max(0, cover_version),
    )


def load_settings(path: str | os.PathLike[str] | None) -> Settings:
    """Load settings from YAML file and environment variables."""
    load_dotenv()
    cfg_path = Path(path).resolve() if path else None
    data: dict[str, object] = {}

    if cfg_path:
        with open(cfg_path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, dict):
                raise ValueError("Configuration file must contain a mapping at top level")
            data = raw

    root = (cfg_path.parent if cfg_path else Path.cwd()).resolve()
    api = data.get("api", {})
    snapshots = data.get("snapshots", {})
    prefs = data.get("preferences", {})

    base_url = str(_coerce_value(api, "base_url", _DEFAULT_API_URL))
    env_url = os.getenv("READING_INSIGHTS_API_URL")
    if env_url:
        base_url = env_url.strip()

    snapshot_dir = (root / _coerce_path(snapshots, "dir", "./data/snapshots")).resolve()
    env_snapshot_dir = os.getenv("READING_INSIGHTS_SNAPSHOT_DIR")
    if env_snapshot_dir:
        snapshot_dir = Path(env_snapshot_dir).expanduser().resolve()

    log_level = os.getenv("READING_INSIGHTS_LOG_LEVEL", "").strip() or str(data.get("log_level") or "INFO")

    return Settings(
        root=root,
        api_base_url=base_url.rstrip("/"),
        api_timeout=float(_coerce_value(api, "timeout", 10.0)),
        concurrency=max(1, int(_coerce_value(api, "concurrency", 4))),
        rpm=max(1, int(_coerce_value(api, "rpm", 240))),
        snapshot_dir=snapshot_dir,
        preferences=load_preferences(prefs),
        log_level=log_level.upper(),
        config_path=cfg_path,
    )


def _coerce_path(section: object, key: str, default: str) -> Path:
    if isinstance(section, dict) and key in section and section[key]:
        return Path(str(section[key]))
    return Path(default)


def _coerce_value(section: object, key: str, default: object) -> object:
    if isinstance(section, dict) and key in section:
        value = section[key]
        if value is None:
            return default
        return value
    return default


__all__ = ["Preferences", "Settings", "load_preferences", "load_settings"]
