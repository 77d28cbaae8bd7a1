from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .config import Preferences
from .dedupe import dedupe_books_for_display
from .matcher import enrich_catalog
from .models import BooksFilter, BooksSortKey, SortDirection
from .records import book_status_tag, number_field, text_field, to_list


def matches_search(book: Mapping[str, Any], query: str) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    haystack = f"{text_field(book, 'title')} {text_field(book, 'authors')}".lower()
    return needle in haystack


def filter_books(books: Any, query: str = "", status: BooksFilter = "all") -> list[Any]:
    result = []
    for book in to_list(books):
        if not isinstance(book, Mapping) or not matches_search(book, query):
            continue
        if status == "reading" and book_status_tag(book) != "reading":
            continue
        if status == "finished" and book_status_tag(book) != "finished":
            continue
        if status == "highlighted" and number_field(book, "highlights") <= 0:
            continue
        result.append(book)
    return result


def _sort_value(book: Mapping[str, Any], key: BooksSortKey) -> str | float:
    if key == "title":
        return text_field(book, "title").lower()
    if key in ("percent", "highlights", "total_read_time"):
        return number_field(book, key)
    return number_field(book, "last_open_ts")


def sort_books(books: Any, key: BooksSortKey = "last_open_ts", direction: SortDirection = "desc") -> list[Any]:
    """Stable sort of (enriched) catalog records.

    ``total_read_time`` is read from the record itself, so sort enriched
    records when ordering by reading time.
    """
    return sorted(
        (book for book in to_list(books) if isinstance(book, Mapping)),
        key=lambda book: _sort_value(book, key),
        reverse=direction != "asc",
    )


def build_library_view(books: Any, stats_books: Any = (), prefs: Preferences | None = None) -> list[dict[str, Any]]:
    """Canonical, enriched, filtered and sorted catalog for the books view."""
    prefs = prefs or Preferences()
    canonical = dedupe_books_for_display(books)
    enriched = enrich_catalog(canonical, stats_books, prefs)
    visible = filter_books(enriched, prefs.books_search, prefs.books_filter)
    return sort_books(visible, prefs.books_sort_key, prefs.books_sort_dir)


__all__ = [
    "matches_search",
    "filter_books",
    "sort_books",
    "build_library_view",
]
