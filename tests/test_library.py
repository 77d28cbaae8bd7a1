from __future__ import annotations

from reading_insights.config import Preferences
from reading_insights.library import build_library_view, filter_books, sort_books
from reading_insights.records import book_status_tag, pages_read

BOOKS = [
    {"id": 1, "title": "dune", "authors": "Frank Herbert", "percent": 40, "highlights": 3, "last_open_ts": 300},
    {"id": 2, "title": "Anathem", "authors": "Neal Stephenson", "status": "complete", "last_open_ts": 100},
    {"id": 3, "title": "Blindsight", "authors": "Peter Watts", "last_open_ts": 200},
    {"id": 4, "title": "Dune", "authors": "Frank Herbert", "percent": 40, "last_open_ts": 50},
]


def test_status_tag_and_pages_read() -> None:
    assert book_status_tag({"status": "Finished"}) == "finished"
    assert book_status_tag({"percent": 0.1}) == "reading"
    assert book_status_tag({}) == "queued"
    assert pages_read({"percent": 33.3, "pages": 300}) == 100
    assert pages_read({"percent": 50}) == 0


def test_filter_books_by_status_and_search() -> None:
    assert [b["id"] for b in filter_books(BOOKS, status="finished")] == [2]
    assert [b["id"] for b in filter_books(BOOKS, status="highlighted")] == [1]
    assert [b["id"] for b in filter_books(BOOKS, query=" watts ")] == [3]
    assert [b["id"] for b in filter_books(BOOKS, status="reading")] == [1, 4]


def test_sort_books_title_is_case_insensitive_and_stable() -> None:
    ordered = sort_books(BOOKS, "title", "asc")
    assert [b["id"] for b in ordered] == [2, 3, 1, 4]
    assert [b["id"] for b in sort_books(BOOKS)] == [1, 3, 2, 4]


def test_build_library_view_dedupes_then_enriches() -> None:
    stats = [{"title": "Blindsight", "authors": "Peter Watts", "total_read_time": 900}]
    prefs = Preferences(books_sort_key="total_read_time", books_sort_dir="desc")
    view = build_library_view(BOOKS, stats, prefs)
    assert [b["id"] for b in view] == [3, 1, 2]
    assert view[0]["total_read_time"] == 900
