from __future__ import annotations

from reading_insights.covers import book_cover_url, build_library_cover_resolver

CATALOG = [
    {"id": "dune-1", "title": "Dune", "authors": "Frank Herbert", "md5": "d5"},
    {"id": "dune-2", "title": "Dune", "authors": "Frank Herbert"},
    {"id": "hyp", "title": "Hyperion (Cantos)", "authors": "Dan Simmons", "md5": "h5"},
    {"id": "", "title": "No identity"},
]


def test_book_cover_url_escapes_reference() -> None:
    assert book_cover_url("a/b c") == "/api/books/a%2Fb%20c/cover?v=0"
    assert book_cover_url(12, version=4) == "/api/books/12/cover?v=4"


def test_resolves_title_author_record_without_identifiers() -> None:
    resolve = build_library_cover_resolver(CATALOG)
    record = {"title": "Dune", "authors": "Frank Herbert"}
    resolved = resolve(record)
    assert resolved["cover_ref"] == "dune-1"
    assert resolved["cover_url"] == "/api/books/dune-1/cover?v=0"
    assert "cover_ref" not in record


def test_explicit_reference_wins_over_indexes() -> None:
    resolve = build_library_cover_resolver(CATALOG, cover_version=2)
    resolved = resolve({"book_id": "custom", "md5": "d5"})
    assert resolved["cover_ref"] == "custom"
    assert resolved["cover_url"].endswith("?v=2")


def test_resolution_order_md5_then_title_author_then_title() -> None:
    resolve = build_library_cover_resolver(CATALOG)
    assert resolve({"md5": "h5", "title": "Dune", "authors": "Frank Herbert"})["cover_ref"] == "hyp"
    assert resolve({"title": "hyperion", "authors": "Someone"})["cover_ref"] == "hyp"


def test_unresolvable_record_is_returned_unchanged() -> None:
    resolve = build_library_cover_resolver(CATALOG)
    record = {"title": "No identity"}
    assert resolve(record) is record
    assert resolve(None) is None
