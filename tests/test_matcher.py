from __future__ import annotations

from reading_insights.config import Preferences
from reading_insights.matcher import (
    MIN_FUZZY_SCORE,
    enrich_catalog,
    find_best_stats_match,
    score_stats_candidate,
)


def test_exact_md5_hit_wins_over_better_fuzzy_candidate() -> None:
    by_md5 = {"title": "Something Else", "authors": "Nobody", "md5": "m1", "total_read_time": 10}
    fuzzy = {"title": "Dune", "authors": "Frank Herbert", "pages": 412, "total_read_time": 99}
    book = {"title": "Dune Messiah", "authors": "Frank Herbert", "md5": "m1", "pages": 412}
    assert score_stats_candidate(book, fuzzy) > score_stats_candidate(book, by_md5)
    assert find_best_stats_match(book, [fuzzy, by_md5]) is by_md5


def test_title_author_lookup_precedes_title_only() -> None:
    title_only = {"title": "dune", "authors": "Someone Else"}
    composite = {"title": "Dune!", "authors": "Frank Herbert"}
    book = {"title": "Dune", "authors": "Frank  Herbert"}
    assert find_best_stats_match(book, [title_only, composite]) is composite


def test_title_only_lookup_uses_trimmed_lowercase_title() -> None:
    stats = {"title": " DUNE ", "authors": "F. Herbert"}
    assert find_best_stats_match({"title": "dune", "authors": "Herbert Estate"}, [stats]) is stats


def test_fuzzy_match_accepts_substring_titles() -> None:
    stats = {"title": "Dune: Deluxe Edition", "authors": "Frank Herbert"}
    book = {"title": "Dune", "authors": "Herbert"}
    # 55 for containment + 12 for author containment
    assert score_stats_candidate(book, stats) == 67
    assert find_best_stats_match(book, [stats]) is stats


def test_fuzzy_match_rejects_partial_author_and_pages_agreement() -> None:
    stats = {"title": "Children of Dune", "authors": "Frank Herbert", "pages": 400}
    book = {"title": "God Emperor", "authors": "Herbert", "pages": 400}
    assert score_stats_candidate(book, stats) == 32
    assert score_stats_candidate(book, stats) < MIN_FUZZY_SCORE
    assert find_best_stats_match(book, [stats]) is None


def test_fuzzy_ties_keep_earliest_candidate() -> None:
    first = {"title": "The Dune Saga", "authors": "A"}
    second = {"title": "Dune Collection", "authors": "B"}
    assert find_best_stats_match({"title": "Dune"}, [first, second]) is first


def test_missing_fields_never_raise() -> None:
    assert find_best_stats_match(None, [{"title": "x"}]) is None
    assert find_best_stats_match({}, [None, {"title": None}]) is None
    assert find_best_stats_match({"title": "x"}, None) is None


def test_enrich_catalog_copies_records() -> None:
    books = [
        {"id": 7, "title": "Dune", "authors": "Frank Herbert", "pages": 400, "percent": 50},
        {"id": 8, "title": "Unread", "status": "complete"},
    ]
    stats = [{"title": "Dune", "authors": "Frank Herbert", "total_read_time": 3600.0}]
    enriched = enrich_catalog(books, stats, Preferences(cover_version=3))
    assert enriched[0]["total_read_time"] == 3600
    assert enriched[0]["stats_match"] is True
    assert enriched[0]["cover_url"] == "/api/books/7/cover?v=3"
    assert enriched[0]["status_tag"] == "reading"
    assert enriched[0]["pages_read"] == 200
    assert enriched[1]["total_read_time"] == 0
    assert enriched[1]["stats_match"] is False
    assert enriched[1]["status_tag"] == "finished"
    assert "stats_match" not in books[0]


def test_enrich_catalog_tolerates_oversized_percent() -> None:
    enriched = enrich_catalog([{"id": 1, "title": "Dune", "percent": 10**400}], [])
    assert len(enriched) == 1
    assert enriched[0]["stats_match"] is False
    assert enriched[0]["total_read_time"] == 0
