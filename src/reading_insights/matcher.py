from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .config import Preferences
from .covers import book_cover_url
from .indexes import MatchIndex, build_stats_indexes
from .normalize import normalize_loose_title, normalize_title, title_author_key
from .records import as_int, book_status_tag, number_field, pages_read, text_field, to_list

logger = logging.getLogger(__name__)

TITLE_EQUAL_SCORE = 100
TITLE_CONTAINS_SCORE = 55
AUTHOR_EQUAL_SCORE = 25
AUTHOR_CONTAINS_SCORE = 12
PAGES_EQUAL_SCORE = 20
MIN_FUZZY_SCORE = 40


def score_stats_candidate(book: Mapping[str, Any], candidate: Mapping[str, Any]) -> int:
    """Fuzzy agreement score between a catalog book and a stats record."""
    book_title = normalize_loose_title(book.get("title"))
    cand_title = normalize_loose_title(candidate.get("title"))
    if not book_title or not cand_title:
        return 0
    score = 0
    if cand_title == book_title:
        score += TITLE_EQUAL_SCORE
    elif book_title in cand_title or cand_title in book_title:
        score += TITLE_CONTAINS_SCORE
    book_author = normalize_loose_title(book.get("authors"))
    cand_author = normalize_loose_title(candidate.get("authors"))
    if book_author and cand_author:
        if cand_author == book_author:
            score += AUTHOR_EQUAL_SCORE
        elif book_author in cand_author or cand_author in book_author:
            score += AUTHOR_CONTAINS_SCORE
    book_pages = number_field(book, "pages")
    cand_pages = number_field(candidate, "pages")
    if book_pages > 0 and cand_pages > 0 and book_pages == cand_pages:
        score += PAGES_EQUAL_SCORE
    return score


def find_best_stats_match(
    book: Mapping[str, Any] | None,
    stats_books: Any = (),
    index: MatchIndex | None = None,
) -> Mapping[str, Any] | None:
    """Return the statistics record describing ``book``, or ``None``.

    Exact lookups (md5, then title+author, then title) win outright; only
    when all three miss does the scored scan over ``stats_books`` run.
    """
    if not book or not isinstance(book, Mapping):
        return None
    idx = index if index is not None else build_stats_indexes(stats_books)

    md5 = text_field(book, "md5")
    if md5:
        hit = idx.by_md5.get(md5)
        if hit is not None:
            return hit
    hit = idx.by_title_author.get(title_author_key(book.get("title"), book.get("authors")))
    if hit is not None:
        return hit
    hit = idx.by_title.get(normalize_title(book.get("title")))
    if hit is not None:
        return hit

    if not normalize_loose_title(book.get("title")):
        return None

    best: Mapping[str, Any] | None = None
    best_score = 0
    for candidate in to_list(stats_books):
        if not candidate or not isinstance(candidate, Mapping):
            continue
        score = score_stats_candidate(book, candidate)
        if score > best_score:
            best_score = score
            best = candidate
    if best is not None and best_score >= MIN_FUZZY_SCORE:
        logger.debug("Fuzzy stats match for %r scored %d", book.get("title"), best_score)
        return best
    return None


def enrich_catalog(
    books: Any,
    stats_books: Any = (),
    prefs: Preferences | None = None,
) -> list[dict[str, Any]]:
    """Copy catalog records, attaching their matched reading statistics."""
    prefs = prefs or Preferences()
    stats = to_list(stats_books)
    index = build_stats_indexes(stats)
    enriched: list[dict[str, Any]] = []
    matched = 0
    for book in to_list(books):
        if not book or not isinstance(book, Mapping):
            continue
        match = find_best_stats_match(book, stats, index)
        if match is not None:
            matched += 1
        enriched.append(
            {
                **book,
                "total_read_time": as_int(number_field(match, "total_read_time")) if match else 0,
                "stats_match": match is not None,
                "cover_url": book_cover_url(book.get("id"), prefs.cover_version),
                "status_tag": book_status_tag(book),
                "pages_read": pages_read(book),
            }
        )
    logger.debug("Matched reading statistics for %d of %d books", matched, len(enriched))
    return enriched


__all__ = [
    "MIN_FUZZY_SCORE",
    "score_stats_candidate",
    "find_best_stats_match",
    "enrich_catalog",
]
