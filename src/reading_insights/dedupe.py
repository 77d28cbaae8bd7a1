from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from .indexes import FirstWinsIndex
from .normalize import normalize_loose_title
from .records import annotation_kind, annotation_timestamp, as_int, number_field, text_field, to_list

logger = logging.getLogger(__name__)

_UNKNOWN_AUTHOR_RE = re.compile(r"unknown author", re.I)


def dedupe_key(book: Any) -> str:
    """Identity key for collapsing catalog duplicates; empty means unique."""
    md5 = text_field(book, "md5")
    if md5:
        return f"md5:{md5}"
    title = normalize_loose_title(text_field(book, "title"))
    if not title:
        return ""
    author = normalize_loose_title(text_field(book, "authors"))
    pages = number_field(book, "pages")
    pages_key = str(as_int(pages)) if pages > 0 else ""
    return f"ta:{title}::{author}::{pages_key}"


def display_score(book: Any) -> int:
    """Completeness score used to pick the canonical record among duplicates."""
    score = 0
    if text_field(book, "md5"):
        score += 20
    if isinstance(book, Mapping) and book.get("cover_available"):
        score += 12
    authors = text_field(book, "authors")
    if authors and not _UNKNOWN_AUTHOR_RE.search(authors):
        score += 10
    if number_field(book, "pages") > 0:
        score += 8
    if number_field(book, "percent") > 0:
        score += 6
    if number_field(book, "highlights") > 0:
        score += 4
    score += min(5, math.floor(number_field(book, "last_open_ts") / 1e9))
    return score


def dedupe_books_for_display(books: Any) -> list[Any]:
    """Collapse catalog records describing the same book to one canonical record.

    Output keeps the order in which each key was first seen; the record
    occupying a slot is the highest scoring one, first seen on ties.
    """
    survivors: dict[str, tuple[int, Any]] = {}
    total = 0
    for book in to_list(books):
        total += 1
        key = dedupe_key(book)
        if not key:
            # Untitled records are never merged.
            survivors[f"__unique:{len(survivors)}"] = (0, book)
            continue
        score = display_score(book)
        previous = survivors.get(key)
        if previous is None or score > previous[0]:
            survivors[key] = (score, book)
    result = [book for _, book in survivors.values()]
    if len(result) != total:
        logger.debug("Collapsed %d catalog records into %d books", total, len(result))
    return result


def annotation_fingerprint(annotation: Any) -> str:
    parts = [
        text_field(annotation, "book_ref"),
        text_field(annotation, "book_md5"),
        text_field(annotation, "book_id"),
        text_field(annotation, "book_title").strip(),
        text_field(annotation, "book_authors").strip(),
        annotation_kind(annotation),
        text_field(annotation, "text").strip(),
        text_field(annotation, "note").strip(),
        text_field(annotation, "chapter").strip(),
        text_field(annotation, "pageno"),
        text_field(annotation, "page"),
        text_field(annotation, "pos0"),
        text_field(annotation, "pos1"),
        annotation_timestamp(annotation).strip(),
    ]
    return "||".join(parts)


def dedupe_annotations_for_display(items: Any) -> list[Any]:
    """Drop annotations whose fingerprint was already seen, keeping the first."""
    seen: FirstWinsIndex[Any] = FirstWinsIndex()
    for item in to_list(items):
        seen.add(annotation_fingerprint(item), item)
    return seen.values()


__all__ = [
    "dedupe_key",
    "display_score",
    "dedupe_books_for_display",
    "annotation_fingerprint",
    "dedupe_annotations_for_display",
]
