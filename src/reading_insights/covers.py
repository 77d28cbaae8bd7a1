from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from .indexes import EMPTY_TITLE_AUTHOR_KEY, FirstWinsIndex
from .normalize import normalize_loose_title, title_author_key
from .records import get_book_ref, text_field, to_list

logger = logging.getLogger(__name__)


def book_cover_url(ref: Any, version: int = 0) -> str:
    return f"/api/books/{quote(get_book_ref(ref), safe='')}/cover?v={int(version or 0)}"


class CoverResolver:
    """Resolve a display identity (and cover URL) for records lacking a book id.

    Built once per catalog snapshot. Calling the resolver on a record returns
    a shallow copy carrying ``cover_ref`` and ``cover_url``, or the record
    itself when no identity can be found.
    """

    def __init__(self, books: Any = (), *, cover_version: int = 0) -> None:
        self.cover_version = cover_version
        self._by_md5: FirstWinsIndex[str] = FirstWinsIndex()
        self._by_title_author: FirstWinsIndex[str] = FirstWinsIndex()
        self._by_title: FirstWinsIndex[str] = FirstWinsIndex()
        for book in to_list(books):
            if not book or not isinstance(book, Mapping):
                continue
            ref = get_book_ref(book.get("id"))
            if not ref:
                continue
            md5 = text_field(book, "md5")
            if md5:
                self._by_md5.add(md5, ref)
            ta_key = title_author_key(book.get("title"), book.get("authors"))
            if ta_key != EMPTY_TITLE_AUTHOR_KEY:
                self._by_title_author.add(ta_key, ref)
            self._by_title.add(normalize_loose_title(book.get("title")), ref)

    def resolve_ref(self, item: Any) -> str:
        """Return the catalog reference for ``item`` or an empty string."""
        if not item or not isinstance(item, Mapping):
            return ""
        explicit = get_book_ref(item.get("book_ref")) or get_book_ref(item.get("book_id"))
        if explicit:
            return explicit
        md5 = text_field(item, "md5")
        if md5 and md5 in self._by_md5:
            return self._by_md5.get(md5) or ""
        ta_key = title_author_key(item.get("title"), item.get("authors"))
        if ta_key in self._by_title_author:
            return self._by_title_author.get(ta_key) or ""
        title_key = normalize_loose_title(item.get("title"))
        if title_key in self._by_title:
            return self._by_title.get(title_key) or ""
        return ""

    def __call__(self, item: Any) -> Any:
        ref = self.resolve_ref(item)
        if not ref:
            return item
        return {**item, "cover_ref": ref, "cover_url": book_cover_url(ref, self.cover_version)}


def build_library_cover_resolver(books: Any, cover_version: int = 0) -> CoverResolver:
    resolver = CoverResolver(books, cover_version=cover_version)
    logger.debug(
        "Cover resolver indexed %d md5, %d title+author, %d title keys",
        len(resolver._by_md5),
        len(resolver._by_title_author),
        len(resolver._by_title),
    )
    return resolver


__all__ = ["CoverResolver", "book_cover_url", "build_library_cover_resolver"]
